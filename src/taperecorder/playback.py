from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from taperecorder.codec import OUTPUT_KEY_PREFIX, RESULT_SUFFIX
from taperecorder.recording import DataEntry, Recording

DURATION = "_tape_recorder_recording_duration"
RECORDED_AT = "_tape_recorder_recorded_at"
EXCEPTION_IN_OPERATION = "_tape_recorder_exception_in_operation"
CATEGORY = "_tape_recorder_category"


@dataclass(frozen=True)
class Output:
    key: str
    value: Any


@dataclass(frozen=True)
class PlaybackResult:
    original_recording: Recording
    playback_duration: int
    playback_outputs: list[Output]
    recorded_duration: int | None
    recorded_outputs: list[Output]


def is_output_key(key: str) -> bool:
    return key.startswith(OUTPUT_KEY_PREFIX) and not key.endswith(RESULT_SUFFIX)


def extract_recorded_outputs(recording: Recording) -> list[Output]:
    outputs: list[Output] = []
    for key in recording.get_all_keys():
        if not is_output_key(key):
            continue
        entry = recording.get_data(key)
        value = entry.value if isinstance(entry, DataEntry) else entry.payload
        outputs.append(Output(key=key, value=value))
    return outputs


def build_playback_result(
    recording: Recording,
    *,
    playback_duration: int,
    playback_outputs: list[Output],
) -> PlaybackResult:
    recorded_duration = recording.get_metadata().get(DURATION)
    return PlaybackResult(
        original_recording=recording,
        playback_duration=playback_duration,
        playback_outputs=playback_outputs,
        recorded_duration=recorded_duration if isinstance(recorded_duration, int) else None,
        recorded_outputs=extract_recorded_outputs(recording),
    )
