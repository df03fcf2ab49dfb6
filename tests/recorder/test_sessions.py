from __future__ import annotations

import logging

import pytest

from taperecorder import (
    CassetteError,
    InMemoryTapeCassette,
    OPERATION_OUTPUT_ALIAS,
    Recording,
    RecordingNotFoundError,
    SessionStateError,
    TapeRecorder,
)
from taperecorder.playback import CATEGORY, DURATION, EXCEPTION_IN_OPERATION, RECORDED_AT

OPERATION_OUTPUT_KEY = f"output: {OPERATION_OUTPUT_ALIAS} #1.output"


class FailingCassette(InMemoryTapeCassette):
    def _save_recording(self, recording: Recording) -> None:
        raise CassetteError("disk full")


def _recorder(cassette: InMemoryTapeCassette | None = None) -> tuple[TapeRecorder, InMemoryTapeCassette]:
    cassette = cassette or InMemoryTapeCassette()
    recorder = TapeRecorder(cassette)
    recorder.enable_recording()
    return recorder, cassette


def test_disabled_recording_passes_through() -> None:
    cassette = InMemoryTapeCassette()
    recorder = TapeRecorder(cassette)
    calls: list[int] = []
    get_value = recorder.intercept_input("getValue", lambda: calls.append(1) or 3)

    wrapped = recorder.wrap_operation("operation", lambda: get_value())

    assert wrapped() == 3
    assert calls == [1]
    assert cassette.recordings == {}
    assert cassette.get_last_recording_id() is None
    assert not recorder.should_intercept()


def test_enable_recording_does_not_start_a_session() -> None:
    recorder, _ = _recorder()

    assert recorder.recording_enabled
    assert not recorder.in_recording_mode()
    assert not recorder.in_playback_mode()


def test_recording_metadata() -> None:
    recorder, cassette = _recorder()
    wrapped = recorder.wrap_operation("checkout", lambda: 1, metadata={"service": "billing"})

    wrapped()

    recording_id = cassette.get_last_recording_id()
    assert recording_id is not None
    assert recording_id.startswith("checkout/")
    recording = cassette.get_recording(recording_id)
    assert recording is not None
    assert recording.closed
    metadata = recording.get_metadata()
    assert isinstance(metadata[DURATION], int)
    assert isinstance(metadata[RECORDED_AT], str)
    assert metadata[EXCEPTION_IN_OPERATION] is False
    assert metadata[CATEGORY] == "checkout"
    assert metadata["service"] == "billing"


def test_failing_operation_is_flagged_in_metadata() -> None:
    recorder, cassette = _recorder()

    def operation() -> None:
        raise RuntimeError("broken")

    wrapped = recorder.wrap_operation("operation", operation)
    with pytest.raises(RuntimeError):
        wrapped()

    recording_id = cassette.get_last_recording_id()
    assert recording_id is not None
    recording = cassette.get_recording(recording_id)
    assert recording is not None
    assert recording.get_metadata()[EXCEPTION_IN_OPERATION] is True
    assert not recorder.in_recording_mode()


def test_counters_reset_between_sessions() -> None:
    recorder, cassette = _recorder()
    publish = recorder.intercept_output("publish", lambda value: value)
    wrapped = recorder.wrap_operation("operation", lambda: publish(1))

    wrapped()
    first_id = cassette.get_last_recording_id()
    wrapped()
    second_id = cassette.get_last_recording_id()

    assert first_id is not None and second_id is not None
    assert first_id != second_id
    for recording_id in (first_id, second_id):
        recording = cassette.get_recording(recording_id)
        assert recording is not None
        assert "output: publish #1.output" in recording.get_all_keys()
        assert "output: publish #2.output" not in recording.get_all_keys()


def test_nested_session_is_rejected() -> None:
    recorder, cassette = _recorder()
    inner = recorder.wrap_operation("inner", lambda: 1)
    outer = recorder.wrap_operation("outer", lambda: inner())

    with pytest.raises(SessionStateError):
        outer()

    assert not recorder.in_recording_mode()
    recording_id = cassette.get_last_recording_id()
    assert recording_id is not None
    assert recording_id.startswith("outer/")
    recording = cassette.get_recording(recording_id)
    assert recording is not None
    assert OPERATION_OUTPUT_KEY not in recording.get_all_keys()


def test_play_unknown_recording() -> None:
    recorder, _ = _recorder()

    with pytest.raises(RecordingNotFoundError):
        recorder.play("operation/missing", lambda: None)


def test_play_inside_playback_is_rejected() -> None:
    recorder, cassette = _recorder()
    wrapped = recorder.wrap_operation("operation", lambda: 1)
    wrapped()
    recording_id = cassette.get_last_recording_id()
    assert recording_id is not None

    def driver() -> None:
        recorder.play(recording_id, wrapped)

    with pytest.raises(SessionStateError):
        recorder.play(recording_id, driver)
    assert not recorder.in_playback_mode()


def test_key_extractor_failure_aborts_recording(caplog: pytest.LogCaptureFixture) -> None:
    recorder, cassette = _recorder()
    calls: list[str] = []

    def _extractor() -> object:
        raise ValueError("unstable arguments")

    first = recorder.intercept_input("first", lambda: calls.append("first") or 1, key_extractor=_extractor)
    second = recorder.intercept_input("second", lambda: calls.append("second") or 2)

    def operation() -> int:
        return first() + second()

    wrapped = recorder.wrap_operation("operation", operation)
    with caplog.at_level(logging.ERROR, logger="taperecorder.recorder"):
        result = wrapped()

    assert result == 3
    assert calls == ["first", "second"]
    assert cassette.recordings == {}
    assert not recorder.in_recording_mode()
    assert "Aborting recording" in caplog.text


def test_unserializable_value_aborts_recording() -> None:
    recorder, cassette = _recorder()
    marker = object()
    get_handle = recorder.intercept_input("handle", lambda: marker)

    wrapped = recorder.wrap_operation("operation", lambda: get_handle() is marker)

    assert wrapped() is True
    assert cassette.recordings == {}


def test_key_extractor_failure_during_playback_is_captured() -> None:
    recorder, cassette = _recorder()
    revision = {"broken": False}

    def _extractor(value: int) -> list[int]:
        if revision["broken"]:
            raise ValueError("bad key")
        return [value]

    lookup = recorder.intercept_input("lookup", lambda value: value * 2, key_extractor=_extractor)
    wrapped = recorder.wrap_operation("operation", lambda: lookup(4))
    assert wrapped() == 8
    recording_id = cassette.get_last_recording_id()
    assert recording_id is not None

    revision["broken"] = True
    playback = recorder.play(recording_id, wrapped)

    assert not recorder.in_playback_mode()
    failure = playback.playback_outputs[0].value[0]
    assert failure["name"] == "InterceptionKeyError"
    assert "bad key" in failure["message"]
    assert playback.recorded_outputs[0].value == [8]


def test_save_failure_is_logged_and_swallowed(caplog: pytest.LogCaptureFixture) -> None:
    recorder, cassette = _recorder(FailingCassette())
    wrapped = recorder.wrap_operation("operation", lambda: "done")

    with caplog.at_level(logging.ERROR, logger="taperecorder.recorder"):
        assert wrapped() == "done"

    assert cassette.recordings == {}
    assert not recorder.in_recording_mode()
    assert "Failed saving recording" in caplog.text


def test_nested_intercepted_calls_are_not_recorded() -> None:
    recorder, cassette = _recorder()
    inner = recorder.intercept_input("inner", lambda: 2)
    outer = recorder.intercept_input("outer", lambda: inner() + 1)

    wrapped = recorder.wrap_operation("operation", lambda: outer())
    assert wrapped() == 3

    recording_id = cassette.get_last_recording_id()
    assert recording_id is not None
    recording = cassette.get_recording(recording_id)
    assert recording is not None
    keys = recording.get_all_keys()
    assert "input: outer args=[]" in keys
    assert not any("inner" in key for key in keys)


def test_playback_does_not_create_recordings() -> None:
    recorder, cassette = _recorder()
    wrapped = recorder.wrap_operation("operation", lambda: 1)
    wrapped()
    recording_id = cassette.get_last_recording_id()
    assert recording_id is not None

    recorder.play(recording_id, wrapped)

    assert list(cassette.recordings) == [recording_id]


def test_recorded_arguments_can_be_skipped() -> None:
    recorder, cassette = _recorder()
    wrapped = recorder.wrap_operation("operation", lambda value, scale=1: value * scale)
    assert wrapped(3, scale=2) == 6
    recording_id = cassette.get_last_recording_id()
    assert recording_id is not None

    replayed = recorder.play(recording_id, wrapped)
    assert replayed.playback_outputs == replayed.recorded_outputs

    driver_calls: list[str] = []
    recorder.play(
        recording_id,
        lambda: driver_calls.append("called"),
        pass_recorded_arguments=False,
    )
    assert driver_calls == ["called"]
