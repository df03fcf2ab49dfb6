from __future__ import annotations

import logging
import uuid

from taperecorder.errors import CassetteError
from taperecorder.recording import MemoryRecording, Recording

from .base import TapeCassette

logger = logging.getLogger(__name__)


class InMemoryTapeCassette(TapeCassette):
    """Keeps serialized recordings in a dict. Meant for tests and local experiments."""

    def __init__(self) -> None:
        self.recordings: dict[str, str] = {}
        self._last_id: str | None = None

    def _save_recording(self, recording: Recording) -> None:
        if not isinstance(recording, MemoryRecording):
            raise TypeError(f"Unsupported recording type: {type(recording).__name__}")
        self.recordings[recording.id] = recording.to_json()
        self._last_id = recording.id
        logger.debug("Stored recording %s in memory", recording.id)

    def create_new_recording(self, category: str) -> Recording:
        return MemoryRecording(f"{category}/{uuid.uuid4()}")

    def get_last_recording_id(self) -> str | None:
        return self._last_id

    def get_recording(self, recording_id: str) -> Recording | None:
        serialized = self.recordings.get(recording_id)
        if serialized is None:
            return None
        try:
            recording = MemoryRecording.from_json(serialized)
        except ValueError as exc:
            raise CassetteError(f"Invalid recording stored under {recording_id}") from exc
        recording.close()
        return recording
