from __future__ import annotations

from abc import ABC, abstractmethod

from taperecorder.recording import Recording


class TapeCassette(ABC):
    """Storage driver the recorder uses to create, store and fetch recordings."""

    def save_recording(self, recording: Recording) -> None:
        self._save_recording(recording)
        recording.close()

    def abort_recording(self, recording: Recording) -> None:
        """Close ``recording`` without storing it."""
        recording.close()

    @abstractmethod
    def _save_recording(self, recording: Recording) -> None: ...

    @abstractmethod
    def get_recording(self, recording_id: str) -> Recording | None:
        """Return the stored recording, or None if there is none with that id."""

    @abstractmethod
    def create_new_recording(self, category: str) -> Recording:
        """Create an empty recording; the cassette owns the id (category prefixed)."""
