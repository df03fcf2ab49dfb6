from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any
import uuid

from taperecorder.errors import RecordingClosedError

from .models import RecordedEntry


class Recording(ABC):
    """Holds the data captured from one recorded operation.

    Writes are accepted until the recording is closed; after that it is
    read-only, including for every playback that reads it.
    """

    def __init__(self, recording_id: str | None = None) -> None:
        self.id = recording_id or str(uuid.uuid4())
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def set_data(self, key: str, entry: RecordedEntry) -> None:
        if self._closed:
            raise RecordingClosedError(self.id)
        self._set_data(key, entry)

    def add_metadata(self, metadata: dict[str, Any]) -> None:
        """Merge ``metadata`` into the recording; later values win."""
        if self._closed:
            raise RecordingClosedError(self.id)
        self._add_metadata(metadata)

    def close(self) -> None:
        self._closed = True

    @abstractmethod
    def _set_data(self, key: str, entry: RecordedEntry) -> None: ...

    @abstractmethod
    def _add_metadata(self, metadata: dict[str, Any]) -> None: ...

    @abstractmethod
    def get_data(self, key: str) -> RecordedEntry:
        """Return the entry stored under ``key``.

        Raises RecordingKeyError when the key is absent.
        """

    @abstractmethod
    def get_all_keys(self) -> list[str]: ...

    @abstractmethod
    def get_metadata(self) -> dict[str, Any]: ...
