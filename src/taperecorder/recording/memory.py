from __future__ import annotations

import json
from typing import Any

from pydantic import ValidationError

from taperecorder.errors import RecordingKeyError

from .base import Recording
from .models import RecordedEntry, RecordingDocument, parse_entry


class MemoryRecording(Recording):
    def __init__(self, recording_id: str | None = None) -> None:
        super().__init__(recording_id)
        self._data: dict[str, RecordedEntry] = {}
        self._metadata: dict[str, Any] = {}

    def _set_data(self, key: str, entry: RecordedEntry) -> None:
        self._data[key] = entry

    def _add_metadata(self, metadata: dict[str, Any]) -> None:
        self._metadata = {**self._metadata, **metadata}

    def get_data(self, key: str) -> RecordedEntry:
        if key not in self._data:
            raise RecordingKeyError(key)
        return self._data[key]

    def get_all_keys(self) -> list[str]:
        return list(self._data)

    def get_metadata(self) -> dict[str, Any]:
        return dict(self._metadata)

    def to_document(self) -> RecordingDocument:
        return RecordingDocument(
            id=self.id,
            data={key: entry.model_dump() for key, entry in self._data.items()},
            metadata=dict(self._metadata),
        )

    def to_json(self, *, indent: int | None = None) -> str:
        return json.dumps(
            self.to_document().model_dump(),
            indent=indent,
            ensure_ascii=False,
        )

    @classmethod
    def from_document(cls, document: RecordingDocument) -> "MemoryRecording":
        recording = cls(document.id)
        recording._data = {key: parse_entry(raw) for key, raw in document.data.items()}
        recording._metadata = dict(document.metadata)
        return recording

    @classmethod
    def from_json(cls, text: str) -> "MemoryRecording":
        """Load a stored recording; raises ValueError on malformed input."""
        try:
            document = RecordingDocument.model_validate_json(text)
        except ValidationError as exc:
            raise ValueError(f"Invalid recording document: {exc}") from exc
        return cls.from_document(document)
