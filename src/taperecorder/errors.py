from __future__ import annotations

from typing import Any


class TapeRecorderError(Exception):
    """Base class for faults raised by the recorder itself."""


class SessionStateError(TapeRecorderError):
    pass


class RecordingNotFoundError(TapeRecorderError):
    def __init__(self, recording_id: str) -> None:
        super().__init__(f"Recording not found: {recording_id}")
        self.recording_id = recording_id


class RecordingKeyError(TapeRecorderError):
    def __init__(self, key: str) -> None:
        super().__init__(f"Key '{key}' not found in recording")
        self.key = key


class RecordingClosedError(TapeRecorderError):
    def __init__(self, recording_id: str) -> None:
        super().__init__(f"Recording is closed: {recording_id}")
        self.recording_id = recording_id


class InterceptionKeyError(TapeRecorderError):
    """Deriving an input interception key failed during playback.

    Unlike the other recorder faults this one travels through the replayed
    operation like a business failure and is captured as its output.
    """

    def __init__(self, alias: str, reason: str) -> None:
        super().__init__(f"Failed creating interception key for '{alias}': {reason}")
        self.alias = alias


class OperationFailedDuringPlayback(TapeRecorderError):
    pass


class CassetteError(TapeRecorderError):
    pass


class ThrownValue(Exception):
    """Raise a plain value (string, mapping, list) as a failure."""

    def __init__(self, payload: Any) -> None:
        super().__init__(payload)
        self.payload = payload


class InterceptedError(Exception):
    """A recorded structured failure whose original class is not available."""

    def __init__(
        self,
        name: str,
        message: str,
        stack: str | None = None,
        fields: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.name = name
        self.message = message
        self.stack = stack
        self.fields = dict(fields or {})

    def __str__(self) -> str:
        return self.message

    def __getattr__(self, item: str) -> Any:
        fields = self.__dict__.get("fields", {})
        if item in fields:
            return fields[item]
        raise AttributeError(item)
