from __future__ import annotations

from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class DataEntry(BaseModel):
    kind: Literal["data"] = "data"
    value: Any = None
    is_deferred: bool = False

    model_config = ConfigDict(extra="forbid")


class FailureEntry(BaseModel):
    kind: Literal["failure"] = "failure"
    payload: Any = None
    is_structured_error: bool
    is_deferred: bool = False

    model_config = ConfigDict(extra="forbid")


RecordedEntry = Union[DataEntry, FailureEntry]

_ENTRY_TYPES: dict[str, type[BaseModel]] = {
    "data": DataEntry,
    "failure": FailureEntry,
}


def parse_entry(data: Any) -> RecordedEntry:
    if not isinstance(data, dict):
        raise ValueError("Recorded entry must be a JSON object")
    kind = data.get("kind")
    if not isinstance(kind, str):
        raise ValueError("Recorded entry missing kind field")
    model = _ENTRY_TYPES.get(kind)
    if model is None:
        raise ValueError(f"Unknown entry kind: {kind}")
    return model.model_validate(data)


class RecordingDocument(BaseModel):
    """On-disk shape of one recording."""

    schema_version: int = 1
    id: str
    data: dict[str, Any] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid")
