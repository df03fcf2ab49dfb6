from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


class CassetteSpec(BaseModel):
    type: Literal["memory", "file"] = "memory"
    path: str | None = None

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def _validate_path(self) -> "CassetteSpec":
        if self.type == "file" and not self.path:
            raise ValueError("File cassette requires a path")
        return self


class RecorderSettings(BaseModel):
    recording_enabled: bool = False
    cassette: CassetteSpec = Field(default_factory=CassetteSpec)

    model_config = ConfigDict(extra="forbid")
