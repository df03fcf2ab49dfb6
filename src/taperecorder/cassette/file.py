from __future__ import annotations

import logging
from pathlib import Path
import uuid

from taperecorder.errors import CassetteError
from taperecorder.recording import MemoryRecording, Recording

from .base import TapeCassette

logger = logging.getLogger(__name__)

_SUFFIX = ".json"


class FileTapeCassette(TapeCassette):
    """Stores each recording as a JSON document under ``directory/{id}.json``.

    Ids are ``{category}/{uuid}``, so recordings of one category share a
    sub-directory.
    """

    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)

    def _path_for(self, recording_id: str) -> Path:
        root = self.directory.resolve()
        path = (root / f"{recording_id}{_SUFFIX}").resolve()
        if root not in path.parents:
            raise CassetteError(f"Recording id escapes cassette directory: {recording_id}")
        return path

    def _save_recording(self, recording: Recording) -> None:
        if not isinstance(recording, MemoryRecording):
            raise TypeError(f"Unsupported recording type: {type(recording).__name__}")
        path = self._path_for(recording.id)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(recording.to_json(indent=2) + "\n", encoding="utf-8")
        except OSError as exc:
            raise CassetteError(f"Unable to write recording to {path}") from exc
        logger.debug("Stored recording %s at %s", recording.id, path)

    def create_new_recording(self, category: str) -> Recording:
        return MemoryRecording(f"{category}/{uuid.uuid4()}")

    def get_recording(self, recording_id: str) -> Recording | None:
        path = self._path_for(recording_id)
        if not path.is_file():
            return None
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise CassetteError(f"Unable to read {path}") from exc
        try:
            recording = MemoryRecording.from_json(text)
        except ValueError as exc:
            raise CassetteError(f"Invalid recording in {path}") from exc
        if recording.id != recording_id:
            raise CassetteError(
                f"Recording id mismatch in {path}: expected {recording_id}, found {recording.id}"
            )
        recording.close()
        return recording

    def list_recording_ids(self, category: str | None = None) -> list[str]:
        if not self.directory.is_dir():
            return []
        base = self.directory
        if category is not None:
            base = self.directory / category
            if not base.is_dir():
                return []
        ids = []
        for path in sorted(base.rglob(f"*{_SUFFIX}")):
            relative = path.relative_to(self.directory).as_posix()
            ids.append(relative[: -len(_SUFFIX)])
        return ids
