from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from taperecorder.cassette import FileTapeCassette, InMemoryTapeCassette, TapeCassette
from taperecorder.recorder import TapeRecorder

from .models import CassetteSpec, RecorderSettings

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_NAME = "taperecorder.yaml"


def _load_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}") from exc
    except OSError as exc:
        raise FileNotFoundError(f"Unable to read {path}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected a YAML mapping in {path}")
    return data


def load_settings(path: Path) -> RecorderSettings:
    """Load recorder settings; a relative cassette path resolves against the file's directory."""
    config_path = path
    if config_path.is_dir():
        config_path = config_path / DEFAULT_CONFIG_NAME
    if not config_path.is_file():
        raise FileNotFoundError(f"Config file not found: {config_path}")
    data = _load_yaml(config_path)
    cassette = data.get("cassette")
    if isinstance(cassette, dict):
        cassette_path = cassette.get("path")
        if isinstance(cassette_path, str) and not Path(cassette_path).is_absolute():
            cassette["path"] = str((config_path.parent / cassette_path).resolve())
    settings = RecorderSettings.model_validate(data)
    logger.debug("Loaded recorder settings from %s", config_path)
    return settings


def build_cassette(spec: CassetteSpec) -> TapeCassette:
    if spec.type == "file":
        if not spec.path:
            raise ValueError("File cassette requires a path")
        return FileTapeCassette(Path(spec.path))
    return InMemoryTapeCassette()


def build_recorder(settings: RecorderSettings) -> TapeRecorder:
    recorder = TapeRecorder(build_cassette(settings.cassette))
    if settings.recording_enabled:
        recorder.enable_recording()
    return recorder
