from .loader import build_cassette, build_recorder, load_settings
from .models import CassetteSpec, RecorderSettings

__all__ = ["CassetteSpec", "RecorderSettings", "build_cassette", "build_recorder", "load_settings"]
