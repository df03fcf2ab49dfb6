from .base import Recording
from .memory import MemoryRecording
from .models import DataEntry, FailureEntry, RecordedEntry, RecordingDocument, parse_entry

__all__ = [
    "DataEntry",
    "FailureEntry",
    "MemoryRecording",
    "RecordedEntry",
    "Recording",
    "RecordingDocument",
    "parse_entry",
]
