from .cassette import FileTapeCassette, InMemoryTapeCassette, TapeCassette
from .codec import OPERATION_INPUT_KEY, OPERATION_OUTPUT_ALIAS, failure_details
from .errors import (
    CassetteError,
    InterceptedError,
    InterceptionKeyError,
    OperationFailedDuringPlayback,
    RecordingClosedError,
    RecordingKeyError,
    RecordingNotFoundError,
    SessionStateError,
    TapeRecorderError,
    ThrownValue,
)
from .playback import Output, PlaybackResult
from .recorder import TapeRecorder
from .recording import DataEntry, FailureEntry, MemoryRecording, Recording

__version__ = "0.1.0"

__all__ = [
    "CassetteError",
    "DataEntry",
    "FailureEntry",
    "FileTapeCassette",
    "InMemoryTapeCassette",
    "InterceptedError",
    "InterceptionKeyError",
    "MemoryRecording",
    "OPERATION_INPUT_KEY",
    "OPERATION_OUTPUT_ALIAS",
    "OperationFailedDuringPlayback",
    "Output",
    "PlaybackResult",
    "Recording",
    "RecordingClosedError",
    "RecordingKeyError",
    "RecordingNotFoundError",
    "SessionStateError",
    "TapeCassette",
    "TapeRecorder",
    "TapeRecorderError",
    "ThrownValue",
    "failure_details",
]
