"""Interception keys and the failure codec.

Everything here is a pure function of its inputs; the recorder owns the
counters and the session state.
"""

from __future__ import annotations

import sys
import traceback
from typing import Any, Callable, Mapping, Sequence

from taperecorder.errors import InterceptedError, TapeRecorderError, ThrownValue
from taperecorder.recording.models import FailureEntry
from taperecorder.util.canonical_json import canonical_dumps, to_json_value

OPERATION_OUTPUT_ALIAS = "_tape_recorder_operation"
OPERATION_INPUT_KEY = "_tape_recorder_operation_input"

OUTPUT_KEY_PREFIX = "output:"
INPUT_KEY_PREFIX = "input:"
OUTPUT_SUFFIX = ".output"
RESULT_SUFFIX = ".result"

KeyExtractor = Callable[..., Any]

_MISSING = object()


def output_interception_key(alias: str, invocation_number: int) -> str:
    return f"{OUTPUT_KEY_PREFIX} {alias} #{invocation_number}"


def call_arguments(args: Sequence[Any], kwargs: Mapping[str, Any]) -> Any:
    if kwargs:
        return {"args": list(args), "kwargs": dict(kwargs)}
    return list(args)


def select_key_args(
    args: Sequence[Any],
    kwargs: Mapping[str, Any],
    key_extractor: KeyExtractor | None = None,
) -> Any:
    if key_extractor is not None:
        return key_extractor(*args, **kwargs)
    return call_arguments(args, kwargs)


def input_interception_key(alias: str, selected_args: Any) -> str:
    return f"{INPUT_KEY_PREFIX} {alias} args={canonical_dumps(selected_args)}"


def _json_safe(value: Any) -> Any:
    try:
        return to_json_value(value)
    except (TypeError, ValueError):
        return _MISSING


def _structured_payload(exc: BaseException) -> dict[str, Any]:
    if isinstance(exc, InterceptedError):
        return {
            "name": exc.name,
            "module": None,
            "qualname": None,
            "message": exc.message,
            "args": [exc.message],
            "fields": dict(exc.fields),
            "stack": exc.stack,
        }

    cls = type(exc)
    args = []
    for arg in exc.args:
        safe = _json_safe(arg)
        args.append(repr(arg) if safe is _MISSING else safe)
    fields: dict[str, Any] = {}
    for name, value in getattr(exc, "__dict__", {}).items():
        if name.startswith("__"):
            continue
        safe = _json_safe(value)
        if safe is not _MISSING:
            fields[name] = safe
    return {
        "name": cls.__name__,
        "module": cls.__module__,
        "qualname": cls.__qualname__,
        "message": str(exc),
        "args": args,
        "fields": fields,
        "stack": "".join(traceback.format_exception(cls, exc, exc.__traceback__)),
    }


def encode_failure(exc: BaseException, *, is_deferred: bool = False) -> FailureEntry:
    """Serialize a raised failure into a tagged entry.

    ``ThrownValue`` payloads are kept verbatim (and must be JSON serializable);
    every other exception is stored as a structured error.
    """
    if isinstance(exc, ThrownValue):
        return FailureEntry(
            payload=to_json_value(exc.payload),
            is_structured_error=False,
            is_deferred=is_deferred,
        )
    return FailureEntry(
        payload=_structured_payload(exc),
        is_structured_error=True,
        is_deferred=is_deferred,
    )


def comparable_failure(exc: BaseException) -> Any:
    """Failure form used as an operation output; drops the run-specific stack."""
    if isinstance(exc, ThrownValue):
        safe = _json_safe(exc.payload)
        return repr(exc.payload) if safe is _MISSING else safe
    payload = _structured_payload(exc)
    payload.pop("stack", None)
    return payload


def _resolve_exception_class(module: Any, qualname: Any) -> type[Exception] | None:
    if not isinstance(module, str) or not isinstance(qualname, str):
        return None
    target: Any = sys.modules.get(module)
    if target is None:
        return None
    for part in qualname.split("."):
        if part == "<locals>":
            return None
        target = getattr(target, part, None)
        if target is None:
            return None
    if not isinstance(target, type) or not issubclass(target, Exception):
        return None
    if issubclass(target, TapeRecorderError):
        return None
    return target


def decode_failure(entry: FailureEntry) -> Exception:
    """Rebuild a fresh exception from a stored failure entry."""
    if not entry.is_structured_error:
        return ThrownValue(entry.payload)

    payload = entry.payload if isinstance(entry.payload, dict) else {}
    name = str(payload.get("name") or "Error")
    message = str(payload.get("message") or "")
    stack = payload.get("stack")
    fields = payload.get("fields") if isinstance(payload.get("fields"), dict) else {}
    args = payload.get("args") if isinstance(payload.get("args"), list) else [message]

    cls = _resolve_exception_class(payload.get("module"), payload.get("qualname"))
    if cls is not None:
        try:
            exc = cls.__new__(cls, *args)
            exc.args = tuple(args)
            exc.__dict__.update(fields)
        except (TypeError, AttributeError):
            pass
        else:
            if isinstance(stack, str) and hasattr(exc, "add_note"):
                exc.add_note(f"Recorded traceback:\n{stack.rstrip()}")
            return exc
    return InterceptedError(
        name,
        message,
        stack if isinstance(stack, str) else None,
        fields,
    )


def failure_details(exc: BaseException) -> tuple[str, str, str | None]:
    """Return (name, message, stack) for any failure."""
    if isinstance(exc, InterceptedError):
        return exc.name, exc.message, exc.stack
    stack = None
    if exc.__traceback__ is not None:
        stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return type(exc).__name__, str(exc), stack
