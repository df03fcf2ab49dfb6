from __future__ import annotations

import pytest

from taperecorder.codec import comparable_failure, decode_failure, encode_failure, failure_details
from taperecorder.errors import InterceptedError, ThrownValue
from taperecorder.recording import FailureEntry


class PaymentDeclined(Exception):
    def __init__(self, message: str, code: str) -> None:
        super().__init__(message)
        self.code = code
        self.response = object()


def _raised(exc: Exception) -> Exception:
    try:
        raise exc
    except Exception as caught:
        return caught


def test_thrown_value_is_stored_verbatim() -> None:
    entry = encode_failure(ThrownValue({"sum": 5}), is_deferred=True)

    assert entry.is_structured_error is False
    assert entry.is_deferred is True
    assert entry.payload == {"sum": 5}

    decoded = decode_failure(entry)
    assert isinstance(decoded, ThrownValue)
    assert decoded.payload == {"sum": 5}


def test_unserializable_thrown_value_is_rejected() -> None:
    with pytest.raises(TypeError):
        encode_failure(ThrownValue(object()))


def test_structured_error_copies_fields() -> None:
    entry = encode_failure(_raised(PaymentDeclined("card declined", code="insufficient_funds")))

    assert entry.is_structured_error is True
    payload = entry.payload
    assert payload["name"] == "PaymentDeclined"
    assert payload["message"] == "card declined"
    assert payload["fields"] == {"code": "insufficient_funds"}
    assert "PaymentDeclined: card declined" in payload["stack"]


def test_structured_error_round_trip_builds_fresh_instances() -> None:
    entry = encode_failure(_raised(PaymentDeclined("card declined", code="insufficient_funds")))

    first = decode_failure(entry)
    second = decode_failure(entry)

    assert isinstance(first, PaymentDeclined)
    assert first is not second
    assert str(first) == "card declined"
    assert first.code == "insufficient_funds"
    assert not hasattr(PaymentDeclined, "code")


def test_builtin_error_round_trip() -> None:
    decoded = decode_failure(encode_failure(_raised(ValueError("sum = 5"))))

    assert type(decoded) is ValueError
    assert str(decoded) == "sum = 5"


def test_unresolvable_class_becomes_intercepted_error() -> None:
    entry = FailureEntry(
        payload={
            "name": "RemoteError",
            "module": "service.that.is.not.loaded",
            "qualname": "RemoteError",
            "message": "upstream failed",
            "args": ["upstream failed"],
            "fields": {"status": 503},
            "stack": "Traceback (most recent call last):\n...",
        },
        is_structured_error=True,
    )

    decoded = decode_failure(entry)

    assert isinstance(decoded, InterceptedError)
    assert str(decoded) == "upstream failed"
    assert decoded.status == 503
    assert failure_details(decoded) == (
        "RemoteError",
        "upstream failed",
        "Traceback (most recent call last):\n...",
    )


def test_intercepted_error_encodes_its_original_name() -> None:
    original = InterceptedError("RemoteError", "upstream failed", None, {"status": 503})

    payload = encode_failure(original).payload

    assert payload["name"] == "RemoteError"
    assert payload["fields"] == {"status": 503}
    assert isinstance(decode_failure(encode_failure(original)), InterceptedError)


def test_comparable_failure_drops_stack() -> None:
    failure = comparable_failure(_raised(RuntimeError("boom")))

    assert failure["name"] == "RuntimeError"
    assert failure["message"] == "boom"
    assert "stack" not in failure
    assert comparable_failure(ThrownValue("plain")) == "plain"


def test_failure_details_for_native_exception() -> None:
    name, message, stack = failure_details(_raised(KeyError("missing")))

    assert name == "KeyError"
    assert message == "'missing'"
    assert stack is not None
