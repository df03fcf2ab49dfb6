from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
import copy
from datetime import datetime, timezone
import functools
import asyncio
import inspect
import logging
import time
from typing import Any, Awaitable, Callable, Iterator, Mapping

from taperecorder.cassette import TapeCassette
from taperecorder.codec import (
    OPERATION_INPUT_KEY,
    OPERATION_OUTPUT_ALIAS,
    OUTPUT_SUFFIX,
    RESULT_SUFFIX,
    KeyExtractor,
    call_arguments,
    comparable_failure,
    decode_failure,
    encode_failure,
    input_interception_key,
    output_interception_key,
    select_key_args,
)
from taperecorder.errors import (
    InterceptionKeyError,
    OperationFailedDuringPlayback,
    RecordingKeyError,
    RecordingNotFoundError,
    SessionStateError,
    TapeRecorderError,
)
from taperecorder.playback import (
    CATEGORY,
    DURATION,
    EXCEPTION_IN_OPERATION,
    RECORDED_AT,
    Output,
    PlaybackResult,
    build_playback_result,
)
from taperecorder.recording import DataEntry, FailureEntry, RecordedEntry, Recording
from taperecorder.util.canonical_json import to_json_value

logger = logging.getLogger(__name__)

_EMPTY = object()
_OPERATION_OUTPUT_KEY = output_interception_key(OPERATION_OUTPUT_ALIAS, 1)


async def _resolved(value: Any) -> Any:
    return value


async def _rejected(exc: BaseException) -> Any:
    raise exc


class TapeRecorder:
    """Records one execution of an operation and replays it later.

    A recorder is Idle, Recording (an active recording exists) or in
    Playback (a stored recording is bound). All of that state lives on the
    instance, so one recorder serves one session at a time; concurrent
    logical operations need one recorder each.
    """

    def __init__(self, cassette: TapeCassette) -> None:
        self.cassette = cassette
        self._recording_enabled = False
        self._active_recording: Recording | None = None
        self._playback_recording: Recording | None = None
        self._playback_outputs: list[Output] = []
        self._output_invocations: dict[str, int] = {}
        self._input_invocations: dict[str, int] = {}
        self._capturing: ContextVar[bool] = ContextVar(
            f"taperecorder_capturing_{id(self)}", default=False
        )

    @property
    def recording_enabled(self) -> bool:
        return self._recording_enabled

    def enable_recording(self) -> None:
        logger.info("Enabling recording")
        self._recording_enabled = True

    def disable_recording(self) -> None:
        logger.info("Disabling recording")
        self._recording_enabled = False

    def in_recording_mode(self) -> bool:
        return self._active_recording is not None

    def in_playback_mode(self) -> bool:
        return self._playback_recording is not None

    def should_intercept(self) -> bool:
        if self._capturing.get():
            return False
        return self.in_recording_mode() or self.in_playback_mode()

    # Session state

    def _assert_idle(self) -> None:
        if self._active_recording is not None:
            raise SessionStateError(f"Recording already active: {self._active_recording.id}")
        if self._playback_recording is not None:
            raise SessionStateError(f"Playback already active: {self._playback_recording.id}")

    def _reset_invocations(self) -> None:
        self._output_invocations = {}
        self._input_invocations = {}

    @contextmanager
    def _capture(self) -> Iterator[None]:
        token = self._capturing.set(True)
        try:
            yield
        finally:
            self._capturing.reset(token)

    def _abort_session(
        self, recording: Recording, reason: str, exc: BaseException | None = None
    ) -> None:
        if self._active_recording is not recording:
            return
        logger.error("Aborting recording %s: %s", recording.id, reason, exc_info=exc)
        self._active_recording = None
        self._reset_invocations()
        self.cassette.abort_recording(recording)

    # Storage

    def _record_data(self, recording: Recording, key: str, entry: RecordedEntry) -> None:
        if self._active_recording is not recording:
            logger.warning(
                "Dropping data under key %s, recording %s is no longer active", key, recording.id
            )
            return
        logger.debug("Recording data for recording id %s under key %s", recording.id, key)
        recording.set_data(key, entry)

    def _store_value(
        self, recording: Recording, key: str, value: Any, *, is_deferred: bool
    ) -> None:
        try:
            with self._capture():
                entry = DataEntry(value=to_json_value(value), is_deferred=is_deferred)
        except (TypeError, ValueError) as exc:
            self._abort_session(recording, f"value under key {key} is not serializable", exc)
            return
        self._record_data(recording, key, entry)

    def _store_failure(
        self, recording: Recording, key: str, failure: BaseException, *, is_deferred: bool
    ) -> None:
        try:
            with self._capture():
                entry = encode_failure(failure, is_deferred=is_deferred)
        except (TypeError, ValueError) as exc:
            self._abort_session(recording, f"failure under key {key} is not serializable", exc)
            return
        self._record_data(recording, key, entry)

    def _record_output(self, interception_key: str, value: Any, *, is_deferred: bool = False) -> None:
        """Capture call arguments (or an operation result) under ``interception_key``.

        While recording they are stored in the recording; during playback
        they go to the live output buffer that ``play`` hands back.
        """
        key = interception_key + OUTPUT_SUFFIX
        if self._playback_recording is not None:
            try:
                value = to_json_value(value)
            except (TypeError, ValueError):
                logger.warning("Playback output under key %s is not serializable", key)
            self._playback_outputs.append(Output(key=key, value=value))
            return
        if self._active_recording is None:
            return
        self._store_value(self._active_recording, key, value, is_deferred=is_deferred)

    def _next_output_key(self, alias: str) -> str:
        invocation_number = self._output_invocations.get(alias, 0) + 1
        self._output_invocations[alias] = invocation_number
        return output_interception_key(alias, invocation_number)

    def _derive_input_key(
        self,
        alias: str,
        key_extractor: KeyExtractor | None,
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
    ) -> str:
        with self._capture():
            key = input_interception_key(alias, select_key_args(args, kwargs, key_extractor))
        occurrence = self._input_invocations.get(key, 0) + 1
        self._input_invocations[key] = occurrence
        if occurrence == 1:
            return key
        return f"{key} #{occurrence}"

    def _execute_and_record(
        self,
        recording: Recording,
        key: str,
        func: Callable[..., Any],
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
    ) -> Any:
        try:
            with self._capture():
                result = func(*args, **kwargs)
        except Exception as exc:
            self._store_failure(recording, key, exc, is_deferred=False)
            raise
        if asyncio.isfuture(result):
            result.add_done_callback(
                functools.partial(self._store_settled_future, recording, key)
            )
            return result
        if inspect.isawaitable(result):
            return self._capture_deferred(recording, key, result)
        self._store_value(recording, key, result, is_deferred=False)
        return result

    def _store_settled_future(
        self, recording: Recording, key: str, future: asyncio.Future[Any]
    ) -> None:
        if future.cancelled():
            logger.warning("Deferred value under key %s was cancelled, nothing stored", key)
            return
        failure = future.exception()
        if failure is None:
            self._store_value(recording, key, future.result(), is_deferred=True)
        elif isinstance(failure, Exception):
            self._store_failure(recording, key, failure, is_deferred=True)

    async def _capture_deferred(
        self, recording: Recording, key: str, awaitable: Awaitable[Any]
    ) -> Any:
        try:
            with self._capture():
                result = await awaitable
        except Exception as exc:
            self._store_failure(recording, key, exc, is_deferred=True)
            raise
        self._store_value(recording, key, result, is_deferred=True)
        return result

    def _replay_entry(self, entry: RecordedEntry) -> Any:
        if isinstance(entry, FailureEntry):
            failure = decode_failure(entry)
            if entry.is_deferred:
                return _rejected(failure)
            raise failure
        value = copy.deepcopy(entry.value)
        if entry.is_deferred:
            return _resolved(value)
        return value

    # Operations

    def wrap_operation(
        self,
        category: str,
        func: Callable[..., Any],
        metadata: Mapping[str, Any] | None = None,
    ) -> Callable[..., Any]:
        """Wrap the entry point of an operation.

        While recording is enabled every call becomes one recording session.
        During playback the wrapped function runs against the bound recording
        and its result is captured for comparison.
        """

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            if self.in_playback_mode():
                return self._execute_operation(func, args, kwargs)
            if not self._recording_enabled:
                return func(*args, **kwargs)
            return self._execute_with_recording(category, func, args, kwargs, metadata)

        return wrapper

    def _capture_operation_failure(self, exc: Exception, *, is_deferred: bool) -> bool:
        """Record ``exc`` as the operation output.

        Returns True when the failure must reach the playback driver as
        OperationFailedDuringPlayback.
        """
        if isinstance(exc, TapeRecorderError) and not isinstance(exc, InterceptionKeyError):
            return False
        self._record_output(
            _OPERATION_OUTPUT_KEY, [comparable_failure(exc)], is_deferred=is_deferred
        )
        return self.in_playback_mode()

    def _execute_operation(
        self, func: Callable[..., Any], args: tuple[Any, ...], kwargs: dict[str, Any]
    ) -> Any:
        try:
            result = func(*args, **kwargs)
        except Exception as exc:
            if self._capture_operation_failure(exc, is_deferred=False):
                raise OperationFailedDuringPlayback(str(exc)) from exc
            raise
        if inspect.isawaitable(result):
            return self._settle_operation(result)
        self._record_output(_OPERATION_OUTPUT_KEY, [result])
        return result

    async def _settle_operation(self, awaitable: Awaitable[Any]) -> Any:
        try:
            result = await awaitable
        except Exception as exc:
            if self._capture_operation_failure(exc, is_deferred=True):
                raise OperationFailedDuringPlayback(str(exc)) from exc
            raise
        self._record_output(_OPERATION_OUTPUT_KEY, [result], is_deferred=True)
        return result

    def _execute_with_recording(
        self,
        category: str,
        func: Callable[..., Any],
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
        metadata: Mapping[str, Any] | None,
    ) -> Any:
        self._assert_idle()
        recording = self.cassette.create_new_recording(category)
        self._active_recording = recording
        self._reset_invocations()
        logger.info("Starting recording for category %s with id %s", category, recording.id)

        start = time.monotonic()
        session_metadata = dict(metadata or {})
        session_metadata[CATEGORY] = category
        self._store_value(
            recording,
            OPERATION_INPUT_KEY,
            {"args": list(args), "kwargs": dict(kwargs)},
            is_deferred=False,
        )

        try:
            result = self._execute_operation(func, args, kwargs)
        except BaseException:
            self._finish_recording(recording, category, session_metadata, start, failed=True)
            raise
        if inspect.isawaitable(result):
            return self._settle_recording(result, recording, category, session_metadata, start)
        self._finish_recording(recording, category, session_metadata, start, failed=False)
        return result

    async def _settle_recording(
        self,
        awaitable: Awaitable[Any],
        recording: Recording,
        category: str,
        metadata: dict[str, Any],
        start: float,
    ) -> Any:
        try:
            result = await awaitable
        except BaseException:
            self._finish_recording(recording, category, metadata, start, failed=True)
            raise
        self._finish_recording(recording, category, metadata, start, failed=False)
        return result

    def _finish_recording(
        self,
        recording: Recording,
        category: str,
        metadata: dict[str, Any],
        start: float,
        *,
        failed: bool,
    ) -> None:
        if self._active_recording is not recording:
            logger.warning(
                "Recording of category %s with id %s was aborted, nothing saved",
                category,
                recording.id,
            )
            return
        duration = int((time.monotonic() - start) * 1000)
        self._active_recording = None
        self._reset_invocations()

        metadata[EXCEPTION_IN_OPERATION] = failed
        metadata[RECORDED_AT] = datetime.now(timezone.utc).isoformat()
        metadata[DURATION] = duration
        try:
            recording.add_metadata(metadata)
            self.cassette.save_recording(recording)
        except Exception:
            logger.exception(
                "Failed saving recording of category %s with id %s", category, recording.id
            )
            recording.close()
            return
        logger.info(
            "Finished recording of category %s with id %s, recording duration %dms",
            category,
            recording.id,
            duration,
        )

    # Interception points

    def intercept_input(
        self,
        alias: str,
        func: Callable[..., Any],
        key_extractor: KeyExtractor | None = None,
    ) -> Callable[..., Any]:
        """Wrap a source of non-deterministic input.

        The interception key is derived from ``alias`` and the call arguments,
        or from whatever ``key_extractor`` returns for them.
        """

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            if not self.should_intercept():
                return func(*args, **kwargs)
            if self.in_playback_mode():
                return self._replay_input(alias, func, key_extractor, args, kwargs)
            return self._record_input(alias, func, key_extractor, args, kwargs)

        return wrapper

    def _record_input(
        self,
        alias: str,
        func: Callable[..., Any],
        key_extractor: KeyExtractor | None,
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
    ) -> Any:
        recording = self._active_recording
        if recording is None:
            raise SessionStateError("No active recording")
        try:
            key = self._derive_input_key(alias, key_extractor, args, kwargs)
        except Exception as exc:
            self._abort_session(recording, f"failed creating interception key for {alias}", exc)
            return func(*args, **kwargs)
        return self._execute_and_record(recording, key, func, args, kwargs)

    def _replay_input(
        self,
        alias: str,
        func: Callable[..., Any],
        key_extractor: KeyExtractor | None,
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
    ) -> Any:
        recording = self._playback_recording
        if recording is None:
            raise SessionStateError("No active playback")
        try:
            key = self._derive_input_key(alias, key_extractor, args, kwargs)
        except Exception as exc:
            raise InterceptionKeyError(alias, str(exc)) from exc
        try:
            entry = recording.get_data(key)
        except RecordingKeyError:
            logger.warning(
                "Key %s not found in recording %s, calling through", key, recording.id
            )
            return func(*args, **kwargs)
        return self._replay_entry(entry)

    def intercept_output(self, alias: str, func: Callable[..., Any]) -> Callable[..., Any]:
        """Wrap a sink of the operation's output.

        The call arguments are captured in both modes; the real function only
        runs while recording.
        """

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            if not self.should_intercept():
                return func(*args, **kwargs)
            key = self._next_output_key(alias)
            recording = self._active_recording
            self._record_output(key, call_arguments(args, kwargs))

            if self._playback_recording is not None:
                return self._replay_entry(self._playback_recording.get_data(key + RESULT_SUFFIX))
            if recording is None or not self.should_intercept():
                # the session was aborted while storing the arguments
                return func(*args, **kwargs)
            return self._execute_and_record(recording, key + RESULT_SUFFIX, func, args, kwargs)

        return wrapper

    def mute_interception(
        self, func: Callable[..., Any], placeholder: Any = _EMPTY
    ) -> Callable[..., Any]:
        """Keep ``func`` out of recordings.

        During playback the wrapper returns ``placeholder`` (an empty dict by
        default) and never calls ``func``.
        """

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            if not (self.should_intercept() and self.in_playback_mode()):
                return func(*args, **kwargs)
            value = {} if placeholder is _EMPTY else placeholder
            if inspect.iscoroutinefunction(func):
                return _resolved(value)
            return value

        return wrapper

    # Playback

    def play(
        self,
        recording_id: str,
        driver: Callable[..., Any],
        *,
        pass_recorded_arguments: bool = True,
    ) -> PlaybackResult | Awaitable[PlaybackResult]:
        """Replay a stored recording through ``driver``.

        ``driver`` is the wrapped operation (or an equivalent callable). It is
        called with the recorded operation arguments unless
        ``pass_recorded_arguments`` is False. When it returns an awaitable,
        ``play`` returns an awaitable of the PlaybackResult.
        """
        recording = self.cassette.get_recording(recording_id)
        if recording is None:
            raise RecordingNotFoundError(recording_id)
        self._assert_idle()

        args: tuple[Any, ...] = ()
        kwargs: dict[str, Any] = {}
        if pass_recorded_arguments:
            args, kwargs = _recorded_arguments(recording)

        self._playback_recording = recording
        self._playback_outputs = []
        self._reset_invocations()
        logger.info("Starting playback of recording %s", recording.id)

        start = time.monotonic()
        try:
            result = driver(*args, **kwargs)
        except OperationFailedDuringPlayback:
            result = None
        except BaseException:
            self._finish_playback(start)
            raise
        if inspect.isawaitable(result):
            return self._settle_playback(result, recording, start)
        return self._playback_result(recording, start)

    async def _settle_playback(
        self, awaitable: Awaitable[Any], recording: Recording, start: float
    ) -> PlaybackResult:
        try:
            await awaitable
        except OperationFailedDuringPlayback:
            pass
        except BaseException:
            self._finish_playback(start)
            raise
        return self._playback_result(recording, start)

    def _finish_playback(self, start: float) -> tuple[int, list[Output]]:
        duration = int((time.monotonic() - start) * 1000)
        outputs = self._playback_outputs
        self._playback_recording = None
        self._playback_outputs = []
        self._reset_invocations()
        return duration, outputs

    def _playback_result(self, recording: Recording, start: float) -> PlaybackResult:
        duration, outputs = self._finish_playback(start)
        logger.info("Finished playback of recording %s in %dms", recording.id, duration)
        return build_playback_result(
            recording,
            playback_duration=duration,
            playback_outputs=outputs,
        )


def _recorded_arguments(recording: Recording) -> tuple[tuple[Any, ...], dict[str, Any]]:
    try:
        entry = recording.get_data(OPERATION_INPUT_KEY)
    except RecordingKeyError:
        return (), {}
    value = entry.value if isinstance(entry, DataEntry) else None
    if not isinstance(value, dict):
        return (), {}
    args = value.get("args") if isinstance(value.get("args"), list) else []
    kwargs = value.get("kwargs") if isinstance(value.get("kwargs"), dict) else {}
    return tuple(copy.deepcopy(args)), copy.deepcopy(kwargs)
