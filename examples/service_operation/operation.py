"""Record one run of a small service operation, then replay it.

Run with ``python examples/service_operation/operation.py``.
"""

from __future__ import annotations

import asyncio
import logging
import random
import uuid

from taperecorder import InMemoryTapeCassette, TapeRecorder

cassette = InMemoryTapeCassette()
recorder = TapeRecorder(cassette)
recorder.enable_recording()


class ServiceOperation:
    def __init__(self, multiply: int = 10) -> None:
        self.multiply = multiply
        self.get_request_data = recorder.intercept_input("get_request_data", self._get_request_data)
        self.store_result = recorder.intercept_output("store_result", self._store_result)
        self.execute = recorder.wrap_operation("operation", self._execute)

    async def _execute(self) -> str:
        data = self.get_request_data(10)
        result = data * self.multiply
        result = await self._double_later(result, 2)
        return self.store_result(result)

    def _get_request_data(self, range_max: int) -> int:
        return random.randint(1, range_max)

    def _store_result(self, result: int) -> str:
        # stands in for a database write
        return str(uuid.uuid4())

    async def _double_later(self, value: int, factor: int) -> int:
        await asyncio.sleep(0.1)
        return value * factor


async def main() -> None:
    service = ServiceOperation()
    storage_key = await service.execute()
    print(f"Recorded run stored result under {storage_key}")

    recording_id = cassette.get_last_recording_id()
    if recording_id is None:
        return

    result = await recorder.play(recording_id, service.execute)
    for recorded, replayed in zip(result.recorded_outputs, result.playback_outputs):
        status = "same" if recorded.value == replayed.value else "changed"
        print(f"{recorded.key}: {status}")
    print(f"Recorded in {result.recorded_duration}ms, replayed in {result.playback_duration}ms")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
