"""Line-oriented data stream shared by the chat endpoint and its clients.

Every part is one line, ``<code>:<json>\\n``:

- ``0`` text delta (JSON string)
- ``g`` reasoning delta (JSON string)
- ``2`` data envelope (JSON array of objects)
- ``3`` error (JSON string)
- ``d`` finish (``{"finishReason": ..., "usage": {...}}``)

The server side multiplexes provider output and application events through a
``DataStreamWriter``; ``create_data_stream`` turns a producer coroutine into
the async iterator handed to ``StreamingResponse`` and ties the producer's
lifetime to the consumer's.
"""

import asyncio
import json
import logging
from collections.abc import AsyncGenerator, AsyncIterator, Awaitable, Callable, Iterable
from typing import Any, NamedTuple

logger = logging.getLogger(__name__)

TEXT_PART = "0"
DATA_PART = "2"
ERROR_PART = "3"
REASONING_PART = "g"
FINISH_PART = "d"

PART_CODES = frozenset({TEXT_PART, DATA_PART, ERROR_PART, REASONING_PART, FINISH_PART})

DATA_STREAM_HEADERS = {"X-Vercel-AI-Data-Stream": "v1", "Cache-Control": "no-cache"}
DATA_STREAM_MEDIA_TYPE = "text/plain; charset=utf-8"


class StreamPart(NamedTuple):
    code: str
    value: Any


class GenerationAborted(Exception):
    """Raised inside a producer once its consumer went away."""


def encode_part(code: str, value: Any) -> str:
    if code not in PART_CODES:
        raise ValueError(f"Unknown stream part code: {code}")
    return f"{code}:{json.dumps(value, separators=(',', ':'), ensure_ascii=False, default=str)}\n"


def decode_part(line: str) -> StreamPart:
    """Parse one stream line.

    Raises:
        ValueError: The line is not a well-formed part.
    """
    code, sep, payload = line.rstrip("\n").partition(":")
    if not sep or code not in PART_CODES:
        raise ValueError(f"Malformed stream line: {line[:80]!r}")
    return StreamPart(code, json.loads(payload))


def iter_decoded(lines: Iterable[str]) -> Iterable[StreamPart]:
    for line in lines:
        if line.strip():
            yield decode_part(line)


class AbortSignal:
    """One-shot cancellation flag shared between a stream and its producer."""

    def __init__(self):
        self._event = asyncio.Event()

    def abort(self) -> None:
        self._event.set()

    @property
    def aborted(self) -> bool:
        return self._event.is_set()

    def raise_if_aborted(self) -> None:
        if self._event.is_set():
            raise GenerationAborted()

    async def wait(self) -> None:
        await self._event.wait()


class DataStreamWriter:
    """Queue-backed writer; parts are delivered in write order."""

    def __init__(self):
        self._queue: asyncio.Queue[str | None] = asyncio.Queue()
        self._closed = False
        self.finish_reason = "stop"
        self.finish_usage: dict[str, int] | None = None

    @property
    def closed(self) -> bool:
        return self._closed

    def _put(self, encoded: str) -> None:
        if self._closed:
            raise RuntimeError("Data stream already closed")
        self._queue.put_nowait(encoded)

    def write_text(self, delta: str) -> None:
        if delta:
            self._put(encode_part(TEXT_PART, delta))

    def write_reasoning(self, delta: str) -> None:
        if delta:
            self._put(encode_part(REASONING_PART, delta))

    def write_data(self, *items: dict[str, Any]) -> None:
        self._put(encode_part(DATA_PART, list(items)))

    def write_error(self, message: str) -> None:
        self._put(encode_part(ERROR_PART, message))

    def write_finish(self) -> None:
        payload: dict[str, Any] = {"finishReason": self.finish_reason}
        if self.finish_usage is not None:
            payload["usage"] = self.finish_usage
        self._put(encode_part(FINISH_PART, payload))

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(None)

    async def drain(self) -> AsyncIterator[str]:
        while True:
            item = await self._queue.get()
            if item is None:
                return
            yield item


class DataStream:
    """Async iterator over the encoded parts of one producer run.

    The producer task starts on first iteration. ``on_close`` runs exactly
    once: when iteration ends, when the stream is closed (started or not)
    or when the stream is garbage collected without either.
    """

    def __init__(
        self,
        execute: Callable[[DataStreamWriter], Awaitable[None]],
        on_error: Callable[[BaseException], str],
        abort: AbortSignal | None = None,
        on_close: Callable[[], None] | None = None,
    ):
        self._execute = execute
        self._on_error = on_error
        self._abort = abort or AbortSignal()
        self._on_close = on_close
        self._parts: AsyncGenerator[str, None] | None = None
        self._released = False

    @property
    def started(self) -> bool:
        return self._parts is not None

    def __aiter__(self) -> "DataStream":
        return self

    async def __anext__(self) -> str:
        if self._released:
            raise StopAsyncIteration
        if self._parts is None:
            self._parts = self._produce()
        try:
            return await self._parts.__anext__()
        except BaseException:
            self._release()
            raise

    async def aclose(self) -> None:
        try:
            if self._parts is not None:
                await self._parts.aclose()
        finally:
            self._release()

    def __del__(self):
        self._release()

    def _release(self) -> None:
        if self._released:
            return
        self._released = True
        if self._on_close is not None:
            self._on_close()

    async def _produce(self) -> AsyncGenerator[str, None]:
        writer = DataStreamWriter()
        abort = self._abort

        async def run() -> None:
            try:
                await self._execute(writer)
            except GenerationAborted:
                logger.info("Generation aborted before completion")
                return
            except Exception as e:
                logger.error(f"Data stream producer failed: {str(e)}", exc_info=True)
                writer.write_error(self._on_error(e))
                writer.finish_reason = "error"
            finally:
                if not abort.aborted and not writer.closed:
                    writer.write_finish()
                writer.close()

        task = asyncio.create_task(run())
        try:
            async for encoded in writer.drain():
                yield encoded
        finally:
            if not task.done():
                abort.abort()
                task.cancel()
            await asyncio.gather(task, return_exceptions=True)


def create_data_stream(
    execute: Callable[[DataStreamWriter], Awaitable[None]],
    on_error: Callable[[BaseException], str],
    abort: AbortSignal | None = None,
    on_close: Callable[[], None] | None = None,
) -> DataStream:
    """Wrap ``execute`` in a ``DataStream``.

    Closing or cancelling the stream (client disconnect) fires ``abort`` and
    cancels the producer. Exceptions escaping ``execute`` are logged and
    reported as an error part followed by an ``error`` finish.
    """
    return DataStream(execute, on_error, abort=abort, on_close=on_close)
