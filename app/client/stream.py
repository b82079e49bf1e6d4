"""Decoding the chat data stream on the client side."""

import logging
from collections.abc import AsyncIterable, AsyncIterator

from app.shared.data_stream import StreamPart, decode_part

logger = logging.getLogger(__name__)


async def iter_stream_parts(lines: AsyncIterable[str]) -> AsyncIterator[StreamPart]:
    """Decode a line stream, e.g. ``httpx.Response.aiter_lines()``.

    Blank lines are skipped; malformed lines raise ``ValueError``.
    """
    async for line in lines:
        if not line.strip():
            continue
        yield decode_part(line)
