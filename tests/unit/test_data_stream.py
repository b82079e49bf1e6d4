"""Unit tests for the line-oriented data stream."""

import pytest

from app.shared.data_stream import (
    DATA_PART,
    ERROR_PART,
    FINISH_PART,
    REASONING_PART,
    TEXT_PART,
    AbortSignal,
    DataStreamWriter,
    GenerationAborted,
    create_data_stream,
    decode_part,
    encode_part,
    iter_decoded,
)


class TestCodec:
    """Test cases for encoding and decoding single parts."""

    def test_encode_text(self):
        assert encode_part(TEXT_PART, "Hello") == '0:"Hello"\n'

    def test_encode_keeps_unicode(self):
        assert encode_part(TEXT_PART, "héllo ✓") == '0:"héllo ✓"\n'

    def test_encode_data_is_compact(self):
        assert encode_part(DATA_PART, [{"type": "threadId", "threadId": "t1"}]) == (
            '2:[{"type":"threadId","threadId":"t1"}]\n'
        )

    def test_encode_unknown_code(self):
        with pytest.raises(ValueError):
            encode_part("x", "nope")

    def test_decode(self):
        part = decode_part('d:{"finishReason":"stop"}\n')

        assert part.code == FINISH_PART
        assert part.value == {"finishReason": "stop"}

    def test_decode_text_containing_colons(self):
        assert decode_part('0:"a: b: c"').value == "a: b: c"

    @pytest.mark.parametrize("line", ["no separator", 'x:"unknown"', ""])
    def test_decode_malformed(self, line):
        with pytest.raises(ValueError):
            decode_part(line)

    def test_iter_decoded_skips_blank_lines(self):
        parts = list(iter_decoded(['0:"a"\n', "\n", 'g:"b"\n']))

        assert [(part.code, part.value) for part in parts] == [(TEXT_PART, "a"), (REASONING_PART, "b")]


class TestDataStreamWriter:
    """Test cases for DataStreamWriter."""

    @pytest.mark.asyncio
    async def test_parts_are_delivered_in_write_order(self):
        writer = DataStreamWriter()
        writer.write_data({"type": "threadId", "threadId": "t1"})
        writer.write_reasoning("hmm")
        writer.write_text("Hi")
        writer.write_text("")
        writer.finish_usage = {"promptTokens": 1, "completionTokens": 2}
        writer.write_finish()
        writer.close()

        parts = [decode_part(line) async for line in writer.drain()]

        assert [part.code for part in parts] == [DATA_PART, REASONING_PART, TEXT_PART, FINISH_PART]
        assert parts[-1].value == {"finishReason": "stop", "usage": {"promptTokens": 1, "completionTokens": 2}}

    def test_write_after_close(self):
        writer = DataStreamWriter()
        writer.close()

        assert writer.closed
        with pytest.raises(RuntimeError):
            writer.write_text("late")


class TestAbortSignal:
    """Test cases for AbortSignal."""

    def test_raise_if_aborted(self):
        signal = AbortSignal()
        signal.raise_if_aborted()

        signal.abort()

        assert signal.aborted
        with pytest.raises(GenerationAborted):
            signal.raise_if_aborted()


class TestCreateDataStream:
    """Test cases for running a producer behind a data stream."""

    @pytest.mark.asyncio
    async def test_successful_producer_ends_with_finish(self):
        async def execute(writer):
            writer.write_text("Hello")

        lines = [line async for line in create_data_stream(execute, on_error=str)]

        assert [decode_part(line).code for line in lines] == [TEXT_PART, FINISH_PART]
        assert decode_part(lines[-1]).value == {"finishReason": "stop"}

    @pytest.mark.asyncio
    async def test_producer_exception_becomes_error_part(self):
        async def execute(writer):
            writer.write_text("partial")
            raise RuntimeError("boom")

        lines = [line async for line in create_data_stream(execute, on_error=lambda e: f"Failed: {e}")]
        parts = [decode_part(line) for line in lines]

        assert [part.code for part in parts] == [TEXT_PART, ERROR_PART, FINISH_PART]
        assert parts[1].value == "Failed: boom"
        assert parts[2].value == {"finishReason": "error"}

    @pytest.mark.asyncio
    async def test_on_close_runs_after_normal_completion(self):
        closed = []

        async def execute(writer):
            writer.write_text("done")

        async for _ in create_data_stream(execute, on_error=str, on_close=lambda: closed.append(True)):
            pass

        assert closed == [True]

    @pytest.mark.asyncio
    async def test_closing_early_aborts_the_producer(self):
        abort = AbortSignal()
        closed = []
        cancelled = []

        async def execute(writer):
            writer.write_text("first")
            try:
                await abort.wait()
                writer.write_text("never read")
                await abort.wait()
            finally:
                cancelled.append(True)

        stream = create_data_stream(execute, on_error=str, abort=abort, on_close=lambda: closed.append(True))
        first = await stream.__anext__()
        await stream.aclose()

        assert decode_part(first).value == "first"
        assert abort.aborted
        assert cancelled == [True]
        assert closed == [True]

    @pytest.mark.asyncio
    async def test_closing_unconsumed_stream_runs_on_close(self):
        closed = []
        executed = []

        async def execute(writer):
            executed.append(True)

        stream = create_data_stream(execute, on_error=str, on_close=lambda: closed.append(True))
        await stream.aclose()

        assert closed == [True]
        assert executed == []
        assert not stream.started

    @pytest.mark.asyncio
    async def test_on_close_runs_once(self):
        closed = []

        async def execute(writer):
            writer.write_text("done")

        stream = create_data_stream(execute, on_error=str, on_close=lambda: closed.append(True))
        async for _ in stream:
            pass
        await stream.aclose()

        assert closed == [True]

    @pytest.mark.asyncio
    async def test_dropped_stream_runs_on_close(self):
        closed = []

        async def execute(writer):
            writer.write_text("done")

        stream = create_data_stream(execute, on_error=str, on_close=lambda: closed.append(True))
        del stream

        assert closed == [True]
