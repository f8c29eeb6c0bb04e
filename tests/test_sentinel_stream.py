from __future__ import annotations

import asyncio

import pytest

from graduate.transport.stream import SentinelStream

SENTINEL = "=====> Awaiting graduation decision"


def _reader(*lines: str, eof: bool = True) -> asyncio.StreamReader:
    reader = asyncio.StreamReader()
    for line in lines:
        reader.feed_data(f"{line}\n".encode())
    if eof:
        reader.feed_eof()
    return reader


@pytest.mark.asyncio
async def test_signals_on_sentinel_before_eof() -> None:
    reader = _reader("Counting objects: 3", f"remote: {SENTINEL}", eof=False)
    stream = SentinelStream(reader, SENTINEL)
    task = asyncio.create_task(stream.drain())

    assert await asyncio.wait_for(stream.wait(), timeout=1) is True
    assert not task.done()

    reader.feed_data(b"remote: released\n")
    reader.feed_eof()
    await asyncio.wait_for(task, timeout=1)
    assert stream.lines_read == 3


@pytest.mark.asyncio
async def test_signals_at_eof_without_sentinel() -> None:
    stream = SentinelStream(_reader("error: failed to push some refs"), SENTINEL)

    await stream.drain()

    assert stream.signalled.is_set()
    assert await stream.wait() is False


@pytest.mark.asyncio
async def test_every_line_is_forwarded_once_sentinel_is_seen() -> None:
    seen: list[str] = []
    stream = SentinelStream(
        _reader("one", SENTINEL, "two", SENTINEL),
        SENTINEL,
        on_line=seen.append,
    )

    await stream.drain()

    assert seen == ["one", SENTINEL, "two", SENTINEL]
    assert stream.sentinel_seen


@pytest.mark.asyncio
async def test_undecodable_bytes_are_replaced() -> None:
    reader = asyncio.StreamReader()
    reader.feed_data(b"\xff\xfe " + SENTINEL.encode() + b"\r\n")
    reader.feed_eof()
    seen: list[str] = []
    stream = SentinelStream(reader, SENTINEL, on_line=seen.append)

    await stream.drain()

    assert stream.sentinel_seen
    assert seen[0].endswith(SENTINEL)
