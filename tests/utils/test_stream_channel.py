"""Unit tests for utils.stream_channel module."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import pytest

from utils.stream_channel import StreamChannel

if TYPE_CHECKING:
    from collections.abc import AsyncIterator


async def _finite(*items: str) -> AsyncIterator[str]:
    for item in items:
        await asyncio.sleep(0)
        yield item


async def _endless() -> AsyncIterator[int]:
    i = 0
    while True:
        yield i
        i += 1
        await asyncio.sleep(0.01)


async def _failing() -> AsyncIterator[str]:
    yield "first"
    msg = "connection reset"
    raise RuntimeError(msg)


@pytest.mark.asyncio
async def test_channel_delivers_all_items_in_order() -> None:
    async with StreamChannel(_finite("a", "b", "c")) as channel:
        received: list[str] = [item async for item in channel]

    assert received == ["a", "b", "c"]
    assert channel.closed is True
    assert channel.error is None


@pytest.mark.asyncio
async def test_source_error_ends_stream_without_reaching_consumer(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING)

    async with StreamChannel(_failing()) as channel:
        received: list[str] = [item async for item in channel]

    assert received == ["first"]
    assert isinstance(channel.error, RuntimeError)
    assert any("connection reset" in rec.message for rec in caplog.records)


@pytest.mark.asyncio
async def test_abort_signal_closes_channel() -> None:
    abort_signal = asyncio.Event()
    received: list[int] = []

    async with StreamChannel(_endless(), abort_signal=abort_signal) as channel:
        async for item in channel:
            received.append(item)
            if len(received) == 2:
                abort_signal.set()

    assert received[:2] == [0, 1]
    assert len(received) < 5
    assert channel.aborted is True
    assert channel.closed is True


@pytest.mark.asyncio
async def test_put_after_close_is_dropped() -> None:
    channel: StreamChannel[str] = StreamChannel(_finite())
    await channel.close()
    await channel.put("late")

    assert [item async for item in channel] == []


@pytest.mark.asyncio
async def test_close_is_idempotent_and_iteration_terminates_repeatedly() -> None:
    async with StreamChannel(_finite("x")) as channel:
        first: list[str] = [item async for item in channel]
        await channel.close()
        await channel.close()

    second: list[str] = [item async for item in channel]

    assert first == ["x"]
    assert second == []
