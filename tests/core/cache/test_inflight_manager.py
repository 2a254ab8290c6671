"""Tests for InFlightManager."""

from __future__ import annotations

import asyncio

import pytest

from core.cache.inflight_manager import InFlightManager


@pytest.fixture
async def inflight_manager() -> InFlightManager[str | None]:
    """Create and initialize InFlightManager."""
    manager: InFlightManager[str | None] = InFlightManager()
    await manager.component_load()
    return manager


@pytest.mark.asyncio
async def test_share_runs_factory_directly_when_not_initialized() -> None:
    """share should bypass de-duplication before component initialization."""
    manager: InFlightManager[str | None] = InFlightManager()
    calls: list[int] = []

    async def factory() -> str:
        calls.append(1)
        return "value"

    results = await asyncio.gather(manager.share("key", factory), manager.share("key", factory))

    assert results == ["value", "value"]
    assert len(calls) == 2
    assert manager.pending_count == 0


@pytest.mark.asyncio
async def test_share_deduplicates_concurrent_callers(inflight_manager: InFlightManager[str | None]) -> None:
    """Concurrent callers for one key should share the owner's result."""
    calls: list[int] = []
    release = asyncio.Event()

    async def factory() -> str:
        calls.append(1)
        await release.wait()
        return "shared"

    tasks = [asyncio.create_task(inflight_manager.share("key", factory)) for _ in range(3)]
    await asyncio.sleep(0)
    release.set()

    assert await asyncio.gather(*tasks) == ["shared", "shared", "shared"]
    assert len(calls) == 1
    assert inflight_manager.pending_count == 0


@pytest.mark.asyncio
async def test_share_without_key_does_not_deduplicate(inflight_manager: InFlightManager[str | None]) -> None:
    calls: list[int] = []

    async def factory() -> None:
        calls.append(1)

    await asyncio.gather(inflight_manager.share(None, factory), inflight_manager.share("", factory))

    assert len(calls) == 2


@pytest.mark.asyncio
async def test_share_propagates_owner_exception(inflight_manager: InFlightManager[str | None]) -> None:
    release = asyncio.Event()

    async def factory() -> str:
        await release.wait()
        msg = "lookup failed"
        raise RuntimeError(msg)

    owner = asyncio.create_task(inflight_manager.share("key", factory))
    waiter = asyncio.create_task(inflight_manager.share("key", factory))
    await asyncio.sleep(0)
    release.set()

    with pytest.raises(RuntimeError, match="lookup failed"):
        await owner
    with pytest.raises(RuntimeError, match="lookup failed"):
        await waiter


@pytest.mark.asyncio
async def test_wait_timeout_does_not_cancel_shared_future(
    inflight_manager: InFlightManager[str | None], monkeypatch: pytest.MonkeyPatch
) -> None:
    """Wait timeout should not cancel the owner's shared future."""
    monkeypatch.setattr(InFlightManager, "INFLIGHT_TIMEOUT_SEC", 0.01)
    key = "timeout-key"

    first: asyncio.Future[str | None] | None = await inflight_manager.mark_inflight_start(key)
    assert first is None

    shared_future: asyncio.Future[str | None] = inflight_manager._inflight[key]  # noqa: SLF001
    second: asyncio.Future[str | None] | None = await inflight_manager.mark_inflight_start(key)
    assert second is shared_future

    with pytest.raises(TimeoutError):
        await inflight_manager.wait_inflight(key, shared_future)

    assert shared_future.cancelled() is False
    assert inflight_manager.pending_count == 0


@pytest.mark.asyncio
async def test_cancelled_shared_future_becomes_timeout(inflight_manager: InFlightManager[str | None]) -> None:
    """Cancelled shared future should be converted to TimeoutError for waiters."""
    key = "cancel-key"
    await inflight_manager.mark_inflight_start(key)
    shared_future: asyncio.Future[str | None] | None = await inflight_manager.mark_inflight_start(key)
    assert shared_future is not None

    waiter = asyncio.create_task(inflight_manager.wait_inflight(key, shared_future))
    await asyncio.sleep(0)
    await inflight_manager.cancel_inflight(key)

    with pytest.raises(TimeoutError, match="cancelled"):
        await waiter


@pytest.mark.asyncio
async def test_store_inflight_result_reaches_waiter(inflight_manager: InFlightManager[str | None]) -> None:
    key = "result-key"
    await inflight_manager.mark_inflight_start(key)
    shared_future: asyncio.Future[str | None] | None = await inflight_manager.mark_inflight_start(key)
    assert shared_future is not None

    waiter = asyncio.create_task(inflight_manager.wait_inflight(key, shared_future))
    await asyncio.sleep(0)
    await inflight_manager.store_inflight_result(key, "translated")

    assert await waiter == "translated"


@pytest.mark.asyncio
async def test_teardown_cancels_pending(inflight_manager: InFlightManager[str | None]) -> None:
    await inflight_manager.mark_inflight_start("key")
    shared_future = inflight_manager._inflight["key"]  # noqa: SLF001

    await inflight_manager.component_teardown()

    assert shared_future.cancelled() is True
    assert inflight_manager.pending_count == 0
    assert inflight_manager.is_initialized is False
