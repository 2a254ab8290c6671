from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, ClassVar, Generic, TypeVar

from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Awaitable, Callable


__all__: list[str] = ["InFlightManager"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

T = TypeVar("T")


class InFlightManager(Generic[T]):
    """Shares the result of one in-flight lookup with concurrent identical requests.

    The first caller for a key becomes its owner and produces the result; callers arriving
    while the owner is still working wait on a shared future instead of repeating the work.

    Attributes:
        INFLIGHT_TIMEOUT_SEC (float): Timeout duration in seconds for waiting on an in-flight result.
    """

    INFLIGHT_TIMEOUT_SEC: ClassVar[float] = 2.0

    def __init__(self) -> None:
        self._inflight: dict[str, asyncio.Future[T]] = {}
        self._lock: asyncio.Lock = asyncio.Lock()
        self._is_initialized: bool = False

    @property
    def is_initialized(self) -> bool:
        return self._is_initialized

    @property
    def pending_count(self) -> int:
        return len(self._inflight)

    async def component_load(self) -> None:
        """Initialize the in-flight manager component."""
        self._is_initialized = True
        logger.info("InFlightManager initialized successfully")

    async def component_teardown(self) -> None:
        """Teardown the in-flight manager component and clear in-flight state."""
        self._is_initialized = False
        # Cancel any pending in-flight requests and clear the state.
        async with self._lock:
            for fut in self._inflight.values():
                if not fut.done():
                    fut.cancel()
            self._inflight.clear()
        logger.info("InFlightManager torn down and in-flight state cleared")

    async def share(self, cache_key: str | None, factory: Callable[[], Awaitable[T]]) -> T:
        """Run ``factory`` once per key, sharing its result with concurrent callers.

        Args:
            cache_key (str | None): Key identifying identical requests.
            factory (Callable[[], Awaitable[T]]): Produces the result when this caller owns the key.

        Returns:
            T: The owner's result.

        Raises:
            TimeoutError: If waiting for another caller's result times out or is cancelled.
        """
        if not self._is_initialized or not cache_key:
            return await factory()

        fut: asyncio.Future[T] | None = await self.mark_inflight_start(cache_key)
        if fut is not None:
            return await self.wait_inflight(cache_key, fut)

        try:
            result: T = await factory()
        except asyncio.CancelledError:
            await self.cancel_inflight(cache_key)
            raise
        except Exception as err:
            await self.store_inflight_exception(cache_key, err)
            raise
        else:
            await self.store_inflight_result(cache_key, result)
            return result

    async def mark_inflight_start(self, cache_key: str) -> asyncio.Future[T] | None:
        """Mark the start of an in-flight request.

        Args:
            cache_key (str): Key for the request.

        Returns:
            asyncio.Future[T] | None: The shared future if a request is already in progress,
            or None if the caller was registered as the owner.
        """
        async with self._lock:
            fut: asyncio.Future[T] | None = self._inflight.get(cache_key)
            if fut is None:
                # Not registered: create a Future that the owner will complete.
                loop: asyncio.AbstractEventLoop = asyncio.get_running_loop()
                self._inflight[cache_key] = loop.create_future()
                logger.debug("Marked in-flight start for key: %s", cache_key[:16])
                return None
            logger.debug("In-flight request detected for key: %s", cache_key[:16])
            return fut

    async def wait_inflight(self, cache_key: str, fut: asyncio.Future[T]) -> T:
        """Wait for the owner of ``cache_key`` to complete ``fut``.

        Raises:
            TimeoutError: If waiting times out or the owner was cancelled.
        """
        try:
            result: T = await asyncio.wait_for(asyncio.shield(fut), timeout=self.INFLIGHT_TIMEOUT_SEC)
            logger.debug("Received in-flight result for key: %s", cache_key[:16])
        except TimeoutError:
            logger.warning("In-flight request timeout for key: %s", cache_key[:16])
            await self._discard(cache_key, fut)
            msg: str = f"In-flight request timed out for key: {cache_key[:16]}"
            raise TimeoutError(msg) from None
        except asyncio.CancelledError:
            if not fut.cancelled():
                # The waiter itself was cancelled, not the shared future.
                raise
            logger.warning("In-flight request cancelled for key: %s", cache_key[:16])
            await self._discard(cache_key, fut)
            msg = f"In-flight request cancelled for key: {cache_key[:16]}"
            raise TimeoutError(msg) from None
        else:
            return result

    async def _discard(self, cache_key: str, fut: asyncio.Future[T]) -> None:
        async with self._lock:
            if self._inflight.get(cache_key) is fut:
                self._inflight.pop(cache_key, None)

    async def store_inflight_result(self, cache_key: str, result: T) -> None:
        """Complete an in-flight request with its result."""
        async with self._lock:
            fut: asyncio.Future[T] | None = self._inflight.pop(cache_key, None)
            if fut and not fut.done():
                fut.set_result(result)
                logger.debug("Set in-flight result for key: %s", cache_key[:16])
            else:
                logger.warning(
                    "No in-flight future found or already done for key: %s when storing result", cache_key[:16]
                )

    async def store_inflight_exception(self, cache_key: str, exc: Exception) -> None:
        """Complete an in-flight request with an exception raised to every waiter."""
        async with self._lock:
            fut: asyncio.Future[T] | None = self._inflight.pop(cache_key, None)
            if fut and not fut.done():
                fut.set_exception(exc)
                # The owner re-raises exc itself; waiters are optional.
                fut.exception()
                logger.debug("Set in-flight exception for key: %s", cache_key[:16])
            else:
                logger.warning(
                    "No in-flight future found or already done for key: %s when storing exception", cache_key[:16]
                )

    async def cancel_inflight(self, cache_key: str) -> None:
        async with self._lock:
            fut: asyncio.Future[T] | None = self._inflight.pop(cache_key, None)
            if fut and not fut.done():
                fut.cancel()
                logger.debug("Cancelled in-flight request for key: %s", cache_key[:16])
