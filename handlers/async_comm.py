"""aiohttp transport for the model engines.

Engines talk to a local LLM server through AsyncHttp: small JSON queries go through get(), and
generation results arrive through stream_lines() as newline-delimited JSON. Transport failures
surface as AsyncCommError so engines only need to handle one exception family.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, ClassVar, Final, Self

import aiohttp
from aiohttp.client import ClientSession

from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import asyncio
    import logging
    from collections.abc import AsyncIterator, Callable

    from aiohttp.client import ClientResponse


__all__: list[str] = ["AsyncCommError", "AsyncCommInvalidContentTypeError", "AsyncCommTimeoutError", "AsyncHttp"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

CONNECT_TIMEOUT: Final[float] = 1.0


class AsyncHttp:
    """Lazily opened aiohttp session with NDJSON streaming.

    Attributes:
        DECODERS (ClassVar[dict[str, Callable[[bytes], Any]]]): Body decoders for get(), keyed by media type.
    """

    DECODERS: ClassVar[dict[str, Callable[[bytes], Any]]] = {
        "application/json": lambda body: json.loads(body.decode("utf-8")),
        "text/plain": lambda body: body.decode("utf-8"),
    }

    def __init__(self) -> None:
        self.__session: ClientSession | None = None

    async def __aenter__(self) -> Self:
        _ = self.session
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        _ = exc_type, exc_val, exc_tb
        await self.close()

    @property
    def session(self) -> ClientSession:
        """The open session; a new one is created after close()."""
        if self.__session is None or self.__session.closed:
            self.__session = ClientSession(raise_for_status=True)
            logger.debug("%s session initialized", self.__class__.__name__)
        return self.__session

    @property
    def is_open(self) -> bool:
        return self.__session is not None and not self.__session.closed

    async def close(self) -> None:
        if self.is_open and self.__session is not None:
            await self.__session.close()
            logger.debug("%s session closed", self.__class__.__name__)
        self.__session = None

    async def get(self, *, url: str, total_timeout: float = 10.0) -> Any:
        """Send a GET request and decode the body according to its media type.

        Args:
            url (str): Request URL.
            total_timeout (float): Limit for the whole request in seconds. Zero or less disables it.

        Returns:
            Any: Parsed JSON, text, or None for an empty body.

        Raises:
            AsyncCommError: If the request fails.
            AsyncCommTimeoutError: If the server does not answer in time.
            AsyncCommInvalidContentTypeError: If the body has a media type without a decoder.
        """
        logger.debug("[GET] url=%s timeout=%s", url, total_timeout)
        try:
            async with self.session.get(url, timeout=self._build_timeout(total_timeout)) as resp:
                return await self._decode(resp)
        except AsyncCommError:
            raise
        except (TimeoutError, OSError, aiohttp.ClientError, UnicodeDecodeError, ValueError) as err:
            raise self._translate_error(err) from err

    async def stream_lines(
        self,
        *,
        url: str,
        data: Any | None = None,
        read_timeout: float = 60.0,
        abort_signal: asyncio.Event | None = None,
    ) -> AsyncIterator[str]:
        """POST ``data`` as JSON and yield the response body one line at a time.

        Blank lines are dropped. Setting ``abort_signal`` ends the iteration quietly before the
        next line is handed out.

        Args:
            url (str): Request URL.
            data (Any | None): JSON body.
            read_timeout (float): Longest silence between two body reads in seconds. Zero or less waits forever.
            abort_signal (asyncio.Event | None): Cancellation flag owned by the caller.

        Yields:
            str: Stripped, non-empty lines.

        Raises:
            AsyncCommError: If the request fails or the connection drops.
            AsyncCommTimeoutError: If the server goes silent for longer than ``read_timeout``.
        """
        logger.debug("[STREAM] url=%s read_timeout=%s", url, read_timeout)
        timeout = aiohttp.ClientTimeout(
            total=None,
            connect=CONNECT_TIMEOUT,
            sock_read=read_timeout if read_timeout > 0 else None,
        )

        try:
            async with self.session.post(url, json=data, timeout=timeout) as resp:
                async for raw_line in resp.content:
                    if abort_signal is not None and abort_signal.is_set():
                        logger.debug("Stream aborted by caller: %s", url)
                        return
                    line: str = raw_line.decode("utf-8").strip()
                    if line:
                        yield line
        except (TimeoutError, OSError, aiohttp.ClientError, UnicodeDecodeError) as err:
            raise self._translate_error(err) from err

    async def _decode(self, resp: ClientResponse) -> Any:
        media_type: str = resp.content_type
        body: bytes = await resp.read()
        if not body:
            return None

        decoder: Callable[[bytes], Any] | None = self.DECODERS.get(media_type)
        if decoder is None:
            msg: str = f"Unknown Content-Type '{media_type}'"
            raise AsyncCommInvalidContentTypeError(msg)
        return decoder(body)

    @staticmethod
    def _build_timeout(total_timeout: float) -> aiohttp.ClientTimeout:
        if total_timeout <= 0:
            return aiohttp.ClientTimeout(total=None)
        if total_timeout < CONNECT_TIMEOUT:
            return aiohttp.ClientTimeout(total=total_timeout)
        return aiohttp.ClientTimeout(connect=CONNECT_TIMEOUT, total=total_timeout)

    @staticmethod
    def _translate_error(err: Exception) -> AsyncCommError:
        logger.debug("Transport error: %r", err)
        if isinstance(err, TimeoutError):
            return AsyncCommTimeoutError("Timeout due to a lack of response from the server.")
        if isinstance(err, aiohttp.ClientResponseError):
            return AsyncCommError("Error response from the server.", status=err.status)
        if isinstance(err, aiohttp.ClientConnectorError):
            return AsyncCommError("The server is not running, or the port is closed.")
        if isinstance(err, ConnectionResetError):
            return AsyncCommError("The connection to the server has been disconnected.")
        return AsyncCommError(f"Communication with the server failed: {err}")


class AsyncCommError(Exception):
    """A request to the LLM server failed.

    Attributes:
        status (int | None): HTTP status of the error response, if one was received.
    """

    def __init__(self, msg: str, *, status: int | None = None) -> None:
        self.status: int | None = status
        if status is not None:
            msg = f"{msg}: status='{status}'"
        super().__init__(msg)


class AsyncCommTimeoutError(AsyncCommError):
    """The server stopped responding."""


class AsyncCommInvalidContentTypeError(AsyncCommError):
    """The response body has a media type AsyncHttp cannot decode."""
