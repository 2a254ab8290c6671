from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, ClassVar

from pydantic import BaseModel, ValidationError
from pydantic_core import from_json

from core.trans.interface import EngineAttributes, ModelExceptionError, ModelInterface, ModelStreamError
from handlers.async_comm import AsyncCommError, AsyncHttp
from models.translation_models import ObjectChunk, TextDeltaChunk
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import AsyncIterator

    from models.config_models import Config
    from models.translation_models import ModelRequest


__all__: list[str] = ["OllamaModel"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


class OllamaModel(ModelInterface):
    """Model engine for a local Ollama server.

    Uses the streaming ``/api/chat`` endpoint. Structured calls send the JSON schema of the
    request's pydantic model as ``format`` and decode the accumulated output as partial JSON
    after every line, so callers see the object grow while it is generated.
    """

    CHAT_PATH: ClassVar[str] = "/api/chat"
    TAGS_PATH: ClassVar[str] = "/api/tags"

    def __init__(self) -> None:
        super().__init__()
        self.__http: AsyncHttp | None = None
        self._endpoint: str = ""
        self._model: str = ""
        self._timeout: float = 0.0

    @staticmethod
    def fetch_engine_name() -> str:
        return "ollama"

    @property
    def is_available(self) -> bool:
        return self.__http is not None

    @property
    def model_id(self) -> str:
        return self._model

    @property
    def _http(self) -> AsyncHttp:
        if self.__http is None:
            msg = "The Ollama engine is not initialised"
            raise ModelExceptionError(msg)
        return self.__http

    def initialize(self, config: Config) -> None:
        self._endpoint = config.LLM.ENDPOINT.rstrip("/")
        self._model = config.LLM.MODEL
        self._timeout = config.LLM.TIMEOUT
        if not self._endpoint or not self._model:
            msg = "LLM.ENDPOINT and LLM.MODEL must be set for the Ollama engine"
            raise ModelExceptionError(msg)
        self.engine_attributes = EngineAttributes(name="Ollama", supports_structured_output=True)
        self.__http = AsyncHttp()
        logger.debug("Ollama engine configured: endpoint=%s model=%s", self._endpoint, self._model)

    async def close(self) -> None:
        if self.__http is not None:
            await self.__http.close()
            self.__http = None

    async def list_local_models(self) -> list[str]:
        """Fetch the names of the models installed on the Ollama server.

        Returns:
            list[str]: Model names as reported by ``/api/tags``; empty when the server cannot be reached.
        """
        try:
            response: Any = await self._http.get(url=f"{self._endpoint}{self.TAGS_PATH}", total_timeout=self._timeout)
        except AsyncCommError as err:
            logger.error("Error fetching local model list: %s", err)
            return []

        models: list[dict[str, Any]] = response.get("models", []) if isinstance(response, dict) else []
        return [model["name"] for model in models if model.get("name")]

    async def stream_text(self, request: ModelRequest) -> AsyncIterator[TextDeltaChunk]:
        async for content in self._stream_chat(request, response_format=None):
            yield TextDeltaChunk(text_delta=content)

    async def stream_object(self, request: ModelRequest) -> AsyncIterator[ObjectChunk]:
        if request.schema is None:
            msg = "A schema is required for structured output"
            raise ModelExceptionError(msg)

        buffer: str = ""
        last_snapshot: dict[str, Any] | None = None
        async for content in self._stream_chat(request, response_format=request.schema.model_json_schema()):
            buffer += content
            snapshot: dict[str, Any] | None = self._decode_partial(buffer, request.schema)
            if snapshot is None or snapshot == last_snapshot:
                continue
            last_snapshot = snapshot
            yield ObjectChunk(object=snapshot)

    @staticmethod
    def _decode_partial(buffer: str, schema: type[BaseModel]) -> dict[str, Any] | None:
        """Decode incomplete JSON output, keeping a trailing unfinished string.

        Returns:
            dict[str, Any] | None: The snapshot, or None if it does not match the schema yet.
        """
        try:
            value: Any = from_json(buffer, allow_partial="trailing-strings")
        except ValueError:
            return None
        if not isinstance(value, dict):
            return None
        try:
            return schema.model_validate(value).model_dump()
        except ValidationError:
            return None

    async def _stream_chat(
        self, request: ModelRequest, *, response_format: dict[str, Any] | None
    ) -> AsyncIterator[str]:
        """Yield the content pieces of a streamed chat completion.

        Raises:
            ModelStreamError: On transport failures, malformed lines or server-reported errors.
        """
        payload: dict[str, Any] = {
            "model": request.model or self._model,
            "messages": [
                {"role": "system", "content": request.system},
                {"role": "user", "content": request.prompt},
            ],
            "stream": True,
        }
        if response_format is not None:
            payload["format"] = response_format

        logger.debug("Ollama chat request: model=%s structured=%s", payload["model"], response_format is not None)
        try:
            async for line in self._http.stream_lines(
                url=f"{self._endpoint}{self.CHAT_PATH}",
                data=payload,
                read_timeout=self._timeout,
                abort_signal=request.abort_signal,
            ):
                try:
                    message: dict[str, Any] = json.loads(line)
                except json.JSONDecodeError as err:
                    msg = f"Malformed line in Ollama stream: {line[:80]!r}"
                    raise ModelStreamError(msg) from err

                if error := message.get("error"):
                    msg = f"Ollama reported an error: {error}"
                    raise ModelStreamError(msg)

                content: str = (message.get("message") or {}).get("content") or ""
                if content:
                    yield content
                if message.get("done"):
                    logger.debug("Ollama stream finished: %s", message.get("done_reason", "stop"))
                    return
        except AsyncCommError as err:
            msg = f"Ollama request failed: {err}"
            raise ModelStreamError(msg) from err
