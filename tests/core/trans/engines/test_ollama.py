"""Unit tests for core.trans.engines.ollama module."""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING, Any

import pytest

from core.trans.engines.ollama import OllamaModel
from core.trans.interface import ModelExceptionError, ModelInterface, ModelStreamError
from handlers.async_comm import AsyncCommError, AsyncCommTimeoutError, AsyncHttp
from models.config_models import Config
from models.translation_models import ModelRequest, TranslationSchema

if TYPE_CHECKING:
    from collections.abc import AsyncIterator


def _chunk(content: str, *, done: bool = False) -> str:
    message: dict[str, Any] = {"model": "qwen3:4b", "message": {"role": "assistant", "content": content}, "done": done}
    if done:
        message["done_reason"] = "stop"
    return json.dumps(message, ensure_ascii=False)


class FakeStream:
    """Replaces AsyncHttp.stream_lines with scripted lines and records the call."""

    def __init__(self, lines: list[str], error: Exception | None = None) -> None:
        self.lines: list[str] = lines
        self.error: Exception | None = error
        self.calls: list[dict[str, Any]] = []

    async def __call__(
        self,
        http: AsyncHttp,
        *,
        url: str,
        data: Any | None = None,
        read_timeout: float = 60.0,
        abort_signal: asyncio.Event | None = None,
    ) -> AsyncIterator[str]:
        _ = http
        self.calls.append({"url": url, "data": data, "read_timeout": read_timeout, "abort_signal": abort_signal})
        for line in self.lines:
            yield line
        if self.error is not None:
            raise self.error


@pytest.fixture
async def engine() -> AsyncIterator[OllamaModel]:
    config = Config()
    config.LLM.ENDPOINT = "http://ollama.local:11434/"
    config.LLM.MODEL = "qwen3:4b"
    config.LLM.TIMEOUT = 30.0
    instance = OllamaModel()
    instance.initialize(config)
    yield instance
    await instance.close()


def _patch_stream(monkeypatch: pytest.MonkeyPatch, stream: FakeStream) -> None:
    async def stream_lines(self: AsyncHttp, **kwargs: Any) -> AsyncIterator[str]:
        async for line in stream(self, **kwargs):
            yield line

    monkeypatch.setattr(AsyncHttp, "stream_lines", stream_lines)


def test_engine_is_registered() -> None:
    assert ModelInterface.registered["ollama"] is OllamaModel


def test_initialize_requires_endpoint_and_model() -> None:
    config = Config()
    config.LLM.MODEL = ""

    with pytest.raises(ModelExceptionError):
        OllamaModel().initialize(config)


@pytest.mark.asyncio
async def test_initialize_sets_attributes(engine: OllamaModel) -> None:
    assert engine.is_available is True
    assert engine.model_id == "qwen3:4b"
    assert engine.engine_name == "Ollama"
    assert engine.engine_attributes.supports_structured_output is True


@pytest.mark.asyncio
async def test_stream_text_yields_deltas_and_sends_chat_payload(
    engine: OllamaModel, monkeypatch: pytest.MonkeyPatch
) -> None:
    stream = FakeStream([_chunk("你"), _chunk(""), _chunk("好"), _chunk("", done=True), _chunk("ignored")])
    _patch_stream(monkeypatch, stream)
    abort_signal = asyncio.Event()
    request = ModelRequest(prompt="Hello", system="Translate", abort_signal=abort_signal)

    deltas: list[str] = [chunk.text_delta async for chunk in engine.stream_text(request)]

    assert deltas == ["你", "好"]
    call: dict[str, Any] = stream.calls[0]
    assert call["url"] == "http://ollama.local:11434/api/chat"
    assert call["read_timeout"] == pytest.approx(30.0)
    assert call["abort_signal"] is abort_signal
    assert call["data"] == {
        "model": "qwen3:4b",
        "messages": [
            {"role": "system", "content": "Translate"},
            {"role": "user", "content": "Hello"},
        ],
        "stream": True,
    }


@pytest.mark.asyncio
async def test_stream_object_sends_schema_and_yields_growing_snapshots(
    engine: OllamaModel, monkeypatch: pytest.MonkeyPatch
) -> None:
    pieces: list[str] = ['{"transl', 'ation": ["你', '好", "世', '界"]', "}"]
    stream = FakeStream([*(_chunk(piece) for piece in pieces), _chunk("", done=True)])
    _patch_stream(monkeypatch, stream)
    request = ModelRequest(prompt="[]", system="Translate", schema=TranslationSchema, model="gemma3:4b")

    snapshots: list[list[str]] = [chunk.object["translation"] async for chunk in engine.stream_object(request)]

    assert snapshots[-1] == ["你好", "世界"]
    assert all(len(a) <= len(b) for a, b in zip(snapshots, snapshots[1:], strict=False))
    assert len(snapshots) == len({json.dumps(s) for s in snapshots})
    assert stream.calls[0]["data"]["format"] == TranslationSchema.model_json_schema()
    assert stream.calls[0]["data"]["model"] == "gemma3:4b"


@pytest.mark.asyncio
async def test_stream_object_requires_schema(engine: OllamaModel) -> None:
    with pytest.raises(ModelExceptionError, match="schema"):
        async for _ in engine.stream_object(ModelRequest(prompt="[]", system="")):
            pass


@pytest.mark.asyncio
async def test_server_error_line_raises_stream_error(engine: OllamaModel, monkeypatch: pytest.MonkeyPatch) -> None:
    _patch_stream(monkeypatch, FakeStream([json.dumps({"error": "model 'x' not found"})]))

    with pytest.raises(ModelStreamError, match="not found"):
        async for _ in engine.stream_text(ModelRequest(prompt="Hello", system="")):
            pass


@pytest.mark.asyncio
async def test_malformed_line_raises_stream_error(engine: OllamaModel, monkeypatch: pytest.MonkeyPatch) -> None:
    _patch_stream(monkeypatch, FakeStream([_chunk("ok"), "{not json"]))
    received: list[str] = []

    with pytest.raises(ModelStreamError, match="Malformed"):
        async for chunk in engine.stream_text(ModelRequest(prompt="Hello", system="")):
            received.append(chunk.text_delta)

    assert received == ["ok"]


@pytest.mark.asyncio
async def test_transport_error_is_wrapped(engine: OllamaModel, monkeypatch: pytest.MonkeyPatch) -> None:
    _patch_stream(monkeypatch, FakeStream([], error=AsyncCommTimeoutError("no response")))

    with pytest.raises(ModelStreamError) as exc_info:
        async for _ in engine.stream_text(ModelRequest(prompt="Hello", system="")):
            pass

    assert isinstance(exc_info.value.__cause__, AsyncCommTimeoutError)


@pytest.mark.asyncio
async def test_close_makes_engine_unavailable(engine: OllamaModel) -> None:
    await engine.close()

    assert engine.is_available is False
    with pytest.raises(ModelExceptionError):
        async for _ in engine.stream_text(ModelRequest(prompt="Hello", system="")):
            pass


@pytest.mark.asyncio
async def test_list_local_models_reads_tags(engine: OllamaModel, monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[dict[str, Any]] = []

    async def get(self: AsyncHttp, **kwargs: Any) -> Any:
        _ = self
        calls.append(kwargs)
        return {"models": [{"name": "qwen3:4b", "size": 1}, {"name": "gemma3:4b"}, {"size": 2}]}

    monkeypatch.setattr(AsyncHttp, "get", get)

    assert await engine.list_local_models() == ["qwen3:4b", "gemma3:4b"]
    assert calls == [{"url": "http://ollama.local:11434/api/tags", "total_timeout": 30.0}]


@pytest.mark.asyncio
async def test_list_local_models_is_empty_when_unreachable(
    engine: OllamaModel, monkeypatch: pytest.MonkeyPatch
) -> None:
    async def get(self: AsyncHttp, **kwargs: Any) -> Any:
        _ = self, kwargs
        raise AsyncCommError("The server is not running, or the port is closed.")

    monkeypatch.setattr(AsyncHttp, "get", get)

    assert await engine.list_local_models() == []
