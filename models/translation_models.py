"""Models for translation-related data.

Defines the progress events surfaced to callers, the chunks produced by model engines,
the model call request and the per-call translator environment snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal, TypeAlias

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    import asyncio

__all__: list[str] = [
    "ModelChunk",
    "ModelRequest",
    "ObjectChunk",
    "TextDeltaChunk",
    "TranslationSchema",
    "TranslationUnit",
    "TranslatorEnv",
]


@dataclass(frozen=True)
class TranslationUnit:
    """Progress event for one text unit.

    Attributes:
        idx (int): Position of the unit in the caller's list.
        text (str): Source text.
        translated (str): Translation so far, complete when ``done`` is True.
        done (bool): Whether this is the final emission for ``idx``.
    """

    idx: int
    text: str
    translated: str
    done: bool


@dataclass(frozen=True)
class TranslatorEnv:
    """Snapshot of the settings a single translate call runs with."""

    target_language: str
    language_name: str
    model_id: str
    max_retry: int = 3


class TranslationSchema(BaseModel):
    """Structured output requested from the model for batch translation."""

    translation: list[str] = Field(description="Translated strings, one per source string, in source order.")


@dataclass(frozen=True)
class ObjectChunk:
    """Snapshot of the structured output decoded so far."""

    object: dict[str, Any]
    type: Literal["object"] = "object"


@dataclass(frozen=True)
class TextDeltaChunk:
    """Newly generated piece of plain text."""

    text_delta: str
    type: Literal["text-delta"] = "text-delta"


ModelChunk: TypeAlias = "ObjectChunk | TextDeltaChunk"


@dataclass(frozen=True)
class ModelRequest:
    """A single model call.

    Attributes:
        prompt (str): User message.
        system (str): System message.
        schema (type[BaseModel] | None): Structured output schema. None requests plain text.
        abort_signal (asyncio.Event | None): Set by the caller to stop the call.
        model (str | None): Model override. None uses the engine's configured model.
    """

    prompt: str
    system: str
    schema: type[BaseModel] | None = None
    abort_signal: asyncio.Event | None = None
    model: str | None = None
