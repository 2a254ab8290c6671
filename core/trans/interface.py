"""This module defines the abstract base class for language model engines and related exceptions.

Engines turn a ModelRequest into an asynchronous stream of chunks: structured snapshots for
batch translation and text deltas for single paragraphs.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar

from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import AsyncIterator

    from models.config_models import Config
    from models.translation_models import ModelRequest, ObjectChunk, TextDeltaChunk

__all__: list[str] = [
    "EngineAttributes",
    "ModelExceptionError",
    "ModelInterface",
    "ModelStreamError",
]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


@dataclass
class EngineAttributes:
    """Engine-specific capabilities and behavior flags.

    Attributes:
        name (str): Display name of the engine. Not used for identification.
        supports_structured_output (bool): Whether the engine can constrain output to a JSON schema.
    """

    name: str
    supports_structured_output: bool = True


class ModelExceptionError(Exception):
    """An error occurred while calling the language model."""


class ModelStreamError(ModelExceptionError):
    """The model stream failed or ended unexpectedly."""


class ModelInterface(ABC):
    """Abstract base class for language model engines.

    Subclasses are registered automatically under the name returned by fetch_engine_name().

    Attributes:
        registered (ClassVar[dict[str, type[ModelInterface]]]): Registered engine classes keyed by name.
    """

    registered: ClassVar[dict[str, type[ModelInterface]]] = {}

    def __init_subclass__(cls, **kwargs) -> None:
        """Register the subclass in the registered dictionary.

        Args:
            **kwargs: Additional keyword arguments passed to parent class.

        Raises:
            TypeError: If the subclass does not provide fetch_engine_name().
            ValueError: If another engine is already registered under the same name.
        """
        super().__init_subclass__(**kwargs)
        if not hasattr(cls, "fetch_engine_name") or not callable(cls.fetch_engine_name):
            msg = "Subclasses of ModelInterface must implement the static method fetch_engine_name()."
            raise TypeError(msg)

        if not isinstance(cls.fetch_engine_name(), str) or cls.fetch_engine_name() == "":
            return  # Engines with empty names are allowed but not registered.

        if cls.fetch_engine_name() in cls.registered:
            msg: str = f"A model engine with the name '{cls.fetch_engine_name()}' is already registered."
            raise ValueError(msg)

        cls.registered[cls.fetch_engine_name()] = cls

    def __init__(self) -> None:
        self._engine_attributes: EngineAttributes | None = None

    @property
    def engine_attributes(self) -> EngineAttributes:
        if self._engine_attributes is None:
            msg = "Engine attributes have not been set."
            raise RuntimeError(msg)
        return self._engine_attributes

    @engine_attributes.setter
    def engine_attributes(self, attributes: EngineAttributes) -> None:
        if self._engine_attributes is not None:
            msg = "Engine attributes can only be set once during initialization."
            raise RuntimeError(msg)
        self._engine_attributes = attributes

    @property
    def engine_name(self) -> str:
        return self.engine_attributes.name

    @property
    @abstractmethod
    def is_available(self) -> bool:
        """Check if the engine is ready to accept requests."""
        raise NotImplementedError

    @property
    @abstractmethod
    def model_id(self) -> str:
        """Identifier of the model requests are sent to by default, e.g. "qwen3:4b"."""
        raise NotImplementedError

    @staticmethod
    @abstractmethod
    def fetch_engine_name() -> str:
        """Fetch the distinguished name of the engine.

        This method is called during class registration in __init_subclass__, so the
        implementation must be available at subclass definition time.

        Returns:
            str: The distinguished name of the engine.
        """
        raise NotImplementedError

    @abstractmethod
    def initialize(self, config: Config) -> None:
        """Initialize the engine with the given configuration.

        Args:
            config (Config): Configuration object containing the [LLM] settings.
        """
        raise NotImplementedError

    @abstractmethod
    def stream_object(self, request: ModelRequest) -> AsyncIterator[ObjectChunk]:
        """Stream snapshots of the structured output described by ``request.schema``.

        Each chunk holds the whole object decoded so far. Engines must not revise an
        array element once a later element has started.

        Args:
            request (ModelRequest): Prompt, system message, schema and abort signal.

        Returns:
            AsyncIterator[ObjectChunk]: Growing snapshots of the object.

        Raises:
            ModelStreamError: If the request fails or the stream breaks.
        """
        raise NotImplementedError

    @abstractmethod
    def stream_text(self, request: ModelRequest) -> AsyncIterator[TextDeltaChunk]:
        """Stream plain text output as deltas.

        Args:
            request (ModelRequest): Prompt, system message and abort signal.

        Returns:
            AsyncIterator[TextDeltaChunk]: Newly generated text pieces.

        Raises:
            ModelStreamError: If the request fails or the stream breaks.
        """
        raise NotImplementedError

    @abstractmethod
    async def close(self) -> None:
        """Release resources held by the engine."""
        raise NotImplementedError
