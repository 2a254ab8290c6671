from __future__ import annotations

from typing import TYPE_CHECKING

from core.trans.engines import OllamaModel  # noqa: F401
from core.trans.interface import ModelExceptionError, ModelInterface
from core.trans.prompts import PromptBuilder, get_language_name
from models.prompt_models import DEFAULT_TARGET_LANGUAGE
from models.translation_models import TranslatorEnv
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging

    from models.config_models import Config


__all__: list[str] = ["TransManager"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

UNKNOWN_MODEL_ID: str = "unknown"


class TransManager:
    """Manager for the language model engine used by the translators.

    This class initializes the engine selected in the configuration, provides the active
    engine instance and resolves the per-call translator environment.
    """

    def __init__(self, config: Config) -> None:
        """Initialize the TransManager with the given configuration.

        Args:
            config (Config): The configuration object containing [LLM] and [TRANSLATION] settings.
        """
        self.config: Config = config
        self._engine_name: str = ""
        self._engine_instance: ModelInterface | None = None
        logger.debug("Registered model engines: %s", ModelInterface.registered)

    @staticmethod
    def fetch_engine_names() -> list[str]:
        """Get the names of all registered model engines."""
        return sorted(ModelInterface.registered)

    async def initialize(self) -> None:
        """Initialize the model engine named by LLM.ENGINE."""
        logger.info("TransManager initialization started")

        name: str = self.config.LLM.ENGINE
        engine_cls: type[ModelInterface] | None = ModelInterface.registered.get(name)
        if engine_cls is None:
            logger.critical("Model engine class not found: '%s'", name)
            return

        instance: ModelInterface = engine_cls()
        try:
            instance.initialize(self.config)
        except RuntimeError as err:
            logger.critical("RuntimeError in '%s' engine setup: %s", name, err)
        except ModelExceptionError as err:
            logger.critical("Exception in '%s' engine setup: %s", name, err)
        else:
            self._engine_name = name
            self._engine_instance = instance
            logger.info("Model engine initialized: '%s' (model: %s)", name, instance.model_id)
            logger.debug("Engine attributes: %s", instance.engine_attributes)

    @property
    def current_engine_instance(self) -> ModelInterface:
        """Get the active model engine.

        Raises:
            ModelExceptionError: If no engine is available.
        """
        if self._engine_instance is None:
            msg = "No model engine currently available"
            raise ModelExceptionError(msg)
        return self._engine_instance

    @property
    def prompts(self) -> PromptBuilder:
        return PromptBuilder(
            system_template=self.config.TRANSLATION.SYSTEM_PROMPT,
            single_paragraph_template=self.config.TRANSLATION.SINGLE_PARAGRAPH_PROMPT,
        )

    def resolve_env(self) -> TranslatorEnv:
        """Snapshot the target language and model for one translate call.

        The model is the translation override if set, otherwise the engine's model,
        otherwise LLM.MODEL, otherwise "unknown".
        """
        target_language: str = self.config.TRANSLATION.TARGET_LANGUAGE or DEFAULT_TARGET_LANGUAGE
        model_id: str = self.config.TRANSLATION.MODEL
        if not model_id and self._engine_instance is not None:
            model_id = self._engine_instance.model_id
        model_id = model_id or self.config.LLM.MODEL or UNKNOWN_MODEL_ID
        return TranslatorEnv(
            target_language=target_language,
            language_name=get_language_name(target_language),
            model_id=model_id,
            max_retry=self.config.TRANSLATION.MAX_RETRY,
        )

    async def on_config_reload(self, config: Config) -> None:
        """Apply a reloaded configuration, restarting the engine if [LLM] changed."""
        llm_changed: bool = config.LLM != self.config.LLM
        self.config = config
        if llm_changed:
            logger.info("LLM settings changed, restarting model engine")
            await self.shutdown_engines()
            await self.initialize()

    async def shutdown_engines(self) -> None:
        if self._engine_instance is None:
            return
        try:
            await self._engine_instance.close()
        except Exception as err:  # noqa: BLE001
            logger.error("Error closing model engine '%s': %s", self._engine_name, err)
        self._engine_instance = None
        self._engine_name = ""
