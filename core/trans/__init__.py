"""Translation engine management and interfaces.

This package provides streaming translation through pluggable language model engines:
the paragraph translator, the cache-aware orchestrator and the engine manager.
"""

from core.trans.interface import EngineAttributes, ModelExceptionError, ModelInterface, ModelStreamError
from core.trans.manager import TransManager
from core.trans.paragraph_translator import ParagraphTranslator
from core.trans.prompts import PromptBuilder, get_language_name
from core.trans.translator import Translator

__all__: list[str] = [
    "EngineAttributes",
    "ModelExceptionError",
    "ModelInterface",
    "ModelStreamError",
    "ParagraphTranslator",
    "PromptBuilder",
    "TransManager",
    "Translator",
    "get_language_name",
]
