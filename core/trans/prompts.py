from __future__ import annotations

import json
from dataclasses import dataclass

from models.prompt_models import (
    DEFAULT_LANGUAGE_NAME,
    DEFAULT_SINGLE_PARAGRAPH_PROMPT,
    DEFAULT_TRANSLATOR_SYSTEM_PROMPT,
    LANGUAGE_NAMES,
    LANGUAGE_PLACEHOLDER,
)

__all__: list[str] = ["PromptBuilder", "get_language_name"]


def get_language_name(language_code: str) -> str:
    """Display name used in prompts for a language code; English for unknown codes."""
    return LANGUAGE_NAMES.get(language_code, DEFAULT_LANGUAGE_NAME)


@dataclass(frozen=True)
class PromptBuilder:
    """Builds (user prompt, system prompt) pairs for the translators.

    Attributes:
        system_template (str): Batch system prompt with a ``{{LANGUAGE}}`` placeholder.
        single_paragraph_template (str): Single paragraph system prompt with a ``{{LANGUAGE}}`` placeholder.
    """

    system_template: str = DEFAULT_TRANSLATOR_SYSTEM_PROMPT
    single_paragraph_template: str = DEFAULT_SINGLE_PARAGRAPH_PROMPT

    def batch(self, paragraphs: list[str], language_name: str) -> tuple[str, str]:
        """Prompt for translating a list of paragraphs in one structured call.

        The user prompt is the pretty-printed JSON array with a blank line between elements.
        """
        user_prompt: str = json.dumps(paragraphs, indent=2, ensure_ascii=False).replace(",\n", ",\n\n")
        return user_prompt, self.system_template.replace(LANGUAGE_PLACEHOLDER, language_name)

    def single(self, paragraph: str, language_name: str) -> tuple[str, str]:
        return paragraph, self.single_paragraph_template.replace(LANGUAGE_PLACEHOLDER, language_name)
