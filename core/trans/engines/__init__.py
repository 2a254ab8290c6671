"""Model engine implementations.

This package contains concrete implementations of the ModelInterface. Importing it
registers every engine under its distinguished name.

Modules:
- OllamaModel: Streaming chat engine for a local Ollama server.
"""

from core.trans.engines.ollama import OllamaModel

__all__: list[str] = ["OllamaModel"]
