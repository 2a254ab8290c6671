"""Core services of the page translator.

This package contains the shared data container, the translation cache and the
streaming translation engine.
"""

from core.shared_data import SharedData

__all__: list[str] = ["SharedData"]
