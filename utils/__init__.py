"""Utility modules for the page translator.

This package provides utility functions for logging, cache key generation and text
normalization, and the channel that carries model output to the translators.
"""

from utils.logger_utils import LoggerUtils
from utils.stream_channel import StreamChannel
from utils.string_utils import StringUtils

__all__: list[str] = ["LoggerUtils", "StreamChannel", "StringUtils"]
