from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    from collections.abc import Iterator


@pytest.fixture(autouse=True)
def reset_logging() -> Iterator[None]:
    LoggerUtils.reset()
    yield
    LoggerUtils.reset()
