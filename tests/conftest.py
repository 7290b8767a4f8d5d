"""Shared fixtures for the urlperm test-suite."""
from __future__ import annotations

from collections.abc import Iterator

import pytest

from urlperm.config import reset_config


@pytest.fixture(autouse=True)
def _default_config() -> Iterator[None]:
    """Every test starts and ends with the built-in privilege configuration."""
    reset_config()
    yield
    reset_config()
