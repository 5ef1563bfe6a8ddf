"""
Pytest fixtures for Lumina tests
"""

import numpy as np
import pytest

from lumina.config import Settings
from lumina.engine import Engine


def solid(color, width=20, height=20) -> np.ndarray:
    """Create a solid RGBA image.

    :param color: (r, g, b) or (r, g, b, a)
    """
    if len(color) == 3:
        color = (*color, 255)
    return np.full((height, width, 4), color, dtype=np.uint8)


@pytest.fixture
def manual_settings() -> Settings:
    """Settings without auto-run; tests trigger passes explicitly."""
    return Settings(AUTO_RUN=False)


@pytest.fixture
def engine(manual_settings) -> Engine:
    """An empty engine that only runs when asked."""
    return Engine(settings=manual_settings)


@pytest.fixture
def auto_engine() -> Engine:
    """An engine with auto-run and a short debounce."""
    return Engine(settings=Settings(AUTO_RUN=True, DEBOUNCE_SECONDS=0.01))


@pytest.fixture
def red_image() -> np.ndarray:
    return solid((255, 0, 0))


@pytest.fixture
def gray_image() -> np.ndarray:
    return solid((100, 100, 100))
