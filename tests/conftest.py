"""
Pytest Configuration and Shared Fixtures

This file contains pytest configuration and fixtures that are available
to all test modules. The fake schedulers from ``fakes.py`` stand in for the
OCR engine pools so locators and pipelines can be driven without a tesseract
binary.
"""

import numpy as np
import pytest

from fakes import FakeMultiplexor, FakeScheduler


@pytest.fixture
def fake_multiplexor():
    """Fixture providing a multiplexor with empty-answering default and number pools."""
    return FakeMultiplexor({"default": FakeScheduler(), "number": FakeScheduler()})


@pytest.fixture
def rgba_image():
    """Fixture providing a 120x200 RGBA image with a dark band in the middle."""
    image = np.full((120, 200, 4), 255, dtype=np.uint8)
    image[50:70, 20:180, :3] = 30
    return image
