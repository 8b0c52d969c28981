"""Shared fixtures for EduGuard tests."""

from datetime import datetime, timedelta

import pytest


class FakeClock:
    """Manually advanced clock injected into components."""

    def __init__(self, start: datetime = datetime(2024, 9, 2, 9, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 0, **kwargs) -> datetime:
        self.now += timedelta(seconds=seconds, **kwargs)
        return self.now


@pytest.fixture
def clock():
    """Deterministic clock starting at a fixed instant."""
    return FakeClock()


# Eight low-entropy signals: 40 confidence points
BASIC_SIGNALS = {
    "user_agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) Chrome/126.0",
    "language": "en-US",
    "platform": "Win32",
    "hardware_concurrency": 8,
    "device_memory": 8,
    "screen_resolution": "1920x1080",
    "color_depth": 24,
    "pixel_ratio": 1.0,
}


@pytest.fixture
def basic_signals():
    return dict(BASIC_SIGNALS)
