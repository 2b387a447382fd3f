import pytest

from chat_capture.config import CaptureSettings


@pytest.fixture
def settings():
    return CaptureSettings(
        name="Gemini",
        poll_interval=0.2,
        stable_ticks=6,
        appear_timeout=30.0,
        hard_timeout=120.0,
        copy_wait_ms=50,
    )
