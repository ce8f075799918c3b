"""
Tests for the frame timer.
"""

import pytest

from redactor.timer import FrameTimer


class _FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def test_fps_from_single_measurement():
    """One 20 ms measurement reads as 50 FPS."""
    clock = _FakeClock()
    timer = FrameTimer(clock)

    timer.start()
    clock.advance(0.020)
    timer.stop()

    assert timer.count == 1
    assert timer.elapsed_ms == pytest.approx(20.0)
    assert timer.fps == pytest.approx(50.0)


def test_accumulates_until_reset():
    """Only time between start and stop is counted."""
    clock = _FakeClock()
    timer = FrameTimer(clock)

    timer.start()
    clock.advance(0.010)
    timer.stop()
    clock.advance(5.0)  # not measured
    timer.start()
    clock.advance(0.030)
    timer.stop()

    assert timer.count == 2
    assert timer.elapsed == pytest.approx(0.040)
    assert timer.fps == pytest.approx(50.0)

    timer.reset()
    assert timer.count == 0
    assert timer.elapsed == 0.0
    assert timer.fps == 0.0


def test_stop_without_start_is_ignored():
    timer = FrameTimer(_FakeClock())
    timer.stop()
    assert timer.count == 0
    assert not timer.running
