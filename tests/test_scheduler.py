# tests/test_scheduler.py
"""
Fixed-step scheduler: step counts, carry-over, stop and cancel.
"""

import pytest

from quakeframe.scheduler import FixedStepScheduler


def recorder(interval=0.016, max_steps=10):
    calls = []
    sched = FixedStepScheduler(interval, lambda dt: calls.append(dt) or len(calls), max_steps)
    return sched, calls


def test_steps_per_elapsed_time():
    sched, calls = recorder()
    sched.start()
    results = sched.advance(0.05)
    assert results == [1, 2, 3]
    assert calls == [0.016] * 3, "Every step gets the fixed interval"
    assert sched.accumulated == pytest.approx(0.002)


def test_carry_over_between_frames():
    sched, calls = recorder()
    sched.start()
    for _ in range(8):
        sched.advance(0.01)
    assert len(calls) == 5  # 0.08 s / 0.016 s
    assert sched.steps_taken == 5


def test_not_started_does_nothing():
    sched, calls = recorder()
    assert sched.advance(1.0) == []
    assert calls == []


def test_stop_keeps_carry():
    sched, calls = recorder()
    sched.start()
    sched.advance(0.02)
    sched.stop()
    assert sched.advance(0.05) == []
    assert sched.accumulated == pytest.approx(0.004)

    sched.start()
    sched.advance(0.012)
    assert len(calls) == 2


def test_cancel_drops_carry():
    sched, _ = recorder()
    sched.start()
    sched.advance(0.02)
    sched.cancel()
    assert not sched.running
    assert sched.accumulated == 0.0


def test_catch_up_is_capped():
    sched, calls = recorder(max_steps=4)
    sched.start()
    sched.advance(1.0)
    assert len(calls) == 4
    assert sched.accumulated < sched.interval, "Excess time is dropped, not queued"


@pytest.mark.parametrize("interval", [0.0, -0.01])
def test_bad_interval(interval):
    with pytest.raises(ValueError):
        FixedStepScheduler(interval, lambda dt: None)


def test_negative_elapsed():
    sched, _ = recorder()
    sched.start()
    with pytest.raises(ValueError):
        sched.advance(-0.1)
