# quakeframe/scheduler.py
"""
Fixed-step scheduler.

The host calls ``advance(elapsed)`` with wall-clock (or simulated) time; the
scheduler runs its step function once per whole interval accumulated, so the
simulation always moves in identical steps whatever the frame rate.

    sched = FixedStepScheduler(0.016, orchestrator.collapse_tick)
    sched.start()
    results = sched.advance(0.05)    # 3 steps, 0.002 s carried over
    sched.stop()                     # keeps the carry, advance() is a no-op
    sched.cancel()                   # stops and drops the carry
"""

import logging
from typing import Any, Callable, List

logger = logging.getLogger(__name__)


class FixedStepScheduler:
    """
    Runs ``step(interval)`` at a fixed cadence.

    Parameters:
    -----------
    interval : float
        Step length in seconds, passed to every step call
    step : callable
        Function taking dt and returning a per-step result
    max_steps : int
        Catch-up limit for one advance(); extra accumulated time is dropped
    """

    def __init__(self, interval: float, step: Callable[[float], Any], max_steps: int = 10):
        if interval <= 0:
            raise ValueError(f"Scheduler interval must be positive, got {interval}")
        self.interval = interval
        self.step = step
        self.max_steps = max_steps
        self.running = False
        self.accumulated = 0.0
        self.steps_taken = 0

    def start(self) -> None:
        self.running = True

    def stop(self) -> None:
        self.running = False

    def cancel(self) -> None:
        self.running = False
        self.accumulated = 0.0

    def advance(self, elapsed: float) -> List[Any]:
        """
        Account for ``elapsed`` seconds and run the steps that became due.

        Returns:
            Results of the steps run, oldest first (empty when stopped)
        """
        if not self.running:
            return []
        if elapsed < 0:
            raise ValueError(f"Elapsed time must be non-negative, got {elapsed}")

        self.accumulated += elapsed
        results = []
        # Small epsilon so 0.048 / 0.016 counts as three steps
        while self.accumulated + 1e-12 >= self.interval and len(results) < self.max_steps:
            self.accumulated -= self.interval
            results.append(self.step(self.interval))
            self.steps_taken += 1

        if self.accumulated >= self.interval:
            dropped = self.accumulated
            self.accumulated %= self.interval
            logger.warning(
                "Scheduler fell behind: dropped %.3f s after %d steps",
                dropped - self.accumulated, self.max_steps,
            )
        self.accumulated = max(self.accumulated, 0.0)
        return results
