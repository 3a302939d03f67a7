from __future__ import annotations

import math


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


def step_progress(completed: int, total: int) -> int:
    """Percentage of ``total`` steps done, as an integer 0-100."""
    if total <= 0:
        return 100
    return round_half_up(100 * completed / total)


def poll_progress(attempt: int, max_attempts: int) -> int:
    """Progress reported while waiting on a remote run.

    Reserves 0-10 for dispatch and 90-100 for post-processing.
    """
    return min(10 + round_half_up(80 * attempt / max_attempts), 90)
