from __future__ import annotations

from ..contracts import BackoffPolicy


def compute_backoff(attempt: int, base: float = 1.0, factor: float = 2.0) -> float:
    """Delay before retry number ``attempt`` (1-based): base, 2*base, 4*base..."""
    return base * factor ** max(attempt - 1, 0)


def backoff_for(policy: BackoffPolicy, attempt: int) -> float:
    """Compute the delay ``policy`` prescribes after ``attempt`` failed attempts."""
    if policy.type == "fixed":
        return policy.delay
    return compute_backoff(attempt, base=policy.delay)
