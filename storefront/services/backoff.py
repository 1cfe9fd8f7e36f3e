"""
Exponential backoff between retry attempts.
"""

import random
from typing import Callable


def backoff_delay(
    attempt: int,
    base_delay: float,
    jitter: float = 0.0,
    rng: Callable[[], float] = random.random,
) -> float:
    """
    Seconds to wait before the retry that follows ``attempt``.

    ``attempt`` is zero-based, so attempt 0 waits exactly ``base_delay``.
    The first call itself never waits.

    Args:
        attempt: Index of the attempt that just failed
        base_delay: Delay in seconds for the first retry
        jitter: Fraction of randomisation applied either side (0.2 = ±20%)
        rng: Source of uniform floats in [0, 1)

    Returns:
        ``base_delay * 2 ** attempt``, spread by ``jitter`` when non-zero
    """
    if attempt < 0:
        raise ValueError(f"attempt must be >= 0, got {attempt}")
    if base_delay < 0:
        raise ValueError(f"base_delay must be >= 0, got {base_delay}")
    if not 0.0 <= jitter <= 1.0:
        raise ValueError(f"jitter must be within [0, 1], got {jitter}")

    delay = base_delay * (2**attempt)
    if jitter:
        delay *= 1 + jitter * (2 * rng() - 1)
    return delay
