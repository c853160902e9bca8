from __future__ import annotations

import numpy as np

from ..exceptions import InvalidConfigError


def exp_weights(window: int, half_life: float) -> np.ndarray:
    """Exponential decay weights over a trailing window.

    Args:
        window: Number of periods (index 0 is the oldest observation)
        half_life: Periods after which a weight halves; must be positive

    Returns:
        Array of length ``window`` summing to 1.0, most recent observation last
    """
    if window is None or int(window) != window or window <= 0:
        raise InvalidConfigError(f"window must be a positive integer, got {window!r}")
    if half_life is None or not np.isfinite(half_life) or half_life <= 0:
        raise InvalidConfigError(f"half_life must be positive, got {half_life!r}")

    # 0.5^((n-1-i)/h): newest gets 1.0 before normalization
    exponents = np.arange(window - 1, -1, -1, dtype=float) / float(half_life)
    weights = 0.5 ** exponents
    return weights / weights.sum()
