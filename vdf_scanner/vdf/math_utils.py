"""
Shared numeric helpers for the VDF engine
Every ratio helper returns 0.0 instead of NaN/inf on a zero denominator
"""

import math
import numpy as np
from typing import Sequence, Tuple
from scipy.stats import linregress


def mean(values: Sequence[float]) -> float:
    if len(values) == 0:
        return 0.0
    return float(np.mean(values))


def std(values: Sequence[float]) -> float:
    """Sample standard deviation (ddof=1); 0.0 for fewer than 2 values"""
    if len(values) < 2:
        return 0.0
    return float(np.std(values, ddof=1))


def lin_reg(xs: Sequence[float], ys: Sequence[float]) -> Tuple[float, float, float]:
    """
    Ordinary least squares y = intercept + slope * x

    Returns:
        (slope, intercept, r2); (0, 0, 0) when the fit is degenerate
    """
    if len(xs) < 2 or len(xs) != len(ys):
        return 0.0, 0.0, 0.0
    if np.ptp(np.asarray(xs, dtype=float)) == 0:
        return 0.0, 0.0, 0.0

    fit = linregress(xs, ys)
    slope = float(fit.slope)
    intercept = float(fit.intercept)
    r2 = float(fit.rvalue) ** 2
    if not math.isfinite(r2):
        r2 = 0.0
    return slope, intercept, r2


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def safe_div(numerator: float, denominator: float) -> float:
    if denominator == 0 or not math.isfinite(denominator):
        return 0.0
    result = numerator / denominator
    return float(result) if math.isfinite(result) else 0.0


def pct_change(first: float, last: float) -> float:
    """(last - first) / first * 100, 0.0 when first is 0"""
    return safe_div(last - first, first) * 100
