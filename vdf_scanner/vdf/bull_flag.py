"""
Bull Flag / Bull Pennant formation detector

Looks for a consolidation ending at the last bar, preceded by an up-move:

1. Flag: orderly, gently down-drifting parallel channel
2. Pennant: converging triangle (descending highs + ascending lows)

Best setups: 1-4 weeks long (5-20 bars), "high and tight"
(retracement under 38.2%), gentle downslope. No flagpole structure or
breakout confirmation is required.
"""

import math
from typing import List, Optional, Sequence

from vdf_scanner.vdf.math_utils import lin_reg, mean
from vdf_scanner.vdf.models import BullFlagDetection


MIN_TOTAL_BARS = 10
MAX_LOOKBACK_BARS = 40

FLAG_MIN_BARS = 5
FLAG_MAX_BARS = 20

# Наклон флага, % за бар
FLAG_SLOPE_MAX = 0.05
FLAG_SLOPE_MIN = -1.2
IDEAL_FLAG_SLOPE = -0.3

MAX_CHANNEL_WIDTH_PCT = 8.0
PRIOR_UPTREND_MIN_PCT = 5.0

MAX_RETRACE_PCT = 50.0
IDEAL_RETRACE_PCT = 38.2

MIN_CONFIDENCE = 50


def _round_half_up(value: float, digits: int = 0) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def _fit(ys: List[float]):
    return lin_reg(list(range(len(ys))), ys)


def score_duration(flag_len: int) -> float:
    """7-15 bars is the sweet spot; tapers on both sides"""
    if flag_len < 5:
        return flag_len / 5 * 0.5
    if flag_len <= 7:
        return 0.7 + (flag_len - 5) * 0.15
    if flag_len <= 15:
        return 1.0
    if flag_len <= 20:
        return 1.0 - (flag_len - 15) * 0.1
    return 0.3


def score_retracement(retrace_pct: float) -> float:
    """Full credit under 38.2%, steep drop-off to 0 at 50%"""
    if retrace_pct <= 0:
        return 1.0
    if retrace_pct <= IDEAL_RETRACE_PCT:
        return 1.0 - (retrace_pct / IDEAL_RETRACE_PCT) * 0.15
    excess = (retrace_pct - IDEAL_RETRACE_PCT) / (MAX_RETRACE_PCT - IDEAL_RETRACE_PCT)
    return max(0.0, 0.85 - excess * 0.85)


def _prior_score(prior_gain_pct: float) -> float:
    return min(1.0, (prior_gain_pct - PRIOR_UPTREND_MIN_PCT) / 25) * 15


def score_flag(flag_closes: List[float],
               flag_mean: float,
               channel_width_pct: float,
               retrace_pct: float,
               prior_gain_pct: float,
               flag_len: int) -> Optional[dict]:
    """Parallel channel scoring; None when the slope is out of bounds"""
    slope, _, r2 = _fit(flag_closes)
    slope_per_bar = slope / flag_mean * 100

    if slope_per_bar > FLAG_SLOPE_MAX or slope_per_bar < FLAG_SLOPE_MIN:
        return None

    s_r2 = max(0.0, r2) * 20
    s_tight = max(0.0, 1 - channel_width_pct / MAX_CHANNEL_WIDTH_PCT) * 20
    s_slope = max(0.0, 1 - abs(slope_per_bar - IDEAL_FLAG_SLOPE) / 1.2) * 15
    s_retrace = score_retracement(retrace_pct) * 20
    s_duration = score_duration(flag_len) * 10
    s_prior = _prior_score(prior_gain_pct)

    return {
        'confidence': int(_round_half_up(s_r2 + s_tight + s_slope + s_retrace + s_duration + s_prior)),
        'slope_per_bar': _round_half_up(slope_per_bar, 2),
        'r2': _round_half_up(r2, 3),
    }


def score_pennant(flag_bars: Sequence,
                  flag_closes: List[float],
                  flag_mean: float,
                  retrace_pct: float,
                  prior_gain_pct: float,
                  flag_len: int) -> Optional[dict]:
    """Converging triangle scoring; None unless highs fall and lows hold"""
    n = len(flag_bars)
    if n < 5:
        return None

    high_slope, high_icpt, high_r2 = _fit([b.high for b in flag_bars])
    low_slope, low_icpt, low_r2 = _fit([b.low for b in flag_bars])
    close_slope, _, close_r2 = _fit(flag_closes)

    high_slope_norm = high_slope / flag_mean * 100
    low_slope_norm = low_slope / flag_mean * 100
    if high_slope_norm >= 0 or low_slope_norm <= -0.05:
        return None

    start_range = high_icpt - low_icpt
    end_range = (high_icpt + high_slope * (n - 1)) - (low_icpt + low_slope * (n - 1))
    if start_range <= 0 or end_range <= 0:
        return None
    convergence_ratio = end_range / start_range
    if convergence_ratio > 0.85:
        return None

    close_slope_norm = close_slope / flag_mean * 100
    if close_slope_norm > 0.5 or close_slope_norm < -1.5:
        return None

    s_conv = max(0.0, 1 - (convergence_ratio - 0.15) / 0.7) * 20
    s_ord = (max(0.0, high_r2) + max(0.0, low_r2)) / 2 * 20

    high_mag = abs(high_slope_norm)
    low_mag = abs(low_slope_norm)
    asymmetry = abs(high_mag - low_mag) / max(high_mag, low_mag, 0.001)
    s_sym = max(0.0, 1 - asymmetry) * 5

    s_retrace = score_retracement(retrace_pct) * 20
    s_duration = score_duration(flag_len) * 10
    s_prior = _prior_score(prior_gain_pct)
    s_close_r2 = max(0.0, close_r2) * 10

    total = s_conv + s_ord + s_sym + s_retrace + s_duration + s_prior + s_close_r2
    return {
        'confidence': int(_round_half_up(total)),
        'slope_per_bar': _round_half_up(close_slope_norm, 2),
        'r2': _round_half_up(close_r2, 3),
    }


def detect_bull_flag(bars: Sequence) -> Optional[BullFlagDetection]:
    """
    Найти флаг/вымпел, заканчивающийся на последнем баре

    Args:
        bars: Бары с атрибутами open/high/low/close (например DailyAggregate)

    Returns:
        BullFlagDetection с confidence ≥ 50 или None
    """
    bars = list(bars)
    if len(bars) < MIN_TOTAL_BARS:
        return None

    offset = max(0, len(bars) - MAX_LOOKBACK_BARS)
    work = bars[offset:]
    total = len(work)

    best: Optional[BullFlagDetection] = None
    best_confidence = 0

    for flag_len in range(FLAG_MIN_BARS, min(FLAG_MAX_BARS, total - 3) + 1):
        flag_start = total - flag_len
        flag_bars = work[flag_start:]
        flag_closes = [b.close for b in flag_bars]
        flag_mean = mean(flag_closes)
        if flag_mean <= 0:
            continue

        # Prior uptrend
        pre_flag = work[:flag_start]
        if len(pre_flag) < 3:
            continue
        pre_low = min(b.low for b in pre_flag)
        pre_high = max(b.high for b in pre_flag[-5:])
        if pre_low <= 0:
            continue
        prior_gain_pct = (pre_high - pre_low) / pre_low * 100
        if prior_gain_pct < PRIOR_UPTREND_MIN_PCT:
            continue

        # Retracement
        prior_height = pre_high - pre_low
        retrace_pct = (pre_high - min(flag_closes)) / prior_height * 100 if prior_height > 0 else 0.0
        if retrace_pct > MAX_RETRACE_PCT:
            continue

        # Channel width
        flag_high = max(b.high for b in flag_bars)
        flag_low = min(b.low for b in flag_bars)
        channel_width_pct = (flag_high - flag_low) / flag_mean * 100
        if channel_width_pct > MAX_CHANNEL_WIDTH_PCT:
            continue

        flag = score_flag(flag_closes, flag_mean, channel_width_pct, retrace_pct, prior_gain_pct, flag_len)
        pennant = score_pennant(flag_bars, flag_closes, flag_mean, retrace_pct, prior_gain_pct, flag_len)

        pennant_conf = pennant['confidence'] if pennant else 0
        chosen = flag if flag and flag['confidence'] >= pennant_conf else pennant

        if chosen and chosen['confidence'] > best_confidence:
            best_confidence = chosen['confidence']
            best = BullFlagDetection(
                confidence=chosen['confidence'],
                flag_start_index=flag_start + offset,
                flag_end_index=total - 1 + offset,
                slope_per_bar=chosen['slope_per_bar'],
                r2=chosen['r2'],
                channel_width_pct=_round_half_up(channel_width_pct, 2),
                retrace_pct=_round_half_up(retrace_pct, 1),
            )

    if best and best.confidence >= MIN_CONFIDENCE:
        return best
    return None
