"""
Subwindow Scoring System
score = Σ w_i * s_i  ×  concordance_penalty  ×  duration_multiplier

Rewards hidden buying (price weak, delta net positive), rejects ordinary
trend-following volume. Evaluated as an ordered chain of gates; every gate
can short-circuit with score=0 and a reason code:

1. Size gate          (≥2 weekly buckets)           → insufficient_data
2. Price-range gate   (-45% ≤ Δprice ≤ +3%)         → price_rising / crash
3. 3σ outlier capping of daily delta
4. Net delta gate     (Σ capped delta > 0)          → no_net_buying
5. Concordance split  (up-day buying vs absorption) → concordant_dominated / concordant_flat_market
6. Slope gate         (cumulative weekly delta)     → slope_gate
7. Supporting metrics
8. Eight [0, 1] components + weighted sum
9. No-divergence gate                               → no_divergence
10. Concordance penalty
11. Duration multiplier
12. Final score                                     → accumulation_divergence / below_threshold
"""

from typing import List, Optional, Sequence, Tuple

import numpy as np

from vdf_scanner.indicators.volume_delta import build_weeks, week_start_for
from vdf_scanner.vdf.config import DEFAULT_VDF_CONFIG, ScoringWeights, VDFConfig
from vdf_scanner.vdf.math_utils import clamp, lin_reg, mean, pct_change, safe_div, std
from vdf_scanner.vdf.models import (
    CappedDay,
    DailyAggregate,
    ScoreComponents,
    ScoredZone,
    WeekAggregate,
    REASON_ACCUMULATION,
    REASON_BELOW_THRESHOLD,
    REASON_CONCORDANT_DOMINATED,
    REASON_CONCORDANT_FLAT_MARKET,
    REASON_CRASH,
    REASON_INSUFFICIENT_DATA,
    REASON_NO_DIVERGENCE,
    REASON_NO_NET_BUYING,
    REASON_PRICE_RISING,
    REASON_SLOPE_GATE,
)


class SubwindowScorer:
    """Scores one fixed window of daily aggregates for accumulation divergence"""

    def __init__(self, config: Optional[VDFConfig] = None):
        """
        Args:
            config: Frozen engine config (defaults to DEFAULT_VDF_CONFIG)
        """
        self.config = config or DEFAULT_VDF_CONFIG
        self.weights = self.config.weights

    def score(self,
              daily_slice: Sequence[DailyAggregate],
              pre_context: Optional[Sequence[DailyAggregate]] = None) -> ScoredZone:
        """
        Оценить окно дневных агрегатов

        Args:
            daily_slice: Дневные агрегаты окна (по возрастанию даты)
            pre_context: Дневные агрегаты до окна (baseline для delta shift)

        Returns:
            ScoredZone; при отказе гейта score=0 и reason=<код гейта>
        """
        cfg = self.config
        n = len(daily_slice)
        base = {
            'start': 0,
            'end': max(0, n - 1),
            'win_size': n,
            'start_date': daily_slice[0].date if n else '',
            'end_date': daily_slice[-1].date if n else '',
        }

        # 1. Size gate
        weeks = build_weeks(list(daily_slice))
        if len(weeks) < cfg.min_weeks:
            return self._reject(base, REASON_INSUFFICIENT_DATA, weeks=len(weeks))

        closes = np.array([d.close for d in daily_slice], dtype=float)
        deltas = np.array([d.delta for d in daily_slice], dtype=float)
        volumes = np.array([d.total_vol for d in daily_slice], dtype=float)
        total_vol = float(volumes.sum())
        avg_daily_vol = total_vol / n

        # 2. Price-range gate
        price_chg = pct_change(closes[0], closes[-1])
        if price_chg > cfg.price_rise_max_pct:
            return self._reject(base, REASON_PRICE_RISING, weeks=len(weeks), overall_price_change=price_chg)
        if price_chg < cfg.price_drop_min_pct:
            return self._reject(base, REASON_CRASH, weeks=len(weeks), overall_price_change=price_chg)

        # Pre-context baseline
        pre_context = list(pre_context or [])
        pre_avg_delta = mean([d.delta for d in pre_context])
        pre_avg_vol = mean([d.total_vol for d in pre_context]) if pre_context else avg_daily_vol

        # 3. Outlier capping
        capped, capped_days = self.cap_outliers(daily_slice, deltas)

        # 4. Net delta gate
        net_delta = float(capped.sum())
        net_delta_pct = safe_div(net_delta, total_vol) * 100
        if net_delta_pct <= 0:
            return self._reject(
                base, REASON_NO_NET_BUYING,
                weeks=len(weeks),
                net_delta_pct=net_delta_pct,
                overall_price_change=price_chg,
                capped_days=capped_days,
            )

        # 5. Concordance split
        intra_rally = pct_change(closes[0], float(closes.max()))
        concordant_frac = self.concordant_fraction(closes, capped)

        if concordant_frac > cfg.concordant_max:
            return self._reject(
                base, REASON_CONCORDANT_DOMINATED,
                weeks=len(weeks),
                net_delta_pct=net_delta_pct,
                overall_price_change=price_chg,
                intra_rally=intra_rally,
                concordant_frac=concordant_frac,
                capped_days=capped_days,
            )

        if price_chg > 0 and concordant_frac > cfg.concordant_flat_max:
            return self._reject(
                base, REASON_CONCORDANT_FLAT_MARKET,
                weeks=len(weeks),
                net_delta_pct=net_delta_pct,
                overall_price_change=price_chg,
                intra_rally=intra_rally,
                concordant_frac=concordant_frac,
                capped_days=capped_days,
            )

        # 6. Slope gate (cumulative weekly capped delta vs week index)
        weekly_deltas = self.weekly_deltas(daily_slice, capped, weeks)
        avg_weekly_vol = mean([w.total_vol for w in weeks])
        slope, _, _ = lin_reg(list(range(len(weeks))), np.cumsum(weekly_deltas).tolist())
        delta_slope_norm = safe_div(slope, avg_weekly_vol) * 100

        if delta_slope_norm < cfg.slope_min:
            return self._reject(
                base, REASON_SLOPE_GATE,
                weeks=len(weeks),
                net_delta_pct=net_delta_pct,
                overall_price_change=price_chg,
                delta_slope_norm=delta_slope_norm,
                intra_rally=intra_rally,
                concordant_frac=concordant_frac,
                capped_days=capped_days,
            )

        # 7. Supporting metrics
        delta_shift = safe_div(net_delta / n - pre_avg_delta, pre_avg_vol) * 100
        absorption_pct = self.absorption_pct(closes, deltas)
        large_buy_vs_sell = self.large_buy_vs_sell(deltas, avg_daily_vol)
        accum_weeks = int((weekly_deltas > 0).sum())
        accum_week_ratio = accum_weeks / len(weeks)
        vol_decline_score = self.volume_decline_score(volumes)

        # 8. Components
        components = self.components(
            net_delta_pct=net_delta_pct,
            delta_slope_norm=delta_slope_norm,
            delta_shift=delta_shift,
            accum_week_ratio=accum_week_ratio,
            large_buy_vs_sell=large_buy_vs_sell,
            absorption_pct=absorption_pct,
            vol_decline_score=vol_decline_score,
            price_chg=price_chg,
        )
        weighted = self.weighted_sum(components, self.weights)

        metrics = {
            'weeks': len(weeks),
            'net_delta_pct': net_delta_pct,
            'overall_price_change': price_chg,
            'delta_slope_norm': delta_slope_norm,
            'accum_week_ratio': accum_week_ratio,
            'delta_shift': delta_shift,
            'accum_weeks': accum_weeks,
            'absorption_pct': absorption_pct,
            'large_buy_vs_sell': large_buy_vs_sell,
            'vol_decline_score': vol_decline_score,
            'components': components,
            'intra_rally': intra_rally,
            'concordant_frac': concordant_frac,
            'capped_days': capped_days,
        }

        # 9. No-divergence gate
        if components.s8 < cfg.no_divergence_s8 and concordant_frac > cfg.no_divergence_concordance:
            return self._reject(base, REASON_NO_DIVERGENCE, **metrics)

        # 10-12. Penalty, duration, final
        concordance_penalty = self.concordance_penalty(concordant_frac)
        duration_multiplier = self.duration_multiplier(len(weeks))
        score = weighted * concordance_penalty * duration_multiplier
        detected = bool(score >= cfg.detection_threshold)

        return ScoredZone(
            **base,
            score=score,
            detected=detected,
            reason=REASON_ACCUMULATION if detected else REASON_BELOW_THRESHOLD,
            duration_multiplier=duration_multiplier,
            concordance_penalty=concordance_penalty,
            **metrics,
        )

    # ==================== GATE HELPERS ====================

    def cap_outliers(self,
                     daily_slice: Sequence[DailyAggregate],
                     deltas: np.ndarray) -> Tuple[np.ndarray, List[CappedDay]]:
        """
        Clip daily deltas to mean ± k·σ (sample σ); returns capped array + audit list

        With sample σ a single outlier among n days has z ≤ (n-1)/√n, so at
        n=10 (z ≤ 2.85) nothing is ever clipped at k=3.
        """
        mu = mean(deltas)
        sigma = std(deltas)
        cap_high = mu + self.config.outlier_sigma * sigma
        cap_low = mu - self.config.outlier_sigma * sigma

        capped = np.clip(deltas, cap_low, cap_high)
        capped_days = [
            CappedDay(date=daily_slice[i].date, original=float(deltas[i]), capped=float(capped[i]))
            for i in np.flatnonzero((deltas > cap_high) | (deltas < cap_low))
        ]
        return capped, capped_days

    @staticmethod
    def concordant_fraction(closes: np.ndarray, capped: np.ndarray) -> float:
        """
        Share of positive delta that merely follows price up

        concordant = Σ positive delta on up-close days
        absorption = Σ positive delta on down-close days
        """
        if len(closes) < 2:
            return 0.0
        price_diff = np.diff(closes)
        day_delta = capped[1:]
        positive = day_delta > 0
        concordant_up = float(day_delta[positive & (price_diff > 0)].sum())
        absorption = float(day_delta[positive & (price_diff < 0)].sum())
        return safe_div(concordant_up, concordant_up + absorption)

    @staticmethod
    def weekly_deltas(daily_slice: Sequence[DailyAggregate],
                      capped: np.ndarray,
                      weeks: List[WeekAggregate]) -> np.ndarray:
        """Capped delta summed per week bucket, in week order"""
        index = {w.week_start: i for i, w in enumerate(weeks)}
        result = np.zeros(len(weeks), dtype=float)
        for day, value in zip(daily_slice, capped):
            result[index[week_start_for(day.date)]] += value
        return result

    # ==================== SUPPORTING METRICS ====================

    @staticmethod
    def absorption_pct(closes: np.ndarray, deltas: np.ndarray) -> float:
        """% of day-over-day moves that closed down with positive (raw) delta"""
        n = len(closes)
        if n < 2:
            return 0.0
        absorption_days = int(((np.diff(closes) < 0) & (deltas[1:] > 0)).sum())
        return absorption_days / (n - 1) * 100

    def large_buy_vs_sell(self, deltas: np.ndarray, avg_daily_vol: float) -> float:
        threshold = avg_daily_vol * self.config.large_day_vol_frac
        large_buy = int((deltas > threshold).sum())
        large_sell = int((deltas < -threshold).sum())
        return safe_div(large_buy - large_sell, len(deltas)) * 100

    def volume_decline_score(self, volumes: np.ndarray) -> float:
        """Decline of avg volume, first third vs last third, mapped to [0, 1]"""
        third = len(volumes) // 3
        if third < self.config.vol_decline_min_third:
            return 0.0
        avg_first = mean(volumes[:third])
        avg_last = mean(volumes[2 * third:])
        if avg_first <= 0 or avg_last >= avg_first:
            return 0.0
        return min(1.0, (avg_first - avg_last) / avg_first / self.config.vol_decline_ceiling)

    # ==================== COMPONENTS ====================

    def components(self,
                   net_delta_pct: float,
                   delta_slope_norm: float,
                   delta_shift: float,
                   accum_week_ratio: float,
                   large_buy_vs_sell: float,
                   absorption_pct: float,
                   vol_decline_score: float,
                   price_chg: float) -> ScoreComponents:
        s8 = 0.0
        if net_delta_pct > 0:
            s8 = self.price_weakness_factor(price_chg) * self.delta_strength_factor(net_delta_pct)

        return ScoreComponents(
            s1=clamp((net_delta_pct + 1.5) / 5),
            s2=clamp((delta_slope_norm + 0.5) / 4),
            s3=clamp((delta_shift + 1) / 8),
            s4=clamp((accum_week_ratio - 0.2) / 0.6),
            s5=clamp((large_buy_vs_sell + 3) / 12),
            s6=clamp(absorption_pct / 15),
            s7=clamp(vol_decline_score),
            s8=s8,
        )

    def price_weakness_factor(self, price_chg: float) -> float:
        """0 at the +3% price gate, 1 once price is ~5% below it"""
        return clamp((self.config.price_rise_max_pct - price_chg) / 8)

    @staticmethod
    def delta_strength_factor(net_delta_pct: float) -> float:
        return clamp(net_delta_pct / 3)

    @staticmethod
    def weighted_sum(components: ScoreComponents, weights: ScoringWeights) -> float:
        return (
            components.s1 * weights.s1 +
            components.s2 * weights.s2 +
            components.s3 * weights.s3 +
            components.s4 * weights.s4 +
            components.s5 * weights.s5 +
            components.s6 * weights.s6 +
            components.s7 * weights.s7 +
            components.s8 * weights.s8
        )

    def concordance_penalty(self, concordant_frac: float) -> float:
        cfg = self.config
        if concordant_frac <= cfg.penalty_start:
            return 1.0
        return max(cfg.penalty_floor, 1.0 - (concordant_frac - cfg.penalty_start) * cfg.penalty_slope)

    def duration_multiplier(self, weeks: int) -> float:
        """0.70 @ 2 weeks → 1.00 @ 6 weeks → capped at 1.15; non-decreasing in weeks"""
        cfg = self.config
        return min(cfg.duration_ceiling, cfg.duration_floor + (weeks - 2) * cfg.duration_step)

    @staticmethod
    def _reject(base: dict, reason: str, **metrics) -> ScoredZone:
        return ScoredZone(**base, score=0.0, detected=False, reason=reason, **metrics)
