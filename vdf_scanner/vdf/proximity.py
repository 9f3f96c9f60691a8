"""
Breakout proximity evaluation

Seven heuristic signals over the most recent daily bars, summed into a
0-100 composite and classified as none / elevated / high / imminent.
Evaluated only when the best accumulation zone scores ≥ 0.50.

| Signal              | Points | Rule                                               |
|---------------------|--------|----------------------------------------------------|
| seller_exhaustion   | 15     | 3+ consecutive negative-delta days                 |
| delta_anomaly       | 25     | positive delta > 4× trailing-20 mean |delta|       |
| green_streak        | 20     | 4+ consecutive positive-delta days                 |
| absorption_cluster  | 15     | 3 of 5 days closed down with positive delta        |
| final_capitulation  | 10     | last 5 days: |delta| > 2× mean, price < -2%        |
| multi_zone_sequence | 20     | two zones separated by 1-29 days                   |
| extreme_absorption  | 15     | zone absorption > 40% ending in the last 90 days   |
"""

from typing import List, Optional, Sequence

from vdf_scanner.vdf.math_utils import mean, pct_change
from vdf_scanner.vdf.models import DailyAggregate, ProximityResult, ProximitySignal, ScoredZone


MIN_ZONE_SCORE = 0.50
MIN_DAILY_BARS = 15
LOOKBACK_DAYS = 25
ANOMALY_SCAN_DAYS = 15
ANOMALY_ROLLING_DAYS = 20
ANOMALY_MULT = 4.0
CAPITULATION_MULT = 2.0
CAPITULATION_PRICE_PCT = -2.0
MULTI_ZONE_MAX_GAP = 30
EXTREME_ABSORPTION_PCT = 40.0
EXTREME_ABSORPTION_RECENT_DAYS = 90
RALLY_LOOKBACK_DAYS = 20
RALLY_SUPPRESS_PCT = 20.0
RALLY_SUPPRESS_CAP = 40

LEVELS = [
    (70, 'imminent'),
    (50, 'high'),
    (30, 'elevated'),
]


class ProximityEvaluator:
    """How close an accumulation episode may be to resolving into a breakout"""

    def evaluate(self, daily: Sequence[DailyAggregate], zones: Sequence[ScoredZone]) -> ProximityResult:
        daily = list(daily)
        zones = list(zones or [])
        if not zones:
            return ProximityResult()

        best_zone = max(zones, key=lambda z: z.score)
        if best_zone.score < MIN_ZONE_SCORE:
            return ProximityResult()

        n = len(daily)
        if n < MIN_DAILY_BARS:
            return ProximityResult()

        lookback = min(LOOKBACK_DAYS, n)
        recent = daily[n - lookback:]
        avg_abs_delta = mean([abs(d.delta) for d in daily])

        checks = [
            self._seller_exhaustion(recent),
            self._delta_anomaly(daily, recent),
            self._green_streak(recent),
            self._absorption_cluster(recent),
            self._final_capitulation(daily, recent, avg_abs_delta),
            self._multi_zone_sequence(zones),
            self._extreme_absorption(zones, n),
        ]
        signals = [s for s in checks if s is not None]

        composite = sum(s.points for s in signals)

        # Уже отросли 20%+ → не «накануне пробоя»
        last = daily[max(0, n - RALLY_LOOKBACK_DAYS):]
        if len(last) >= 10 and pct_change(last[0].close, last[-1].close) > RALLY_SUPPRESS_PCT:
            composite = min(composite, RALLY_SUPPRESS_CAP)

        return ProximityResult(composite_score=composite, level=self.level_for(composite), signals=signals)

    @staticmethod
    def level_for(composite: int) -> str:
        for threshold, level in LEVELS:
            if composite >= threshold:
                return level
        return 'none'

    # ==================== SIGNALS ====================

    @staticmethod
    def _seller_exhaustion(recent: List[DailyAggregate]) -> Optional[ProximitySignal]:
        max_streak = 0
        streak = 0
        intensifying = False
        for i, d in enumerate(recent):
            if d.delta < 0:
                streak += 1
                if streak >= 3:
                    max_streak = max(max_streak, streak)
                    streak_start = i - streak + 1
                    if abs(d.delta) > abs(recent[streak_start].delta):
                        intensifying = True
            else:
                streak = 0

        if max_streak < 3:
            return None
        return ProximitySignal(
            type='seller_exhaustion',
            points=15,
            detail=f"{max_streak}-day red streak {'(intensifying)' if intensifying else '(fading)'}",
        )

    @staticmethod
    def _delta_anomaly(daily: List[DailyAggregate], recent: List[DailyAggregate]) -> Optional[ProximitySignal]:
        offset = len(daily) - len(recent)
        for i in range(max(0, len(recent) - ANOMALY_SCAN_DAYS), len(recent)):
            d = recent[i]
            if d.delta <= 0:
                continue
            global_idx = offset + i
            window = daily[max(0, global_idx - ANOMALY_ROLLING_DAYS):global_idx]
            rolling_avg = mean([abs(x.delta) for x in window])
            if rolling_avg > 0 and d.delta > ANOMALY_MULT * rolling_avg:
                return ProximitySignal(
                    type='delta_anomaly',
                    points=25,
                    detail=f"{d.date}: {d.delta / rolling_avg:.1f}x avg (+{d.delta / 1000:.0f}K)",
                )
        return None

    @staticmethod
    def _green_streak(recent: List[DailyAggregate]) -> Optional[ProximitySignal]:
        max_streak = 0
        streak = 0
        for d in recent:
            streak = streak + 1 if d.delta > 0 else 0
            max_streak = max(max_streak, streak)

        if max_streak < 4:
            return None
        return ProximitySignal(type='green_streak', points=20, detail=f"{max_streak} consecutive green delta days")

    @staticmethod
    def _absorption_cluster(recent: List[DailyAggregate]) -> Optional[ProximitySignal]:
        for i in range(4, len(recent)):
            absorbed = sum(
                1 for j in range(i - 4, i + 1)
                if j > 0 and recent[j].close < recent[j - 1].close and recent[j].delta > 0
            )
            if absorbed >= 3:
                return ProximitySignal(
                    type='absorption_cluster',
                    points=15,
                    detail=f"{absorbed}/5 absorption days in window",
                )
        return None

    @staticmethod
    def _final_capitulation(daily: List[DailyAggregate],
                            recent: List[DailyAggregate],
                            avg_abs_delta: float) -> Optional[ProximitySignal]:
        index_by_date = {d.date: i for i, d in enumerate(daily)}
        for d in recent[-5:]:
            if d.delta >= 0 or abs(d.delta) <= CAPITULATION_MULT * avg_abs_delta:
                continue
            idx = index_by_date.get(d.date, 0)
            if idx <= 0:
                continue
            price_chg = pct_change(daily[idx - 1].close, d.close)
            if price_chg < CAPITULATION_PRICE_PCT:
                return ProximitySignal(
                    type='final_capitulation',
                    points=10,
                    detail=f"{d.date}: {d.delta / 1000:.0f}K ({price_chg:.1f}%)",
                )
        return None

    @staticmethod
    def _multi_zone_sequence(zones: List[ScoredZone]) -> Optional[ProximitySignal]:
        if len(zones) < 2:
            return None
        by_date = sorted(zones, key=lambda z: z.start_date)
        for prev, cur in zip(by_date, by_date[1:]):
            gap = cur.start - prev.end
            if 0 < gap < MULTI_ZONE_MAX_GAP:
                return ProximitySignal(
                    type='multi_zone_sequence',
                    points=20,
                    detail=f"{len(by_date)} zones with {gap}-day gap",
                )
        return None

    @staticmethod
    def _extreme_absorption(zones: List[ScoredZone], n: int) -> Optional[ProximitySignal]:
        cutoff_idx = max(0, n - EXTREME_ABSORPTION_RECENT_DAYS)
        for z in zones:
            if z.absorption_pct > EXTREME_ABSORPTION_PCT and z.end >= cutoff_idx:
                return ProximitySignal(
                    type='extreme_absorption',
                    points=15,
                    detail=f"Zone {z.rank}: {z.absorption_pct:.1f}% absorption",
                )
        return None
