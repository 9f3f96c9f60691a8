"""
Distribution cluster detection (mirror of accumulation)
Rolling 10-day windows where price rises while net delta is negative
"""

from typing import List, Sequence

from vdf_scanner.vdf.math_utils import pct_change, safe_div
from vdf_scanner.vdf.models import DailyAggregate, DistributionCluster


class DistributionClusterDetector:
    """Finds rallies sold into by net sellers and merges nearby windows"""

    def __init__(self,
                 window: int = 10,
                 min_price_change_pct: float = 3.0,
                 max_delta_pct: float = -3.0,
                 merge_gap_days: int = 5):
        """
        Args:
            window: Rolling window length (days)
            min_price_change_pct: Price must rise more than this
            max_delta_pct: Net delta % must be below this
            merge_gap_days: Window merges into a cluster starting ≤ end + gap
        """
        self.window = window
        self.min_price_change_pct = min_price_change_pct
        self.max_delta_pct = max_delta_pct
        self.merge_gap_days = merge_gap_days

    def find_clusters(self, daily: Sequence[DailyAggregate]) -> List[DistributionCluster]:
        daily = list(daily)
        clusters: List[dict] = []

        for i in range(self.window, len(daily) + 1):
            window = daily[i - self.window:i]
            price_change = pct_change(window[0].close, window[-1].close)
            total_vol = sum(d.total_vol for d in window)
            net_delta_pct = safe_div(sum(d.delta for d in window), total_vol) * 100

            if price_change <= self.min_price_change_pct or net_delta_pct >= self.max_delta_pct:
                continue

            start, end = i - self.window, i - 1
            merged = False
            for c in clusters:
                if start <= c['end'] + self.merge_gap_days:
                    c['end'] = max(c['end'], end)
                    c['count'] += 1
                    c['max_price_chg'] = max(c['max_price_chg'], price_change)
                    c['min_delta_pct'] = min(c['min_delta_pct'], net_delta_pct)
                    merged = True
                    break

            if not merged:
                clusters.append({
                    'start': start,
                    'end': end,
                    'count': 1,
                    'max_price_chg': price_change,
                    'min_delta_pct': net_delta_pct,
                })

        return [self._finalize(daily, c) for c in clusters]

    @staticmethod
    def _finalize(daily: List[DailyAggregate], c: dict) -> DistributionCluster:
        end = min(c['end'], len(daily) - 1)
        chunk = daily[c['start']:end + 1]
        net_delta = sum(d.delta for d in chunk)
        return DistributionCluster(
            start=c['start'],
            end=c['end'],
            start_date=daily[c['start']].date,
            end_date=daily[end].date,
            count=c['count'],
            max_price_chg=c['max_price_chg'],
            min_delta_pct=c['min_delta_pct'],
            span_days=c['end'] - c['start'] + 1,
            price_change_pct=pct_change(chunk[0].close, chunk[-1].close),
            net_delta=net_delta,
            net_delta_pct=safe_div(net_delta, sum(d.total_vol for d in chunk)) * 100,
        )
