"""
Multi-resolution accumulation zone clustering

Scans every (window length, offset) of the daily series, keeps detected
windows, then greedily folds them (highest score first) into a set of
non-overlapping zones. Zone boundaries are fuzzy, so this is a greedy
merge rather than optimal interval scheduling.
"""

from dataclasses import replace
from typing import List, Optional, Sequence, Set

from vdf_scanner.utils.logger import logger
from vdf_scanner.vdf.config import DEFAULT_VDF_CONFIG, VDFConfig
from vdf_scanner.vdf.models import DailyAggregate, ScoredZone
from vdf_scanner.vdf.scoring import SubwindowScorer


def overlap_days(a: ScoredZone, b: ScoredZone) -> int:
    return max(0, min(a.end, b.end) - max(a.start, b.start) + 1)


def gap_days(a: ScoredZone, b: ScoredZone) -> int:
    """Days between two windows; 0 when they overlap or touch"""
    if a.start > b.end:
        return a.start - b.end
    if b.start > a.end:
        return b.start - a.end
    return 0


def overlap_fraction(candidate: ScoredZone, other: ScoredZone) -> float:
    """Overlap as a fraction of the candidate's own length"""
    size = candidate.end - candidate.start + 1
    if size <= 0:
        return 0.0
    return overlap_days(candidate, other) / size


class ZoneClusterer:
    """Sliding multi-length scan + greedy non-overlap selection"""

    def __init__(self, config: Optional[VDFConfig] = None, scorer: Optional[SubwindowScorer] = None):
        """
        Args:
            config: Frozen engine config (defaults to DEFAULT_VDF_CONFIG)
            scorer: Custom SubwindowScorer (built from config if omitted)
        """
        self.config = config or DEFAULT_VDF_CONFIG
        self.scorer = scorer or SubwindowScorer(self.config)

    def scan_windows(self,
                     daily: Sequence[DailyAggregate],
                     pre_context: Optional[Sequence[DailyAggregate]] = None) -> List[ScoredZone]:
        """
        Score every window of every configured length (stride 1)

        Returns:
            Detected windows only, with start/end re-based to the full series
        """
        daily = list(daily)
        pre_context = list(pre_context or [])
        detected = []
        evaluated = 0

        for win_size in self.config.window_sizes:
            if len(daily) < win_size:
                continue
            for start in range(len(daily) - win_size + 1):
                result = self.scorer.score(daily[start:start + win_size], pre_context)
                evaluated += 1
                if result.detected:
                    detected.append(replace(result, start=start, end=start + win_size - 1, win_size=win_size))

        logger.debug(f"VDF scan: {evaluated} windows evaluated, {len(detected)} detected over {len(daily)} days")
        return detected

    def select(self,
               candidates: Sequence[ScoredZone],
               overlap_limit: Optional[float] = None,
               min_gap_days: Optional[int] = None,
               max_zones: Optional[int] = None) -> List[ScoredZone]:
        """
        Greedy non-overlap selection over score-sorted candidates

        Fold state: accepted zones + excluded candidate indices. A candidate is
        accepted when, against every accepted zone, its overlap fraction is
        within overlap_limit and the gap is at least min_gap_days. Accepting a
        zone excludes every pending candidate overlapping it beyond the limit.

        Args:
            candidates: Scored windows (any order)
            overlap_limit: Max overlap as a fraction of candidate length
            min_gap_days: Min day gap between zones (0 disables)
            max_zones: Max zones returned (None = unlimited)

        Returns:
            Accepted zones in score order, ranked 1..k
        """
        limit = self.config.overlap_limit if overlap_limit is None else overlap_limit
        min_gap = self.config.min_gap_days if min_gap_days is None else min_gap_days

        # Stable sort: equal scores keep scan order (length, then offset)
        ordered = sorted(candidates, key=lambda z: z.score, reverse=True)

        accepted: List[ScoredZone] = []
        excluded: Set[int] = set()

        for i, candidate in enumerate(ordered):
            if max_zones is not None and len(accepted) >= max_zones:
                break
            if i in excluded:
                continue

            conflict = any(
                overlap_fraction(candidate, zone) > limit or (min_gap > 0 and gap_days(candidate, zone) < min_gap)
                for zone in accepted
            )
            if conflict:
                continue

            zone = replace(candidate, rank=len(accepted) + 1)
            accepted.append(zone)

            for j in range(i + 1, len(ordered)):
                if j not in excluded and overlap_fraction(ordered[j], zone) > limit:
                    excluded.add(j)

        return accepted

    def find_zones(self,
                   daily: Sequence[DailyAggregate],
                   pre_context: Optional[Sequence[DailyAggregate]] = None,
                   overlap_limit: Optional[float] = None,
                   max_zones: Optional[int] = None,
                   min_gap_days: Optional[int] = None) -> List[ScoredZone]:
        """
        Найти непересекающиеся зоны накопления

        Args:
            daily: Полная дневная серия
            pre_context: Дневные агрегаты до серии (фиксированный baseline)
            overlap_limit: Порог перекрытия (по умолчанию из config)
            max_zones: Максимум зон (по умолчанию из config)
            min_gap_days: Минимальный разрыв в днях (по умолчанию из config)
        """
        candidates = self.scan_windows(daily, pre_context)
        zones = self.select(
            candidates,
            overlap_limit=overlap_limit,
            min_gap_days=min_gap_days,
            max_zones=self.config.max_zones if max_zones is None else max_zones,
        )

        if zones:
            best = zones[0]
            logger.debug(
                f"VDF zones: {len(zones)} selected from {len(candidates)} candidates, "
                f"best {best.score:.2f} ({best.start_date} → {best.end_date})"
            )
        return zones
