"""
Weight-set comparison harness

Two ways to evaluate an alternative set of component weights:
- rescore_zone(): recompute a stored zone's score from its components
  (cheap, no rescan, but cannot see zones crossing the threshold)
- compare_weight_sets(): rerun the full clusterer per config and report
  which zone date ranges each variant gains or loses vs the baseline
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from vdf_scanner.utils.logger import logger
from vdf_scanner.vdf.clustering import ZoneClusterer
from vdf_scanner.vdf.config import ScoringWeights, VDFConfig
from vdf_scanner.vdf.models import DailyAggregate, ScoredZone
from vdf_scanner.vdf.scoring import SubwindowScorer


def zone_range(zone: ScoredZone) -> str:
    return f"{zone.start_date}→{zone.end_date}"


def rescore_zone(zone: ScoredZone, weights: ScoringWeights) -> float:
    """Score of a zone under another weight set (same penalty / duration multiplier)"""
    raw = SubwindowScorer.weighted_sum(zone.components, weights)
    return raw * zone.concordance_penalty * zone.duration_multiplier


@dataclass
class VariantComparison:
    name: str
    config: VDFConfig
    zones: List[ScoredZone] = field(default_factory=list)
    gained: List[str] = field(default_factory=list)
    lost: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            'name': self.name,
            'weights': self.config.weights.to_dict(),
            'zones': [
                {'range': zone_range(z), 'score': z.score, 'weeks': z.weeks}
                for z in self.zones
            ],
            'gained': list(self.gained),
            'lost': list(self.lost),
        }


def compare_weight_sets(daily: Sequence[DailyAggregate],
                        pre_context: Optional[Sequence[DailyAggregate]],
                        variants: Dict[str, VDFConfig]) -> List[VariantComparison]:
    """
    Прогнать кластеризацию для каждого варианта конфигурации

    Args:
        daily: Дневные агрегаты
        pre_context: Дневные агрегаты до серии
        variants: name → VDFConfig; первый вариант = baseline

    Returns:
        VariantComparison в порядке variants; gained/lost относительно baseline
    """
    if not variants:
        raise ValueError("compare_weight_sets requires at least one variant")

    results = []
    baseline_ranges = None

    for name, cfg in variants.items():
        zones = ZoneClusterer(cfg).find_zones(daily, pre_context)
        ranges = [zone_range(z) for z in zones]

        comparison = VariantComparison(name=name, config=cfg, zones=zones)
        if baseline_ranges is None:
            baseline_ranges = ranges
        else:
            comparison.gained = [r for r in ranges if r not in baseline_ranges]
            comparison.lost = [r for r in baseline_ranges if r not in ranges]

        logger.debug(
            f"Weights '{name}': {len(zones)} zones, "
            f"+{len(comparison.gained)} / -{len(comparison.lost)} vs baseline"
        )
        results.append(comparison)

    return results
