"""
VDF data model

All records are derived and transient: they are rebuilt on every scan and
never mutated after creation (scorer/clusterer use dataclasses.replace).
to_dict() emits the camelCase field names consumed by the API/persistence layer.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


# Terminal reason codes of SubwindowScorer
REASON_INSUFFICIENT_DATA = 'insufficient_data'
REASON_PRICE_RISING = 'price_rising'
REASON_CRASH = 'crash'
REASON_NO_NET_BUYING = 'no_net_buying'
REASON_CONCORDANT_DOMINATED = 'concordant_dominated'
REASON_CONCORDANT_FLAT_MARKET = 'concordant_flat_market'
REASON_SLOPE_GATE = 'slope_gate'
REASON_NO_DIVERGENCE = 'no_divergence'
REASON_BELOW_THRESHOLD = 'below_threshold'
REASON_ACCUMULATION = 'accumulation_divergence'

REASON_CODES = (
    REASON_INSUFFICIENT_DATA,
    REASON_PRICE_RISING,
    REASON_CRASH,
    REASON_NO_NET_BUYING,
    REASON_CONCORDANT_DOMINATED,
    REASON_CONCORDANT_FLAT_MARKET,
    REASON_SLOPE_GATE,
    REASON_NO_DIVERGENCE,
    REASON_BELOW_THRESHOLD,
    REASON_ACCUMULATION,
)


@dataclass(frozen=True)
class Bar1m:
    """1-минутный бар (time = unix seconds)"""
    time: int
    open: float
    high: float
    low: float
    close: float
    volume: float


@dataclass(frozen=True)
class DailyAggregate:
    date: str
    open: float
    high: float
    low: float
    close: float
    buy_vol: float
    sell_vol: float
    total_vol: float
    delta: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'date': self.date,
            'open': self.open,
            'high': self.high,
            'low': self.low,
            'close': self.close,
            'buyVol': self.buy_vol,
            'sellVol': self.sell_vol,
            'totalVol': self.total_vol,
            'delta': self.delta,
        }


@dataclass(frozen=True)
class WeekAggregate:
    week_start: str  # Monday, YYYY-MM-DD
    delta: float
    total_vol: float
    delta_pct: float
    n_days: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'weekStart': self.week_start,
            'delta': self.delta,
            'totalVol': self.total_vol,
            'deltaPct': self.delta_pct,
            'nDays': self.n_days,
        }


@dataclass(frozen=True)
class CappedDay:
    date: str
    original: float
    capped: float

    def to_dict(self) -> Dict[str, Any]:
        return {'date': self.date, 'original': self.original, 'capped': self.capped}


@dataclass(frozen=True)
class ScoreComponents:
    """Eight clamped [0, 1] scoring components"""
    s1: float = 0.0  # net delta %
    s2: float = 0.0  # cumulative weekly delta slope
    s3: float = 0.0  # delta shift vs pre-context
    s4: float = 0.0  # accumulation week ratio
    s5: float = 0.0  # large buy vs sell days
    s6: float = 0.0  # absorption %
    s7: float = 0.0  # volume decline
    s8: float = 0.0  # divergence strength

    def to_dict(self) -> Dict[str, float]:
        return {
            's1': self.s1, 's2': self.s2, 's3': self.s3, 's4': self.s4,
            's5': self.s5, 's6': self.s6, 's7': self.s7, 's8': self.s8,
        }


@dataclass(frozen=True)
class ScoredZone:
    """
    Result of scoring one window.

    Gate rejections are ScoredZone records too: score=0, detected=False,
    reason=<gate code>; metrics the gate never reached stay at 0.
    """
    start: int
    end: int
    win_size: int
    start_date: str
    end_date: str
    score: float = 0.0
    detected: bool = False
    reason: str = REASON_INSUFFICIENT_DATA
    net_delta_pct: float = 0.0
    overall_price_change: float = 0.0
    delta_slope_norm: float = 0.0
    accum_week_ratio: float = 0.0
    delta_shift: float = 0.0
    weeks: int = 0
    accum_weeks: int = 0
    absorption_pct: float = 0.0
    large_buy_vs_sell: float = 0.0
    vol_decline_score: float = 0.0
    components: ScoreComponents = field(default_factory=ScoreComponents)
    duration_multiplier: float = 0.0
    concordance_penalty: float = 1.0
    intra_rally: float = 0.0
    concordant_frac: float = 0.0
    capped_days: List[CappedDay] = field(default_factory=list)
    rank: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'start': self.start,
            'end': self.end,
            'winSize': self.win_size,
            'startDate': self.start_date,
            'endDate': self.end_date,
            'score': self.score,
            'detected': self.detected,
            'reason': self.reason,
            'netDeltaPct': self.net_delta_pct,
            'overallPriceChange': self.overall_price_change,
            'deltaSlopeNorm': self.delta_slope_norm,
            'accumWeekRatio': self.accum_week_ratio,
            'deltaShift': self.delta_shift,
            'weeks': self.weeks,
            'accumWeeks': self.accum_weeks,
            'absorptionPct': self.absorption_pct,
            'largeBuyVsSell': self.large_buy_vs_sell,
            'volDeclineScore': self.vol_decline_score,
            'components': self.components.to_dict(),
            'durationMultiplier': self.duration_multiplier,
            'concordancePenalty': self.concordance_penalty,
            'intraRally': self.intra_rally,
            'concordantFrac': self.concordant_frac,
            'cappedDays': [c.to_dict() for c in self.capped_days],
        }
        if self.rank is not None:
            data['rank'] = self.rank
        return data


@dataclass(frozen=True)
class DistributionCluster:
    start: int
    end: int
    start_date: str
    end_date: str
    count: int
    max_price_chg: float
    min_delta_pct: float
    span_days: int = 0
    price_change_pct: float = 0.0
    net_delta: float = 0.0
    net_delta_pct: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'startDate': self.start_date,
            'endDate': self.end_date,
            'spanDays': self.span_days,
            'priceChangePct': self.price_change_pct,
            'netDeltaPct': self.net_delta_pct,
        }


@dataclass(frozen=True)
class ProximitySignal:
    type: str
    points: int
    detail: str

    def to_dict(self) -> Dict[str, Any]:
        return {'type': self.type, 'points': self.points, 'detail': self.detail}


@dataclass(frozen=True)
class ProximityResult:
    composite_score: int = 0
    level: str = 'none'
    signals: List[ProximitySignal] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'compositeScore': self.composite_score,
            'level': self.level,
            'signals': [s.to_dict() for s in self.signals],
        }


@dataclass(frozen=True)
class BullFlagDetection:
    confidence: int
    flag_start_index: int
    flag_end_index: int
    slope_per_bar: float
    r2: float
    channel_width_pct: float
    retrace_pct: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'confidence': self.confidence,
            'flagStartIndex': self.flag_start_index,
            'flagEndIndex': self.flag_end_index,
            'slopePerBar': self.slope_per_bar,
            'r2': self.r2,
            'channelWidthPct': self.channel_width_pct,
            'retracePct': self.retrace_pct,
        }


@dataclass
class VDFResult:
    """Итоговый отчёт детектора по одному тикеру"""
    ticker: str
    detected: bool = False
    best_score: float = 0.0
    best_zone_weeks: int = 0
    reason: str = REASON_BELOW_THRESHOLD
    status: str = ''
    zones: List[ScoredZone] = field(default_factory=list)
    all_zones: List[ScoredZone] = field(default_factory=list)
    distribution: List[DistributionCluster] = field(default_factory=list)
    proximity: ProximityResult = field(default_factory=ProximityResult)
    metrics: Dict[str, Any] = field(default_factory=dict)
    bull_flag_confidence: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'ticker': self.ticker,
            'detected': self.detected,
            'bestScore': self.best_score,
            'bestZoneWeeks': self.best_zone_weeks,
            'reason': self.reason,
            'status': self.status,
            'zones': [format_zone(z) for z in self.zones],
            'allZones': [format_zone(z) for z in self.all_zones],
            'distribution': [c.to_dict() for c in self.distribution],
            'proximity': self.proximity.to_dict(),
            'metrics': dict(self.metrics),
            'bull_flag_confidence': self.bull_flag_confidence,
        }


def format_zone(zone: ScoredZone) -> Dict[str, Any]:
    """Compact zone summary for reports (subset of ScoredZone.to_dict)"""
    return {
        'rank': zone.rank,
        'startDate': zone.start_date,
        'endDate': zone.end_date,
        'windowDays': zone.win_size,
        'score': zone.score,
        'weeks': zone.weeks,
        'accumWeeks': zone.accum_weeks,
        'netDeltaPct': zone.net_delta_pct,
        'absorptionPct': zone.absorption_pct,
        'accumWeekRatio': zone.accum_week_ratio,
        'overallPriceChange': zone.overall_price_change,
        'components': zone.components.to_dict(),
        'durationMultiplier': zone.duration_multiplier,
        'concordancePenalty': zone.concordance_penalty,
        'intraRally': zone.intra_rally,
        'concordantFrac': zone.concordant_frac,
    }
