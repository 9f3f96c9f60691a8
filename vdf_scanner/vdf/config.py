"""
VDF Configuration - Default parameters of the accumulation-divergence engine
All parameters tunable via config.yaml (section `vdf:`)

VDF_DEFAULT_CONFIG is the plain nested dict; VDFConfig is the frozen object
handed to the scorer/clusterer so a scan can never mutate its own thresholds.
"""

import copy
from dataclasses import dataclass, fields
from typing import Any, Dict, Optional, Tuple

from vdf_scanner.utils.config import config


VDF_DEFAULT_CONFIG = {
    # Detection threshold (score ≥ threshold → detected)
    'detection_threshold': 0.30,

    # Scan resolutions, trading days (~2-7 weeks)
    'window_sizes': [10, 14, 17, 20, 24, 28, 35],

    # Greedy zone clustering
    'clustering': {
        'overlap_limit': 0.30,   # доля длины кандидата
        'min_gap_days': 10,      # 0 = правило отключено
        'max_zones': 3,
    },

    # Hard gates
    'gates': {
        'min_weeks': 2,
        'price_rise_max_pct': 3.0,      # rally, not a decline being accumulated
        'price_drop_min_pct': -45.0,    # crash / distribution
        'concordant_max': 0.65,
        'concordant_flat_max': 0.60,
        'slope_min': -0.5,
        'no_divergence_s8': 0.05,
        'no_divergence_concordance': 0.55,
    },

    # 3σ outlier capping
    'outlier_sigma': 3.0,

    # Supporting metrics
    'metrics': {
        'large_day_vol_frac': 0.10,    # |delta| > 10% avg daily volume
        'vol_decline_ceiling': 0.30,   # 30% decline → s7 = 1
        'vol_decline_min_third': 3,
    },

    # Component weights (s1..s8); absorption + divergence dominate
    'weights': {
        's1': 0.15,
        's2': 0.10,
        's3': 0.05,
        's4': 0.05,
        's5': 0.03,
        's6': 0.25,
        's7': 0.02,
        's8': 0.35,
    },

    # Concordance penalty
    'concordance_penalty': {
        'start': 0.55,
        'slope': 1.5,
        'floor': 0.40,
    },

    # Duration multiplier: 0.70 @ 2 weeks → 1.00 @ 6 weeks → cap 1.15
    'duration': {
        'floor': 0.70,
        'step_per_week': 0.075,
        'ceiling': 1.15,
    },

    # Orchestrator
    'detector': {
        'recent_days': 90,
        'pre_context_days': 30,
        'scan_fetch_days': 150,
        'chart_fetch_days': 365,
        'min_1m_bars': 500,
        'min_scan_bars': 200,
        'min_daily_bars': 10,
        'max_zones': 5,
    },
}


def merge_config(base: Dict, overrides: Optional[Dict]) -> Dict:
    """Deep-merge overrides onto a copy of base; unknown keys raise ValueError"""
    merged = copy.deepcopy(base)
    for key, value in (overrides or {}).items():
        if key not in merged:
            raise ValueError(f"Unknown VDF config key: {key}")
        if isinstance(merged[key], dict):
            if not isinstance(value, dict):
                raise ValueError(f"VDF config key '{key}' expects a mapping, got {type(value).__name__}")
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = value
    return merged


@dataclass(frozen=True)
class ScoringWeights:
    s1: float = 0.15
    s2: float = 0.10
    s3: float = 0.05
    s4: float = 0.05
    s5: float = 0.03
    s6: float = 0.25
    s7: float = 0.02
    s8: float = 0.35

    @classmethod
    def from_dict(cls, data: Dict[str, float]) -> 'ScoringWeights':
        return cls(**{f.name: float(data[f.name]) for f in fields(cls) if f.name in data})

    def to_dict(self) -> Dict[str, float]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class VDFConfig:
    detection_threshold: float = 0.30
    window_sizes: Tuple[int, ...] = (10, 14, 17, 20, 24, 28, 35)

    overlap_limit: float = 0.30
    min_gap_days: int = 10
    max_zones: int = 3

    min_weeks: int = 2
    price_rise_max_pct: float = 3.0
    price_drop_min_pct: float = -45.0
    concordant_max: float = 0.65
    concordant_flat_max: float = 0.60
    slope_min: float = -0.5
    no_divergence_s8: float = 0.05
    no_divergence_concordance: float = 0.55

    outlier_sigma: float = 3.0

    large_day_vol_frac: float = 0.10
    vol_decline_ceiling: float = 0.30
    vol_decline_min_third: int = 3

    weights: ScoringWeights = ScoringWeights()

    penalty_start: float = 0.55
    penalty_slope: float = 1.5
    penalty_floor: float = 0.40

    duration_floor: float = 0.70
    duration_step: float = 0.075
    duration_ceiling: float = 1.15

    recent_days: int = 90
    pre_context_days: int = 30
    scan_fetch_days: int = 150
    chart_fetch_days: int = 365
    min_1m_bars: int = 500
    min_scan_bars: int = 200
    min_daily_bars: int = 10
    detector_max_zones: int = 5

    def __post_init__(self):
        if not self.window_sizes or any(int(w) < 2 for w in self.window_sizes):
            raise ValueError(f"window_sizes must be a non-empty list of lengths >= 2: {self.window_sizes}")
        if not 0.0 <= self.overlap_limit <= 1.0:
            raise ValueError(f"overlap_limit must be within [0, 1]: {self.overlap_limit}")
        if self.min_gap_days < 0:
            raise ValueError(f"min_gap_days must be >= 0: {self.min_gap_days}")
        if self.outlier_sigma <= 0:
            raise ValueError(f"outlier_sigma must be > 0: {self.outlier_sigma}")
        if self.vol_decline_ceiling <= 0:
            raise ValueError(f"vol_decline_ceiling must be > 0: {self.vol_decline_ceiling}")

    @classmethod
    def from_dict(cls, overrides: Optional[Dict[str, Any]] = None) -> 'VDFConfig':
        """
        Build a frozen config from VDF_DEFAULT_CONFIG merged with overrides

        Args:
            overrides: Partial nested dict in VDF_DEFAULT_CONFIG layout
        """
        cfg = merge_config(VDF_DEFAULT_CONFIG, overrides)
        gates = cfg['gates']
        metrics = cfg['metrics']
        penalty = cfg['concordance_penalty']
        duration = cfg['duration']
        detector = cfg['detector']

        return cls(
            detection_threshold=float(cfg['detection_threshold']),
            window_sizes=tuple(int(w) for w in cfg['window_sizes']),
            overlap_limit=float(cfg['clustering']['overlap_limit']),
            min_gap_days=int(cfg['clustering']['min_gap_days']),
            max_zones=int(cfg['clustering']['max_zones']),
            min_weeks=int(gates['min_weeks']),
            price_rise_max_pct=float(gates['price_rise_max_pct']),
            price_drop_min_pct=float(gates['price_drop_min_pct']),
            concordant_max=float(gates['concordant_max']),
            concordant_flat_max=float(gates['concordant_flat_max']),
            slope_min=float(gates['slope_min']),
            no_divergence_s8=float(gates['no_divergence_s8']),
            no_divergence_concordance=float(gates['no_divergence_concordance']),
            outlier_sigma=float(cfg['outlier_sigma']),
            large_day_vol_frac=float(metrics['large_day_vol_frac']),
            vol_decline_ceiling=float(metrics['vol_decline_ceiling']),
            vol_decline_min_third=int(metrics['vol_decline_min_third']),
            weights=ScoringWeights.from_dict(cfg['weights']),
            penalty_start=float(penalty['start']),
            penalty_slope=float(penalty['slope']),
            penalty_floor=float(penalty['floor']),
            duration_floor=float(duration['floor']),
            duration_step=float(duration['step_per_week']),
            duration_ceiling=float(duration['ceiling']),
            recent_days=int(detector['recent_days']),
            pre_context_days=int(detector['pre_context_days']),
            scan_fetch_days=int(detector['scan_fetch_days']),
            chart_fetch_days=int(detector['chart_fetch_days']),
            min_1m_bars=int(detector['min_1m_bars']),
            min_scan_bars=int(detector['min_scan_bars']),
            min_daily_bars=int(detector['min_daily_bars']),
            detector_max_zones=int(detector['max_zones']),
        )


DEFAULT_VDF_CONFIG = VDFConfig.from_dict()


def get_vdf_config() -> VDFConfig:
    """VDFConfig from the `vdf:` section of config.yaml (defaults if absent)"""
    return VDFConfig.from_dict(config.vdf_overrides)
