"""
Volume Divergence Flag (VDF) engine

Detects hidden institutional accumulation during multi-week price declines:
net buying in 1m volume delta that diverges from falling price.

Pipeline: 1m bars → daily → weekly → subwindow scoring (8 components)
→ multi-resolution greedy zone clustering → proximity / distribution / bull flag
"""

from .scoring import SubwindowScorer
from .clustering import ZoneClusterer
from .distribution import DistributionClusterDetector
from .proximity import ProximityEvaluator
from .bull_flag import detect_bull_flag
from .detector import VDFDetector
from .config import VDFConfig, ScoringWeights, DEFAULT_VDF_CONFIG, get_vdf_config

__all__ = [
    'SubwindowScorer',
    'ZoneClusterer',
    'DistributionClusterDetector',
    'ProximityEvaluator',
    'detect_bull_flag',
    'VDFDetector',
    'VDFConfig',
    'ScoringWeights',
    'DEFAULT_VDF_CONFIG',
    'get_vdf_config',
]
