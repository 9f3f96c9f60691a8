"""
VDF Detector - Main orchestrator
Hidden accumulation during multi-week price declines, from 1m volume delta

Pipeline:
1. Validate / sort 1m bars
2. Split scan window (last 90 days, or everything in chart mode) and 30-day pre-context
3. Daily aggregation (scan + pre-context)
4. Multi-resolution zone scan + greedy clustering
5. Keep zones ending inside the recent window
6. Distribution clusters, proximity signals, bull flag confidence
7. Status line + report
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from vdf_scanner.indicators.volume_delta import BarsInput, aggregate_daily, filter_valid_bars
from vdf_scanner.utils.logger import logger
from vdf_scanner.vdf.bull_flag import detect_bull_flag
from vdf_scanner.vdf.clustering import ZoneClusterer
from vdf_scanner.vdf.config import DEFAULT_VDF_CONFIG, VDFConfig
from vdf_scanner.vdf.distribution import DistributionClusterDetector
from vdf_scanner.vdf.models import (
    DistributionCluster,
    ProximityResult,
    ScoredZone,
    VDFResult,
    REASON_ACCUMULATION,
    REASON_BELOW_THRESHOLD,
)
from vdf_scanner.vdf.proximity import ProximityEvaluator


REASON_INSUFFICIENT_1M = 'insufficient_1m_data'
REASON_INSUFFICIENT_SCAN = 'insufficient_scan_data'
REASON_INSUFFICIENT_DAILY = 'insufficient_daily_data'

MODES = ('scan', 'chart')

SECONDS_PER_DAY = 86400

# fetcher(ticker, interval, days) → bars | None
BarsFetcher = Callable[[str, str, int], Optional[BarsInput]]


class VDFDetector:
    """Accumulation divergence detector for one ticker"""

    def __init__(self, config: Optional[VDFConfig] = None):
        """
        Args:
            config: Frozen engine config (defaults to DEFAULT_VDF_CONFIG)
        """
        self.config = config or DEFAULT_VDF_CONFIG
        self.clusterer = ZoneClusterer(self.config)
        self.distribution_detector = DistributionClusterDetector()
        self.proximity_evaluator = ProximityEvaluator()

    def detect(self, ticker: str, bars_1m: BarsInput, mode: str = 'scan') -> VDFResult:
        """
        Прогнать полный пайплайн по 1m барам

        Args:
            ticker: Тикер (для логов и отчёта)
            bars_1m: 1m бары (DataFrame / list[Bar1m] / list[dict])
            mode: 'scan' (последние 90 дней) или 'chart' (вся история)

        Returns:
            VDFResult; ошибки данных → detected=False с reason-кодом,
            неожиданные исключения → reason='error: <message>'
        """
        if mode not in MODES:
            raise ValueError(f"Unknown VDF mode: {mode} (expected one of {MODES})")

        try:
            return self._detect(ticker, bars_1m, mode)
        except Exception as e:
            logger.error(f"❌ {ticker} VDF detection failed: {e}", exc_info=True)
            return VDFResult(ticker=ticker, reason=f"error: {e}", status=f"Error: {e}")

    def detect_with_fetcher(self, ticker: str, fetcher: BarsFetcher, mode: str = 'scan') -> VDFResult:
        """Fetch 1m history (150 days scan / 365 days chart) and run detect()"""
        days = self.config.chart_fetch_days if mode == 'chart' else self.config.scan_fetch_days
        bars = fetcher(ticker, '1min', days)
        if bars is None:
            return self._empty(ticker, REASON_INSUFFICIENT_1M, 'Insufficient 1m data')
        return self.detect(ticker, bars, mode)

    def _detect(self, ticker: str, bars_1m: BarsInput, mode: str) -> VDFResult:
        cfg = self.config

        df = filter_valid_bars(bars_1m)
        if len(df) < cfg.min_1m_bars:
            logger.debug(f"{ticker} - Insufficient 1m data: {len(df)} bars < {cfg.min_1m_bars}")
            return self._empty(ticker, REASON_INSUFFICIENT_1M, 'Insufficient 1m data')

        first_time = int(df['time'].iloc[0])
        latest_time = int(df['time'].iloc[-1])

        scan_cutoff = first_time if mode == 'chart' else latest_time - cfg.recent_days * SECONDS_PER_DAY
        pre_cutoff = scan_cutoff - cfg.pre_context_days * SECONDS_PER_DAY

        scan_bars = df[df['time'] >= scan_cutoff]
        pre_bars = df[(df['time'] >= pre_cutoff) & (df['time'] < scan_cutoff)]

        if len(scan_bars) < cfg.min_scan_bars:
            logger.debug(f"{ticker} - Insufficient scan data: {len(scan_bars)} bars < {cfg.min_scan_bars}")
            return self._empty(ticker, REASON_INSUFFICIENT_SCAN, 'Insufficient scan data')

        all_daily = aggregate_daily(scan_bars)
        pre_daily = aggregate_daily(pre_bars)

        if len(all_daily) < cfg.min_daily_bars:
            logger.debug(f"{ticker} - Insufficient daily data: {len(all_daily)} days < {cfg.min_daily_bars}")
            return self._empty(ticker, REASON_INSUFFICIENT_DAILY, 'Insufficient daily data')

        bull_flag = detect_bull_flag(all_daily)

        zones = self.clusterer.find_zones(all_daily, pre_daily, max_zones=cfg.detector_max_zones)
        distribution = self.distribution_detector.find_clusters(all_daily)

        latest_date = datetime.fromtimestamp(latest_time, tz=timezone.utc)
        recent_cutoff = (latest_date - timedelta(days=cfg.recent_days)).strftime('%Y-%m-%d')
        recent_zones = [z for z in zones if z.end_date >= recent_cutoff]

        proximity = self.proximity_evaluator.evaluate(all_daily, recent_zones)

        best_zone = max(recent_zones, key=lambda z: z.score) if recent_zones else None
        detected = bool(recent_zones)

        result = VDFResult(
            ticker=ticker,
            detected=detected,
            best_score=best_zone.score if best_zone else 0.0,
            best_zone_weeks=best_zone.weeks if best_zone else 0,
            reason=REASON_ACCUMULATION if detected else REASON_BELOW_THRESHOLD,
            status=self.format_status(recent_zones, proximity, distribution),
            zones=recent_zones,
            all_zones=zones,
            distribution=distribution,
            proximity=proximity,
            metrics={
                'totalDays': len(all_daily),
                'scanStart': all_daily[0].date,
                'scanEnd': all_daily[-1].date,
                'preDays': len(pre_daily),
                'recentCutoff': recent_cutoff,
            },
            bull_flag_confidence=bull_flag.confidence if bull_flag else None,
        )

        if detected:
            logger.info(f"🎯 {ticker} {result.status}")
        else:
            logger.debug(f"{ticker} - {result.status} ({len(all_daily)} days scanned)")

        return result

    @staticmethod
    def format_status(zones: List[ScoredZone],
                      proximity: ProximityResult,
                      distribution: List[DistributionCluster]) -> str:
        if not zones:
            return 'No accumulation zones detected'

        best = max(zones, key=lambda z: z.score)
        status = (
            f"VD Accumulation detected: {len(zones)} zone{'s' if len(zones) > 1 else ''}, "
            f"best {best.score:.2f} ({best.weeks}wk)"
        )
        if proximity.level != 'none':
            status += f" | Proximity: {proximity.level} ({proximity.composite_score}pts)"
        if distribution:
            status += f" | {len(distribution)} distribution cluster{'s' if len(distribution) > 1 else ''}"
        return status

    @staticmethod
    def _empty(ticker: str, reason: str, status: str) -> VDFResult:
        return VDFResult(ticker=ticker, reason=reason, status=status)
