"""
VDF анализ одного тикера из файла 1m баров
Печатает зоны накопления, proximity и кластеры распределения

Usage:
    vdf-analyze bars.csv --ticker RKLB
    vdf-analyze bars.json --mode chart --json
"""

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

import pandas as pd

from vdf_scanner.utils.config import Config
from vdf_scanner.vdf.config import VDFConfig, get_vdf_config
from vdf_scanner.vdf.detector import MODES, VDFDetector
from vdf_scanner.vdf.models import VDFResult


def load_bars(path: str) -> pd.DataFrame:
    """CSV или JSON (массив объектов) с колонками time, open, high, low, close, volume"""
    file_path = Path(path)
    if not file_path.is_file():
        raise FileNotFoundError(f"Bars file not found: {path}")

    if file_path.suffix.lower() == '.json':
        return pd.read_json(file_path, orient='records', convert_dates=False)
    return pd.read_csv(file_path)


def load_vdf_config(path: Optional[str]) -> VDFConfig:
    """--config YAML, иначе секция vdf: из config.yaml приложения"""
    if not path:
        return get_vdf_config()
    if not Path(path).is_file():
        raise FileNotFoundError(f"Config file not found: {path}")
    return VDFConfig.from_dict(Config(path).vdf_overrides)


def print_report(result: VDFResult):
    print(f"\n{'='*80}")
    print(f"📊 VDF: {result.ticker}")
    print(f"{'='*80}\n")
    print(f"Status: {result.status}")
    print(f"Reason: {result.reason}")

    if result.metrics:
        m = result.metrics
        print(f"Scan:   {m.get('scanStart')} → {m.get('scanEnd')} "
              f"({m.get('totalDays')} days, pre-context {m.get('preDays')} days)")

    if result.zones:
        print(f"\n{'─'*80}")
        print(f"{'#':<3} {'Start':<12} {'End':<12} {'Days':>5} {'Wk':>3} {'Score':>6} "
              f"{'Δ%':>7} {'Abs%':>6} {'Price%':>7} {'Conc':>5}")
        print(f"{'─'*80}")
        for z in result.zones:
            print(f"{z.rank or '-':<3} {z.start_date:<12} {z.end_date:<12} {z.win_size:>5} {z.weeks:>3} "
                  f"{z.score:>6.2f} {z.net_delta_pct:>7.2f} {z.absorption_pct:>6.1f} "
                  f"{z.overall_price_change:>7.2f} {z.concordant_frac:>5.2f}")

    if result.proximity.signals:
        print(f"\n🎯 Proximity: {result.proximity.level} ({result.proximity.composite_score}pts)")
        for s in result.proximity.signals:
            print(f"   +{s.points:<3} {s.type:<20} {s.detail}")

    if result.distribution:
        print(f"\n⚠️  Distribution clusters: {len(result.distribution)}")
        for c in result.distribution:
            print(f"   {c.start_date} → {c.end_date} ({c.span_days}d) "
                  f"price {c.price_change_pct:+.1f}%, delta {c.net_delta_pct:+.1f}%")

    if result.bull_flag_confidence is not None:
        print(f"\n🚩 Bull flag confidence: {result.bull_flag_confidence}")

    print()


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description='VDF: скрытое накопление по 1m volume delta')
    parser.add_argument('bars', help='Файл 1m баров (.csv или .json)')
    parser.add_argument('--ticker', default=None, help='Тикер для отчёта (по умолчанию имя файла)')
    parser.add_argument('--mode', choices=MODES, default='scan', help='scan = последние 90 дней, chart = вся история')
    parser.add_argument('--json', action='store_true', help='Вывести результат в JSON')
    parser.add_argument('--config', default=None, help='YAML с секцией vdf: (переопределения)')
    args = parser.parse_args(argv)

    ticker = args.ticker or Path(args.bars).stem.upper()

    try:
        vdf_config = load_vdf_config(args.config)
        bars = load_bars(args.bars)
        result = VDFDetector(vdf_config).detect(ticker, bars, mode=args.mode)
    except (OSError, ValueError) as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1

    if result.reason.startswith('error:'):
        print(f"❌ {result.status}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    else:
        print_report(result)
    return 0


if __name__ == '__main__':
    sys.exit(main())
