"""
Volume delta aggregation: 1m bars → daily → weekly

Candle-direction classification: close > open → buy volume,
close < open → sell volume, close == open → only total volume.
"""

from datetime import date, timedelta
from typing import Iterable, List, Union

import numpy as np
import pandas as pd

from vdf_scanner.vdf.models import Bar1m, DailyAggregate, WeekAggregate
from vdf_scanner.vdf.math_utils import safe_div


BAR_COLUMNS = ['time', 'open', 'high', 'low', 'close', 'volume']

BarsInput = Union[pd.DataFrame, Iterable[Union[Bar1m, dict]]]


def bars_to_frame(bars: BarsInput) -> pd.DataFrame:
    """Привести бары (DataFrame / list[Bar1m] / list[dict]) к DataFrame"""
    if isinstance(bars, pd.DataFrame):
        df = bars.copy()
    else:
        rows = []
        for bar in bars:
            if isinstance(bar, Bar1m):
                rows.append({col: getattr(bar, col) for col in BAR_COLUMNS})
            else:
                rows.append({col: bar.get(col) for col in BAR_COLUMNS})
        df = pd.DataFrame(rows, columns=BAR_COLUMNS)

    missing = [col for col in BAR_COLUMNS if col not in df.columns]
    if missing:
        raise ValueError(f"Bars are missing columns: {missing}")

    return df[BAR_COLUMNS]


def filter_valid_bars(bars: BarsInput) -> pd.DataFrame:
    """
    Drop malformed bars, sort by time, de-duplicate timestamps (last row wins)

    A bar is malformed when time/price/volume is non-numeric, non-finite,
    or volume is negative.
    """
    df = bars_to_frame(bars)
    if df.empty:
        return df

    df = df.apply(pd.to_numeric, errors='coerce')
    finite = np.isfinite(df.to_numpy(dtype=float)).all(axis=1)
    df = df[finite & (df['volume'] >= 0)]

    df = df.drop_duplicates(subset='time', keep='last')
    df = df.sort_values('time', kind='mergesort').reset_index(drop=True)
    return df


def aggregate_daily(bars: BarsInput) -> List[DailyAggregate]:
    """
    Сгруппировать 1m бары по календарной дате (UTC)

    Returns:
        DailyAggregate по возрастанию даты; пустой список для пустого входа
    """
    df = filter_valid_bars(bars)
    if df.empty:
        return []

    df['date'] = pd.to_datetime(df['time'], unit='s', utc=True).dt.strftime('%Y-%m-%d')

    direction = np.sign(df['close'] - df['open'])
    df['buy_vol'] = np.where(direction > 0, df['volume'], 0.0)
    df['sell_vol'] = np.where(direction < 0, df['volume'], 0.0)

    grouped = df.groupby('date', sort=True).agg(
        open=('open', 'first'),
        high=('high', 'max'),
        low=('low', 'min'),
        close=('close', 'last'),
        buy_vol=('buy_vol', 'sum'),
        sell_vol=('sell_vol', 'sum'),
        total_vol=('volume', 'sum'),
    )

    daily = []
    for day, row in grouped.iterrows():
        buy_vol = float(row['buy_vol'])
        sell_vol = float(row['sell_vol'])
        daily.append(DailyAggregate(
            date=day,
            open=float(row['open']),
            high=float(row['high']),
            low=float(row['low']),
            close=float(row['close']),
            buy_vol=buy_vol,
            sell_vol=sell_vol,
            total_vol=float(row['total_vol']),
            delta=buy_vol - sell_vol,
        ))

    return daily


def week_start_for(day: str) -> str:
    """Monday on/before the given YYYY-MM-DD date"""
    d = date.fromisoformat(day)
    return (d - timedelta(days=d.weekday())).isoformat()


def build_weeks(daily: List[DailyAggregate]) -> List[WeekAggregate]:
    """Собрать недельные корзины (Monday-anchored) из дневных агрегатов"""
    buckets = {}
    for d in daily:
        buckets.setdefault(week_start_for(d.date), []).append(d)

    weeks = []
    for week_start in sorted(buckets):
        days = buckets[week_start]
        buy_vol = sum(d.buy_vol for d in days)
        sell_vol = sum(d.sell_vol for d in days)
        total_vol = sum(d.total_vol for d in days)
        weeks.append(WeekAggregate(
            week_start=week_start,
            delta=buy_vol - sell_vol,
            total_vol=total_vol,
            delta_pct=safe_div(buy_vol - sell_vol, total_vol) * 100,
            n_days=len(days),
        ))

    return weeks
