"""
Unit тесты для ProximityEvaluator

Проверяют:
- Предусловия (score лучшей зоны, длина серии)
- Отдельные сигналы
- Композитный score, уровни, подавление после ралли
"""
import unittest
import pandas as pd

from vdf_scanner.vdf.models import DailyAggregate, ScoredZone
from vdf_scanner.vdf.proximity import ProximityEvaluator


def make_daily(closes, deltas, start='2025-03-03'):
    days = pd.bdate_range(start, periods=len(closes))
    return [
        DailyAggregate(
            date=day.strftime('%Y-%m-%d'),
            open=c, high=c, low=c, close=c,
            buy_vol=(1_000_000 + d) / 2, sell_vol=(1_000_000 - d) / 2,
            total_vol=1_000_000, delta=d,
        )
        for day, c, d in zip(days, closes, deltas)
    ]


def zone(start, end, score=0.6, absorption_pct=0.0, rank=1):
    dates = pd.bdate_range('2025-03-03', periods=end + 1)
    return ScoredZone(
        start=start,
        end=end,
        win_size=end - start + 1,
        start_date=dates[start].strftime('%Y-%m-%d'),
        end_date=dates[end].strftime('%Y-%m-%d'),
        score=score,
        detected=True,
        reason='accumulation_divergence',
        absorption_pct=absorption_pct,
        rank=rank,
    )


class TestProximityComposite(unittest.TestCase):
    """Тесты композитного score"""

    def setUp(self):
        self.evaluator = ProximityEvaluator()
        self.deltas = [10_000.0] * 30
        self.deltas[25] = 1_000_000.0
        self.zones = [zone(0, 9, rank=1), zone(12, 20, rank=2)]

    def test_flat_price_high_level(self):
        """Тест: delta_anomaly + green_streak + multi_zone = 65 → high"""
        daily = make_daily([100.0] * 30, self.deltas)
        result = self.evaluator.evaluate(daily, self.zones)

        types = [s.type for s in result.signals]
        self.assertEqual(types, ['delta_anomaly', 'green_streak', 'multi_zone_sequence'])
        self.assertEqual(result.composite_score, 65)
        self.assertEqual(result.level, 'high')

        anomaly = result.signals[0]
        self.assertEqual(anomaly.detail, f"{daily[25].date}: 100.0x avg (+1000K)")

    def test_rally_caps_composite(self):
        """Тест: +30% за последние 20 дней → composite ≤ 40"""
        closes = [100.0] * 10 + [100.0 + 30.0 * i / 19 for i in range(20)]
        daily = make_daily(closes, self.deltas)
        result = self.evaluator.evaluate(daily, self.zones)

        self.assertEqual(result.composite_score, 40)
        self.assertEqual(result.level, 'elevated')
        self.assertEqual(len(result.signals), 3)

    def test_weak_zone_no_evaluation(self):
        daily = make_daily([100.0] * 30, self.deltas)
        result = self.evaluator.evaluate(daily, [zone(0, 9, score=0.45)])

        self.assertEqual(result.composite_score, 0)
        self.assertEqual(result.level, 'none')
        self.assertEqual(result.signals, [])

    def test_short_series_no_evaluation(self):
        daily = make_daily([100.0] * 10, [10_000.0] * 10)
        self.assertEqual(self.evaluator.evaluate(daily, [zone(0, 9)]).level, 'none')

    def test_no_zones(self):
        daily = make_daily([100.0] * 30, self.deltas)
        self.assertEqual(self.evaluator.evaluate(daily, []).composite_score, 0)

    def test_levels(self):
        self.assertEqual(ProximityEvaluator.level_for(0), 'none')
        self.assertEqual(ProximityEvaluator.level_for(29), 'none')
        self.assertEqual(ProximityEvaluator.level_for(30), 'elevated')
        self.assertEqual(ProximityEvaluator.level_for(50), 'high')
        self.assertEqual(ProximityEvaluator.level_for(70), 'imminent')
        self.assertEqual(ProximityEvaluator.level_for(125), 'imminent')


class TestProximitySignals(unittest.TestCase):
    """Тесты отдельных сигналов"""

    def test_seller_exhaustion(self):
        intensifying = make_daily([100.0] * 4, [5_000.0, -10_000.0, -20_000.0, -30_000.0])
        fading = make_daily([100.0] * 4, [5_000.0, -30_000.0, -20_000.0, -10_000.0])
        short = make_daily([100.0] * 4, [-10_000.0, -20_000.0, 5_000.0, -30_000.0])

        signal = ProximityEvaluator._seller_exhaustion(intensifying)
        self.assertEqual(signal.points, 15)
        self.assertEqual(signal.detail, '3-day red streak (intensifying)')
        self.assertEqual(ProximityEvaluator._seller_exhaustion(fading).detail, '3-day red streak (fading)')
        self.assertIsNone(ProximityEvaluator._seller_exhaustion(short))

    def test_green_streak(self):
        daily = make_daily([100.0] * 6, [-1.0, 1.0, 1.0, 1.0, 1.0, -1.0])
        signal = ProximityEvaluator._green_streak(daily)

        self.assertEqual(signal.points, 20)
        self.assertEqual(signal.detail, '4 consecutive green delta days')
        self.assertIsNone(ProximityEvaluator._green_streak(daily[:4]))

    def test_absorption_cluster(self):
        """Тест: 3 из 5 дней закрылись ниже при положительной delta"""
        closes = [100, 99, 98, 98.5, 97, 97.5]
        deltas = [0, 1.0, 1.0, -1.0, 1.0, -1.0]
        signal = ProximityEvaluator._absorption_cluster(make_daily(closes, deltas))

        self.assertEqual(signal.points, 15)
        self.assertEqual(signal.detail, '3/5 absorption days in window')

    def test_final_capitulation(self):
        """Тест: последний день -5% на крупной продаже"""
        closes = [100.0] * 9 + [95.0]
        deltas = [10_000.0] * 9 + [-500_000.0]
        daily = make_daily(closes, deltas)
        avg = sum(abs(d.delta) for d in daily) / len(daily)
        signal = ProximityEvaluator._final_capitulation(daily, daily, avg)

        self.assertEqual(signal.points, 10)
        self.assertEqual(signal.detail, f"{daily[-1].date}: -500K (-5.0%)")

    def test_capitulation_requires_price_drop(self):
        daily = make_daily([100.0] * 10, [10_000.0] * 9 + [-500_000.0])
        avg = sum(abs(d.delta) for d in daily) / len(daily)
        self.assertIsNone(ProximityEvaluator._final_capitulation(daily, daily, avg))

    def test_multi_zone_sequence(self):
        signal = ProximityEvaluator._multi_zone_sequence([zone(12, 20), zone(0, 9)])
        self.assertEqual(signal.detail, '2 zones with 3-day gap')
        self.assertIsNone(ProximityEvaluator._multi_zone_sequence([zone(0, 9), zone(45, 60)]))
        self.assertIsNone(ProximityEvaluator._multi_zone_sequence([zone(0, 9)]))

    def test_extreme_absorption(self):
        signal = ProximityEvaluator._extreme_absorption([zone(100, 120, absorption_pct=45.0, rank=2)], 150)
        self.assertEqual(signal.detail, 'Zone 2: 45.0% absorption')

        # Зона закончилась раньше последних 90 дней
        self.assertIsNone(ProximityEvaluator._extreme_absorption([zone(0, 20, absorption_pct=45.0)], 150))
        self.assertIsNone(ProximityEvaluator._extreme_absorption([zone(100, 120, absorption_pct=30.0)], 150))


if __name__ == '__main__':
    unittest.main()
