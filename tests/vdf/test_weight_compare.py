"""
Unit тесты для сравнения наборов весов
"""
import unittest
import pandas as pd

from vdf_scanner.vdf.config import DEFAULT_VDF_CONFIG, ScoringWeights, VDFConfig
from vdf_scanner.vdf.models import DailyAggregate
from vdf_scanner.vdf.scoring import SubwindowScorer
from vdf_scanner.vdf.weight_compare import compare_weight_sets, rescore_zone, zone_range


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


def hidden_accumulation_series(n=20):
    closes = [100.0]
    deltas = [100_000.0]
    for i in range(1, n):
        if i % 2:
            closes.append(closes[-1] - 1.5)
            deltas.append(200_000.0)
        else:
            closes.append(closes[-1] + 0.5)
            deltas.append(-50_000.0)
    return make_daily(closes, deltas)


class TestWeightCompare(unittest.TestCase):
    """Тесты harness сравнения весов"""

    def setUp(self):
        self.daily = hidden_accumulation_series()
        self.pre = make_daily([100.0] * 10, [0.0] * 10, start='2025-02-17')

    def test_rescore_with_same_weights(self):
        """Тест: пересчёт с исходными весами → тот же score"""
        result = SubwindowScorer().score(self.daily, self.pre)
        self.assertTrue(result.detected)
        self.assertAlmostEqual(rescore_zone(result, DEFAULT_VDF_CONFIG.weights), result.score)

    def test_rescore_with_other_weights(self):
        """Тест: весь вес на s7 (спад объёма = 0) → score 0"""
        result = SubwindowScorer().score(self.daily, self.pre)
        weights = ScoringWeights(s1=0, s2=0, s3=0, s4=0, s5=0, s6=0, s7=1.0, s8=0)
        self.assertEqual(rescore_zone(result, weights), 0.0)

    def test_baseline_has_no_diff(self):
        results = compare_weight_sets(self.daily, self.pre, {'default': DEFAULT_VDF_CONFIG})

        self.assertEqual(len(results), 1)
        self.assertEqual(results[0].name, 'default')
        self.assertEqual(len(results[0].zones), 1)
        self.assertEqual(results[0].gained, [])
        self.assertEqual(results[0].lost, [])

    def test_variant_losing_zones(self):
        """Тест: вариант с порогом 0.99 теряет зону baseline"""
        variants = {
            'default': DEFAULT_VDF_CONFIG,
            'strict': VDFConfig.from_dict({'detection_threshold': 0.99}),
        }
        baseline, strict = compare_weight_sets(self.daily, self.pre, variants)

        self.assertEqual(strict.zones, [])
        self.assertEqual(strict.gained, [])
        self.assertEqual(strict.lost, [zone_range(baseline.zones[0])])

    def test_variant_gaining_zones(self):
        variants = {
            'strict': VDFConfig.from_dict({'detection_threshold': 0.99}),
            'default': DEFAULT_VDF_CONFIG,
        }
        _, default = compare_weight_sets(self.daily, self.pre, variants)
        self.assertEqual(default.gained, [zone_range(default.zones[0])])

    def test_to_dict(self):
        data = compare_weight_sets(self.daily, self.pre, {'default': DEFAULT_VDF_CONFIG})[0].to_dict()
        self.assertEqual(data['weights']['s8'], 0.35)
        self.assertEqual(len(data['zones']), 1)

    def test_requires_variants(self):
        with self.assertRaises(ValueError):
            compare_weight_sets(self.daily, self.pre, {})


if __name__ == '__main__':
    unittest.main()
