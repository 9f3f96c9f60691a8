"""
Unit тесты для конфигурации (VDFConfig + YAML Config)
"""
import os
import tempfile
import unittest
from dataclasses import FrozenInstanceError

from vdf_scanner.utils.config import Config
from vdf_scanner.vdf.config import (
    DEFAULT_VDF_CONFIG,
    VDF_DEFAULT_CONFIG,
    ScoringWeights,
    VDFConfig,
    merge_config,
)


class TestVDFConfig(unittest.TestCase):
    """Тесты frozen конфигурации движка"""

    def test_defaults(self):
        cfg = DEFAULT_VDF_CONFIG

        self.assertEqual(cfg.detection_threshold, 0.30)
        self.assertEqual(cfg.window_sizes, (10, 14, 17, 20, 24, 28, 35))
        self.assertEqual(cfg.overlap_limit, 0.30)
        self.assertEqual(cfg.min_gap_days, 10)
        self.assertEqual(cfg.max_zones, 3)
        self.assertEqual(cfg.detector_max_zones, 5)
        self.assertEqual(cfg.weights, ScoringWeights())

    def test_overrides_merge(self):
        cfg = VDFConfig.from_dict({
            'clustering': {'max_zones': 7},
            'weights': {'s8': 0.40},
        })

        self.assertEqual(cfg.max_zones, 7)
        self.assertEqual(cfg.overlap_limit, 0.30)
        self.assertEqual(cfg.weights.s8, 0.40)
        self.assertEqual(cfg.weights.s6, 0.25)

    def test_overrides_do_not_touch_defaults(self):
        VDFConfig.from_dict({'clustering': {'max_zones': 7}})
        self.assertEqual(VDF_DEFAULT_CONFIG['clustering']['max_zones'], 3)

    def test_unknown_key_rejected(self):
        with self.assertRaises(ValueError):
            VDFConfig.from_dict({'clustering': {'max_zone': 7}})
        with self.assertRaises(ValueError):
            VDFConfig.from_dict({'thresholds': 0.5})

    def test_wrong_shape_rejected(self):
        with self.assertRaises(ValueError):
            VDFConfig.from_dict({'gates': 0.5})

    def test_invalid_values_rejected(self):
        with self.assertRaises(ValueError):
            VDFConfig.from_dict({'clustering': {'overlap_limit': 1.5}})
        with self.assertRaises(ValueError):
            VDFConfig.from_dict({'window_sizes': []})
        with self.assertRaises(ValueError):
            VDFConfig.from_dict({'outlier_sigma': 0})

    def test_frozen(self):
        with self.assertRaises(FrozenInstanceError):
            DEFAULT_VDF_CONFIG.detection_threshold = 0.1
        with self.assertRaises(FrozenInstanceError):
            DEFAULT_VDF_CONFIG.weights.s1 = 0.5

    def test_merge_config_is_deep(self):
        merged = merge_config({'a': {'b': 1, 'c': 2}}, {'a': {'c': 3}})
        self.assertEqual(merged, {'a': {'b': 1, 'c': 3}})


class TestYamlConfig(unittest.TestCase):
    """Тесты YAML конфигурации приложения"""

    def setUp(self):
        handle, self.path = tempfile.mkstemp(suffix='.yaml')
        with os.fdopen(handle, 'w', encoding='utf-8') as f:
            f.write(
                "timezone: UTC\n"
                "logging:\n"
                "  level: DEBUG\n"
                "vdf:\n"
                "  detection_threshold: 0.45\n"
                "  clustering:\n"
                "    min_gap_days: 0\n"
            )

    def tearDown(self):
        os.remove(self.path)

    def test_dotted_get(self):
        cfg = Config(self.path)

        self.assertEqual(cfg.timezone, 'UTC')
        self.assertEqual(cfg.log_level, 'DEBUG')
        self.assertEqual(cfg.log_dir, 'logs')
        self.assertFalse(cfg.log_to_file)
        self.assertEqual(cfg.get('vdf.clustering.min_gap_days'), 0)
        self.assertEqual(cfg.get('vdf.missing', 'default'), 'default')

    def test_vdf_section_to_engine_config(self):
        vdf = VDFConfig.from_dict(Config(self.path).vdf_overrides)

        self.assertEqual(vdf.detection_threshold, 0.45)
        self.assertEqual(vdf.min_gap_days, 0)
        self.assertEqual(vdf.max_zones, 3)

    def test_vdf_section_must_be_mapping(self):
        with open(self.path, 'w', encoding='utf-8') as f:
            f.write("vdf: [1, 2]\n")

        with self.assertRaises(ValueError):
            Config(self.path).vdf_overrides

    def test_missing_file_is_empty(self):
        cfg = Config(self.path + '.missing')

        self.assertEqual(cfg.vdf_overrides, {})
        self.assertEqual(cfg.timezone, 'America/New_York')


if __name__ == '__main__':
    unittest.main()
