import math
import os
import sys
import unittest

import numpy as np

# Allow `import core.*` like the app does when running `python app/main.py`.
REPO_ROOT = os.path.dirname(os.path.dirname(__file__))
APP_DIR = os.path.join(REPO_ROOT, "app")
if APP_DIR not in sys.path:
    sys.path.insert(0, APP_DIR)

from indicators import helpers


class MovingAverageTests(unittest.TestCase):
    def test_sma_leading_gap_and_values(self):
        out = helpers.sma([1, 2, 3, 4, 5], 3)
        self.assertEqual(out.size, 5)
        self.assertTrue(np.isnan(out[:2]).all())
        np.testing.assert_allclose(out[2:], [2.0, 3.0, 4.0])

    def test_sma_shorter_than_period_is_all_nan(self):
        out = helpers.sma([1, 2], 3)
        self.assertEqual(out.size, 2)
        self.assertTrue(np.isnan(out).all())

    def test_ema_seeds_with_sma(self):
        out = helpers.ema([1, 2, 3, 4, 5], 3)
        self.assertTrue(np.isnan(out[:2]).all())
        # alpha = 0.5: 2 -> 3 -> 4
        np.testing.assert_allclose(out[2:], [2.0, 3.0, 4.0])

    def test_ema_seed_shifts_past_leading_nan(self):
        out = helpers.ema([np.nan, 1.0, 2.0, 3.0], 2)
        self.assertTrue(np.isnan(out[:2]).all())
        self.assertAlmostEqual(out[2], 1.5)
        self.assertAlmostEqual(out[3], 1.5 + (3.0 - 1.5) * 2.0 / 3.0)

    def test_wilder_smoothing(self):
        out = helpers.wilder([1, 2, 3, 4], 2)
        self.assertTrue(math.isnan(out[0]))
        np.testing.assert_allclose(out[1:], [1.5, 2.25, 3.125])

    def test_wma_weights_recent_highest(self):
        out = helpers.wma([1, 2, 3], 3)
        self.assertAlmostEqual(out[2], (1 * 1 + 2 * 2 + 3 * 3) / 6.0)

    def test_vwma_without_volume_falls_back_to_mean(self):
        out = helpers.vwma([1, 2, 3], [0, 0, 0], 3)
        self.assertAlmostEqual(out[2], 2.0)
        out = helpers.vwma([1, 2, 3], [0, 0, 10], 3)
        self.assertAlmostEqual(out[2], 3.0)

    def test_inputs_are_not_mutated(self):
        values = np.array([5.0, 4.0, 3.0, 2.0, 1.0])
        before = values.copy()
        for fn in (helpers.sma, helpers.ema, helpers.wma, helpers.std_dev, helpers.highest, helpers.lowest):
            fn(values, 3)
        np.testing.assert_array_equal(values, before)

    def test_lengths_match_input(self):
        values = list(range(1, 31))
        for fn in (helpers.sma, helpers.ema, helpers.wma):
            for period in (1, 5, 30, 31):
                out = fn(values, period)
                self.assertEqual(out.size, len(values))
                self.assertTrue(np.isnan(out[: min(period - 1, len(values))]).all())


class StatisticTests(unittest.TestCase):
    def test_std_dev_is_population(self):
        out = helpers.std_dev([2, 4, 4, 4, 5, 5, 7, 9], 8)
        self.assertAlmostEqual(out[7], 2.0)

    def test_highest_lowest(self):
        np.testing.assert_allclose(helpers.highest([1, 3, 2, 5, 4], 2)[1:], [3, 3, 5, 5])
        np.testing.assert_allclose(helpers.lowest([1, 3, 2, 5, 4], 2)[1:], [1, 2, 2, 4])

    def test_true_range_first_bar_is_high_minus_low(self):
        tr = helpers.true_range([10.0, 12.0], [8.0, 11.0], [9.0, 11.5])
        self.assertAlmostEqual(tr[0], 2.0)
        self.assertAlmostEqual(tr[1], 3.0)

    def test_source_series(self):
        bundle = helpers.series_bundle(helpers.bars_to_numpy([[0, 1.0, 4.0, 2.0, 3.0, 10.0]]))
        self.assertAlmostEqual(helpers.source_series(bundle, "hl2")[0], 3.0)
        self.assertAlmostEqual(helpers.source_series(bundle, "hlc3")[0], 3.0)
        self.assertAlmostEqual(helpers.source_series(bundle, "ohlc4")[0], 2.5)
        self.assertAlmostEqual(helpers.source_series(bundle, "open")[0], 1.0)


class RsiTests(unittest.TestCase):
    def test_rsi_first_value_on_index_period(self):
        out = helpers.rsi([1, 2, 1, 2, 1], 2)
        self.assertTrue(np.isnan(out[:2]).all())
        self.assertAlmostEqual(out[2], 50.0)
        self.assertAlmostEqual(out[3], 75.0)

    def test_rsi_is_100_without_losses(self):
        out = helpers.rsi(list(range(20)), 14)
        self.assertTrue(np.isnan(out[:14]).all())
        np.testing.assert_allclose(out[14:], 100.0)

    def test_rsi_needs_more_than_period_values(self):
        self.assertTrue(np.isnan(helpers.rsi([1, 2, 3], 3)).all())

    def test_rsi_stays_in_range(self):
        values = 100 + 10 * np.sin(np.arange(200) * 0.37) + np.cos(np.arange(200) * 1.3)
        out = helpers.rsi(values, 14)
        valid = out[~np.isnan(out)]
        self.assertTrue(valid.size > 0)
        self.assertTrue(((valid >= 0) & (valid <= 100)).all())


class StochasticTests(unittest.TestCase):
    def test_flat_range_reads_50(self):
        out = helpers.stochastic([5, 5, 5], [5, 5, 5], [5, 5, 5], 2)
        self.assertTrue(math.isnan(out[0]))
        np.testing.assert_allclose(out[1:], 50.0)

    def test_close_at_high_reads_100(self):
        out = helpers.stochastic([2, 4], [1, 1], [2, 4], 2)
        self.assertAlmostEqual(out[1], 100.0)


if __name__ == "__main__":
    unittest.main()
