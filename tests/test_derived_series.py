import os
import random
import sys
import unittest

# Allow `import core.*` like the app does when running `python app/main.py`.
REPO_ROOT = os.path.dirname(os.path.dirname(__file__))
APP_DIR = os.path.join(REPO_ROOT, "app")
if APP_DIR not in sys.path:
    sys.path.insert(0, APP_DIR)

from core.candles import format_timestamp
from core.derived_series import (
    PATH_APPEND,
    PATH_HIT,
    PATH_REBUILD,
    VOLUME_COLORS,
    DerivedSeriesCache,
    derive_indicator_series,
    derive_series,
)
from core.models import Candle


T0 = 1_704_067_200
UP, DOWN = VOLUME_COLORS["dark"]


def candle_at(minute: int, close: float, volume: float = 100.0) -> Candle:
    t = T0 + minute * 60
    return Candle(
        timestamp=format_timestamp(t),
        time=t,
        open=close - 1.0,
        high=close + 1.0,
        low=close - 2.0,
        close=close,
        volume=volume,
    )


def fixture_candles():
    # newest-first, the way the feed holds them
    return [candle_at(2, 14.0, 1600.0), candle_at(1, 12.0, 1500.0), candle_at(0, 11.0, 1000.0)]


def rebuild(candles, series_type="ohlc", color_mode="dark"):
    return derive_series(None, candles, series_type, color_mode)


class FixtureScenarioTests(unittest.TestCase):
    def test_ohlc_series(self):
        snap = rebuild(fixture_candles(), "ohlc")
        self.assertEqual(len(snap.series_data), 3)
        for point in snap.series_data:
            self.assertEqual(set(point), {"time", "open", "high", "low", "close"})
        self.assertEqual([p["close"] for p in snap.series_data], [11.0, 12.0, 14.0])
        self.assertEqual([p["time"] for p in snap.series_data], [T0, T0 + 60, T0 + 120])
        self.assertTrue(snap.has_valid_volume)

    def test_price_series(self):
        snap = rebuild(fixture_candles(), "price")
        self.assertEqual(list(snap.series_data), [
            {"time": T0, "value": 11.0},
            {"time": T0 + 60, "value": 12.0},
            {"time": T0 + 120, "value": 14.0},
        ])

    def test_volume_series_has_no_price_points(self):
        snap = rebuild(fixture_candles(), "volume")
        self.assertEqual(snap.series_data, ())
        self.assertEqual([p["value"] for p in snap.volume_data], [1000.0, 1500.0, 1600.0])

    def test_volume_colors(self):
        snap = rebuild(fixture_candles())
        self.assertEqual([p["color"] for p in snap.volume_data], [UP, UP, UP])
        candles = [candle_at(3, 13.0)] + fixture_candles()
        snap = rebuild(candles)
        self.assertEqual([p["color"] for p in snap.volume_data], [UP, UP, UP, DOWN])
        light_up, _ = VOLUME_COLORS["light"]
        snap = rebuild(fixture_candles(), color_mode="light")
        self.assertEqual(snap.volume_data[0]["color"], light_up)

    def test_quick_indicators(self):
        candles = fixture_candles()
        empty = derive_indicator_series(candles, [])
        self.assertEqual(empty, {"rsi": [], "atr": [], "ema": [], "bollinger_bands": []})
        out = derive_indicator_series(candles, ["RSI", "EMA"])
        self.assertTrue(0 < len(out["rsi"]) <= 3)
        self.assertTrue(0 < len(out["ema"]) <= 3)
        self.assertEqual(out["atr"], [])
        # Bollinger bands need at least five candles.
        self.assertEqual(derive_indicator_series(candles, ["BollingerBands"])["bollinger_bands"], [])

    def test_quick_bollinger_points(self):
        candles = [candle_at(m, 10.0 + (m % 3)) for m in range(9, -1, -1)]
        bands = derive_indicator_series(candles, ["BollingerBands", "ATR"])
        self.assertEqual(len(bands["bollinger_bands"]), 1)
        point = bands["bollinger_bands"][0]
        self.assertEqual(set(point), {"time", "upper", "middle", "lower"})
        self.assertGreaterEqual(point["upper"], point["middle"])
        self.assertTrue(bands["atr"])

    def test_invalid_modes(self):
        with self.assertRaises(ValueError):
            rebuild(fixture_candles(), "area")
        with self.assertRaises(ValueError):
            rebuild(fixture_candles(), color_mode="sepia")


class CachePathTests(unittest.TestCase):
    def setUp(self):
        self.cache = DerivedSeriesCache()

    def test_hit_returns_same_arrays(self):
        first = self.cache.update(fixture_candles(), key=("A", 1))
        self.assertEqual(first.path, PATH_REBUILD)
        second = self.cache.update(fixture_candles(), key=("A", 1))
        self.assertEqual(second.path, PATH_HIT)
        self.assertIs(second.series_data, first.series_data)
        self.assertIs(second.volume_data, first.volume_data)
        self.assertIs(self.cache.update(fixture_candles(), key=("A", 1)), second)

    def test_history_append_prepends(self):
        self.cache.update(fixture_candles(), key=("A", 1))
        older = fixture_candles() + [candle_at(-1, 20.0), candle_at(-2, 19.0)]
        snap = self.cache.update(older, key=("A", 1))
        self.assertEqual(snap.path, PATH_APPEND)
        self.assertEqual(snap.as_dict(), rebuild(older).as_dict())
        # The former oldest bar (close 11) now compares against close 20.
        self.assertEqual(snap.volume_data[2]["color"], DOWN)

    def test_newest_value_change_rebuilds(self):
        self.cache.update(fixture_candles(), key=("A", 1))
        changed = [candle_at(2, 9.0, 1600.0)] + fixture_candles()[1:]
        snap = self.cache.update(changed, key=("A", 1))
        self.assertEqual(snap.path, PATH_REBUILD)
        self.assertEqual(snap.volume_data[-1]["color"], DOWN)

    def test_key_or_mode_change_rebuilds(self):
        self.cache.update(fixture_candles(), key=("A", 1))
        self.assertEqual(self.cache.update(fixture_candles(), key=("B", 1)).path, PATH_REBUILD)
        self.assertEqual(self.cache.update(fixture_candles(), "price", key=("B", 1)).path, PATH_REBUILD)
        self.assertEqual(self.cache.update(fixture_candles(), "price", "light", key=("B", 1)).path, PATH_REBUILD)
        self.cache.clear()
        self.assertIsNone(self.cache.snapshot)

    def test_new_newest_candle_rebuilds(self):
        self.cache.update(fixture_candles())
        snap = self.cache.update([candle_at(3, 15.0)] + fixture_candles())
        self.assertEqual(snap.path, PATH_REBUILD)
        self.assertEqual(len(snap.series_data), 4)

    def test_duplicate_timestamps_are_skipped(self):
        candles = fixture_candles() + [candle_at(0, 99.0)]
        snap = rebuild(candles)
        self.assertEqual(len(snap.series_data), 3)
        self.assertEqual(len({p["time"] for p in snap.volume_data}), 3)

    def test_empty_then_load(self):
        empty = self.cache.update([])
        self.assertEqual(empty.as_dict(), {"series_data": [], "volume_data": [], "has_valid_volume": False})
        self.assertEqual(self.cache.update([]).path, PATH_HIT)
        self.assertEqual(self.cache.update(fixture_candles()).path, PATH_REBUILD)

    def test_zero_volume_is_not_valid(self):
        snap = rebuild([candle_at(1, 2.0, 0.0), candle_at(0, 1.0, 0.0)])
        self.assertFalse(snap.has_valid_volume)


class CacheEquivalenceTests(unittest.TestCase):
    def _universe(self, rng, n):
        close = 100.0
        out = []
        for minute in range(n):
            close = round(close + rng.uniform(-2.0, 2.0), 2)
            volume = 0.0 if rng.random() < 0.1 else round(rng.uniform(1, 1000), 1)
            out.append(candle_at(minute, close, volume))
        return list(reversed(out))

    def test_random_append_sequences_match_rebuild(self):
        rng = random.Random(1234)
        for trial in range(40):
            universe = self._universe(rng, rng.randint(5, 80))
            series_type = rng.choice(["ohlc", "price", "volume"])
            color_mode = rng.choice(["dark", "light"])
            cache = DerivedSeriesCache()
            size = rng.randint(1, len(universe))
            snap = cache.update(universe[:size], series_type, color_mode, key=trial)
            while size < len(universe):
                size = min(len(universe), size + rng.randint(1, 10))
                current = universe[:size]
                snap = cache.update(current, series_type, color_mode, key=trial)
                with self.subTest(trial=trial, size=size):
                    self.assertEqual(snap.path, PATH_APPEND)
                    full = rebuild(current, series_type, color_mode)
                    self.assertEqual(snap.series_data, full.series_data)
                    self.assertEqual(snap.volume_data, full.volume_data)
                    self.assertEqual(snap.has_valid_volume, full.has_valid_volume)
                    self.assertEqual(snap.seen, full.seen)
            self.assertEqual(cache.update(universe, series_type, color_mode, key=trial).path, PATH_HIT)


if __name__ == "__main__":
    unittest.main()
