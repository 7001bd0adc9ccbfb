import os
import sys
import threading
import time
import unittest

from PyQt6.QtCore import QCoreApplication, QThread

# Allow `import core.*` like the app does when running `python app/main.py`.
REPO_ROOT = os.path.dirname(os.path.dirname(__file__))
APP_DIR = os.path.join(REPO_ROOT, "app")
if APP_DIR not in sys.path:
    sys.path.insert(0, APP_DIR)

from core.candle_feed import INITIAL_LOAD_ERROR
from core.candle_source import MemoryCandleSource
from core.candles import format_timestamp
from core.feed_controller import CandleFeedController
from core.models import Candle, FeedConfig


T0 = 1_704_067_200


def make_candle(i: int, close: float = None) -> Candle:
    t = T0 + i * 60
    c = float(100 + i) if close is None else close
    return Candle(timestamp=format_timestamp(t), time=t, open=c, high=c + 1, low=c - 1, close=c, volume=10.0)


class PerAssetSource:
    """Routes fetches to one memory source per asset; `slow` assets sleep before answering."""

    def __init__(self, by_asset, slow=()):
        self.by_asset = by_asset
        self.slow = set(slow)

    def fetch_page(self, asset_id, timeframe, limit, cursor=None):
        if asset_id in self.slow:
            time.sleep(0.2)
        return self.by_asset[asset_id].fetch_page(asset_id, timeframe, limit, cursor)


class GatedSource:
    """Holds back fetches matching `held` until `gate` is set."""

    def __init__(self, inner, held):
        self.inner = inner
        self.held = held
        self.gate = threading.Event()
        self.entered = threading.Event()
        self.calls = []

    def fetch_page(self, asset_id, timeframe, limit, cursor=None):
        self.calls.append(cursor)
        if self.held(cursor) and not self.gate.is_set():
            self.entered.set()
            self.gate.wait(5.0)
        return self.inner.fetch_page(asset_id, timeframe, limit, cursor)


class FeedControllerTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.app = QCoreApplication.instance() or QCoreApplication([])

    def setUp(self):
        self.controllers = []

    def tearDown(self):
        for controller in self.controllers:
            controller.shutdown()

    def _controller(self, source, **config):
        config.setdefault("auto_refresh", False)
        controller = CandleFeedController(source, FeedConfig(**config))
        self.controllers.append(controller)
        self.loading = []
        self.errors = []
        self.changes = []
        controller.loading_changed.connect(lambda flag: self.loading.append(flag))
        controller.error.connect(lambda message: self.errors.append(message))
        controller.candles_changed.connect(lambda: self.changes.append(len(controller.candles)))
        return controller

    def _wait_until(self, predicate, timeout_s=5.0):
        deadline = time.monotonic() + timeout_s
        while time.monotonic() < deadline:
            QCoreApplication.processEvents()
            if predicate():
                return True
            QThread.msleep(5)
        QCoreApplication.processEvents()
        return predicate()

    def _idle(self, controller):
        return not controller._workers

    def test_initial_load(self):
        source = MemoryCandleSource(make_candle(i) for i in range(10))
        controller = self._controller(source, initial_limit=4)
        controller.set_asset("A", 1)
        self.assertTrue(controller.loading)
        self.assertTrue(self._wait_until(lambda: len(controller.candles) == 4))
        self.assertEqual(self.loading, [True, False])
        self.assertEqual(self.errors, [])
        self.assertEqual(self.changes[0], 0)
        self.assertEqual(self.changes[-1], 4)
        self.assertTrue(controller.feed.has_more)

    def test_initial_failure_emits_error(self):
        source = MemoryCandleSource(make_candle(i) for i in range(3))
        source.fail_next(1)
        controller = self._controller(source, auto_refresh=True)
        with self.assertLogs("core.candle_feed", level="WARNING"):
            controller.set_asset("A", 1)
            self.assertTrue(self._wait_until(lambda: bool(self.errors)))
        self.assertEqual(self.errors, [INITIAL_LOAD_ERROR])
        self.assertEqual(controller.candles, [])
        self.assertEqual(self.loading, [True, False])
        self.assertFalse(controller.refresh_active)

    def test_load_more_deferred_append(self):
        source = MemoryCandleSource(make_candle(i) for i in range(10))
        controller = self._controller(source, initial_limit=4, load_more_limit=3, defer_append_threshold=2)
        controller.set_asset("A", 1)
        self.assertTrue(self._wait_until(lambda: len(controller.candles) == 4))
        self.assertTrue(controller.load_more())
        self.assertFalse(controller.load_more())
        self.assertTrue(self._wait_until(lambda: len(controller.candles) == 7))
        self.assertTrue(controller.load_more())
        self.assertTrue(self._wait_until(lambda: len(controller.candles) == 10))
        self.assertTrue(self._wait_until(lambda: self._idle(controller)))
        self.assertFalse(controller.feed.has_more)
        self.assertFalse(controller.load_more())
        stamps = [c.timestamp for c in controller.candles]
        self.assertEqual(len(stamps), len(set(stamps)))

    def test_stale_initial_page_is_discarded(self):
        a = MemoryCandleSource(make_candle(i, close=1.0) for i in range(5))
        b = MemoryCandleSource(make_candle(i, close=2.0) for i in range(3))
        controller = self._controller(PerAssetSource({"A": a, "B": b}, slow={"A"}))
        controller.set_asset("A", 1)
        controller.set_asset("B", 5)
        self.assertTrue(self._wait_until(lambda: len(controller.candles) == 3))
        self.assertTrue(self._wait_until(lambda: self._idle(controller)))
        self.assertEqual(controller.feed.asset_id, "B")
        self.assertEqual({c.close for c in controller.candles}, {2.0})

    def test_auto_refresh_merges_new_candles(self):
        source = MemoryCandleSource(make_candle(i) for i in range(5))
        controller = self._controller(source, initial_limit=10, refresh_limit=2, refresh_interval_ms=20)
        controller.set_asset("A", 1)
        self.assertTrue(self._wait_until(lambda: len(controller.candles) == 5))
        self.assertFalse(controller.refresh_active)
        source.add(make_candle(5))
        controller.set_auto_refresh(True)
        self.assertTrue(controller.refresh_active)
        self.assertTrue(self._wait_until(lambda: len(controller.candles) == 6))
        self.assertEqual(controller.candles[0].close, 105.0)
        controller.set_auto_refresh(False)
        self.assertFalse(controller.refresh_active)

    def test_reload_discards_history_page_in_flight(self):
        source = GatedSource(MemoryCandleSource(make_candle(i) for i in range(30)), held=lambda cursor: cursor is not None)
        source.gate.set()
        controller = self._controller(source, initial_limit=5, load_more_limit=5)
        self.addCleanup(source.gate.set)
        controller.set_asset("A", 1)
        self.assertTrue(self._wait_until(lambda: len(controller.candles) == 5))
        for expected in (10, 15):
            self.assertTrue(controller.load_more())
            self.assertTrue(self._wait_until(lambda: len(controller.candles) == expected))

        source.gate.clear()
        self.assertTrue(controller.load_more())
        self.assertTrue(source.entered.wait(5.0))
        controller.reload()
        self.assertTrue(self._wait_until(lambda: not controller.loading and len(controller.candles) == 5))
        source.gate.set()
        self.assertTrue(self._wait_until(lambda: self._idle(controller)))
        self.assertEqual(len(controller.candles), 5)
        self.assertEqual(controller.feed.next_cursor, make_candle(25).timestamp)

        self.assertTrue(controller.load_more())
        self.assertTrue(self._wait_until(lambda: len(controller.candles) == 10))
        minutes = sorted((c.time - T0) // 60 for c in controller.candles)
        self.assertEqual(minutes, list(range(20, 30)))

    def test_on_demand_refresh_is_not_dropped_while_one_is_in_flight(self):
        inner = MemoryCandleSource(make_candle(i) for i in range(5))
        source = GatedSource(inner, held=lambda cursor: True)
        source.gate.set()
        controller = self._controller(source, initial_limit=10, refresh_limit=2)
        self.addCleanup(source.gate.set)
        controller.set_asset("A", 1)
        self.assertTrue(self._wait_until(lambda: len(controller.candles) == 5))

        source.gate.clear()
        self.assertTrue(controller.refresh())
        self.assertTrue(source.entered.wait(5.0))
        inner.add(make_candle(5))
        self.assertTrue(controller.refresh())
        controller._on_refresh_tick()
        source.gate.set()
        self.assertTrue(self._wait_until(lambda: len(controller.candles) == 6 and self._idle(controller)))
        self.assertEqual(len(source.calls), 3)
        self.assertEqual(controller.candles[0].close, 105.0)
        self.assertEqual(controller._refresh_in_flight, 0)

    def test_shutdown_stops_everything(self):
        source = MemoryCandleSource(make_candle(i) for i in range(5))
        controller = self._controller(source, auto_refresh=True, refresh_interval_ms=20)
        controller.set_asset("A", 1)
        self.assertTrue(self._wait_until(lambda: controller.refresh_active))
        controller.shutdown()
        self.assertFalse(controller.refresh_active)
        calls = len(source.calls)
        controller.set_asset("B", 1)
        self.assertFalse(controller.refresh())
        QCoreApplication.processEvents()
        self.assertEqual(len(source.calls), calls)


if __name__ == "__main__":
    unittest.main()
