import os
import sys
import unittest
from unittest import mock

import requests

# Allow `import core.*` like the app does when running `python app/main.py`.
REPO_ROOT = os.path.dirname(os.path.dirname(__file__))
APP_DIR = os.path.join(REPO_ROOT, "app")
if APP_DIR not in sys.path:
    sys.path.insert(0, APP_DIR)

from core.candle_source import CandleSourceError, HttpCandleSource, MemoryCandleSource
from core.candles import format_timestamp
from core.models import Candle, SourceConfig


T0 = 1_704_067_200


def make_candle(i: int, close: float = None) -> Candle:
    t = T0 + i * 60
    c = float(100 + i) if close is None else close
    return Candle(timestamp=format_timestamp(t), time=t, open=c, high=c + 1, low=c - 1, close=c, volume=10.0)


def _session_returning(payload=None, exc=None, json_exc=None):
    session = mock.MagicMock()
    resp = mock.MagicMock()
    if exc is not None:
        resp.raise_for_status.side_effect = exc
    if json_exc is not None:
        resp.json.side_effect = json_exc
    else:
        resp.json.return_value = payload
    session.get.return_value = resp
    return session


class HttpCandleSourceTests(unittest.TestCase):
    def test_request_shape_and_decoding(self):
        payload = {
            "results": [["2024-01-01T00:01:00Z", "2", "3", "1", "2.5", "7", 1, None]],
            "next_cursor": "2024-01-01T00:01:00Z",
            "has_next": True,
        }
        session = _session_returning(payload)
        source = HttpCandleSource(SourceConfig(base_url="http://api.test/", timeout=3.0), session=session)
        page = source.fetch_page(42, 5, 100, cursor="2024-01-01T00:05:00Z")

        args, kwargs = session.get.call_args
        self.assertEqual(args[0], "http://api.test/api/assets/42/candles_v3/")
        self.assertEqual(
            kwargs["params"],
            {"timeframe": 5, "limit": 100, "format": "compact", "cursor": "2024-01-01T00:05:00Z"},
        )
        self.assertEqual(kwargs["timeout"], 3.0)
        self.assertEqual(len(page.candles), 1)
        self.assertEqual(page.candles[0].close, 2.5)
        self.assertTrue(page.has_next)

    def test_limit_is_clamped_and_cursor_optional(self):
        session = _session_returning({"results": [], "has_next": False})
        source = HttpCandleSource(SourceConfig(base_url="http://api.test"), session=session)
        source.fetch_page("BTC", 1, 1_000_000)
        params = session.get.call_args[1]["params"]
        self.assertEqual(params["limit"], 5000)
        self.assertNotIn("cursor", params)

    def test_http_error_becomes_source_error(self):
        session = _session_returning(exc=requests.HTTPError("500 Server Error"))
        source = HttpCandleSource(SourceConfig(base_url="http://api.test"), session=session)
        with self.assertRaises(CandleSourceError):
            source.fetch_page(1, 5, 10)

    def test_bad_json_becomes_source_error(self):
        session = _session_returning(json_exc=ValueError("no json"))
        source = HttpCandleSource(SourceConfig(base_url="http://api.test"), session=session)
        with self.assertRaises(CandleSourceError):
            source.fetch_page(1, 5, 10)

    def test_malformed_rows_become_source_error(self):
        session = _session_returning({"results": [["2024-01-01T00:00:00Z", "x", "1", "1", "1"]]})
        source = HttpCandleSource(SourceConfig(base_url="http://api.test"), session=session)
        with self.assertRaises(CandleSourceError):
            source.fetch_page(1, 5, 10)

    def test_unsupported_timeframe_raises_before_request(self):
        session = _session_returning({})
        source = HttpCandleSource(SourceConfig(base_url="http://api.test"), session=session)
        with self.assertRaises(ValueError):
            source.fetch_page(1, 3, 10)
        session.get.assert_not_called()


class MemoryCandleSourceTests(unittest.TestCase):
    def test_cursor_paging_newest_first(self):
        source = MemoryCandleSource(make_candle(i) for i in range(5))
        first = source.fetch_page("A", 1, 2)
        self.assertEqual([c.close for c in first.candles], [104.0, 103.0])
        self.assertTrue(first.has_next)
        self.assertEqual(first.next_cursor, first.candles[-1].timestamp)

        second = source.fetch_page("A", 1, 2, first.next_cursor)
        self.assertEqual([c.close for c in second.candles], [102.0, 101.0])
        third = source.fetch_page("A", 1, 2, second.next_cursor)
        self.assertEqual([c.close for c in third.candles], [100.0])
        self.assertFalse(third.has_next)
        self.assertIsNone(third.next_cursor)
        self.assertEqual([call["cursor"] for call in source.calls], [None, first.next_cursor, second.next_cursor])

    def test_fail_next_and_replace(self):
        source = MemoryCandleSource([make_candle(0)])
        source.fail_next(1)
        with self.assertRaises(CandleSourceError):
            source.fetch_page("A", 1, 10)
        source.replace(make_candle(0, close=5.0))
        self.assertEqual(source.fetch_page("A", 1, 10).candles[0].close, 5.0)
        self.assertEqual(len(source), 1)


if __name__ == "__main__":
    unittest.main()
