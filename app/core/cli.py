from __future__ import annotations

import argparse
import faulthandler
import json
import logging
import sys
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from core.candle_feed import CandleFeed
from core.candle_source import HttpCandleSource, MemoryCandleSource
from core.candles import TIMEFRAMES, format_timestamp, timeframe_to_ms
from core.derived_series import SERIES_TYPES, VOLUME_COLORS, derive_series
from core.indicator_engine import IndicatorSet
from core.models import Candle, FeedConfig, SourceConfig


logger = logging.getLogger(__name__)

DEMO_END_TIME = 1_700_000_000


def demo_candles(n: int, timeframe: int, end_time: int = DEMO_END_TIME) -> List[Candle]:
    """Deterministic synthetic candles: gentle trend + bounded wiggle (no randomness)."""
    step = timeframe_to_ms(timeframe) // 1000
    end = end_time - (end_time % step)
    idx = np.arange(n, dtype=np.float64)
    times = end - (np.arange(n, dtype=np.int64)[::-1] * step)
    close = 100.0 + idx * 0.01 + 0.5 * np.sin(idx * 0.1)
    open_ = np.concatenate(([close[0]], close[:-1]))
    high = np.maximum(open_, close) + 0.1
    low = np.minimum(open_, close) - 0.1
    volume = 100.0 + 50.0 * np.abs(np.cos(idx * 0.05))
    out = []
    for i in range(n):
        t = int(times[i])
        out.append(
            Candle(
                timestamp=format_timestamp(t),
                time=t,
                open=round(float(open_[i]), 6),
                high=round(float(high[i]), 6),
                low=round(float(low[i]), 6),
                close=round(float(close[i]), 6),
                volume=round(float(volume[i]), 6),
            )
        )
    return out


def _parse_value(text: str) -> Any:
    v = text.strip()
    low = v.lower()
    if low in ("true", "false"):
        return low == "true"
    for cast in (int, float):
        try:
            return cast(v)
        except ValueError:
            pass
    return v


def parse_indicator_arg(text: str) -> Tuple[str, Dict[str, Any]]:
    """`RSI` or `RSI:period=7,source=hl2` -> ("RSI", {"period": 7, "source": "hl2"})."""
    indicator_id, _, rest = text.partition(":")
    indicator_id = indicator_id.strip()
    if not indicator_id:
        raise argparse.ArgumentTypeError(f"Invalid indicator: {text!r}")
    config: Dict[str, Any] = {}
    for part in rest.split(","):
        if not part.strip():
            continue
        key, sep, value = part.partition("=")
        if not sep or not key.strip():
            raise argparse.ArgumentTypeError(f"Invalid indicator option {part!r} in {text!r}")
        config[key.strip()] = _parse_value(value)
    return indicator_id, config


def main(argv: Optional[list[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Headless candle series + indicator dump (no UI).")
    ap.add_argument("--asset", required=True, help="Asset id on the candle endpoint")
    ap.add_argument("--timeframe", type=int, default=5, choices=TIMEFRAMES, help="Bucket width in minutes")
    source_group = ap.add_mutually_exclusive_group(required=True)
    source_group.add_argument("--base-url", help="Candle API base url, e.g. http://localhost:8000")
    source_group.add_argument("--demo", type=int, metavar="N", help="Serve N synthetic candles from memory instead")
    ap.add_argument("--pages", type=int, default=0, help="History pages to load after the initial page")
    ap.add_argument("--limit", type=int, default=None, help="Rows per page (default: feed config)")
    ap.add_argument("--series", default="ohlc", choices=SERIES_TYPES)
    ap.add_argument("--color-mode", default="dark", choices=sorted(VOLUME_COLORS))
    ap.add_argument(
        "--indicator",
        action="append",
        default=[],
        type=parse_indicator_arg,
        help="Indicator id with optional overrides, e.g. RSI:period=7 (repeatable)",
    )
    ap.add_argument("--refresh", action="store_true", help="Merge one latest-window refresh before output")
    ap.add_argument("--timeout", type=float, default=10.0)
    ap.add_argument("--verbose", "-v", action="store_true")
    args = ap.parse_args(argv)

    try:
        faulthandler.enable(all_threads=True)
    except (AttributeError, ValueError, OSError):
        # stderr without a file descriptor (captured output)
        pass
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    config = FeedConfig(auto_refresh=False)
    if args.limit:
        config.initial_limit = config.load_more_limit = int(args.limit)
    if args.demo is not None:
        if args.demo < 1:
            raise SystemExit("--demo must be >= 1")
        source: Any = MemoryCandleSource(demo_candles(int(args.demo), args.timeframe))
    else:
        source = HttpCandleSource(SourceConfig(base_url=args.base_url, timeout=float(args.timeout)))

    indicators = IndicatorSet()
    requested = []
    for indicator_id, overrides in args.indicator:
        if indicator_id not in indicators.registry:
            found = ", ".join(sorted(d.id for d in indicators.registry.definitions()))
            raise SystemExit(f"Unknown indicator: {indicator_id}. available=[{found}]")
        ok, errors = indicators.registry.validate_config(indicator_id, overrides)
        if not ok:
            raise SystemExit(f"Invalid config for {indicator_id}: {'; '.join(errors)}")
        requested.append(indicators.add(indicator_id, overrides))

    feed = CandleFeed(source, config)
    try:
        if not feed.load_initial(args.asset, args.timeframe):
            print(feed.error_initial or "Failed to load candle data", file=sys.stderr)
            return 1
        for _ in range(max(0, int(args.pages))):
            if not feed.has_more:
                break
            feed.load_more_history()
        if args.refresh:
            feed.fetch_latest()
    finally:
        if isinstance(source, HttpCandleSource):
            source.close()

    snapshot = derive_series(None, feed.candles, args.series, args.color_mode, key=(args.asset, args.timeframe))
    results = {calc.instance.instance_id: calc for calc in indicators.compute(feed.candles)}
    doc = {
        "asset": args.asset,
        "timeframe": args.timeframe,
        "candles": len(feed.candles),
        "has_more": feed.has_more,
        "series": list(snapshot.series_data),
        "volume": list(snapshot.volume_data),
        "has_valid_volume": snapshot.has_valid_volume,
        "indicators": [],
    }
    for instance_id in requested:
        calc = results.get(instance_id)
        if calc is None:
            continue
        doc["indicators"].append(
            {
                "id": calc.definition.id,
                "config": calc.instance.config,
                "category": calc.definition.category,
                "output": calc.output,
                "error": calc.error,
            }
        )
    json.dump(doc, sys.stdout)
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
