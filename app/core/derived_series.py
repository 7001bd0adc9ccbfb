"""
Chart-ready series derived from a candle set.

`derive_series(previous, candles, ...)` is a pure function from the previous
snapshot and the current inputs to a new frozen `SeriesSnapshot`:

1. exact hit: nothing relevant changed, the previous snapshot is returned as-is
2. history append: only older candles were added behind the known set, so just
   those are converted and prepended to the cached arrays
3. rebuild: a single oldest -> newest pass over the whole set

Paths 1 and 2 always produce the same arrays a rebuild would. Candles are given
newest-first, the way `CandleFeed` holds them; all produced arrays are
oldest-first.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from core.candles import candle_fingerprint
from core.models import Candle


logger = logging.getLogger(__name__)

SERIES_TYPES = ("ohlc", "price", "volume")

# (up, down) volume bar colors per theme.
VOLUME_COLORS: Dict[str, Tuple[str, str]] = {
    "dark": ("rgba(34, 197, 94, 0.8)", "rgba(239, 68, 68, 0.8)"),
    "light": ("rgba(16, 185, 129, 0.8)", "rgba(244, 63, 94, 0.85)"),
}

PATH_HIT = "hit"
PATH_APPEND = "append"
PATH_REBUILD = "rebuild"


@dataclass(frozen=True)
class SeriesSnapshot:
    key: Any
    series_type: str
    color_mode: str
    count: int
    oldest: Optional[str]
    newest: Optional[str]
    newest_fingerprint: Optional[Tuple[float, ...]]
    series_data: Tuple[Dict[str, Any], ...]
    volume_data: Tuple[Dict[str, Any], ...]
    has_valid_volume: bool
    seen: FrozenSet[str]
    # Close of the oldest emitted candle; its volume bar is recolored when older data lands.
    first_close: Optional[float]
    path: str = PATH_REBUILD

    def as_dict(self) -> Dict[str, Any]:
        return {
            "series_data": list(self.series_data),
            "volume_data": list(self.volume_data),
            "has_valid_volume": self.has_valid_volume,
        }


def _validate(series_type: str, color_mode: str) -> None:
    if series_type not in SERIES_TYPES:
        raise ValueError(f"Unknown series type: {series_type!r}")
    if color_mode not in VOLUME_COLORS:
        raise ValueError(f"Unknown color mode: {color_mode!r}")


def _series_point(candle: Candle, series_type: str) -> Optional[Dict[str, Any]]:
    if series_type == "ohlc":
        return {"time": candle.time, "open": candle.open, "high": candle.high, "low": candle.low, "close": candle.close}
    if series_type == "price":
        return {"time": candle.time, "value": candle.close}
    return None


def _volume_point(candle: Candle, previous_close: float, colors: Tuple[str, str]) -> Dict[str, Any]:
    up, down = colors
    return {"time": candle.time, "value": candle.volume, "color": up if candle.close >= previous_close else down}


def _convert(
    candles_oldest_first: Iterable[Candle],
    series_type: str,
    colors: Tuple[str, str],
    seen: FrozenSet[str] = frozenset(),
) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]], List[str], Optional[float], Optional[float], bool]:
    """One chronological pass: (series, volume, new timestamps, first close, last close, any volume)."""
    series: List[Dict[str, Any]] = []
    volume: List[Dict[str, Any]] = []
    added: List[str] = []
    batch_seen = set()
    first_close: Optional[float] = None
    prev_close: Optional[float] = None
    any_volume = False
    for candle in candles_oldest_first:
        ts = candle.timestamp
        if ts in seen or ts in batch_seen:
            continue
        batch_seen.add(ts)
        added.append(ts)
        point = _series_point(candle, series_type)
        if point is not None:
            series.append(point)
        volume.append(_volume_point(candle, candle.close if prev_close is None else prev_close, colors))
        if first_close is None:
            first_close = candle.close
        prev_close = candle.close
        if candle.volume > 0:
            any_volume = True
    return series, volume, added, first_close, prev_close, any_volume


def _rebuild(key: Any, candles: Sequence[Candle], series_type: str, color_mode: str) -> SeriesSnapshot:
    series, volume, added, first_close, _, any_volume = _convert(
        reversed(candles), series_type, VOLUME_COLORS[color_mode]
    )
    newest = candles[0] if candles else None
    return SeriesSnapshot(
        key=key,
        series_type=series_type,
        color_mode=color_mode,
        count=len(candles),
        oldest=candles[-1].timestamp if candles else None,
        newest=newest.timestamp if newest else None,
        newest_fingerprint=candle_fingerprint(newest) if newest else None,
        series_data=tuple(series),
        volume_data=tuple(volume),
        has_valid_volume=any_volume,
        seen=frozenset(added),
        first_close=first_close,
        path=PATH_REBUILD,
    )


def _is_exact_hit(prev: SeriesSnapshot, candles: Sequence[Candle]) -> bool:
    if prev.count != len(candles):
        return False
    if not candles:
        return True
    return (
        prev.oldest == candles[-1].timestamp
        and prev.newest == candles[0].timestamp
        and prev.newest_fingerprint == candle_fingerprint(candles[0])
    )


def _is_history_append(prev: SeriesSnapshot, candles: Sequence[Candle]) -> bool:
    if prev.count == 0 or len(candles) <= prev.count:
        return False
    newest = candles[0]
    if prev.newest != newest.timestamp or prev.newest_fingerprint != candle_fingerprint(newest):
        return False
    if prev.oldest == candles[-1].timestamp:
        return False
    # The known set must still end where it did; the new rows sit strictly behind it.
    return candles[prev.count - 1].timestamp == prev.oldest


def _append(prev: SeriesSnapshot, candles: Sequence[Candle]) -> Optional[SeriesSnapshot]:
    appended = candles[prev.count:]
    if any(c.timestamp in prev.seen for c in appended):
        # Overlap with known bars changes which duplicate a rebuild keeps.
        return None
    colors = VOLUME_COLORS[prev.color_mode]
    series, volume, added, first_close, last_close, any_volume = _convert(
        reversed(appended), prev.series_type, colors
    )
    volume_data = prev.volume_data
    if volume and volume_data:
        # The former oldest bar now has a previous close.
        boundary = dict(volume_data[0])
        up, down = colors
        boundary["color"] = up if prev.first_close >= last_close else down
        volume_data = (boundary,) + volume_data[1:]
    return SeriesSnapshot(
        key=prev.key,
        series_type=prev.series_type,
        color_mode=prev.color_mode,
        count=len(candles),
        oldest=candles[-1].timestamp,
        newest=prev.newest,
        newest_fingerprint=prev.newest_fingerprint,
        series_data=tuple(series) + prev.series_data,
        volume_data=tuple(volume) + volume_data,
        has_valid_volume=prev.has_valid_volume or any_volume,
        seen=prev.seen.union(added),
        first_close=first_close if first_close is not None else prev.first_close,
        path=PATH_APPEND,
    )


def derive_series(
    previous: Optional[SeriesSnapshot],
    candles: Sequence[Candle],
    series_type: str = "ohlc",
    color_mode: str = "dark",
    key: Any = None,
) -> SeriesSnapshot:
    _validate(series_type, color_mode)
    reusable = (
        previous is not None
        and previous.key == key
        and previous.series_type == series_type
        and previous.color_mode == color_mode
    )
    if reusable:
        if _is_exact_hit(previous, candles):
            if previous.path == PATH_HIT:
                return previous
            return _with_path(previous, PATH_HIT)
        if _is_history_append(previous, candles):
            snapshot = _append(previous, candles)
            if snapshot is not None:
                logger.debug("Series append: +%d candles", len(candles) - previous.count)
                return snapshot
    return _rebuild(key, candles, series_type, color_mode)


def _with_path(snapshot: SeriesSnapshot, path: str) -> SeriesSnapshot:
    return SeriesSnapshot(**{**snapshot.__dict__, "path": path})


class DerivedSeriesCache:
    """Holds the latest snapshot for one chart; a key change forces a rebuild."""

    def __init__(self) -> None:
        self._snapshot: Optional[SeriesSnapshot] = None

    @property
    def snapshot(self) -> Optional[SeriesSnapshot]:
        return self._snapshot

    def update(
        self,
        candles: Sequence[Candle],
        series_type: str = "ohlc",
        color_mode: str = "dark",
        key: Any = None,
    ) -> SeriesSnapshot:
        self._snapshot = derive_series(self._snapshot, candles, series_type, color_mode, key)
        return self._snapshot

    def clear(self) -> None:
        self._snapshot = None


QUICK_INDICATORS = ("RSI", "ATR", "EMA", "BollingerBands")
QUICK_EMA_PERIOD = 14


def derive_indicator_series(
    candles: Sequence[Candle],
    active_indicators: Iterable[str],
    registry: Any = None,
) -> Dict[str, List[Dict[str, Any]]]:
    """
    Quick indicator series for the chart toolbar toggles.

    Each series is empty unless its id is active. Lookbacks shrink to the loaded
    history so a short set still plots something.
    """
    active = set(active_indicators)
    out: Dict[str, List[Dict[str, Any]]] = {"rsi": [], "atr": [], "ema": [], "bollinger_bands": []}
    if not candles or not active.intersection(QUICK_INDICATORS):
        return out
    if registry is None:
        from core.indicator_registry import default_registry

        registry = default_registry()
    points = [c.to_point() for c in reversed(candles)]
    n = len(points)
    if "RSI" in active and n > 2:
        out["rsi"] = registry.calculate("RSI", points, {"period": min(14, n - 1)})["data"]
    if "ATR" in active and n >= 2:
        out["atr"] = registry.calculate("ATR", points, {"period": min(14, n)})["data"]
    if "EMA" in active and n >= 2:
        out["ema"] = registry.calculate("EMA", points, {"period": min(QUICK_EMA_PERIOD, n)})["data"]
    if "BollingerBands" in active and n >= 5:
        bands = registry.calculate("BollingerBands", points, {"period": min(20, n)})
        out["bollinger_bands"] = [
            {"time": u["time"], "upper": u["value"], "middle": m["value"], "lower": l["value"]}
            for u, m, l in zip(bands["upper"], bands["middle"], bands["lower"])
        ]
    return out
