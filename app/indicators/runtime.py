from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Optional

import numpy as np

from . import helpers


def normalize_bars(bars: Iterable) -> List[List[float]]:
    """Accept OHLCV point dicts or positional rows; drop anything that does not parse."""
    normalized: List[List[float]] = []
    for bar in bars:
        if isinstance(bar, dict):
            try:
                ts = float(bar.get("time", 0))
                o = float(bar.get("open", 0))
                h = float(bar.get("high", 0))
                l = float(bar.get("low", 0))
                c = float(bar.get("close", 0))
                v = float(bar.get("volume") or 0)
            except Exception:
                continue
            normalized.append([ts, o, h, l, c, v])
        else:
            try:
                row = list(bar)
            except Exception:
                continue
            if len(row) < 5:
                continue
            if len(row) < 6 or row[5] is None:
                row = row[:5] + [0.0]
            try:
                normalized.append([float(x) for x in row[:6]])
            except Exception:
                continue
    return normalized


class IndicatorContext:
    def __init__(self, bars_np: np.ndarray) -> None:
        self._bundle = helpers.series_bundle(bars_np)

    def __len__(self) -> int:
        return len(self._bundle)

    def series(self, field: str) -> np.ndarray:
        if field == "volume":
            return self._bundle.volume.copy()
        return helpers.source_series(self._bundle, field)

    def time(self) -> np.ndarray:
        return self._bundle.time.copy()

    def typical_price(self) -> np.ndarray:
        return helpers.typical_price(self._bundle.high, self._bundle.low, self._bundle.close)

    def true_range(self) -> np.ndarray:
        return helpers.true_range(self._bundle.high, self._bundle.low, self._bundle.close)

    def sma(self, values: Iterable[float], period: int) -> np.ndarray:
        return helpers.sma(values, period)

    def ema(self, values: Iterable[float], period: int) -> np.ndarray:
        return helpers.ema(values, period)

    def wma(self, values: Iterable[float], period: int) -> np.ndarray:
        return helpers.wma(values, period)

    def vwma(self, values: Iterable[float], period: int) -> np.ndarray:
        return helpers.vwma(values, self._bundle.volume, period)

    def wilder(self, values: Iterable[float], period: int) -> np.ndarray:
        return helpers.wilder(values, period)

    def std_dev(self, values: Iterable[float], period: int) -> np.ndarray:
        return helpers.std_dev(values, period)

    def highest(self, values: Iterable[float], period: int) -> np.ndarray:
        return helpers.highest(values, period)

    def lowest(self, values: Iterable[float], period: int) -> np.ndarray:
        return helpers.lowest(values, period)

    def rsi(self, values: Iterable[float], period: int) -> np.ndarray:
        return helpers.rsi(values, period)

    def stochastic(self, period: int) -> np.ndarray:
        return helpers.stochastic(self._bundle.high, self._bundle.low, self._bundle.close, period)

    # Output builders. Undefined points are omitted, never zero-filled.

    def points(self, values: Iterable[float]) -> List[Dict[str, Any]]:
        arr = np.asarray(values, dtype=np.float64)
        times = self._bundle.time
        return [
            {"time": int(times[i]), "value": float(arr[i])}
            for i in np.flatnonzero(np.isfinite(arr))
        ]

    def line(self, values: Iterable[float]) -> Dict[str, Any]:
        return {"type": "line", "data": self.points(values)}

    def colored_points(self, values: Iterable[float], up_color: str, down_color: str) -> List[Dict[str, Any]]:
        data = self.points(values)
        for point in data:
            point["color"] = up_color if point["value"] >= 0 else down_color
        return data

    def band(self, upper: Iterable[float], middle: Iterable[float], lower: Iterable[float]) -> Dict[str, Any]:
        u = np.asarray(upper, dtype=np.float64)
        m = np.asarray(middle, dtype=np.float64)
        l = np.asarray(lower, dtype=np.float64)
        # All three lines share one time axis.
        gap = np.isnan(u) | np.isnan(m) | np.isnan(l)
        u, m, l = (np.where(gap, np.nan, arr) for arr in (u, m, l))
        return {"type": "band", "upper": self.points(u), "middle": self.points(m), "lower": self.points(l)}

    def multi_line(self, **series: Optional[List[Dict[str, Any]]]) -> Dict[str, Any]:
        return {"type": "multi-line", "series": {k: v for k, v in series.items() if v is not None}}


def run_calculation(
    bars: Iterable,
    config: Dict[str, Any],
    calculate_fn: Callable[[List[List[float]], Dict[str, Any], IndicatorContext], Dict[str, Any]],
) -> Dict[str, Any]:
    normalized = normalize_bars(bars)
    ctx = IndicatorContext(helpers.bars_to_numpy(normalized))
    return calculate_fn(normalized, config, ctx)
