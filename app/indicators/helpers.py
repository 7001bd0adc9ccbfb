from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view


@dataclass
class SeriesBundle:
    time: np.ndarray
    open: np.ndarray
    high: np.ndarray
    low: np.ndarray
    close: np.ndarray
    volume: np.ndarray

    def __len__(self) -> int:
        return int(self.close.size)


def bars_to_numpy(bars: List[Iterable[float]]) -> np.ndarray:
    if not bars:
        return np.empty((0, 6), dtype=np.float64)
    arr = np.asarray(bars, dtype=np.float64)
    if arr.ndim == 1:
        arr = np.expand_dims(arr, 0)
    if arr.shape[1] < 6:
        pad = np.zeros((arr.shape[0], 6 - arr.shape[1]), dtype=np.float64)
        arr = np.hstack((arr, pad))
    return arr[:, :6]


def series_bundle(bars_np: np.ndarray) -> SeriesBundle:
    if bars_np.size == 0:
        empty = np.empty(0, dtype=np.float64)
        return SeriesBundle(empty.astype(np.int64), empty, empty, empty, empty, empty)
    volume = np.nan_to_num(bars_np[:, 5], nan=0.0)
    return SeriesBundle(
        time=bars_np[:, 0].astype(np.int64),
        open=bars_np[:, 1],
        high=bars_np[:, 2],
        low=bars_np[:, 3],
        close=bars_np[:, 4],
        volume=volume,
    )


def source_series(bundle: SeriesBundle, source: str) -> np.ndarray:
    if source == "open":
        return bundle.open.copy()
    if source == "high":
        return bundle.high.copy()
    if source == "low":
        return bundle.low.copy()
    if source == "hl2":
        return (bundle.high + bundle.low) / 2.0
    if source == "hlc3":
        return typical_price(bundle.high, bundle.low, bundle.close)
    if source == "ohlc4":
        return (bundle.open + bundle.high + bundle.low + bundle.close) / 4.0
    return bundle.close.copy()


def typical_price(high: Iterable[float], low: Iterable[float], close: Iterable[float]) -> np.ndarray:
    h = np.asarray(high, dtype=np.float64)
    l = np.asarray(low, dtype=np.float64)
    c = np.asarray(close, dtype=np.float64)
    return (h + l + c) / 3.0


def _windows(arr: np.ndarray, period: int) -> np.ndarray:
    return sliding_window_view(arr, period)


def _first_valid(arr: np.ndarray) -> int:
    idx = np.flatnonzero(~np.isnan(arr))
    return int(idx[0]) if idx.size else -1


def sma(values: Iterable[float], period: int) -> np.ndarray:
    """Trailing arithmetic mean; NaN until `period` values (or while a window holds a NaN)."""
    arr = np.asarray(values, dtype=np.float64)
    n = arr.size
    out = np.full(n, np.nan, dtype=np.float64)
    if period <= 0 or n < period:
        return out
    out[period - 1:] = _windows(arr, period).mean(axis=1)
    return out


def ema(values: Iterable[float], period: int) -> np.ndarray:
    """
    Exponential moving average seeded with the SMA of the first `period` values.

    Leading NaNs shift the seed, so an EMA of an already-offset series (MACD line,
    OBV, true range) stays aligned with its input by index. Interior NaNs carry
    the previous value forward.
    """
    return _seeded(values, period, 2.0 / (period + 1.0) if period > 0 else 0.0)


def wilder(values: Iterable[float], period: int) -> np.ndarray:
    """Wilder smoothing: SMA seed, then avg = (avg * (period - 1) + value) / period."""
    arr = np.asarray(values, dtype=np.float64)
    n = arr.size
    out = np.full(n, np.nan, dtype=np.float64)
    if period <= 0:
        return out
    start = _first_valid(arr)
    if start < 0:
        return out
    seed_end = start + period - 1
    if seed_end >= n:
        return out
    avg = float(np.mean(arr[start:seed_end + 1]))
    out[seed_end] = avg
    for i in range(seed_end + 1, n):
        v = arr[i]
        if not np.isnan(v):
            avg = (avg * (period - 1) + v) / period
        out[i] = avg
    return out


def _seeded(values: Iterable[float], period: int, alpha: float) -> np.ndarray:
    arr = np.asarray(values, dtype=np.float64)
    n = arr.size
    out = np.full(n, np.nan, dtype=np.float64)
    if period <= 0:
        return out
    start = _first_valid(arr)
    if start < 0:
        return out
    seed_end = start + period - 1
    if seed_end >= n:
        return out
    prev = float(np.mean(arr[start:seed_end + 1]))
    out[seed_end] = prev
    for i in range(seed_end + 1, n):
        v = arr[i]
        if not np.isnan(v):
            prev = (v - prev) * alpha + prev
        out[i] = prev
    return out


def wma(values: Iterable[float], period: int) -> np.ndarray:
    arr = np.asarray(values, dtype=np.float64)
    n = arr.size
    out = np.full(n, np.nan, dtype=np.float64)
    if period <= 0 or n < period:
        return out
    weights = np.arange(1, period + 1, dtype=np.float64)
    out[period - 1:] = _windows(arr, period) @ weights / weights.sum()
    return out


def vwma(values: Iterable[float], volume: Iterable[float], period: int) -> np.ndarray:
    arr = np.asarray(values, dtype=np.float64)
    vol = np.asarray(volume, dtype=np.float64)
    n = arr.size
    out = np.full(n, np.nan, dtype=np.float64)
    if period <= 0 or n < period:
        return out
    pv = _windows(arr * vol, period).sum(axis=1)
    vv = _windows(vol, period).sum(axis=1)
    with np.errstate(divide="ignore", invalid="ignore"):
        # A window without volume falls back to the plain average.
        out[period - 1:] = np.where(vv != 0, pv / vv, _windows(arr, period).mean(axis=1))
    return out


def std_dev(values: Iterable[float], period: int) -> np.ndarray:
    """Population standard deviation of the trailing window around its SMA."""
    arr = np.asarray(values, dtype=np.float64)
    n = arr.size
    out = np.full(n, np.nan, dtype=np.float64)
    if period <= 0 or n < period:
        return out
    windows = _windows(arr, period)
    mean = sma(arr, period)[period - 1:]
    out[period - 1:] = np.sqrt(np.mean((windows - mean[:, None]) ** 2, axis=1))
    return out


def highest(values: Iterable[float], period: int) -> np.ndarray:
    arr = np.asarray(values, dtype=np.float64)
    n = arr.size
    out = np.full(n, np.nan, dtype=np.float64)
    if period <= 0 or n < period:
        return out
    out[period - 1:] = _windows(arr, period).max(axis=1)
    return out


def lowest(values: Iterable[float], period: int) -> np.ndarray:
    arr = np.asarray(values, dtype=np.float64)
    n = arr.size
    out = np.full(n, np.nan, dtype=np.float64)
    if period <= 0 or n < period:
        return out
    out[period - 1:] = _windows(arr, period).min(axis=1)
    return out


def true_range(high: Iterable[float], low: Iterable[float], close: Iterable[float]) -> np.ndarray:
    h = np.asarray(high, dtype=np.float64)
    l = np.asarray(low, dtype=np.float64)
    c = np.asarray(close, dtype=np.float64)
    n = c.size
    tr = np.empty(n, dtype=np.float64)
    if n == 0:
        return tr
    tr[0] = h[0] - l[0]
    if n > 1:
        prev_close = c[:-1]
        tr[1:] = np.maximum.reduce([h[1:] - l[1:], np.abs(h[1:] - prev_close), np.abs(l[1:] - prev_close)])
    return tr


def _rsi_value(avg_gain: float, avg_loss: float) -> float:
    if avg_loss == 0:
        return 100.0
    return 100.0 - 100.0 / (1.0 + avg_gain / avg_loss)


def rsi(values: Iterable[float], period: int) -> np.ndarray:
    """Wilder RSI; the first value lands on index `period` (one delta per bar after the first)."""
    arr = np.asarray(values, dtype=np.float64)
    n = arr.size
    out = np.full(n, np.nan, dtype=np.float64)
    if period <= 0 or n <= period:
        return out
    delta = np.diff(arr)
    gains = np.where(delta >= 0, delta, 0.0)
    losses = np.where(delta < 0, -delta, 0.0)
    avg_gain = float(np.mean(gains[:period]))
    avg_loss = float(np.mean(losses[:period]))
    out[period] = _rsi_value(avg_gain, avg_loss)
    for i in range(period + 1, n):
        avg_gain = (avg_gain * (period - 1) + gains[i - 1]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i - 1]) / period
        out[i] = _rsi_value(avg_gain, avg_loss)
    return out


def stochastic(high: Iterable[float], low: Iterable[float], close: Iterable[float], period: int) -> np.ndarray:
    """Raw %K in [0, 100]; a flat window reads 50."""
    c = np.asarray(close, dtype=np.float64)
    hh = highest(high, period)
    ll = lowest(low, period)
    rng = hh - ll
    with np.errstate(divide="ignore", invalid="ignore"):
        k = np.where(rng == 0, 50.0, (c - ll) / rng * 100.0)
    k[np.isnan(rng)] = np.nan
    return k
