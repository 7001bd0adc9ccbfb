"""
Candle decoding at the ingestion boundary.

The candle endpoint serves pages newest-first either as positional rows
(`format=compact`, the default):

    {"columns": [...], "results": [[ts, "o", "h", "l", "c", "v", trades, "vwap"|null], ...],
     "next_cursor": "<iso ts>"|null, "has_next": bool}

or as objects (`format=object`) with the same fields by name. Prices arrive as
decimal strings. Rows are decoded into `Candle` immediately and never kept.
"""

from __future__ import annotations

from datetime import datetime, timezone
import math
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple

from core.models import Candle, CandlePage


COLUMNS = ("timestamp", "open", "high", "low", "close", "volume", "trade_count", "vwap")
COL_TS, COL_OPEN, COL_HIGH, COL_LOW, COL_CLOSE, COL_VOLUME, COL_TRADES, COL_VWAP = range(len(COLUMNS))

# Supported bucket widths in minutes.
TIMEFRAMES: Tuple[int, ...] = (1, 5, 15, 30, 60, 240, 1440)

MAX_PAGE_LIMIT = 5000


def validate_timeframe(timeframe: Any) -> int:
    try:
        minutes = int(timeframe)
    except (TypeError, ValueError):
        raise ValueError(f"Unsupported timeframe: {timeframe!r}") from None
    if minutes not in TIMEFRAMES:
        raise ValueError(f"Unsupported timeframe: {timeframe!r} (supported: {list(TIMEFRAMES)})")
    return minutes


def timeframe_to_ms(timeframe: int) -> int:
    return validate_timeframe(timeframe) * 60_000


def parse_timestamp(value: str) -> datetime:
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def time_key(timestamp: str) -> int:
    """Wire timestamp -> epoch seconds used as the chart time key."""
    return int(parse_timestamp(timestamp).timestamp())


def format_timestamp(seconds: int) -> str:
    return datetime.fromtimestamp(int(seconds), tz=timezone.utc).isoformat()


def _to_float(value: Any, default: Optional[float] = 0.0) -> Optional[float]:
    if value is None or value == "":
        return default
    try:
        num = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(num):
        return default
    return num


def _to_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _price(value: Any, field: str) -> float:
    num = _to_float(value, None)
    if num is None:
        raise ValueError(f"Invalid {field}: {value!r}")
    return num


def decode_row(row: Sequence[Any]) -> Candle:
    """Decode one compact row. Missing or malformed volume reads as 0."""
    if len(row) < 5:
        raise ValueError(f"Compact row too short: {row!r}")

    def col(i: int) -> Any:
        return row[i] if len(row) > i else None

    ts = str(row[COL_TS])
    return Candle(
        timestamp=ts,
        time=time_key(ts),
        open=_price(row[COL_OPEN], "open"),
        high=_price(row[COL_HIGH], "high"),
        low=_price(row[COL_LOW], "low"),
        close=_price(row[COL_CLOSE], "close"),
        volume=max(0.0, _to_float(col(COL_VOLUME)) or 0.0),
        trade_count=_to_int(col(COL_TRADES)),
        vwap=_to_float(col(COL_VWAP), None),
    )


def decode_object(obj: Mapping[str, Any]) -> Candle:
    return decode_row([obj.get(name) for name in COLUMNS])


def parse_response(payload: Mapping[str, Any]) -> CandlePage:
    if not isinstance(payload, Mapping):
        raise ValueError("Candle response must be a JSON object")
    rows = payload.get("results") or []
    candles: List[Candle] = []
    for row in rows:
        if isinstance(row, Mapping):
            candles.append(decode_object(row))
        else:
            candles.append(decode_row(row))
    cursor = payload.get("next_cursor")
    return CandlePage(
        candles=candles,
        next_cursor=str(cursor) if cursor else None,
        has_next=bool(payload.get("has_next", False)),
    )


def encode_row(candle: Candle) -> List[Any]:
    return [
        candle.timestamp,
        str(candle.open),
        str(candle.high),
        str(candle.low),
        str(candle.close),
        str(candle.volume),
        candle.trade_count,
        str(candle.vwap) if candle.vwap is not None else None,
    ]


def candle_fingerprint(candle: Candle) -> Tuple[float, float, float, float, float]:
    return (candle.open, candle.high, candle.low, candle.close, candle.volume)


def sort_key(candle: Candle) -> Tuple[int, str]:
    return (candle.time, candle.timestamp)


def chronological(candles: Iterable[Candle]) -> List[Candle]:
    """Oldest-first copy of a candle set held newest-first."""
    return sorted(candles, key=sort_key)


def to_points(candles: Iterable[Candle]) -> List[dict]:
    return [c.to_point() for c in chronological(candles)]
