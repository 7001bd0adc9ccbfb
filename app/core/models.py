from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass(frozen=True)
class Candle:
    # Wire timestamp string; unique key within a candle set.
    timestamp: str
    # Epoch seconds (UTC), the chart timescale key.
    time: int
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0
    trade_count: Optional[int] = None
    vwap: Optional[float] = None

    def to_point(self) -> Dict[str, float]:
        return {
            "time": self.time,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
        }


@dataclass
class CandlePage:
    # Newest-first, as served.
    candles: List[Candle] = field(default_factory=list)
    next_cursor: Optional[str] = None
    has_next: bool = False


@dataclass
class FeedConfig:
    initial_limit: int = 1000
    load_more_limit: int = 1000
    refresh_limit: int = 5
    refresh_interval_ms: int = 2000
    # History pages at least this large are applied on an idle tick.
    defer_append_threshold: int = 200
    auto_refresh: bool = True


@dataclass
class SourceConfig:
    base_url: str
    timeout: float = 10.0
    compact: bool = True
    headers: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class FetchRequest:
    # "initial", "history" or "latest"
    mode: str
    generation: int
    asset_id: object
    timeframe: int
    limit: int
    cursor: Optional[str] = None
