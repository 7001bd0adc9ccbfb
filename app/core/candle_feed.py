"""
Candle ingestion state for one chart.

`CandleFeed` owns the candle set (newest-first), the pagination cursor and the
loading/error flags, and implements the three update modes:

- initial load: fresh fetch that replaces the set wholesale
- history backfill: next page via the cursor, deduplicated and appended as older data
- latest refresh: small newest window merged by timestamp

Every request is stamped with the feed's generation. `reset()` bumps the
generation, so a response that arrives after an asset/timeframe switch is
dropped by the matching `apply_*` method instead of being merged.

The blocking `load_initial` / `load_more_history` / `fetch_latest` methods
call the source inline. Asynchronous drivers (see `feed_controller`) use the
request/apply halves directly.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from core.candles import sort_key, validate_timeframe
from core.models import Candle, CandlePage, FeedConfig, FetchRequest


logger = logging.getLogger(__name__)

INITIAL_LOAD_ERROR = "Failed to load candle data"


def unique_candles(candles: Iterable[Candle]) -> List[Candle]:
    """Drop repeated timestamps, keeping the first occurrence."""
    seen = set()
    out: List[Candle] = []
    for candle in candles:
        if candle.timestamp in seen:
            continue
        seen.add(candle.timestamp)
        out.append(candle)
    return out


class CandleFeed:
    def __init__(self, source: Any, config: Optional[FeedConfig] = None) -> None:
        self.source = source
        self.config = config or FeedConfig()
        self.asset_id: Any = None
        self.timeframe: Optional[int] = None
        self.generation = 0
        self.candles: List[Candle] = []
        self.next_cursor: Optional[str] = None
        self.has_more = True
        self.loading_initial = False
        self.error_initial: Optional[str] = None
        self.loading_more = False

    def __len__(self) -> int:
        return len(self.candles)

    def reset(self, asset_id: Any, timeframe: int) -> int:
        self.timeframe = validate_timeframe(timeframe)
        self.asset_id = asset_id
        self.generation += 1
        self.candles = []
        self.next_cursor = None
        self.has_more = True
        self.loading_initial = False
        self.error_initial = None
        self.loading_more = False
        return self.generation

    def is_current(self, generation: int) -> bool:
        return generation == self.generation

    # Request builders

    def initial_request(self) -> Optional[FetchRequest]:
        if self.asset_id is None or self.timeframe is None:
            return None
        self.loading_initial = True
        self.error_initial = None
        return FetchRequest("initial", self.generation, self.asset_id, self.timeframe, self.config.initial_limit)

    def begin_load_more(self) -> Optional[FetchRequest]:
        """History request, or None while a page is in flight, history is exhausted or no cursor exists."""
        if self.asset_id is None or self.loading_more or not self.has_more or not self.next_cursor:
            return None
        self.loading_more = True
        return FetchRequest(
            "history",
            self.generation,
            self.asset_id,
            self.timeframe,
            self.config.load_more_limit,
            self.next_cursor,
        )

    def latest_request(self) -> Optional[FetchRequest]:
        if self.asset_id is None or self.timeframe is None:
            return None
        return FetchRequest("latest", self.generation, self.asset_id, self.timeframe, self.config.refresh_limit)

    # Appliers. Each returns falsy and leaves state alone when `generation` is stale.

    def apply_initial(self, generation: int, page: CandlePage) -> bool:
        if not self.is_current(generation):
            logger.debug("Dropping stale initial page (generation %s != %s)", generation, self.generation)
            return False
        self.candles = unique_candles(page.candles)
        self.next_cursor = page.next_cursor
        self.has_more = bool(page.has_next)
        self.loading_initial = False
        self.error_initial = None
        return True

    def fail_initial(self, generation: int, exc: BaseException) -> bool:
        if not self.is_current(generation):
            return False
        logger.warning("Initial candle load failed for %s/%s: %s", self.asset_id, self.timeframe, exc)
        self.candles = []
        self.loading_initial = False
        self.error_initial = INITIAL_LOAD_ERROR
        return True

    def accept_history_page(self, generation: int, page: CandlePage) -> Optional[List[Candle]]:
        """
        Record the cursor of a history page and hand back its rows.

        The rows are merged by `append_history`, which the caller may run later
        (on an idle tick); the cursor moves on immediately so the next backfill
        never re-requests the same page.
        """
        if not self.is_current(generation):
            logger.debug("Dropping stale history page (generation %s != %s)", generation, self.generation)
            return None
        self.loading_more = False
        if not page.candles:
            self.has_more = False
            return []
        self.next_cursor = page.next_cursor
        self.has_more = bool(page.has_next)
        return list(page.candles)

    def append_history(self, generation: int, rows: Iterable[Candle]) -> int:
        if not self.is_current(generation):
            return 0
        existing = {c.timestamp for c in self.candles}
        older = [c for c in unique_candles(rows) if c.timestamp not in existing]
        if older:
            self.candles = self.candles + older
        return len(older)

    def fail_history(self, generation: int, exc: BaseException) -> bool:
        if not self.is_current(generation):
            return False
        # Pagination is best-effort; the set simply stops growing.
        logger.warning("History page failed for %s/%s, stopping backfill: %s", self.asset_id, self.timeframe, exc)
        self.loading_more = False
        self.has_more = False
        return True

    def apply_latest(self, generation: int, page: CandlePage) -> bool:
        """Merge a newest-window page by timestamp. Returns True when the set changed."""
        if not self.is_current(generation) or not page.candles:
            return False
        if not self.candles:
            self.candles = unique_candles(page.candles)
            return True
        by_ts: Dict[str, Candle] = {c.timestamp: c for c in self.candles}
        has_new = False
        changed = False
        for candle in page.candles:
            previous = by_ts.get(candle.timestamp)
            if previous is None:
                has_new = True
            if previous != candle:
                changed = True
            by_ts[candle.timestamp] = candle
        if not changed:
            return False
        merged = list(by_ts.values())
        # Value updates keep their slot; only a new timestamp needs the full sort.
        if has_new:
            merged.sort(key=sort_key, reverse=True)
        self.candles = merged
        return True

    # Blocking drivers

    def _fetch(self, request: FetchRequest) -> CandlePage:
        return self.source.fetch_page(request.asset_id, request.timeframe, request.limit, request.cursor)

    def load_initial(self, asset_id: Any = None, timeframe: Optional[int] = None) -> bool:
        if asset_id is None:
            asset_id = self.asset_id
        if timeframe is None:
            timeframe = self.timeframe
        if asset_id is None or timeframe is None:
            return False
        self.reset(asset_id, timeframe)
        request = self.initial_request()
        try:
            page = self._fetch(request)
        except Exception as exc:
            self.fail_initial(request.generation, exc)
            return False
        return self.apply_initial(request.generation, page)

    def load_more_history(self) -> int:
        request = self.begin_load_more()
        if request is None:
            return 0
        try:
            page = self._fetch(request)
        except Exception as exc:
            self.fail_history(request.generation, exc)
            return 0
        rows = self.accept_history_page(request.generation, page)
        if not rows:
            return 0
        return self.append_history(request.generation, rows)

    def fetch_latest(self) -> bool:
        request = self.latest_request()
        if request is None:
            return False
        try:
            page = self._fetch(request)
        except Exception as exc:
            logger.debug("Refresh failed for %s/%s: %s", self.asset_id, self.timeframe, exc)
            return False
        return self.apply_latest(request.generation, page)
