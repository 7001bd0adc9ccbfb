from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

import requests

from core.candles import MAX_PAGE_LIMIT, chronological, parse_response, time_key, validate_timeframe
from core.models import Candle, CandlePage, SourceConfig


logger = logging.getLogger(__name__)


class CandleSourceError(RuntimeError):
    pass


class HttpCandleSource:
    """Cursor-paginated candle endpoint: GET {base_url}/api/assets/{id}/candles_v3/."""

    def __init__(self, config: SourceConfig, session: Optional[requests.Session] = None) -> None:
        self.config = config
        self._session = session or requests.Session()
        if config.headers:
            self._session.headers.update(config.headers)

    def url_for(self, asset_id: Any) -> str:
        return f"{self.config.base_url.rstrip('/')}/api/assets/{asset_id}/candles_v3/"

    def fetch_page(self, asset_id: Any, timeframe: int, limit: int, cursor: Optional[str] = None) -> CandlePage:
        params: Dict[str, Any] = {
            "timeframe": validate_timeframe(timeframe),
            "limit": max(1, min(int(limit), MAX_PAGE_LIMIT)),
            "format": "compact" if self.config.compact else "object",
        }
        if cursor:
            params["cursor"] = cursor
        url = self.url_for(asset_id)
        try:
            resp = self._session.get(url, params=params, timeout=self.config.timeout)
            resp.raise_for_status()
            payload = resp.json()
        except requests.RequestException as exc:
            raise CandleSourceError(f"Candle request failed: {exc}") from exc
        except ValueError as exc:
            raise CandleSourceError(f"Candle response is not JSON: {exc}") from exc
        try:
            page = parse_response(payload)
        except (ValueError, TypeError, IndexError) as exc:
            raise CandleSourceError(f"Malformed candle response: {exc}") from exc
        logger.debug("GET %s %s -> %d rows has_next=%s", url, params, len(page.candles), page.has_next)
        return page

    def close(self) -> None:
        self._session.close()


class MemoryCandleSource:
    """
    Offline source with the endpoint's paging semantics.

    Pages are newest-first, `cursor` is the timestamp of the oldest row already
    served and the next page holds rows strictly older than it. Used by the CLI
    demo mode and by tests, which can also inject failures and revise candles
    between refreshes.
    """

    def __init__(self, candles: Iterable[Candle] = ()) -> None:
        self._by_ts: Dict[str, Candle] = {}
        for candle in candles:
            self._by_ts[candle.timestamp] = candle
        self._fail_count = 0
        self.calls: List[Dict[str, Any]] = []

    def __len__(self) -> int:
        return len(self._by_ts)

    def add(self, candle: Candle) -> None:
        self._by_ts[candle.timestamp] = candle

    replace = add

    def fail_next(self, count: int = 1) -> None:
        self._fail_count = max(0, int(count))

    def fetch_page(self, asset_id: Any, timeframe: int, limit: int, cursor: Optional[str] = None) -> CandlePage:
        validate_timeframe(timeframe)
        self.calls.append({"asset_id": asset_id, "timeframe": timeframe, "limit": limit, "cursor": cursor})
        if self._fail_count > 0:
            self._fail_count -= 1
            raise CandleSourceError("Injected failure")
        rows = list(reversed(chronological(self._by_ts.values())))
        if cursor:
            bound = time_key(cursor)
            rows = [c for c in rows if c.time < bound]
        limit = max(1, int(limit))
        page = rows[:limit]
        has_next = len(rows) > limit
        return CandlePage(
            candles=page,
            next_cursor=page[-1].timestamp if has_next and page else None,
            has_next=has_next,
        )
