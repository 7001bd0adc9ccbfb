from __future__ import annotations

import logging
from typing import Any, List, Optional, Set

from PyQt6.QtCore import QObject, QThread, QTimer, pyqtSignal

from core.candle_feed import INITIAL_LOAD_ERROR, CandleFeed
from core.candle_source import CandleSourceError
from core.models import Candle, FeedConfig, FetchRequest


logger = logging.getLogger(__name__)


class PageFetchWorker(QThread):
    page_ready = pyqtSignal(object, object)
    error = pyqtSignal(object, str)

    def __init__(self, source: Any, request: FetchRequest) -> None:
        super().__init__()
        self.source = source
        self.request = request

    def run(self) -> None:
        req = self.request
        try:
            page = self.source.fetch_page(req.asset_id, req.timeframe, req.limit, req.cursor)
            self.page_ready.emit(req, page)
        except Exception as exc:
            self.error.emit(req, str(exc))


class CandleFeedController(QObject):
    """
    Drives a `CandleFeed` from the Qt event loop.

    Fetches run on worker threads; pages come back through queued signals and are
    applied on the controller's thread, so the feed itself is only touched there.
    """

    candles_changed = pyqtSignal()
    loading_changed = pyqtSignal(bool)
    error = pyqtSignal(str)

    def __init__(self, source: Any, config: Optional[FeedConfig] = None, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self.source = source
        self.feed = CandleFeed(source, config)
        self._workers: Set[PageFetchWorker] = set()
        self._refresh_in_flight = 0
        self._auto_refresh = bool(self.feed.config.auto_refresh)
        self._closed = False
        self._refresh_timer = QTimer(self)
        self._refresh_timer.setInterval(int(self.feed.config.refresh_interval_ms))
        self._refresh_timer.timeout.connect(self._on_refresh_tick)

    @property
    def candles(self) -> List[Candle]:
        return self.feed.candles

    @property
    def loading(self) -> bool:
        return self.feed.loading_initial

    @property
    def auto_refresh(self) -> bool:
        return self._auto_refresh

    @property
    def refresh_active(self) -> bool:
        return self._refresh_timer.isActive()

    def set_auto_refresh(self, enabled: bool) -> None:
        self._auto_refresh = bool(enabled)
        self._sync_timer()

    def _sync_timer(self) -> None:
        should_run = (
            self._auto_refresh
            and not self._closed
            and self.feed.asset_id is not None
            and not self.feed.loading_initial
            and self.feed.error_initial is None
        )
        if should_run and not self._refresh_timer.isActive():
            self._refresh_timer.start()
        elif not should_run and self._refresh_timer.isActive():
            self._refresh_timer.stop()

    def _start(self, request: FetchRequest) -> None:
        worker = PageFetchWorker(self.source, request)
        worker.page_ready.connect(self._on_page)
        worker.error.connect(self._on_error)
        worker.finished.connect(self._on_worker_finished)
        self._workers.add(worker)
        worker.start()

    def _on_worker_finished(self) -> None:
        worker = self.sender()
        if isinstance(worker, PageFetchWorker):
            worker.wait()
            self._workers.discard(worker)

    def set_asset(self, asset_id: Any, timeframe: int) -> None:
        """Switch to a new asset/timeframe; responses for the previous one are discarded."""
        if self._closed:
            return
        self._restart(asset_id, timeframe)

    def reload(self) -> None:
        """Fresh initial load of the current asset; pages still in flight are discarded."""
        if self._closed or self.feed.asset_id is None:
            return
        self._restart(self.feed.asset_id, self.feed.timeframe)

    def _restart(self, asset_id: Any, timeframe: int) -> None:
        self.feed.reset(asset_id, timeframe)
        self._refresh_in_flight = 0
        self.candles_changed.emit()
        request = self.feed.initial_request()
        if request is None:
            return
        self._refresh_timer.stop()
        self.loading_changed.emit(True)
        self._start(request)

    def load_more(self) -> bool:
        if self._closed:
            return False
        request = self.feed.begin_load_more()
        if request is None:
            return False
        self._start(request)
        return True

    def refresh(self) -> bool:
        """Fetch the newest window now. Not guarded: overlapping refreshes merge by timestamp."""
        if self._closed or self.feed.loading_initial:
            return False
        request = self.feed.latest_request()
        if request is None:
            return False
        self._refresh_in_flight += 1
        self._start(request)
        return True

    def _on_refresh_tick(self) -> None:
        # Timer ticks only; an outstanding refresh absorbs the tick.
        if not self._refresh_in_flight:
            self.refresh()

    def _refresh_done(self, request: FetchRequest) -> None:
        if self.feed.is_current(request.generation):
            self._refresh_in_flight = max(0, self._refresh_in_flight - 1)

    def _on_page(self, request: FetchRequest, page: Any) -> None:
        if self._closed:
            return
        if request.mode == "initial":
            if self.feed.apply_initial(request.generation, page):
                self.loading_changed.emit(False)
                self.candles_changed.emit()
                self._sync_timer()
        elif request.mode == "history":
            rows = self.feed.accept_history_page(request.generation, page)
            if not rows:
                return
            if len(rows) >= self.feed.config.defer_append_threshold:
                QTimer.singleShot(0, lambda: self._append_history(request.generation, rows))
            else:
                self._append_history(request.generation, rows)
        elif request.mode == "latest":
            self._refresh_done(request)
            if self.feed.apply_latest(request.generation, page):
                self.candles_changed.emit()

    def _append_history(self, generation: int, rows: List[Candle]) -> None:
        if self._closed:
            return
        added = self.feed.append_history(generation, rows)
        if added:
            logger.debug("Appended %d history candles (total %d)", added, len(self.feed))
            self.candles_changed.emit()

    def _on_error(self, request: FetchRequest, message: str) -> None:
        if self._closed:
            return
        if request.mode == "initial":
            if self.feed.fail_initial(request.generation, CandleSourceError(message)):
                self.loading_changed.emit(False)
                self.candles_changed.emit()
                self.error.emit(INITIAL_LOAD_ERROR)
        elif request.mode == "history":
            self.feed.fail_history(request.generation, CandleSourceError(message))
        elif request.mode == "latest":
            self._refresh_done(request)
            logger.debug("Refresh failed: %s", message)

    def shutdown(self, timeout_ms: int = 5000) -> None:
        self._closed = True
        self._refresh_timer.stop()
        for worker in list(self._workers):
            worker.wait(timeout_ms)
        self._workers.clear()
