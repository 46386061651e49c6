"""Pagination over upstream sources."""
from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Dict, List, Protocol

LOGGER = logging.getLogger(__name__)


class PageAdapter(Protocol):
    def fetch_page(self, start: int, end: int) -> list[dict[str, Any]] | None: ...


class RankingAdapter(Protocol):
    def fetch_ranking_page(self, page_index: int) -> dict[str, Any] | None: ...


class RangePaginator:
    """Walk ``[0, total)`` in ``window_size`` windows, strictly in sequence.

    Each window gets up to ``page_attempts`` tries (waiting ``attempt *
    page_retry_delay`` between them) on top of the adapter's own request retry.
    A window that stays unavailable is skipped; a short window ends the sweep.
    """

    def __init__(
        self,
        adapter: PageAdapter,
        *,
        window_size: int,
        total: int,
        max_pages: int | None = None,
        page_attempts: int = 3,
        page_retry_delay: float = 2.0,
        window_delay: float = 3.0,
        label: str = "",
    ) -> None:
        self.adapter = adapter
        self.window_size = max(1, int(window_size))
        self.total = max(0, int(total))
        self.max_pages = max_pages
        self.page_attempts = max(1, int(page_attempts))
        self.page_retry_delay = page_retry_delay
        self.window_delay = window_delay
        self.label = label
        self.metrics: Dict[str, int] = {}

    def _fetch_window(self, start: int, end: int, number: int) -> list[dict[str, Any]] | None:
        for attempt in range(1, self.page_attempts + 1):
            rows = self.adapter.fetch_page(start, end)
            self.metrics["requests"] += 1
            if rows is not None:
                return rows
            if attempt < self.page_attempts:
                wait = attempt * self.page_retry_delay
                LOGGER.warning(
                    "[WARN] PAGE_RETRY source=%s page=%s attempt=%s/%s wait=%.1fs",
                    self.label,
                    number,
                    attempt,
                    self.page_attempts,
                    wait,
                )
                time.sleep(wait)
        return None

    def fetch_all(self) -> List[dict[str, Any]]:
        self.metrics = {"pages": 0, "requests": 0, "skipped_pages": 0, "rows": 0}
        rows: List[dict[str, Any]] = []
        start = 0
        number = 0
        while start < self.total:
            if self.max_pages is not None and number >= self.max_pages:
                LOGGER.warning(
                    "[WARN] PAGE_CEILING source=%s max_pages=%s rows=%s", self.label, self.max_pages, len(rows)
                )
                break
            number += 1
            end = min(start + self.window_size, self.total)
            window = self._fetch_window(start, end, number)
            if window is None:
                self.metrics["skipped_pages"] += 1
                LOGGER.error("[ERROR] PAGE_SKIPPED source=%s page=%s range=%s-%s", self.label, number, start, end)
                start += self.window_size
                continue

            self.metrics["pages"] += 1
            rows.extend(window)
            LOGGER.info(
                "[INFO] PAGE_OK source=%s page=%s range=%s-%s rows=%s total=%s",
                self.label,
                number,
                start,
                end,
                len(window),
                len(rows),
            )
            if len(window) < self.window_size:
                break

            start += self.window_size
            if start < self.total and self.window_delay:
                time.sleep(self.window_delay)

        self.metrics["rows"] = len(rows)
        return rows


class RankingPaginator:
    """Fetch page 1, then every remaining page concurrently.

    A failed page never cancels the others; rows keep page order.
    """

    def __init__(
        self,
        adapter: RankingAdapter,
        *,
        max_pages: int,
        max_workers: int = 8,
        label: str = "",
    ) -> None:
        self.adapter = adapter
        self.max_pages = max(1, int(max_pages))
        self.max_workers = max(1, int(max_workers))
        self.label = label
        self.metrics: Dict[str, int] = {}
        self.sweep: Dict[str, Any] = {}

    @staticmethod
    def _page_rows(page: dict[str, Any] | None) -> list[dict[str, Any]] | None:
        if not isinstance(page, dict) or not isinstance(page.get("Data"), list):
            return None
        return [item for item in page["Data"] if isinstance(item, dict)]

    def fetch_all(self) -> List[dict[str, Any]]:
        self.metrics = {"pages": 0, "requests": 1, "skipped_pages": 0, "rows": 0, "total_pages": 0}
        self.sweep = {}
        first = self.adapter.fetch_ranking_page(1)
        first_rows = self._page_rows(first)
        if first is None:
            LOGGER.error("[ERROR] RANKING_FIRST_PAGE_FAILED source=%s", self.label)
            return []

        try:
            total_pages = int(first.get("TotalPages") or 1)
        except (TypeError, ValueError):
            total_pages = 1
        self.metrics["total_pages"] = total_pages
        self.sweep = {
            "reference_date": first.get("ReferenceDate"),
            "total_count": first.get("TotalCount"),
            "total_pages": total_pages,
        }
        LOGGER.info(
            "[INFO] RANKING_START source=%s total_pages=%s total_count=%s reference=%s",
            self.label,
            total_pages,
            self.sweep["total_count"],
            self.sweep["reference_date"],
        )

        by_page: Dict[int, list[dict[str, Any]]] = {}
        if first_rows is not None:
            by_page[1] = first_rows
            self.metrics["pages"] += 1
        else:
            self.metrics["skipped_pages"] += 1

        remaining = list(range(2, min(total_pages, self.max_pages) + 1))
        if remaining:
            with ThreadPoolExecutor(max_workers=min(self.max_workers, len(remaining))) as executor:
                futures = {executor.submit(self.adapter.fetch_ranking_page, index): index for index in remaining}
                for future in as_completed(futures):
                    index = futures[future]
                    self.metrics["requests"] += 1
                    try:
                        page_rows = self._page_rows(future.result())
                    except Exception as exc:
                        LOGGER.error("[ERROR] RANKING_PAGE_FAILED source=%s page=%s err=%s", self.label, index, exc)
                        page_rows = None
                    if page_rows is None:
                        self.metrics["skipped_pages"] += 1
                        LOGGER.warning("[WARN] RANKING_PAGE_SKIPPED source=%s page=%s", self.label, index)
                        continue
                    by_page[index] = page_rows
                    self.metrics["pages"] += 1

        rows: List[dict[str, Any]] = []
        for index in sorted(by_page):
            rows.extend(by_page[index])
        self.metrics["rows"] = len(rows)
        LOGGER.info("[INFO] RANKING_DONE source=%s rows=%s", self.label, len(rows))
        return rows


__all__ = ["PageAdapter", "RangePaginator", "RankingAdapter", "RankingPaginator"]
