"""Scheduled fetch -> map -> filter -> write loop for one source."""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import requests
from sqlalchemy.engine import Engine

from .config import WRITE_REPLACE, SourceConfig
from .db import TableStore, insert_run_log, normalize_ts
from .mapping import filter_records
from .snapshot import snapshot_summary, write_snapshot
from .upsert import BatchUpserter, RecordStore
from .utils.http import make_session
from .utils.schedule import ScheduleGate

LOGGER = logging.getLogger(__name__)

STATUS_OK = "ok"
STATUS_PARTIAL = "partial"
STATUS_SKIPPED = "skipped"
STATUS_ERROR = "error"


@dataclass
class RunSummary:
    source: str
    status: str = STATUS_OK
    fetched: int = 0
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    discarded: int = 0
    skipped_pages: int = 0
    duration_s: float = 0.0
    message: str = ""


class IngestionPipeline:
    """Run one configured source on its schedule.

    The HTTP session and database engine are created once by the caller and
    shared by every tick. ``has_run`` starts False so the first tick after
    process start ignores the business-hours window.
    """

    def __init__(
        self,
        config: SourceConfig,
        *,
        session: Optional[requests.Session] = None,
        engine: Optional[Engine] = None,
        store: Optional[RecordStore] = None,
        gate: Optional[ScheduleGate] = None,
    ) -> None:
        self.config = config
        self.session = session or make_session()
        self.engine = engine
        self.store = store if store is not None else TableStore(engine, config.table, config.key)
        self.gate = gate or ScheduleGate(config.window)
        self.has_run = False
        self.last_summary: Optional[RunSummary] = None

    def _write(self, records) -> Any:
        writer = BatchUpserter(self.store, self.config.batch_size, self.config.batch_pause)
        if self.config.write_mode == WRITE_REPLACE:
            return writer.replace_all(records)
        return writer.upsert_all(records)

    def tick(self, now: Optional[datetime] = None) -> RunSummary:
        """Run one gated cycle; never raises."""

        name = self.config.name
        summary = RunSummary(source=name)
        if not self.gate.should_run(now, self.has_run):
            summary.status = STATUS_SKIPPED
            summary.message = "outside business hours"
            LOGGER.info(
                "[INFO] FEED_SKIP source=%s reason=outside_window window=%s",
                name,
                self.gate.describe(),
            )
            self.last_summary = summary
            return summary

        self.has_run = True
        started = time.monotonic()
        LOGGER.info("[INFO] FEED_START source=%s table=%s", name, self.config.table)
        try:
            paginator = self.config.build_paginator(self.session)
            rows = paginator.fetch_all()
            summary.fetched = len(rows)
            summary.skipped_pages = int(paginator.metrics.get("skipped_pages", 0))
            if self.config.snapshot and rows:
                write_snapshot(name, getattr(paginator, "sweep", {}), rows)

            records = [self.config.mapper(row) for row in rows]
            kept, discarded = filter_records(records, self.config.required)
            summary.discarded = discarded
            summary.attempted = len(kept)
            if discarded:
                LOGGER.warning(
                    "[WARN] FEED_DISCARDED source=%s rows=%s required=%s",
                    name,
                    discarded,
                    ",".join(self.config.required),
                )

            if kept:
                result = self._write(kept)
                summary.succeeded = result.succeeded
                summary.failed = result.failed
            if summary.failed:
                summary.status = STATUS_PARTIAL
        except Exception as exc:
            LOGGER.exception("[ERROR] FEED_TICK_FAILED source=%s", name)
            summary.status = STATUS_ERROR
            summary.message = str(exc)

        summary.duration_s = round(time.monotonic() - started, 3)
        LOGGER.info(
            "[INFO] FEED_SUMMARY source=%s status=%s fetched=%s attempted=%s succeeded=%s "
            "failed=%s discarded=%s skipped_pages=%s duration=%.2fs",
            name,
            summary.status,
            summary.fetched,
            summary.attempted,
            summary.succeeded,
            summary.failed,
            summary.discarded,
            summary.skipped_pages,
            summary.duration_s,
        )
        if self.config.run_log_table:
            self._write_run_log(summary)
        self.last_summary = summary
        return summary

    def _write_run_log(self, summary: RunSummary) -> bool:
        message = summary.message or (
            f"fetched={summary.fetched} discarded={summary.discarded} duration={summary.duration_s}s"
        )
        return insert_run_log(
            self.engine,
            self.config.run_log_table,
            {
                "source": summary.source,
                "status": summary.status,
                "attempted": summary.attempted,
                "succeeded": summary.succeeded,
                "failed": summary.failed,
                "message": message,
                "created_at": datetime.now(timezone.utc).isoformat(),
            },
        )

    def run_forever(self, stop: Optional[threading.Event] = None) -> None:
        """Tick immediately, then every ``interval_minutes`` until ``stop`` is set.

        The interval is measured from the start of the previous tick.
        """

        stop = stop or threading.Event()
        interval = self.config.interval_minutes * 60
        LOGGER.info(
            "[INFO] FEED_SCHEDULE source=%s every=%smin window=%s",
            self.config.name,
            self.config.interval_minutes,
            self.gate.describe(),
        )
        while not stop.is_set():
            started = time.monotonic()
            self.tick()
            remaining = interval - (time.monotonic() - started)
            if stop.wait(max(0.0, remaining)):
                break
        LOGGER.info("[INFO] FEED_STOPPED source=%s", self.config.name)

    def stats(self) -> Dict[str, Any]:
        """Return row count, gate state and the newest stored record.

        Ranking sources also report the opening-price count and the last sweep
        snapshot.
        """

        store = self.store
        where = dict(self.config.stats_where) or None
        latest = store.latest(self.config.stats_columns, where, order_by=self.config.stats_order)
        if latest is not None:
            for column in {"created_at", self.config.stats_order}:
                if column in latest:
                    stamp = normalize_ts(latest[column], column)
                    latest[column] = stamp.isoformat() if stamp else latest[column]
        stats: Dict[str, Any] = {
            "source": self.config.name,
            "table": self.config.table,
            "count": store.count(where),
            "business_hours": self.gate.is_business_hours(),
            "window": self.gate.describe(),
            "latest": latest,
        }
        if self.config.stats_not_null:
            column = self.config.stats_not_null
            stats[f"with_{column}"] = store.count(where, not_null=column)
        if self.config.snapshot:
            stats["snapshot"] = snapshot_summary(self.config.name)
        return stats


__all__ = ["IngestionPipeline", "RunSummary"]
