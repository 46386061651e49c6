"""Batch writers: keyed upsert and full replacement."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Protocol, Sequence

LOGGER = logging.getLogger(__name__)


class RecordStore(Protocol):
    table: str
    key: str

    def upsert(self, rows: Sequence[Mapping[str, Any]]) -> int: ...

    def replace(self, rows: Sequence[Mapping[str, Any]]) -> int: ...


@dataclass
class UpsertResult:
    succeeded: int = 0
    failed: int = 0
    batches: int = 0
    failed_batches: int = 0

    def as_dict(self) -> dict[str, int]:
        return {"succeeded": self.succeeded, "failed": self.failed}


def _batched(records: Sequence[Mapping[str, Any]], size: int) -> Iterable[List[Mapping[str, Any]]]:
    size = max(1, int(size))
    for offset in range(0, len(records), size):
        yield list(records[offset : offset + size])


class BatchUpserter:
    """Write records in fixed-size batches, isolating each batch's failure."""

    def __init__(self, store: RecordStore, batch_size: int = 100, pause_s: float = 0.2) -> None:
        self.store = store
        self.batch_size = max(1, int(batch_size))
        self.pause_s = pause_s

    def _write_batches(self, records: Sequence[Mapping[str, Any]], write, verb: str) -> UpsertResult:
        result = UpsertResult()
        total = (len(records) + self.batch_size - 1) // self.batch_size
        for number, batch in enumerate(_batched(records, self.batch_size), start=1):
            result.batches += 1
            try:
                written = write(batch)
            except Exception as exc:
                result.failed += len(batch)
                result.failed_batches += 1
                LOGGER.warning(
                    "[WARN] DB_BATCH_FAILED table=%s op=%s batch=%s/%s rows=%s err=%s",
                    self.store.table,
                    verb,
                    number,
                    total,
                    len(batch),
                    exc,
                )
            else:
                result.succeeded += int(written)
                LOGGER.info(
                    "[INFO] DB_BATCH_OK table=%s op=%s batch=%s/%s rows=%s",
                    self.store.table,
                    verb,
                    number,
                    total,
                    written,
                )
            if self.pause_s and number < total:
                time.sleep(self.pause_s)
        return result

    def upsert_all(self, records: Sequence[Mapping[str, Any]]) -> UpsertResult:
        """Upsert every record keyed on the store's key column."""

        return self._write_batches(records, self.store.upsert, "upsert")

    def replace_all(self, records: Sequence[Mapping[str, Any]]) -> UpsertResult:
        """Replace the stored rows for every key in ``records``, batch by batch.

        Each batch deletes its keys and inserts its rows in one transaction. A
        rejected batch (delete or insert) leaves that batch's previous rows in
        place and counts as failed; the other batches still go through.
        """

        return self._write_batches(records, self.store.replace, "replace")


__all__ = ["BatchUpserter", "RecordStore", "UpsertResult"]
