"""Local JSON snapshots of the last ranking sweep per source."""
from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping, Sequence

from .utils.env import snapshot_dir

LOGGER = logging.getLogger(__name__)


def snapshot_path(source: str) -> Path:
    return snapshot_dir() / f"{source}.json"


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Write ``data`` to a temporary file beside ``path`` and move it into place."""

    path.parent.mkdir(parents=True, exist_ok=True)
    # mkstemp rather than NamedTemporaryFile so the handle can be reopened on Windows.
    fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), prefix=path.name + ".tmp.")
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    finally:
        if os.path.exists(tmp_path):
            try:
                os.unlink(tmp_path)
            except OSError:
                pass


def write_snapshot(
    source: str,
    sweep: Mapping[str, Any],
    rows: Sequence[Mapping[str, Any]],
) -> Path | None:
    """Persist one sweep (metadata plus raw rows); returns the path or None on failure."""

    payload = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "reference_date": sweep.get("reference_date"),
        "total_count": sweep.get("total_count"),
        "total_pages": sweep.get("total_pages"),
        "rows": list(rows),
    }
    path = snapshot_path(source)
    try:
        atomic_write_bytes(path, json.dumps(payload, indent=2, default=str, ensure_ascii=False).encode("utf-8"))
    except OSError as exc:
        LOGGER.warning("[WARN] SNAPSHOT_WRITE_FAILED source=%s path=%s err=%s", source, path, exc)
        return None
    LOGGER.info("[INFO] SNAPSHOT_SAVED source=%s path=%s rows=%s", source, path, len(payload["rows"]))
    return path


def load_snapshot(source: str) -> dict[str, Any] | None:
    path = snapshot_path(source)
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
    except FileNotFoundError:
        return None
    except (OSError, ValueError) as exc:
        LOGGER.warning("[WARN] SNAPSHOT_READ_FAILED source=%s path=%s err=%s", source, path, exc)
        return None
    return data if isinstance(data, dict) else None


def snapshot_summary(source: str) -> dict[str, Any] | None:
    """Return the last sweep's metadata and row count, without the rows."""

    data = load_snapshot(source)
    if data is None:
        return None
    rows = data.get("rows")
    return {
        "timestamp": data.get("timestamp"),
        "reference_date": data.get("reference_date"),
        "total_count": data.get("total_count"),
        "total_pages": data.get("total_pages"),
        "rows": len(rows) if isinstance(rows, list) else 0,
    }


__all__ = ["load_snapshot", "snapshot_path", "snapshot_summary", "write_snapshot"]
