"""Environment loading helpers for the feed entry points."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Sequence

from dotenv import load_dotenv

_DATABASE_KEYS: tuple[str, ...] = ("DATABASE_URL", "SUPABASE_DB_URL")

REPO_ROOT = Path(__file__).resolve().parents[2]


def _candidate_env_files() -> list[Path]:
    candidates = [Path(os.path.expanduser("~/.config/feeds/.env"))]
    home = os.environ.get("FEEDS_HOME")
    if home:
        candidates.append(Path(home) / ".env")
    candidates.append(REPO_ROOT / ".env")
    candidates.append(Path.cwd() / ".env")

    unique: list[Path] = []
    for path in candidates:
        if path not in unique:
            unique.append(path)
    return unique


def _resolve_env_value(primary: str, *aliases: str) -> tuple[str, str | None]:
    """Return ``(value, source_key)`` for env ``primary`` or the first alias set."""

    for key in (primary, *aliases):
        trimmed = (os.environ.get(key) or "").strip()
        if trimmed:
            if key != primary:
                os.environ[primary] = trimmed
            return trimmed, key
    return "", None


def load_env(
    required_keys: Sequence[str] | None = None,
    *,
    override: bool = False,
) -> tuple[list[str], list[str]]:
    """Load ``.env`` files from well-known locations.

    Returns ``(loaded_files, missing_required)`` so callers can log diagnostics.
    Missing keys are reported, never raised: the store client fails at first use
    when the database is misconfigured.
    """

    loaded_files: list[str] = []
    for path in _candidate_env_files():
        if not path.exists():
            continue
        if load_dotenv(dotenv_path=path, override=override):
            loaded_files.append(str(path))

    _resolve_env_value(*_DATABASE_KEYS)

    required = list(required_keys) if required_keys is not None else ["DATABASE_URL"]
    missing_required = [key for key in required if not (os.environ.get(key) or "").strip()]
    return loaded_files, missing_required


def database_url() -> str | None:
    value, _ = _resolve_env_value(*_DATABASE_KEYS)
    return value or None


def log_dir() -> Path:
    override = os.environ.get("FEEDS_LOG_DIR")
    if override:
        return Path(override)
    return REPO_ROOT / "logs"


def snapshot_dir() -> Path:
    override = os.environ.get("FEEDS_DATA_DIR")
    if override:
        return Path(override)
    return REPO_ROOT / "data"


__all__ = ["database_url", "load_env", "log_dir", "snapshot_dir"]
