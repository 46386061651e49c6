import json
import logging
import re
from datetime import date, datetime, timezone
from typing import Any, Mapping, Optional, Sequence

from dateutil import parser
from sqlalchemy import bindparam, create_engine, text
from sqlalchemy.engine import Engine

from .utils.env import database_url

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class StoreUnavailableError(RuntimeError):
    """Raised when a store operation runs without a configured database."""


def get_engine(url: str | None = None) -> Optional[Engine]:
    """Return SQLAlchemy engine with pool_pre_ping=True, or None when unconfigured."""

    target = url or database_url()
    if not target:
        logger.warning("[WARN] DB_DISABLED Missing DATABASE_URL")
        return None

    try:
        return create_engine(target, pool_pre_ping=True)
    except Exception as exc:
        logger.warning("[WARN] DB_ENGINE %s", exc)
        return None


def normalize_ts(value: Any, field: str | None = None) -> datetime | None:
    """Return a timezone-aware datetime parsed from ``value`` or None on failure."""

    if value is None:
        return None

    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    if isinstance(value, date):
        return datetime.combine(value, datetime.min.time(), tzinfo=timezone.utc)

    if isinstance(value, str):
        candidate = value.strip()
        if not candidate:
            return None
        try:
            parsed = parser.isoparse(candidate)
        except (ValueError, OverflowError):
            try:
                parsed = parser.parse(candidate)
            except (ValueError, OverflowError):
                logger.warning("[WARN] TS_PARSE_FAIL field=%s value=%s", field or "unknown", value)
                return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed

    logger.warning("[WARN] TS_PARSE_FAIL field=%s value=%s", field or "unknown", value)
    return None


def _json_or_value(value: Any) -> Any:
    if isinstance(value, (list, tuple, dict)):
        return json.dumps(value)
    return value


def _check_identifier(name: str) -> str:
    if not _IDENTIFIER.match(name or ""):
        raise ValueError(f"invalid SQL identifier: {name!r}")
    return name


class TableStore:
    """Keyed access to one pre-existing table.

    Every write runs in its own transaction, so one rejected batch never
    affects another.
    """

    def __init__(self, engine: Engine | None, table: str, key: str) -> None:
        self.engine = engine
        self.table = _check_identifier(table)
        self.key = _check_identifier(key)

    def _require_engine(self) -> Engine:
        if self.engine is None:
            raise StoreUnavailableError(f"no database configured for table {self.table}")
        return self.engine

    @staticmethod
    def _columns(rows: Sequence[Mapping[str, Any]]) -> list[str]:
        columns: list[str] = []
        for row in rows:
            for column in row:
                if column not in columns:
                    columns.append(_check_identifier(column))
        return columns

    @staticmethod
    def _params(rows: Sequence[Mapping[str, Any]], columns: Sequence[str]) -> list[dict[str, Any]]:
        return [{column: _json_or_value(row.get(column)) for column in columns} for row in rows]

    def upsert(self, rows: Sequence[Mapping[str, Any]]) -> int:
        """Insert ``rows`` overwriting any existing row with the same key."""

        if not rows:
            return 0
        engine = self._require_engine()
        columns = self._columns(rows)
        updates = [column for column in columns if column != self.key]
        if updates:
            conflict = "DO UPDATE SET " + ", ".join(f"{col}=EXCLUDED.{col}" for col in updates)
        else:
            conflict = "DO NOTHING"
        stmt = text(
            f"INSERT INTO {self.table} ({', '.join(columns)}) "
            f"VALUES ({', '.join(':' + col for col in columns)}) "
            f"ON CONFLICT ({self.key}) {conflict}"
        )
        with engine.begin() as connection:
            connection.execute(stmt, self._params(rows, columns))
        return len(rows)

    def insert(self, rows: Sequence[Mapping[str, Any]]) -> int:
        if not rows:
            return 0
        engine = self._require_engine()
        columns = self._columns(rows)
        stmt = text(
            f"INSERT INTO {self.table} ({', '.join(columns)}) "
            f"VALUES ({', '.join(':' + col for col in columns)})"
        )
        with engine.begin() as connection:
            connection.execute(stmt, self._params(rows, columns))
        return len(rows)

    def replace(self, rows: Sequence[Mapping[str, Any]]) -> int:
        """Delete the keys present in ``rows`` and insert ``rows`` in one transaction.

        A rejected insert rolls the delete back, so existing rows survive.
        """

        if not rows:
            return 0
        engine = self._require_engine()
        keys = list(dict.fromkeys(row.get(self.key) for row in rows if row.get(self.key) is not None))
        columns = self._columns(rows)
        delete = text(f"DELETE FROM {self.table} WHERE {self.key} IN :keys").bindparams(
            bindparam("keys", expanding=True)
        )
        insert = text(
            f"INSERT INTO {self.table} ({', '.join(columns)}) "
            f"VALUES ({', '.join(':' + col for col in columns)})"
        )
        with engine.begin() as connection:
            if keys:
                connection.execute(delete, {"keys": keys})
            connection.execute(insert, self._params(rows, columns))
        return len(rows)

    def update(self, key_value: Any, values: Mapping[str, Any]) -> int:
        if not values:
            return 0
        engine = self._require_engine()
        assignments = ", ".join(f"{_check_identifier(col)}=:{col}" for col in values)
        stmt = text(f"UPDATE {self.table} SET {assignments} WHERE {self.key} = :_key")
        params = {col: _json_or_value(value) for col, value in values.items()}
        params["_key"] = key_value
        with engine.begin() as connection:
            result = connection.execute(stmt, params)
        return max(int(result.rowcount or 0), 0)

    def count(self, where: Mapping[str, Any] | None = None, not_null: str | None = None) -> int:
        engine = self._require_engine()
        clause, params = self._where(where)
        if not_null:
            column = _check_identifier(not_null)
            clause += (" AND " if clause else " WHERE ") + f"{column} IS NOT NULL"
        stmt = text(f"SELECT COUNT(*) FROM {self.table}{clause}")
        with engine.connect() as connection:
            return int(connection.execute(stmt, params).scalar() or 0)

    def latest(
        self,
        columns: Sequence[str],
        where: Mapping[str, Any] | None = None,
        order_by: str = "created_at",
    ) -> dict[str, Any] | None:
        engine = self._require_engine()
        clause, params = self._where(where)
        selected = ", ".join(_check_identifier(col) for col in columns)
        stmt = text(
            f"SELECT {selected} FROM {self.table}{clause} "
            f"ORDER BY {_check_identifier(order_by)} DESC LIMIT 1"
        )
        with engine.connect() as connection:
            row = connection.execute(stmt, params).mappings().first()
        return dict(row) if row is not None else None

    def select_missing(self, columns: Sequence[str], missing: str) -> list[dict[str, Any]]:
        """Return rows whose ``missing`` column is NULL or empty."""

        engine = self._require_engine()
        selected = ", ".join(_check_identifier(col) for col in columns)
        column = _check_identifier(missing)
        stmt = text(
            f"SELECT {selected} FROM {self.table} WHERE {column} IS NULL OR {column} = ''"
        )
        with engine.connect() as connection:
            return [dict(row) for row in connection.execute(stmt).mappings().all()]

    @staticmethod
    def _where(where: Mapping[str, Any] | None) -> tuple[str, dict[str, Any]]:
        if not where:
            return "", {}
        parts = [f"{_check_identifier(col)} = :w_{col}" for col in where]
        params = {f"w_{col}": value for col, value in where.items()}
        return " WHERE " + " AND ".join(parts), params


def insert_run_log(engine: Engine | None, table: str, entry: Mapping[str, Any]) -> bool:
    """Append one run summary row to the system log table; never raises."""

    try:
        TableStore(engine, table, "id").insert([entry])
    except Exception as exc:
        logger.warning("[WARN] DB_WRITE_FAILED table=%s err=%s", table, exc)
        return False
    logger.info("[INFO] DB_WRITE_OK table=%s rows=%s", table, 1)
    return True


__all__ = [
    "StoreUnavailableError",
    "TableStore",
    "get_engine",
    "insert_run_log",
    "normalize_ts",
]
