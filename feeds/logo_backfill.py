"""Fill missing ``logo_url`` values of Investing.com rows from TradingView logos.

Investing.com listings carry no logo. TradingView's brazil screener does, so
rows are matched on the first four letters of the ticker (``PETR4`` and
``PETR3`` share the ``PETR`` logo).
"""
import argparse
import logging
import sys
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, Optional

from .db import TableStore, get_engine
from .mapping import LOGO_URL_TEMPLATE, logo_url
from .paginate import RangePaginator
from .providers.tradingview import ScreenerQuery, TradingViewAdapter
from .utils.env import load_env
from .utils.http import make_session
from .utils.logger_utils import setup_logging

LOG = logging.getLogger("feeds.logo_backfill")

TARGET_TABLE = "investing_data"
TARGET_KEY = "id"
PREFIX_LENGTH = 4

LOGO_QUERY = ScreenerQuery(
    market="brazil",
    filters=({"left": "is_primary", "operation": "equal", "right": True},),
)


@dataclass
class BackfillResult:
    candidates: int = 0
    matched: int = 0
    updated: int = 0
    failed: int = 0


def symbol_prefix(symbol: Any, length: int = PREFIX_LENGTH) -> str:
    if not isinstance(symbol, str):
        return ""
    return symbol.strip().upper()[:length]


def build_logo_map(rows: Iterable[Mapping[str, Any]], length: int = PREFIX_LENGTH) -> Dict[str, str]:
    """Map ticker prefix -> logoid; the first (largest market cap) row wins."""

    logos: Dict[str, str] = {}
    for row in rows:
        prefix = symbol_prefix(row.get("name"), length)
        logoid = row.get("logoid")
        if prefix and logoid:
            logos.setdefault(prefix, str(logoid))
    return logos


def fetch_logo_rows(session, *, window_size: int = 300, total: int = 2000) -> list:
    paginator = RangePaginator(
        TradingViewAdapter(session, LOGO_QUERY),
        window_size=window_size,
        total=total,
        label="logo_backfill",
    )
    return paginator.fetch_all()


def backfill_logos(
    store: TableStore,
    logos: Mapping[str, str],
    *,
    dry_run: bool = False,
    template: str = LOGO_URL_TEMPLATE,
) -> BackfillResult:
    result = BackfillResult()
    rows = store.select_missing([store.key, "symbol"], "logo_url")
    result.candidates = len(rows)
    for row in rows:
        logoid = logos.get(symbol_prefix(row.get("symbol")))
        if not logoid:
            continue
        result.matched += 1
        url = logo_url(logoid, template)
        if dry_run:
            LOG.info("[INFO] LOGO_MATCH symbol=%s logo_url=%s dry_run=true", row.get("symbol"), url)
            continue
        try:
            store.update(row[store.key], {"logo_url": url})
        except Exception as exc:
            result.failed += 1
            LOG.warning("[WARN] LOGO_UPDATE_FAILED symbol=%s err=%s", row.get("symbol"), exc)
        else:
            result.updated += 1
    LOG.info(
        "[INFO] LOGO_BACKFILL candidates=%s matched=%s updated=%s failed=%s dry_run=%s",
        result.candidates,
        result.matched,
        result.updated,
        result.failed,
        str(dry_run).lower(),
    )
    return result


def parse_args(argv: Optional[Iterable[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Backfill logo_url for Investing.com rows using TradingView logo ids"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report matches without updating the table",
    )
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO)")
    return parser.parse_args(list(argv) if argv is not None else None)


def main(argv: Optional[Iterable[str]] = None) -> int:
    args = parse_args(argv)
    load_env()
    setup_logging("logo_backfill", str(args.log_level).upper())
    session = make_session()
    try:
        store = TableStore(get_engine(), TARGET_TABLE, TARGET_KEY)
        if not store.select_missing([TARGET_KEY], "logo_url"):
            LOG.info("[INFO] LOGO_BACKFILL_NOTHING_TO_DO table=%s", TARGET_TABLE)
            return 0
        logos = build_logo_map(fetch_logo_rows(session))
        if not logos:
            LOG.error("[ERROR] LOGO_SOURCE_EMPTY")
            return 1
        result = backfill_logos(store, logos, dry_run=args.dry_run)
    except Exception:
        LOG.exception("[ERROR] LOGO_BACKFILL_FATAL")
        return 1
    finally:
        session.close()
    return 1 if result.failed else 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
