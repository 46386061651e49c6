"""TradingView screener adapter (POST with a JSON filter body)."""
from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

import requests

from ..utils.http import request_json

LOGGER = logging.getLogger(__name__)

SCAN_URL = "https://scanner.tradingview.com/{market}/scan?label-product={product}"

STOCK_COLUMNS: tuple[str, ...] = (
    "name",
    "description",
    "logoid",
    "update_mode",
    "type",
    "typespecs",
    "close",
    "pricescale",
    "minmov",
    "fractional",
    "minmove2",
    "currency",
    "change",
    "volume",
    "relative_volume_10d_calc",
    "market_cap_basic",
    "fundamental_currency_code",
    "price_earnings_ttm",
    "earnings_per_share_diluted_ttm",
    "earnings_per_share_diluted_yoy_growth_ttm",
    "dividends_yield_current",
    "sector.tr",
    "market",
    "sector",
    "recommendation_mark",
    "exchange",
)

ETF_COLUMNS: tuple[str, ...] = (
    "name",
    "description",
    "logoid",
    "update_mode",
    "type",
    "typespecs",
    "close",
    "pricescale",
    "minmov",
    "fractional",
    "minmove2",
    "currency",
    "change",
    "Value.Traded",
    "relative_volume_10d_calc",
    "aum",
    "fundamental_currency_code",
    "nav_total_return.3Y",
    "expense_ratio",
    "asset_class.tr",
    "focus.tr",
    "exchange",
)


def _expr(left: str, operation: str, right: Any) -> dict:
    return {"expression": {"left": left, "operation": operation, "right": right}}


def _all_of(*operands: dict) -> dict:
    return {"operation": {"operator": "and", "operands": list(operands)}}


def _any_of(*groups: dict) -> dict:
    return {"operator": "and", "operands": [{"operation": {"operator": "or", "operands": list(groups)}}]}


# Common and preferred stocks, depositary receipts and non-ETF funds.
STOCK_UNIVERSE = _any_of(
    _all_of(_expr("type", "equal", "stock"), _expr("typespecs", "has", ["common"])),
    _all_of(_expr("type", "equal", "stock"), _expr("typespecs", "has", ["preferred"])),
    _all_of(_expr("type", "equal", "dr")),
    _all_of(_expr("type", "equal", "fund"), _expr("typespecs", "has_none_of", ["etf"])),
)

ETF_UNIVERSE = _any_of(
    _all_of(_expr("typespecs", "has", ["etf"])),
    _all_of(_expr("type", "equal", "structured")),
)

PRIMARY_LISTINGS = (
    {"left": "is_blacklisted", "operation": "equal", "right": False},
    {"left": "is_primary", "operation": "equal", "right": True},
)


@dataclass(frozen=True)
class ScreenerQuery:
    """One screener request shape.

    ``columns`` drives both the request body and :meth:`decode_row`, so the
    positional response stays aligned with what was asked for.
    """

    market: str
    product: str = "screener-stock"
    columns: Sequence[str] = STOCK_COLUMNS
    filter2: Mapping[str, Any] = field(default_factory=lambda: STOCK_UNIVERSE)
    filters: Sequence[Mapping[str, Any]] = ()
    symbolset: Sequence[str] = ()
    sort_by: str = "market_cap_basic"
    sort_order: str = "desc"

    @property
    def url(self) -> str:
        return SCAN_URL.format(market=self.market, product=self.product)

    def build_payload(self, start: int, end: int) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "columns": list(self.columns),
            "ignore_unknown_fields": False,
            "options": {"lang": "en"},
            "range": [int(start), int(end)],
            "sort": {"sortBy": self.sort_by, "sortOrder": self.sort_order},
            "symbols": {"symbolset": list(self.symbolset)} if self.symbolset else {},
            "markets": [self.market],
            "filter2": copy.deepcopy(dict(self.filter2)),
        }
        if self.filters:
            payload["filter"] = [dict(item) for item in self.filters]
        return payload

    def decode_row(self, row: Mapping[str, Any]) -> dict[str, Any]:
        values = row.get("d") if isinstance(row, Mapping) else None
        if not isinstance(values, list):
            values = []
        return {
            column: values[index] if index < len(values) else None
            for index, column in enumerate(self.columns)
        }


class TradingViewAdapter:
    def __init__(
        self,
        session: requests.Session,
        query: ScreenerQuery,
        *,
        retries: int = 3,
        retry_base_delay: float = 3.0,
    ) -> None:
        self.session = session
        self.query = query
        self.retries = retries
        self.retry_base_delay = retry_base_delay

    def fetch_page(self, start: int, end: int) -> list[dict[str, Any]] | None:
        """Return decoded rows for ``[start, end)`` or None if the page is unavailable."""

        label = f"tradingview:{self.query.market}:{start}-{end}"
        payload = request_json(
            self.session,
            "POST",
            self.query.url,
            label=label,
            retries=self.retries,
            base_delay=self.retry_base_delay,
            json=self.query.build_payload(start, end),
            headers={"Content-Type": "application/json"},
        )
        if not isinstance(payload, Mapping) or not isinstance(payload.get("data"), list):
            if payload is not None:
                LOGGER.warning("[WARN] TV_NO_DATA label=%s", label)
            return None
        return [self.query.decode_row(row) for row in payload["data"] if isinstance(row, Mapping)]


__all__ = [
    "ETF_COLUMNS",
    "ETF_UNIVERSE",
    "PRIMARY_LISTINGS",
    "STOCK_COLUMNS",
    "STOCK_UNIVERSE",
    "ScreenerQuery",
    "TradingViewAdapter",
]
