"""Row-to-record mapping shared by every feed.

Each ``*_record`` function turns one decoded upstream row into the column
mapping written to the destination table. Rows are plain dicts keyed by the
upstream field name; positional screener rows are decoded beforehand by
:meth:`feeds.providers.tradingview.ScreenerQuery.decode_row`.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Sequence

LOGGER = logging.getLogger(__name__)

LOGO_URL_TEMPLATE = "https://s3-symbol-logo.tradingview.com/{logoid}.svg"

PCT_DIRECT = "direct"
PCT_DERIVED = "derived"


def _coerce_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def round_or_none(value: Any, digits: int) -> float | None:
    number = _coerce_float(value)
    if number is None:
        return None
    return round(number, digits)


def change_percent(close: Any, change: Any) -> float | None:
    """Return ``change / (close - change) * 100`` or None when it is undefined."""

    close_value = _coerce_float(close)
    change_value = _coerce_float(change)
    if close_value is None or change_value is None:
        return None
    previous_close = close_value - change_value
    if previous_close == 0:
        return None
    return change_value / previous_close * 100


def logo_url(logoid: Any, template: str = LOGO_URL_TEMPLATE) -> str | None:
    logoid = _blank_to_none(logoid)
    if logoid is None:
        return None
    return template.replace("{logoid}", str(logoid))


def opening_price(value: Any, change_day_formatted: Any) -> float | None:
    """Back out the opening price from the current value and the day's % change.

    ``change_day_formatted`` uses a decimal comma (``"-1,23"``). No change means
    the current value is also the opening price.
    """

    current = _coerce_float(value)
    if current is None:
        return None
    raw = _blank_to_none(change_day_formatted)
    if raw is None or str(raw).strip() in {"0,00", "0.00"}:
        return current
    pct = _coerce_float(str(raw).strip().replace(",", "."))
    if pct is None:
        LOGGER.warning("[WARN] OPENING_PRICE_BAD_CHANGE value=%s", change_day_formatted)
        return None
    divisor = 1 + pct / 100
    if divisor == 0:
        return None
    return round(current / divisor, 4)


def screener_record(
    fields: Mapping[str, Any],
    *,
    flag: str,
    pct_mode: str = PCT_DIRECT,
    precision: int = 2,
    extras: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Build a quote record from a decoded TradingView screener row.

    ``extras`` maps destination column -> screener column for fields carried
    through untouched (market cap, AUM, type, typespecs).
    """

    symbol = _blank_to_none(fields.get("name"))
    description = _blank_to_none(fields.get("description"))
    close = _coerce_float(fields.get("close"))
    if pct_mode == PCT_DERIVED:
        pct = change_percent(close, fields.get("change"))
    else:
        pct = fields.get("change")

    record: dict[str, Any] = {
        "symbol": symbol,
        "name": description or symbol,
        "last": close,
        "chg_pct": round_or_none(pct, precision),
        "flag": flag,
        "logo_url": logo_url(fields.get("logoid")),
    }
    for column, source in (extras or {}).items():
        record[column] = fields.get(source)
    return record


def listing_record(
    item: Mapping[str, Any],
    *,
    default_flag: str | None = None,
    default_country: str | None = None,
    include_id: bool = False,
    include_logo: bool = True,
) -> dict[str, Any]:
    """Build a quote record from an Investing.com listing row."""

    record: dict[str, Any] = {}
    if include_id:
        raw_id = item.get("Id")
        try:
            record["id"] = int(raw_id) if raw_id not in (None, "") else None
        except (TypeError, ValueError):
            record["id"] = None
        record["chg"] = _coerce_float(item.get("Chg"))
    record.update(
        {
            "symbol": _blank_to_none(item.get("Symbol")),
            "name": _blank_to_none(item.get("Name")),
            "last": _coerce_float(item.get("Last")),
            "chg_pct": _coerce_float(item.get("ChgPct")),
            "country_name_translated": _blank_to_none(item.get("CountryNameTranslated"))
            or default_country,
            "flag": _blank_to_none(item.get("Flag")) or default_flag,
        }
    )
    if include_logo:
        record["logo_url"] = None
    return record


def ranking_record(item: Mapping[str, Any]) -> dict[str, Any]:
    """Build a ranking record (InfoMoney stock/FII tables)."""

    return {
        "date": item.get("Date"),
        "stock_code": _blank_to_none(item.get("StockCode")),
        "stock_name": _blank_to_none(item.get("StockName")),
        "value": _coerce_float(item.get("Value")),
        "value_formatted": item.get("ValueFormatted"),
        "change_day_formatted": item.get("ChangeDayFormatted"),
        "opening_price": opening_price(item.get("Value"), item.get("ChangeDayFormatted")),
        "image_url": None,
    }


FX_LOGO_URL = "https://icons.veryicon.com/png/o/miscellaneous/alan-ui/logo-usd-3.png"


def fx_record(
    quote: Mapping[str, Any],
    *,
    record_id: int = 32,
    ticker: str = "USD",
    currency: str = "BRL",
    display_name: str = "Dólar Americano",
    now: datetime | None = None,
) -> dict[str, Any]:
    """Build the cached FX quote row from an AwesomeAPI ``USDBRL`` payload.

    The provider exposes no opening price; the day's low stands in for it.
    When ``pctChange`` is missing the variation is measured against the low.
    """

    bid = _coerce_float(quote.get("bid"))
    low = _coerce_float(quote.get("low"))
    pct = _coerce_float(quote.get("pctChange"))
    if not pct and bid is not None and low:
        pct = (bid - low) / low * 100

    stamp = now or datetime.now(timezone.utc)
    return {
        "id": record_id,
        "ticker": ticker,
        "preco": bid,
        "preco_abertura": low,
        "variacao_percentual": round_or_none(pct, 4),
        "ultima_atualizacao": stamp.isoformat(),
        "logo_url": FX_LOGO_URL,
        "moeda": currency,
        "nome": display_name,
    }


def filter_records(
    records: Iterable[Mapping[str, Any]], required: Sequence[str]
) -> tuple[list[dict[str, Any]], int]:
    """Drop records missing any ``required`` column; return ``(kept, discarded)``."""

    kept: list[dict[str, Any]] = []
    discarded = 0
    for record in records:
        if all(_blank_to_none(record.get(column)) is not None for column in required):
            kept.append(dict(record))
        else:
            discarded += 1
    return kept, discarded


__all__ = [
    "LOGO_URL_TEMPLATE",
    "PCT_DERIVED",
    "PCT_DIRECT",
    "change_percent",
    "filter_records",
    "fx_record",
    "listing_record",
    "logo_url",
    "opening_price",
    "ranking_record",
    "round_or_none",
    "screener_record",
]
