"""Registry of every ingested source.

Each feed differs only in its adapter, pagination shape, record mapping and
destination table, so one :class:`SourceConfig` entry per feed drives the
shared :class:`feeds.pipeline.IngestionPipeline`.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from functools import partial
from typing import Any, Callable, Dict, Mapping, Sequence

import requests

from .mapping import (
    PCT_DERIVED,
    PCT_DIRECT,
    fx_record,
    listing_record,
    ranking_record,
    screener_record,
)
from .paginate import RangePaginator, RankingPaginator
from .providers.awesomeapi import AwesomeQuoteAdapter
from .providers.infomoney import KIND_FII, KIND_STOCK, InfoMoneyAdapter
from .providers.investing import COUNTRY_BRAZIL, COUNTRY_USA, InvestingAdapter
from .providers.tradingview import (
    ETF_COLUMNS,
    ETF_UNIVERSE,
    PRIMARY_LISTINGS,
    ScreenerQuery,
    TradingViewAdapter,
)
from .utils.schedule import TimeWindow

WRITE_UPSERT = "upsert"
WRITE_REPLACE = "replace"

PAGINATE_RANGE = "range"
PAGINATE_RANKING = "ranking"

WINDOW_0930_1730 = TimeWindow(9.5, 17.5)
WINDOW_0900_1800 = TimeWindow(9.0, 18.0)
WINDOW_1000_1700 = TimeWindow(10.0, 17.0)

QUOTE_STATS_COLUMNS = ("created_at", "symbol", "name", "last", "chg_pct")
RANKING_STATS_COLUMNS = ("created_at", "stock_code", "value", "opening_price", "change_day_formatted")


@dataclass(frozen=True)
class SourceConfig:
    name: str
    description: str
    table: str
    key: str
    window: TimeWindow
    interval_minutes: int
    adapter_factory: Callable[[requests.Session], Any]
    mapper: Callable[[Mapping[str, Any]], Dict[str, Any]]
    required: Sequence[str]
    pagination: str = PAGINATE_RANGE
    window_size: int = 300
    total: int = 300
    max_pages: int | None = None
    window_delay: float = 3.0
    max_workers: int = 8
    batch_size: int = 100
    batch_pause: float = 0.2
    write_mode: str = WRITE_UPSERT
    stats_where: Mapping[str, Any] = field(default_factory=dict)
    stats_columns: Sequence[str] = QUOTE_STATS_COLUMNS
    stats_order: str = "created_at"
    stats_not_null: str | None = None
    snapshot: bool = False
    run_log_table: str | None = None

    def build_paginator(self, session: requests.Session):
        """Return a fresh paginator wired to a new adapter on ``session``."""

        adapter = self.adapter_factory(session)
        if self.pagination == PAGINATE_RANKING:
            return RankingPaginator(
                adapter,
                max_pages=self.max_pages or 1,
                max_workers=self.max_workers,
                label=self.name,
            )
        return RangePaginator(
            adapter,
            window_size=self.window_size,
            total=self.total,
            max_pages=self.max_pages,
            window_delay=self.window_delay,
            label=self.name,
        )


def _screener(query: ScreenerQuery) -> Callable[[requests.Session], TradingViewAdapter]:
    return lambda session: TradingViewAdapter(session, query)


B3_QUERY = ScreenerQuery(market="brazil")
B3_DESTAQUE_QUERY = ScreenerQuery(
    market="brazil",
    filters=PRIMARY_LISTINGS,
    symbolset=("SYML:BMFBOVESPA;IBOV",),
)
USA_QUERY = ScreenerQuery(
    market="america",
    filters=PRIMARY_LISTINGS,
    symbolset=("SYML:SP;SPX", "SYML:NASDAQ;NDX"),
)
ETF_USA_QUERY = ScreenerQuery(
    market="america",
    product="screener-etf",
    columns=ETF_COLUMNS,
    filter2=ETF_UNIVERSE,
    sort_by="close",
)
ETF_BR_QUERY = ScreenerQuery(
    market="brazil",
    product="screener-etf",
    columns=ETF_COLUMNS,
    filter2=ETF_UNIVERSE,
    sort_by="aum",
)

SOURCES: Dict[str, SourceConfig] = {}


def register(config: SourceConfig) -> SourceConfig:
    if config.name in SOURCES:
        raise ValueError(f"duplicate source name: {config.name}")
    SOURCES[config.name] = config
    return config


register(
    SourceConfig(
        name="b3",
        description="B3 listed stocks (TradingView brazil screener)",
        table="b3_data",
        key="symbol",
        window=WINDOW_1000_1700,
        interval_minutes=15,
        adapter_factory=_screener(B3_QUERY),
        mapper=partial(screener_record, flag="BR", pct_mode=PCT_DIRECT, precision=2),
        required=("symbol",),
        window_size=300,
        total=2000,
        stats_where={"flag": "BR"},
    )
)

register(
    SourceConfig(
        name="b3_destaque",
        description="IBOV constituents (TradingView brazil screener)",
        table="b3_destaque",
        key="symbol",
        window=WINDOW_1000_1700,
        interval_minutes=40,
        adapter_factory=_screener(B3_DESTAQUE_QUERY),
        mapper=partial(
            screener_record,
            flag="BR",
            pct_mode=PCT_DIRECT,
            precision=2,
            extras={"market_cap": "market_cap_basic", "type": "type", "typespecs": "typespecs"},
        ),
        required=("symbol",),
        window_size=25,
        total=75,
        window_delay=2.0,
        batch_size=50,
        stats_where={"flag": "BR"},
    )
)

register(
    SourceConfig(
        name="tradingview_usa",
        description="S&P 500 and Nasdaq 100 constituents (TradingView america screener)",
        table="tradingview_data",
        key="symbol",
        window=WINDOW_0930_1730,
        interval_minutes=15,
        adapter_factory=_screener(USA_QUERY),
        mapper=partial(screener_record, flag="US", pct_mode=PCT_DERIVED, precision=4),
        required=("symbol", "last"),
        window_size=300,
        total=511,
        stats_where={"flag": "US"},
    )
)

register(
    SourceConfig(
        name="etf_usa",
        description="US ETFs (TradingView america ETF screener)",
        table="etf_data",
        key="symbol",
        window=WINDOW_0930_1730,
        interval_minutes=15,
        adapter_factory=_screener(ETF_USA_QUERY),
        mapper=partial(screener_record, flag="US", pct_mode=PCT_DERIVED, precision=4),
        required=("symbol", "last"),
        window_size=700,
        total=700,
        stats_where={"flag": "US"},
    )
)

register(
    SourceConfig(
        name="etf_br",
        description="Brazilian ETFs (TradingView brazil ETF screener)",
        table="etfbr_data",
        key="symbol",
        window=WINDOW_1000_1700,
        interval_minutes=30,
        adapter_factory=_screener(ETF_BR_QUERY),
        mapper=partial(
            screener_record,
            flag="BR",
            pct_mode=PCT_DIRECT,
            precision=4,
            extras={"aum": "aum", "type": "type", "typespecs": "typespecs"},
        ),
        required=("symbol",),
        window_size=100,
        total=200,
        window_delay=2.0,
        batch_size=50,
        stats_where={"flag": "BR"},
        stats_columns=QUOTE_STATS_COLUMNS + ("aum",),
    )
)

register(
    SourceConfig(
        name="investing_br",
        description="Brazilian equities (Investing.com country 32)",
        table="investing_data",
        key="id",
        window=WINDOW_0930_1730,
        interval_minutes=15,
        adapter_factory=lambda session: InvestingAdapter(
            session, country_id=COUNTRY_BRAZIL, page_size=1393
        ),
        mapper=partial(listing_record, include_id=True, include_logo=False),
        required=("id", "symbol"),
        window_size=1393,
        total=1393,
        batch_size=1000,
        batch_pause=0.1,
        stats_columns=("created_at", "symbol", "name", "last", "chg", "chg_pct"),
    )
)

register(
    SourceConfig(
        name="investing_usa",
        description="US equities (Investing.com country 5)",
        table="finhub_data",
        key="symbol",
        window=WINDOW_0930_1730,
        interval_minutes=30,
        adapter_factory=lambda session: InvestingAdapter(
            session, country_id=COUNTRY_USA, page_size=500, page_base=1
        ),
        mapper=partial(listing_record, default_flag="🇺🇸", default_country="USA"),
        required=("symbol",),
        window_size=500,
        total=12500,
        max_pages=25,
        window_delay=1.0,
        batch_size=500,
    )
)

register(
    SourceConfig(
        name="fii",
        description="Real estate fund ranking (InfoMoney fii)",
        table="fii_data",
        key="stock_code",
        window=WINDOW_0930_1730,
        interval_minutes=10,
        adapter_factory=lambda session: InfoMoneyAdapter(session, kind=KIND_FII),
        mapper=ranking_record,
        required=("stock_code",),
        pagination=PAGINATE_RANKING,
        max_pages=19,
        batch_size=100,
        batch_pause=0.05,
        write_mode=WRITE_REPLACE,
        stats_columns=RANKING_STATS_COLUMNS,
        stats_not_null="opening_price",
        snapshot=True,
    )
)

register(
    SourceConfig(
        name="acoes",
        description="Stock ranking (InfoMoney acao)",
        table="stock_data",
        key="stock_code",
        window=WINDOW_0930_1730,
        interval_minutes=10,
        adapter_factory=lambda session: InfoMoneyAdapter(session, kind=KIND_STOCK),
        mapper=ranking_record,
        required=("stock_code",),
        pagination=PAGINATE_RANKING,
        max_pages=24,
        batch_size=100,
        batch_pause=0.05,
        write_mode=WRITE_REPLACE,
        stats_columns=RANKING_STATS_COLUMNS,
        stats_not_null="opening_price",
        snapshot=True,
    )
)

register(
    SourceConfig(
        name="dolar",
        description="USD-BRL quote (AwesomeAPI)",
        table="cotacoes_cache",
        key="id",
        window=WINDOW_0900_1800,
        interval_minutes=15,
        adapter_factory=lambda session: AwesomeQuoteAdapter(session, pair="USD-BRL"),
        mapper=fx_record,
        required=("id", "ticker", "preco"),
        window_size=1,
        total=1,
        window_delay=0.0,
        batch_size=1,
        batch_pause=0.0,
        stats_columns=("id", "ticker", "preco", "variacao_percentual", "ultima_atualizacao"),
        stats_order="ultima_atualizacao",
        run_log_table="system_logs",
    )
)


def get_source(name: str) -> SourceConfig:
    try:
        return SOURCES[name]
    except KeyError:
        known = ", ".join(sorted(SOURCES))
        raise KeyError(f"unknown source {name!r} (known: {known})") from None


__all__ = [
    "PAGINATE_RANGE",
    "PAGINATE_RANKING",
    "SOURCES",
    "SourceConfig",
    "WRITE_REPLACE",
    "WRITE_UPSERT",
    "get_source",
    "register",
]
