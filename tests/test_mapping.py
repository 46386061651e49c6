from datetime import datetime, timezone

import pytest

from feeds.mapping import (
    PCT_DERIVED,
    change_percent,
    filter_records,
    fx_record,
    listing_record,
    logo_url,
    opening_price,
    ranking_record,
    screener_record,
)


def test_change_percent_from_absolute_change():
    assert change_percent(110.0, 10.0) == pytest.approx(10.0)
    assert change_percent(None, 1.0) is None
    assert change_percent(5.0, None) is None
    assert change_percent(10.0, 10.0) is None


def test_logo_url_template():
    assert logo_url("petrobras") == "https://s3-symbol-logo.tradingview.com/petrobras.svg"
    assert logo_url(None) is None
    assert logo_url("") is None


@pytest.mark.parametrize(
    "value, change, expected",
    [
        (10.0, "0,00", 10.0),
        (10.0, "", 10.0),
        (11.0, "10,00", 10.0),
        (9.0, "-10,00", 10.0),
        (10.0, "abc", None),
        (10.0, "-100,00", None),
        (None, "1,00", None),
    ],
)
def test_opening_price(value, change, expected):
    assert opening_price(value, change) == expected


def test_screener_record_direct_percent():
    fields = {"name": "PETR4", "description": "Petrobras PN", "logoid": "petrobras", "close": 38.5, "change": 1.23456}

    record = screener_record(fields, flag="BR")

    assert record == {
        "symbol": "PETR4",
        "name": "Petrobras PN",
        "last": 38.5,
        "chg_pct": 1.23,
        "flag": "BR",
        "logo_url": "https://s3-symbol-logo.tradingview.com/petrobras.svg",
    }


def test_screener_record_derived_percent_and_extras():
    fields = {"name": "AAPL", "description": None, "close": 110.0, "change": 10.0, "aum": 5e9, "type": "fund"}

    record = screener_record(
        fields, flag="US", pct_mode=PCT_DERIVED, precision=4, extras={"aum": "aum", "type": "type"}
    )

    assert record["name"] == "AAPL"
    assert record["chg_pct"] == 10.0
    assert record["logo_url"] is None
    assert record["aum"] == 5e9
    assert record["type"] == "fund"


def test_screener_record_keeps_zero_values():
    record = screener_record({"name": "X", "close": 0.0, "change": 0.0}, flag="BR")
    assert record["last"] == 0.0
    assert record["chg_pct"] == 0.0


def test_listing_record_with_id_and_defaults():
    item = {"Id": "1234", "Symbol": "VALE3", "Name": "Vale", "Last": "61.2", "Chg": "-0.3", "ChgPct": "-0.49"}

    record = listing_record(item, include_id=True, include_logo=False)

    assert record["id"] == 1234
    assert record["chg"] == -0.3
    assert record["chg_pct"] == -0.49
    assert record["flag"] is None
    assert "logo_url" not in record

    usa = listing_record({"Symbol": "MSFT"}, default_flag="US", default_country="USA")
    assert usa["flag"] == "US"
    assert usa["country_name_translated"] == "USA"
    assert usa["logo_url"] is None


def test_ranking_record_backs_out_opening_price():
    item = {
        "Date": "2024-06-03",
        "StockCode": "HGLG11",
        "StockName": "CSHG Logistica",
        "Value": 165.0,
        "ValueFormatted": "165,00",
        "ChangeDayFormatted": "10,00",
    }

    record = ranking_record(item)

    assert record["stock_code"] == "HGLG11"
    assert record["opening_price"] == 150.0
    assert record["image_url"] is None


def test_fx_record_uses_low_as_opening():
    now = datetime(2024, 6, 3, 12, 0, tzinfo=timezone.utc)

    record = fx_record({"bid": "5.50", "low": "5.00", "pctChange": "0.3"}, now=now)

    assert record["id"] == 32
    assert record["ticker"] == "USD"
    assert record["preco"] == 5.5
    assert record["preco_abertura"] == 5.0
    assert record["variacao_percentual"] == 0.3
    assert record["ultima_atualizacao"] == now.isoformat()

    fallback = fx_record({"bid": "5.50", "low": "5.00"}, now=now)
    assert fallback["variacao_percentual"] == 10.0


def test_filter_records_counts_discards():
    records = [{"symbol": "A", "last": 1}, {"symbol": None, "last": 2}, {"symbol": "", "last": 3}, {"symbol": "B"}]

    kept, discarded = filter_records(records, ["symbol"])
    assert [r["symbol"] for r in kept] == ["A", "B"]
    assert discarded == 2

    kept, discarded = filter_records(records, ["symbol", "last"])
    assert [r["symbol"] for r in kept] == ["A"]
    assert discarded == 3
