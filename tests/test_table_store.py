from datetime import date, datetime, timezone

from feeds.db import TableStore, get_engine, insert_run_log, normalize_ts


def test_normalize_ts_parses_and_attaches_timezone():
    parsed = normalize_ts("2024-05-01T12:34:56", field="created_at")
    assert parsed == datetime(2024, 5, 1, 12, 34, 56, tzinfo=timezone.utc)
    assert normalize_ts("2024-05-01 12:34:56") == parsed


def test_normalize_ts_handles_dates_and_garbage():
    assert normalize_ts(date(2024, 5, 1)) == datetime(2024, 5, 1, tzinfo=timezone.utc)
    assert normalize_ts(datetime(2024, 5, 1, 9, 0)).tzinfo == timezone.utc
    assert normalize_ts("not a timestamp") is None
    assert normalize_ts("") is None
    assert normalize_ts(None) is None


def test_get_engine_without_url_returns_none(caplog):
    assert get_engine() is None
    assert "DB_DISABLED" in caplog.text


def test_get_engine_reads_alias(monkeypatch, tmp_path):
    monkeypatch.setenv("SUPABASE_DB_URL", f"sqlite:///{tmp_path / 'alias.db'}")
    engine = get_engine()
    assert engine is not None
    assert str(engine.url).endswith("alias.db")
    engine.dispose()


def test_count_not_null(sqlite_engine):
    store = TableStore(sqlite_engine, "fii_data", "stock_code")
    store.insert(
        [
            {"stock_code": "HGLG11", "value": 160.0, "opening_price": 158.0},
            {"stock_code": "KNRI11", "value": 140.0, "opening_price": None},
            {"stock_code": "XPML11", "value": 110.0, "opening_price": 109.5},
        ]
    )

    assert store.count(not_null="opening_price") == 2
    assert store.count({"stock_code": "KNRI11"}, not_null="opening_price") == 0


def test_latest_and_filtered_count(sqlite_engine):
    store = TableStore(sqlite_engine, "b3_data", "symbol")
    store.insert([{"symbol": "OLD1", "flag": "BR", "created_at": "2024-01-01 10:00:00"}])
    store.insert([{"symbol": "NEW1", "flag": "BR", "created_at": "2024-06-01 10:00:00"}])
    store.insert([{"symbol": "AAPL", "flag": "US", "created_at": "2024-07-01 10:00:00"}])

    assert store.count({"flag": "BR"}) == 2
    latest = store.latest(["created_at", "symbol"], {"flag": "BR"})
    assert latest["symbol"] == "NEW1"
    assert store.latest(["symbol"], {"flag": "XX"}) is None


def test_select_missing_and_update(sqlite_engine):
    store = TableStore(sqlite_engine, "investing_data", "id")
    store.insert(
        [
            {"id": 1, "symbol": "PETR4", "logo_url": None},
            {"id": 2, "symbol": "VALE3", "logo_url": ""},
            {"id": 3, "symbol": "ITUB4", "logo_url": "https://logo"},
        ]
    )

    missing = store.select_missing(["id", "symbol"], "logo_url")
    assert sorted(row["id"] for row in missing) == [1, 2]

    assert store.update(1, {"logo_url": "https://new"}) == 1
    assert sorted(row["id"] for row in store.select_missing(["id"], "logo_url")) == [2]


def test_run_log_never_raises(sqlite_engine, caplog):
    entry = {"source": "dolar", "status": "ok", "attempted": 1, "succeeded": 1, "failed": 0, "message": ""}

    assert insert_run_log(sqlite_engine, "system_logs", entry) is True
    assert TableStore(sqlite_engine, "system_logs", "id").count({"source": "dolar"}) == 1
    assert insert_run_log(None, "system_logs", entry) is False
    assert insert_run_log(sqlite_engine, "missing_table", entry) is False
    assert "DB_WRITE_FAILED" in caplog.text
