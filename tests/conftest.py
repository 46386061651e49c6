import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine, text

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

SCHEMA = [
    """
    CREATE TABLE b3_data (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        symbol TEXT NOT NULL UNIQUE,
        name TEXT,
        last REAL,
        chg_pct REAL,
        flag TEXT,
        logo_url TEXT,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE b3_destaque (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        symbol TEXT NOT NULL UNIQUE,
        name TEXT,
        last REAL,
        chg_pct REAL,
        flag TEXT,
        logo_url TEXT,
        market_cap REAL,
        type TEXT,
        typespecs TEXT,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE investing_data (
        id INTEGER PRIMARY KEY,
        symbol TEXT,
        name TEXT,
        last REAL,
        chg REAL,
        chg_pct REAL,
        country_name_translated TEXT,
        flag TEXT,
        logo_url TEXT,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE fii_data (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        date TEXT,
        stock_code TEXT NOT NULL,
        stock_name TEXT,
        value REAL,
        value_formatted TEXT,
        change_day_formatted TEXT,
        opening_price REAL,
        image_url TEXT,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE cotacoes_cache (
        id INTEGER PRIMARY KEY,
        ticker TEXT,
        preco REAL,
        preco_abertura REAL,
        variacao_percentual REAL,
        ultima_atualizacao TEXT,
        logo_url TEXT,
        moeda TEXT,
        nome TEXT
    )
    """,
    """
    CREATE TABLE system_logs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        source TEXT,
        status TEXT,
        attempted INTEGER,
        succeeded INTEGER,
        failed INTEGER,
        message TEXT,
        created_at TEXT
    )
    """,
]


@pytest.fixture
def sqlite_engine(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'feeds.db'}", pool_pre_ping=True)
    with engine.begin() as connection:
        for statement in SCHEMA:
            connection.execute(text(statement))
    yield engine
    engine.dispose()


@pytest.fixture
def sleeps(monkeypatch):
    """Replace ``time.sleep`` everywhere and record the requested delays."""

    calls: list[float] = []
    monkeypatch.setattr("time.sleep", lambda seconds: calls.append(seconds))
    return calls


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    for key in ("DATABASE_URL", "SUPABASE_DB_URL", "FEEDS_HOME"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("FEEDS_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("FEEDS_DATA_DIR", str(tmp_path / "data"))
