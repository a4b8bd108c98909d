import logging

import pytest
from sqlalchemy import inspect, text

from config import LOG_FORMAT, configure_logging, get_settings
from db.session import build_engine, get_engine, get_session_factory, main, validate_db_compatibility


@pytest.fixture
def configured_database(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'bootstrap.db'}")
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: None)
    caches = (get_settings, get_engine, get_session_factory)
    for cache in caches:
        cache.cache_clear()
    yield
    get_engine().dispose()
    for cache in caches:
        cache.cache_clear()


def test_initialized_schema_is_compatible(db_engine):
    validate_db_compatibility(db_engine)


def test_missing_tables_are_reported(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'empty.db'}")
    with engine.begin() as conn:
        conn.execute(text("CREATE TABLE resources (id INTEGER PRIMARY KEY, capacity INTEGER)"))

    with pytest.raises(RuntimeError) as excinfo:
        validate_db_compatibility(engine)

    message = str(excinfo.value)
    assert "bookings" in message
    assert "resources: is_bookable, max_concurrent" in message
    engine.dispose()


def test_settings_read_from_environment(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite:///./bookings.db")
    monkeypatch.setenv("BOOKINGS_LOCK_TIMEOUT_SECONDS", "5")
    monkeypatch.setenv("BOOKINGS_CODE_PREFIX", " 'hq-' ")
    monkeypatch.setenv("BOOKINGS_SQL_ECHO", "yes")
    monkeypatch.setenv("BOOKINGS_LOG_LEVEL", "debug")
    get_settings.cache_clear()

    try:
        settings = get_settings()
    finally:
        get_settings.cache_clear()

    assert settings.database_url == "sqlite:///./bookings.db"
    assert settings.lock_timeout_seconds == 5.0
    assert settings.code_prefix == "hq-"
    assert settings.code_suffix == ""
    assert settings.sql_echo is True
    assert settings.log_level == "DEBUG"


def test_database_url_is_required(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "  ")
    get_settings.cache_clear()

    try:
        with pytest.raises(RuntimeError, match="DATABASE_URL"):
            get_settings()
    finally:
        get_settings.cache_clear()


def test_configure_logging_defaults_to_settings_level(monkeypatch):
    calls = []
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    monkeypatch.setenv("BOOKINGS_LOG_LEVEL", "warning")
    get_settings.cache_clear()

    try:
        configure_logging()
        configure_logging("DEBUG")
    finally:
        get_settings.cache_clear()

    assert [call["level"] for call in calls] == ["WARNING", "DEBUG"]
    assert calls[0]["format"] == LOG_FORMAT


def test_main_creates_and_validates_schema(configured_database):
    main()

    engine = get_engine()
    assert {"bookings", "reserved_intervals", "plannings"} <= set(inspect(engine).get_table_names())
    validate_db_compatibility(engine)
