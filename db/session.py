from __future__ import annotations

import logging
from functools import lru_cache

from sqlalchemy import create_engine, event, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from config import get_settings

logger = logging.getLogger(__name__)


def _enable_sqlite_write_locks(engine: Engine) -> None:
    # SQLite ignores FOR UPDATE; take the database write lock at BEGIN so
    # overlap counts serialize the same way row locks do elsewhere.
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, _connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(database_url: str, *, lock_timeout_seconds: float = 30, echo: bool = False) -> Engine:
    is_sqlite = database_url.startswith("sqlite")
    connect_args = {"check_same_thread": False, "timeout": lock_timeout_seconds} if is_sqlite else {}

    engine = create_engine(
        database_url,
        pool_pre_ping=True,
        echo=echo,
        future=True,
        connect_args=connect_args,
    )
    if is_sqlite:
        _enable_sqlite_write_locks(engine)
    return engine


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
        future=True,
    )


@lru_cache
def get_engine() -> Engine:
    settings = get_settings()
    return build_engine(
        settings.database_url,
        lock_timeout_seconds=settings.lock_timeout_seconds,
        echo=settings.sql_echo,
    )


@lru_cache
def get_session_factory() -> sessionmaker:
    return build_session_factory(get_engine())


def init_db(engine: Engine | None = None) -> None:
    """Bootstrap schema for environments without migrations."""
    from reservations.models import Base

    Base.metadata.create_all(bind=engine or get_engine())
    logger.info("Reservation tables created")


def validate_db_compatibility(engine: Engine | None = None) -> None:
    required_tables = {
        "groups",
        "resources",
        "resource_relations",
        "plannings",
        "bookings",
        "reserved_intervals",
    }
    required_columns = {
        "resources": {"capacity", "max_concurrent", "is_bookable"},
        "plannings": {"matching_strategy", "starts_on", "ends_on"},
        "bookings": {"deleted_at"},
        "reserved_intervals": {"is_excluded", "starts_at", "ends_at"},
    }

    inspector = inspect(engine or get_engine())
    existing_tables = set(inspector.get_table_names())
    missing_tables = sorted(required_tables - existing_tables)

    missing_column_msgs: list[str] = []
    for table_name, columns in required_columns.items():
        if table_name not in existing_tables:
            continue
        existing_columns = {col["name"] for col in inspector.get_columns(table_name)}
        missing_columns = sorted(columns - existing_columns)
        if missing_columns:
            missing_column_msgs.append(f"{table_name}: {', '.join(missing_columns)}")

    if not missing_tables and not missing_column_msgs:
        return

    details: list[str] = []
    if missing_tables:
        details.append(f"missing tables [{', '.join(missing_tables)}]")
    if missing_column_msgs:
        details.append(f"missing columns [{'; '.join(missing_column_msgs)}]")

    raise RuntimeError(
        "Database compatibility check failed: "
        + "; ".join(details)
        + ". Apply required migrations before using the reservation core."
    )


def main() -> None:
    """Create the reservation schema for the configured database and verify it."""
    from config import configure_logging

    configure_logging()
    init_db()
    validate_db_compatibility()
    logger.info(f"Database ready: {get_engine().url.render_as_string(hide_password=True)}")


if __name__ == "__main__":
    main()
