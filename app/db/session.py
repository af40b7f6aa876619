# app/db/session.py
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from app.core.config import settings

Base = declarative_base()

# Execution option read by the SQLite "begin" listener: DEFERRED or IMMEDIATE.
SQLITE_BEGIN_OPTION = "sqlite_begin"


def configure_sqlite_connections(engine: Engine) -> None:
    """Enforce foreign keys and let SQLAlchemy own BEGIN on SQLite connections.

    The sqlite3 driver only opens a transaction before DML, so a SELECT at the
    start of a read-then-write runs outside it. With the driver's own handling
    switched off, every transaction starts with an explicit BEGIN; write
    transactions ask for ``BEGIN IMMEDIATE`` and take the database write lock
    before their first read.
    """
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, _connection_record) -> None:
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn) -> None:
        mode = conn.get_execution_options().get(SQLITE_BEGIN_OPTION, "DEFERRED")
        conn.exec_driver_sql(f"BEGIN {mode}")


# SQLite requires special connect args for multi-thread access.
connect_args = {}
if settings.DATABASE_URL.startswith("sqlite"):
    connect_args = {"check_same_thread": False}

engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    connect_args=connect_args,
)
configure_sqlite_connections(engine)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
