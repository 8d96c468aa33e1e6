from pathlib import Path
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine

from generatorlog.core.config import get_settings
from generatorlog.core.db.tables.base import Base
from generatorlog.core.db.tables.user import User  # noqa: F401
from generatorlog.core.db.tables.usersession import UserSession  # noqa: F401
from generatorlog.core.db.tables.apikey import ApiKey  # noqa: F401
from generatorlog.core.db.tables.generator import Generator  # noqa: F401
from generatorlog.core.db.tables.usagelog import UsageLog  # noqa: F401
from generatorlog.core.db.tables.servicerecord import ServiceRecord  # noqa: F401


def build_engine(database_url: str) -> Engine:
    """Create an engine; SQLite connections get foreign keys enforced."""
    if database_url.startswith("sqlite"):
        if database_url.startswith("sqlite:///") and ":memory:" not in database_url:
            # Ensure the database directory exists
            Path(database_url.removeprefix("sqlite:///")).parent.mkdir(parents=True, exist_ok=True)
        engine = create_engine(
            database_url,
            echo=False,
            connect_args={"check_same_thread": False},
        )
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        return engine

    return create_engine(
        database_url,
        echo=False,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,
        pool_recycle=3600,
    )


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def init_db(engine: Engine) -> None:
    """Create all tables that do not exist yet."""
    Base.metadata.create_all(engine)


engine = build_engine(get_settings().database_url)
