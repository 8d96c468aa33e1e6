from typing import Generator
from sqlalchemy.orm import sessionmaker, Session

from generatorlog.core.db.engine import engine

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_factory() -> sessionmaker:
    """Factory for work that outlives the request session (background tasks)."""
    return SessionLocal
