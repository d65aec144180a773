from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import get_settings


Base = declarative_base()


def _ensure_parent_directory(db_url: str) -> None:
    if db_url.startswith("sqlite:"):
        # sqlite:////abs/path.db
        file_path = db_url.split("sqlite:///")[-1]
        parent = Path(file_path).parent
        parent.mkdir(parents=True, exist_ok=True)


def create_sqlite_engine(sqlite_path: str) -> Engine:
    db_url = f"sqlite:///{sqlite_path}"
    _ensure_parent_directory(db_url)
    engine = create_engine(db_url, connect_args={"check_same_thread": False})

    # Enable WAL and reasonable sync on each new DB connection
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragmas(dbapi_connection, connection_record):  # type: ignore[no-redef]
        cursor = dbapi_connection.cursor()
        try:
            cursor.execute("PRAGMA journal_mode=WAL;")
            cursor.execute("PRAGMA synchronous=NORMAL;")
        finally:
            cursor.close()

    return engine


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_sqlite_engine(get_settings().sqlite_path)


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
