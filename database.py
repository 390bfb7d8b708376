from typing import Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from config import get_settings


class Base(DeclarativeBase):
    pass


_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def _enable_sqlite_pragmas(dbapi_conn, _record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL;")
    cursor.execute("PRAGMA foreign_keys=ON;")
    cursor.close()


def build_engine(database_url: str) -> Engine:
    connect_args: dict[str, object] = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    eng = create_engine(database_url, connect_args=connect_args)
    if database_url.startswith("sqlite"):
        event.listen(eng, "connect", _enable_sqlite_pragmas)
    return eng


def init_engine(database_url: Optional[str] = None) -> Engine:
    """Create the process-wide engine and session factory.

    Called once at application startup. Tests build their own engines and
    never go through here.
    """
    global _engine, _session_factory
    if _engine is not None:
        return _engine
    url = database_url or get_settings().database_url
    _engine = build_engine(url)
    _session_factory = sessionmaker(
        bind=_engine, autoflush=False, expire_on_commit=False
    )
    return _engine


def dispose_engine() -> None:
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None


def get_session_factory() -> sessionmaker:
    if _session_factory is None:
        raise RuntimeError("Database engine is not initialised; call init_engine()")
    return _session_factory

