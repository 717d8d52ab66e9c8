from sqlmodel import create_engine, Session
import os

DATABASE_URL = os.getenv("DATABASE_URL", "postgresql+psycopg2://postgres:postgres@db:5432/book_pricing")
STORAGE_TIMEOUT_SECONDS = int(os.getenv("STORAGE_TIMEOUT_SECONDS", "5"))
SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() in ("1", "true", "yes")

_engine = None


def _connect_args(url: str, timeout: int) -> dict:
    if url.startswith("sqlite"):
        return {"timeout": timeout, "check_same_thread": False}
    if url.startswith("postgresql"):
        return {"connect_timeout": timeout, "options": f"-c statement_timeout={timeout * 1000}"}
    return {}


def get_engine(url: str = None):
    global _engine
    if url is not None:
        return create_engine(url, echo=SQL_ECHO, connect_args=_connect_args(url, STORAGE_TIMEOUT_SECONDS))
    if _engine is None:
        pool_args = {} if DATABASE_URL.startswith("sqlite") else {"pool_pre_ping": True, "pool_timeout": STORAGE_TIMEOUT_SECONDS}
        _engine = create_engine(
            DATABASE_URL,
            echo=SQL_ECHO,
            connect_args=_connect_args(DATABASE_URL, STORAGE_TIMEOUT_SECONDS),
            **pool_args,
        )
    return _engine


def get_session(engine=None) -> Session:
    return Session(engine or get_engine())
