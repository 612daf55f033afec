from contextlib import contextmanager
from typing import Iterator, Optional

from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker, declarative_base

# Base class for models
Base = declarative_base()


def _configure_sqlite(engine: Engine) -> None:
    """
    pysqlite defers BEGIN until the first DML statement, which breaks
    SAVEPOINT handling. Take over transaction demarcation and start every
    transaction IMMEDIATE so writers serialize on the database lock.
    """
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


class Database:
    """Engine + session factory shared by the whole process"""

    def __init__(self, url: str, echo: bool = False, **engine_kwargs):
        connect_args = engine_kwargs.pop("connect_args", {})
        if url.startswith("sqlite"):
            connect_args.setdefault("check_same_thread", False)
            connect_args.setdefault("timeout", 30)

        self.url = url
        self.engine = create_engine(
            url,
            connect_args=connect_args,
            pool_pre_ping=True,
            echo=echo,
            **engine_kwargs
        )

        if self.engine.dialect.name == "sqlite":
            _configure_sqlite(self.engine)

        # Session factory
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    def create_all(self) -> None:
        # Import models so every table is registered on Base.metadata
        from stockflow import models  # noqa: F401
        Base.metadata.create_all(bind=self.engine)

    def dispose(self) -> None:
        self.engine.dispose()

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Scoped session for scripts and tests; always closed on exit"""
        db = self.SessionLocal()
        try:
            yield db
        finally:
            db.close()


def create_database(url: Optional[str] = None, echo: Optional[bool] = None) -> Database:
    from .config import settings
    return Database(
        url or settings.DATABASE_URL,
        echo=settings.DEBUG if echo is None else echo,
    )


# Dependency for FastAPI
def get_db(request: Request):
    db = request.app.state.database.SessionLocal()
    try:
        yield db
    finally:
        db.close()
