from typing import Iterator

from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker, Session

from storefront.domain.models import Base

class Database:
    """Engine and session factory owned by one application instance."""

    def __init__(self, url: str, echo: bool = False):
        connect_args = {}
        if url.startswith("sqlite"):
            connect_args = {"check_same_thread": False, "timeout": 30}
        self.engine: Engine = create_engine(
            url, echo=echo, future=True, pool_pre_ping=True, connect_args=connect_args
        )
        if url.startswith("sqlite"):
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)
        self.SessionLocal = sessionmaker(
            bind=self.engine, autoflush=False, autocommit=False, expire_on_commit=False
        )

    def session(self) -> Session:
        return self.SessionLocal()

    def init_models(self) -> None:
        Base.metadata.create_all(self.engine)

    def dispose(self) -> None:
        self.engine.dispose()

def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()

def is_unique_violation(exc: IntegrityError, column: str) -> bool:
    """Whether a unique index or constraint on ``column`` rejected the write.

    SQLite names the column ("UNIQUE constraint failed: orders.order_number"),
    PostgreSQL names the index ("ix_orders_order_number"); both contain it.
    """
    return column in str(exc.orig)

def get_db(request: Request) -> Iterator[Session]:
    db = request.app.state.database.session()
    try:
        yield db
    finally:
        db.close()
