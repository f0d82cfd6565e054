# database.py
import logging

from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from schema import Base  # ORM Base
from schema import OrderORM, PaymentORM  # noqa: F401 ensure model import

logger = logging.getLogger(__name__)


def _enable_sqlite_wal(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.close()


class Database:
    """Owns the engine and session factory; opened at startup, disposed at shutdown"""

    def __init__(self, url: str, **engine_kwargs):
        self.url = url
        connect_args = engine_kwargs.pop("connect_args", {})
        if url.startswith("sqlite"):
            # requests are served from the threadpool
            connect_args.setdefault("check_same_thread", False)
        self.engine = create_engine(url, connect_args=connect_args, **engine_kwargs)
        if self.engine.dialect.name == "sqlite":
            event.listen(self.engine, "connect", _enable_sqlite_wal)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    def create_all(self) -> None:
        # 테이블 생성
        Base.metadata.create_all(bind=self.engine)
        logger.info(f"Tables ready on {self.engine.url.render_as_string(hide_password=True)}")

    def session(self):
        return self.SessionLocal()

    def dispose(self) -> None:
        self.engine.dispose()
        logger.info("Database engine disposed")


def get_db(request: Request):
    db = request.app.state.database.session()
    try:
        yield db
    finally:
        db.close()
