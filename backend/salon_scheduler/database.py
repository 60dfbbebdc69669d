from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from .config import settings


def configure_sqlite(engine: Engine) -> Engine:
    """
    SQLite-specific connection setup.

    - foreign keys on
    - every transaction starts with BEGIN IMMEDIATE, so the write lock is
      taken up front and read-check-write sequences are serialized
    """
    if engine.dialect.name != "sqlite":
        return engine

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, _):
        # pysqlite must not emit its own BEGIN
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def build_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        # check_same_thread=False: FastAPI runs sync endpoints in a threadpool
        engine = create_engine(url, connect_args={"check_same_thread": False})
        return configure_sqlite(engine)
    return create_engine(url, pool_pre_ping=True)


engine = build_engine(settings.resolved_database_url)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
    bind=engine,
)


@contextmanager
def atomic(db: Session):
    """
    One read-modify-write unit: commit on success, roll back on any error.

    The exception is re-raised unchanged.
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise


# Dependency for FastAPI
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
