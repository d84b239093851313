from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, declarative_base

import config


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        # SQLite connections are shared between the request threadpool workers
        return {"connect_args": {"check_same_thread": False, "timeout": 30}}
    return {"pool_pre_ping": True, "isolation_level": "READ COMMITTED"}


def use_immediate_transactions(engine):
    """
    SQLite ignores SELECT ... FOR UPDATE and pysqlite defers BEGIN until the
    first INSERT/UPDATE, so a capacity count could run outside the write
    transaction. Take the write lock when the transaction starts instead.
    """

    @event.listens_for(engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def build_engine(url: str, **kwargs):
    options = _engine_kwargs(url)
    options.update(kwargs)
    engine = create_engine(url, echo=config.SQL_ECHO, **options)
    if url.startswith("sqlite"):
        use_immediate_transactions(engine)
    return engine


engine = build_engine(config.DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

# Do NOT call create_all here: main.py does it after importing the models


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
