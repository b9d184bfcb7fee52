from __future__ import annotations
from sqlalchemy import create_engine, event
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker
from .models import Base


def make_engine(database_url: str, pool_size: int = 5, max_overflow: int = 5, pool_timeout: float = 30.0):
    url = make_url(database_url)
    kwargs = {"future": True, "pool_pre_ping": True}
    if url.get_backend_name() == "sqlite":
        # sqlite connections are handed between request threads by the pool
        kwargs["connect_args"] = {"check_same_thread": False}
    if not _is_sqlite_memory(url):
        # in-memory sqlite uses a singleton pool that takes no sizing arguments
        kwargs.update(pool_size=pool_size, max_overflow=max_overflow, pool_timeout=pool_timeout)
    engine = create_engine(url, **kwargs)
    if url.get_backend_name() == "sqlite":
        event.listen(engine, "connect", _on_sqlite_connect)
        event.listen(engine, "begin", _on_sqlite_begin)
    return engine


def _is_sqlite_memory(url) -> bool:
    return url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:")


def _on_sqlite_connect(dbapi_connection, connection_record):
    # pysqlite's implicit BEGIN lets RELEASE SAVEPOINT commit the outer
    # transaction; take over transaction control so savepoints nest properly.
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _on_sqlite_begin(conn):
    conn.exec_driver_sql("BEGIN")


def make_session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False, future=True)


def init_db(engine):
    Base.metadata.create_all(engine)
