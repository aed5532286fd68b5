from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import sessionmaker
from app.core.config import settings


def create_db_engine(database_url: str, **kwargs) -> Engine:
    """
    Create an engine for the given URL.

    SQLite transactions are opened with BEGIN IMMEDIATE so concurrent writers
    serialize on the database lock (the booking check-then-insert relies on it).
    """
    url = make_url(database_url)
    backend = url.get_backend_name()
    connect_args = {}
    if backend.startswith("postgresql"):
        connect_args["options"] = "-c timezone=utc"
    elif backend == "sqlite":
        connect_args["check_same_thread"] = False
        connect_args["timeout"] = 30

    db_engine = create_engine(
        database_url, pool_pre_ping=True, connect_args=connect_args, **kwargs
    )

    if backend == "sqlite":
        @event.listens_for(db_engine, "connect")
        def _disable_pysqlite_transactions(dbapi_connection, connection_record):
            # pysqlite's implicit BEGIN is replaced by the listener below
            dbapi_connection.isolation_level = None
            dbapi_connection.execute("PRAGMA foreign_keys=ON")

        @event.listens_for(db_engine, "begin")
        def _begin_immediate(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    return db_engine


engine = create_db_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
