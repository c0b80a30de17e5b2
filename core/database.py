from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from core.config import Settings

Base = declarative_base()


def build_engine(settings: Settings) -> Engine:
    """
    Create the SQLAlchemy engine with every blocking store call bounded by
    STORE_TIMEOUT_SECONDS.

    - SQLite: lock wait timeout
    - PostgreSQL: connect timeout and per-statement timeout
    - Any backend: connection pool checkout timeout
    """
    url = settings.DATABASE_URL
    timeout = settings.STORE_TIMEOUT_SECONDS

    if url.startswith("sqlite"):
        # SQLite pools are not QueuePool, so no pool_timeout here
        return create_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": timeout},
        )

    connect_args = {}
    if url.startswith("postgresql"):
        connect_args = {
            "connect_timeout": max(1, int(timeout)),
            "options": f"-c statement_timeout={int(timeout * 1000)}",
        }

    return create_engine(
        url,
        connect_args=connect_args,
        pool_timeout=timeout,
        pool_pre_ping=True,
    )


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(engine: Engine) -> None:
    # Import models so their tables are registered on Base.metadata
    import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
