import functools
import os
from contextlib import contextmanager

from sqlalchemy import URL, create_engine
from sqlalchemy.orm import sessionmaker

from dotenv import load_dotenv

load_dotenv()


def get_database_url():
    return URL.create(
        drivername="postgresql+psycopg2",
        username=os.environ.get("POSTGRES_USER", "postgres"),
        password=os.environ.get("POSTGRES_PASSWORD"),
        host=os.environ.get("POSTGRES_HOST", "localhost"),
        port=int(os.environ.get("POSTGRES_PORT", 5432)),
        database=os.environ.get("POSTGRES_DB", "tekken_stats"),
    )


@functools.lru_cache(maxsize=1)
def get_engine():
    # One pooled engine per process, shared by every worker thread.
    return create_engine(
        get_database_url(),
        pool_size=int(os.environ.get("POSTGRES_POOL_SIZE", 10)),
        max_overflow=int(os.environ.get("POSTGRES_MAX_OVERFLOW", 5)),
        pool_pre_ping=True,
    )


@functools.lru_cache(maxsize=1)
def get_sessionmaker():
    return sessionmaker(bind=get_engine(), expire_on_commit=False)


def get_session():
    return get_sessionmaker()()


@contextmanager
def managed_session():
    """
    Yield a session that commits on success and rolls back on any error.

    The error is re-raised after the rollback so callers can classify it.
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
