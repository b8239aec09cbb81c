from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from authadmin.db.base import Base


@lru_cache
def get_engine(database_url: str) -> Engine:
    """Engine per database URL. In-memory sqlite shares one connection."""
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite:///"):
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)
    return create_engine(database_url, pool_pre_ping=True)


@lru_cache
def get_session_factory(database_url: str) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=get_engine(database_url))


def init_db(engine: Engine) -> None:
    """Create all tables that do not exist yet."""
    import authadmin.db.models  # noqa: F401  registers the models on Base

    Base.metadata.create_all(bind=engine)
