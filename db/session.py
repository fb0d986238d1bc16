from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.engine.url import make_url
from sqlalchemy.pool import StaticPool
from config.settings import settings
from db.base import Base
import logging

logger = logging.getLogger(__name__)

url = make_url(settings.DATABASE_URL)

engine_kwargs = {"pool_pre_ping": True}

def _make_engine():
    # SQLite (local development and tests)
    if url.drivername.startswith("sqlite"):
        if not url.database or url.database == ":memory:":
            # One shared connection so every session sees the same in-memory database
            return create_engine(
                url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        return create_engine(url, connect_args={"check_same_thread": False}, **engine_kwargs)

    # PostgreSQL via psycopg2
    if url.drivername.startswith("postgresql"):
        return create_engine(
            url,
            pool_recycle=300,
            connect_args={"application_name": "medimind-payments", "connect_timeout": 10},
            **engine_kwargs,
        )

    return create_engine(url, **engine_kwargs)

engine = _make_engine()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

def get_db():
    """Dependency to get database session"""
    db = SessionLocal()
    try:
        yield db
    except Exception as e:
        logger.error(f"Database error: {e}")
        db.rollback()
        raise
    finally:
        db.close()

def create_tables():
    """Create all tables"""
    import models  # noqa: F401 ensure model registration
    Base.metadata.create_all(bind=engine)

def drop_tables():
    """Drop all tables"""
    import models  # noqa: F401
    Base.metadata.drop_all(bind=engine)
