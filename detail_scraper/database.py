from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from detail_scraper.config import DATABASE_URL

Base = declarative_base()


def build_engine(database_url: str = DATABASE_URL) -> Engine:
    """
    Create an engine for the backlog store.
    Each worker process builds its own; engines are never shared across processes.
    """
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"timeout": 30, "check_same_thread": False},
        )

    return create_engine(
        database_url,
        pool_pre_ping=True,  # Test connections before using them
        pool_size=10,
        max_overflow=20,
        pool_recycle=300,  # Recycle connections after 5 minutes
    )


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
