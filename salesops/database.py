"""
Database engine and session management.
SQLite for development and tests, PostgreSQL in production.
"""

from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from salesops.config import config


def create_db_engine(url: str, echo: bool = False) -> Engine:
    """SQLite connections are shared across the API threadpool and background tasks."""
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
        echo=echo,
    )


def make_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=bind)


engine = create_db_engine(config.DATABASE_URL, echo=config.DEBUG)
SessionLocal = make_session_factory(engine)

# Base class for all ORM models
Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency yielding one session per request.

    Usage:
        @router.get("/automations/rules")
        def list_rules(team_id: str, db: Session = Depends(get_db)):
            return AutomationRuleService.list_rules(db, team_id)
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind: Engine = None) -> None:
    """Create every table registered on `Base` (idempotent)."""
    from salesops import db_models  # noqa: F401  (registers tables on Base.metadata)

    Base.metadata.create_all(bind=bind or engine)
