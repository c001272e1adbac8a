from sqlalchemy import create_engine
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from app.config import settings

engine = create_engine(settings.database_url, pool_pre_ping=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Yield one session per request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def upsert_insert(db: Session, model):
    """INSERT with ``on_conflict_*`` support for the session's dialect (SQLite in tests)."""
    if db.get_bind().dialect.name == "sqlite":
        return sqlite.insert(model)
    return postgresql.insert(model)


def init_db(bind=None) -> None:
    """Create missing tables."""
    # Models register themselves on Base.metadata at import.
    import app.models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
