from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker

from faceenroll.core.config import settings

engine = create_engine(settings.DATABASE_URL, pool_pre_ping=True)

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def ping(db) -> None:
    """Raise if the store cannot answer a trivial query."""
    db.execute(text("SELECT 1"))
