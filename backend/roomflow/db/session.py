from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase
import threading

from ..config import get_settings

"""Database session / engine configuration.

NOTE: In-memory SQLite (":memory:") creates a new database per connection which
breaks tests that open multiple connections, so a file-based SQLite database is
the default unless DATABASE_URL is provided. Production deployments point
DATABASE_URL at PostgreSQL, where ``SELECT ... FOR UPDATE`` on the room row
serializes concurrent approvals.
"""

DATABASE_URL = get_settings().database_url

engine = create_engine(
    DATABASE_URL,
    echo=False,
    future=True,
)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)

class Base(DeclarativeBase):
    pass

_init_lock = threading.Lock()
_tables_created = False

def _ensure_tables():
    global _tables_created
    if _tables_created:
        return
    with _init_lock:
        if not _tables_created:
            from . import models  # noqa: F401 register metadata
            Base.metadata.create_all(bind=engine)
            _tables_created = True

# Dependency
def get_db():
    _ensure_tables()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
