"""
AIVox Dashboard - Database Configuration
"""
import logging
from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from app.config import DATABASE_URL

logger = logging.getLogger(__name__)


def build_engine(url: str):
    """Create an engine; SQLite needs to be shareable across threads"""
    if not url.startswith("sqlite"):
        return create_engine(url, pool_pre_ping=True)

    kwargs = {"connect_args": {"check_same_thread": False}}
    if url in ("sqlite://", "sqlite:///:memory:"):
        kwargs["poolclass"] = StaticPool
    sqlite_engine = create_engine(url, **kwargs)

    # SQLite leaves foreign keys unenforced unless asked per connection
    @event.listens_for(sqlite_engine, "connect")
    def enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return sqlite_engine


# Create engine
engine = build_engine(DATABASE_URL)

# Create SessionLocal class
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Create Base class
Base = declarative_base()

# Dependency to get DB session
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def init_db():
    """Create tables that do not exist yet"""
    # Models must be registered on Base before create_all
    from app import models  # noqa: F401

    Base.metadata.create_all(bind=engine)

def shutdown_db():
    """Release pooled connections on shutdown"""
    engine.dispose()
    logger.info("Database connections closed")

# Database connection test
def test_connection():
    """Test database connection"""
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False
