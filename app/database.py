"""
Database configuration and models using SQLAlchemy.
Supports SQLite (default) or PostgreSQL.
"""

import os
from datetime import datetime
from sqlalchemy import create_engine, Column, Integer, String, Text, DateTime, Boolean, event
from sqlalchemy.orm import declarative_base, sessionmaker

from keyrouter.config import load_config

# Database URL - defaults to SQLite, can use PostgreSQL. Taken from .env too.
DATABASE_URL = load_config().database_url


def enable_sqlite_wal(engine):
    """Enable WAL mode for crash safety and better concurrent access."""
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.close()


# Create engine
if DATABASE_URL.startswith("sqlite"):
    engine = create_engine(DATABASE_URL, connect_args={"check_same_thread": False})
    enable_sqlite_wal(engine)
else:
    engine = create_engine(DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


# ============================================================================
# MODELS
# ============================================================================

class APIKey(Base):
    """Stores encrypted Gemini API keys for rotation.

    Scope is derived from the owner/global markers:
        owner_id set                     → personal key of that user
        is_global True                   → shared global key
        owner_id NULL and is_global NULL → legacy key, treated as global
    """
    __tablename__ = "api_keys"

    id = Column(Integer, primary_key=True, index=True)

    # Key info
    key_encrypted = Column(Text, nullable=False)  # Fernet token, never plaintext
    name = Column(String(100))  # Friendly name like "Personal", "Work"
    owner_id = Column(String(64), index=True)
    is_global = Column(Boolean)

    # Status
    status = Column(String(20), default="active", nullable=False, index=True)  # active, revoked
    is_enabled = Column(Boolean, default=True, nullable=False)

    # Usage tracking
    usage_count = Column(Integer, default=0, nullable=False)
    last_used_at = Column(DateTime)  # Round-robin key, oldest first
    last_error = Column(Text)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    revoked_at = Column(DateTime)

    @property
    def scope(self) -> str:
        if self.owner_id:
            return "personal"
        return "global"


class SystemSetting(Base):
    """Singleton row of system-wide settings."""
    __tablename__ = "system_settings"

    id = Column(Integer, primary_key=True, index=True)
    is_maintenance_mode = Column(Boolean, default=False, nullable=False)
    global_gemini_key = Column(Text)  # Fernet token for the master key
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# ============================================================================
# DATABASE HELPERS
# ============================================================================

def init_db():
    """Initialize database tables."""
    # Ensure data directory exists for SQLite
    if DATABASE_URL.startswith("sqlite"):
        os.makedirs("data", exist_ok=True)

    Base.metadata.create_all(bind=engine)


def get_db():
    """Get database session (for FastAPI dependency injection)."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
