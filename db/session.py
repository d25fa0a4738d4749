"""
Database Session Management

SQLAlchemy engine + sessionmaker for the flow store. Settings come from the
environment (a .env file is honored):

    DATABASE_URL          connection string (default: local flowguard db)
    FLOWGUARD_DB_POOL     pool size (default: 5)

Provides get_db() for FastAPI Depends injection and check_db() for startup.
"""

import os

from dotenv import load_dotenv
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker

from tools.logger import log

load_dotenv()

DATABASE_URL = os.environ.get("DATABASE_URL", "postgresql://localhost:5432/flowguard")
POOL_SIZE = int(os.environ.get("FLOWGUARD_DB_POOL", "5"))

engine = create_engine(
    DATABASE_URL,
    pool_pre_ping=True,
    pool_size=POOL_SIZE,
    max_overflow=POOL_SIZE * 2,
    connect_args={"connect_timeout": 5},
)

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)

# Idempotent DDL, applied in order on every startup.
SCHEMA = [
    """CREATE TABLE IF NOT EXISTS flows (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        name TEXT NOT NULL,
        flow JSONB NOT NULL,
        is_valid BOOLEAN NOT NULL DEFAULT false,
        draft BOOLEAN NOT NULL DEFAULT false,
        errors JSONB NOT NULL DEFAULT '[]'::jsonb,
        warnings JSONB NOT NULL DEFAULT '[]'::jsonb,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )""",
    "ALTER TABLE flows ADD COLUMN IF NOT EXISTS description TEXT",
    "CREATE INDEX IF NOT EXISTS idx_flows_created ON flows(created_at DESC)",
    "CREATE INDEX IF NOT EXISTS idx_flows_updated ON flows(updated_at DESC)",
    "CREATE INDEX IF NOT EXISTS idx_flows_name ON flows(name)",
]


def get_db():
    """FastAPI dependency — yields a session, closes on teardown."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def check_db():
    """Ping the database and apply SCHEMA. Never raises; the API starts either way.

    Returns:
        True when the database answered and the schema is in place.
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as e:
        log("db.unreachable", level="warning", error=str(e))
        return False

    try:
        with engine.begin() as conn:
            for statement in SCHEMA:
                conn.execute(text(statement))
    except Exception as e:
        log("db.migration_failed", level="warning", error=str(e))
        return False

    log("db.ready", statements=len(SCHEMA))
    return True
