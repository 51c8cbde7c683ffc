# database/postgres.py
"""
SQL-backed knowledge tag registry.

Uses SQLAlchemy ORM for easier database operations.
Tables:
- knowledge_tags: one row per knowledge tag, unique by name

PostgreSQL in production; any SQLAlchemy URL works (tests use SQLite).
"""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    create_engine,
    Column,
    String,
    Integer,
    DateTime,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from config import DATABASE_URL

logger = logging.getLogger(__name__)

# Base class for all models
Base = declarative_base()


# ===========================================
# Models
# ===========================================


class KnowledgeTag(Base):
    """
    A knowledge tag names a body of ingested content,
    e.g. a repository name or an uploaded batch label.
    Insertion order is the autoincrement id.
    """

    __tablename__ = "knowledge_tags"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), unique=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<KnowledgeTag {self.name}>"


# ===========================================
# Database Connection
# ===========================================


def create_registry_engine(url: str = DATABASE_URL) -> Engine:
    """Create engine with connection pooling."""
    if url.startswith("sqlite"):
        options = {"echo": False, "connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection so every thread sees the same database
            options["poolclass"] = StaticPool
        return create_engine(url, **options)
    return create_engine(
        url,
        echo=False,  # Set to True to see SQL queries
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
    )


# ===========================================
# Registry
# ===========================================


class SqlTagRegistry:
    """
    Tag registry on a table with a unique name column.

    register_tag() inserts and lets the unique constraint reject duplicates,
    so two processes registering the same new tag cannot both succeed.
    """

    def __init__(self, engine: Optional[Engine] = None):
        self.engine = engine or create_registry_engine()
        self.SessionLocal = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)

    def init_database(self) -> None:
        """Create all tables if they don't exist."""
        Base.metadata.create_all(self.engine)
        logger.info("Tag registry tables ready")

    def list_tags(self) -> List[str]:
        with self.SessionLocal() as session:
            rows = session.query(KnowledgeTag.name).order_by(KnowledgeTag.id).all()
            return [name for (name,) in rows]

    @staticmethod
    def _exists(session, tag: str) -> bool:
        return session.query(KnowledgeTag.id).filter_by(name=tag).first() is not None

    def register_tag(self, tag: str) -> bool:
        """Add the tag if absent. Returns True when it was newly added."""
        with self.SessionLocal() as session:
            if self._exists(session, tag):
                return False
            session.add(KnowledgeTag(name=tag))
            try:
                session.commit()
            except IntegrityError:
                # Lost the race against a concurrent insert of the same tag
                session.rollback()
                logger.info("Knowledge tag %s registered concurrently", tag)
                return False
        logger.info("Registered knowledge tag %s", tag)
        return True
