"""Persistence layer - SQLAlchemy models, database runtime and repositories."""

from melodia.infrastructure.persistence.database import Database
from melodia.infrastructure.persistence.models import Base

__all__ = ["Base", "Database"]
