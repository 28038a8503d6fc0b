"""Persistence layer for SQLite storage."""

from fundledger.persistence.database import Database
from fundledger.persistence.repository import Repository

__all__ = ["Database", "Repository"]
