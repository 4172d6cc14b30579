"""Database package initialization."""
from pairchat.db.database import Base, Database

__all__ = ["Base", "Database"]
