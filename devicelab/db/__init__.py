"""Database configuration and session management."""

from devicelab.db.base import Base
from devicelab.db.session import AsyncSessionLocal, engine

__all__ = ["Base", "AsyncSessionLocal", "engine"]
