"""Database package"""

from arsenal.db.session import AsyncSessionLocal, engine, get_db
from arsenal.models.base import Base

__all__ = ["Base", "AsyncSessionLocal", "engine", "get_db"]
