"""SQLAlchemy-backed repository implementations."""

from .store_sql import EntityStoreSQL

__all__ = ["EntityStoreSQL"]
