"""Adapters for integrating kvstats with storage and frameworks."""

from .sqlalchemy_repo import SQLAlchemyOperationRepository

__all__ = ["SQLAlchemyOperationRepository"]
