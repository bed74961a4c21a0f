"""Durable capsule storage."""

from .media_urls import ObjectUrlRegistry
from .repository import CapsuleRepository
from .sqlite import RecordStore, SqliteRecordStore

__all__ = ["CapsuleRepository", "ObjectUrlRegistry", "RecordStore", "SqliteRecordStore"]
