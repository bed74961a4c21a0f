"""Capsule persistence on top of a RecordStore."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from pydantic import ValidationError as ModelValidationError

from ..errors import PersistenceError
from ..lock import is_locked, parse_timestamp, utc_now
from ..models.capsule import Capsule, CapsuleView
from .media_urls import ObjectUrlRegistry
from .sqlite import RecordStore

logger = logging.getLogger(__name__)

# Derived at read time; dropped if ever found in a stored record.
DERIVED_FIELDS = ("is_locked", "media_url")


class CapsuleRepository:
    """Saves capsules and loads them back with derived fields.

    Records are written without is_locked or media_url. Each load
    recomputes is_locked from unlock_date and mints a fresh media URL,
    revoking the URL the previous load handed out for the same capsule.
    """

    def __init__(self, store: RecordStore, urls: Optional[ObjectUrlRegistry] = None):
        self._store = store
        self.urls = urls or ObjectUrlRegistry()
        self._issued: dict[str, str] = {}

    def open(self) -> None:
        """Ensure the store exists. Safe to call repeatedly.

        Raises:
            StoreConnectionError: If the store cannot be opened
        """
        self._store.open()

    def save(self, capsule: Capsule) -> None:
        """Upsert a capsule keyed by id.

        Raises:
            StoreConnectionError: If the store cannot be opened
            PersistenceError: If the write transaction fails
        """
        self._store.open()
        self._store.put(self._to_record(capsule))

    def get_all(self, now: Optional[datetime] = None) -> list[CapsuleView]:
        """Load every capsule with is_locked and media_url derived for `now`."""
        now = parse_timestamp(now) if now is not None else utc_now()
        self._store.open()
        records = self._store.get_all()

        for url in self._issued.values():
            self.urls.revoke(url)
        self._issued.clear()

        return [self._hydrate(record, now) for record in records]

    def get(self, capsule_id: str, now: Optional[datetime] = None) -> Optional[CapsuleView]:
        now = parse_timestamp(now) if now is not None else utc_now()
        self._store.open()
        record = self._store.get(capsule_id)

        previous = self._issued.pop(capsule_id, None)
        if previous:
            self.urls.revoke(previous)

        if record is None:
            return None
        return self._hydrate(record, now)

    def delete(self, capsule_id: str) -> None:
        """Remove a capsule permanently. Unknown ids are ignored."""
        self._store.open()
        self._store.delete(capsule_id)

        url = self._issued.pop(capsule_id, None)
        if url:
            self.urls.revoke(url)

    def _to_record(self, capsule: Capsule) -> dict[str, Any]:
        if isinstance(capsule, CapsuleView):
            capsule = capsule.to_record()
        record = capsule.model_dump(mode="json", exclude={"media_blob"})
        record["media_blob"] = capsule.media_blob
        return record

    def _hydrate(self, record: dict[str, Any], now: datetime) -> CapsuleView:
        fields = {k: v for k, v in record.items() if k not in DERIVED_FIELDS}
        try:
            capsule = Capsule.model_validate(fields)
        except ModelValidationError as e:
            raise PersistenceError(f"Stored capsule {record.get('id')} is invalid: {e}") from e

        media_url = None
        if capsule.has_media:
            media_url = self.urls.create(
                capsule.media_blob,
                capsule.media_content_type or "application/octet-stream",
            )
            self._issued[capsule.id] = media_url

        return CapsuleView(
            **capsule.model_dump(),
            is_locked=is_locked(capsule.unlock_date, now),
            media_url=media_url,
        )
