"""Capsule lifecycle: seal, list, open and delete."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from .enrich import EnrichmentClient
from .errors import EnrichmentError, ValidationError
from .ledger import LedgerWriter
from .lock import VaultStats, is_locked, parse_timestamp, sort_capsules, utc_now, vault_stats
from .models.capsule import Capsule, CapsuleForm, CapsuleView, MediaType
from .models.capture import MediaArtifact
from .models.ledger import LedgerEventType
from .paths import generate_unique_filename
from .store import CapsuleRepository

logger = logging.getLogger(__name__)


class CapsuleOrchestrator:
    """Coordinates capsule creation, listing and deletion.

    Enrichment is best effort: a failing enrichment client never blocks
    sealing a capsule, the generated fields are just left empty.
    """

    def __init__(
        self,
        repository: CapsuleRepository,
        enrichment: Optional[EnrichmentClient] = None,
        ledger_writer: Optional[LedgerWriter] = None,
        enrich: bool = True,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.repository = repository
        self.enrichment = enrichment
        self.ledger_writer = ledger_writer
        self.enrich = enrich
        self._clock = clock

    def create_capsule(
        self,
        form: CapsuleForm,
        artifact: Optional[MediaArtifact] = None,
        now: Optional[datetime] = None,
    ) -> Capsule:
        """Validate the form, enrich, and persist a new capsule.

        Args:
            form: Title, note and unlock date entered by the user
            artifact: Optional captured or uploaded media
            now: Creation instant; defaults to the current UTC time

        Returns:
            The sealed Capsule as written to the store

        Raises:
            ValidationError: Empty title, missing/past unlock date, unsupported media
            StoreConnectionError, PersistenceError: If the capsule cannot be saved
        """
        now = self._now(now)

        title = form.title.strip()
        if not title:
            raise ValidationError("Title is required")

        if form.unlock_date is None or (isinstance(form.unlock_date, str) and not form.unlock_date.strip()):
            raise ValidationError("Unlock date is required")
        unlock_date = parse_timestamp(form.unlock_date)
        if not unlock_date > now:
            raise ValidationError(f"Unlock date must be in the future (got {unlock_date.isoformat()})")

        media_type: MediaType = "text"
        if artifact is not None:
            kind = artifact.media_kind
            if kind is None:
                raise ValidationError(f"Unsupported media content type: {artifact.content_type!r}")
            if artifact.size == 0:
                raise ValidationError("Attached media is empty")
            media_type = kind

        capsule_id = str(uuid.uuid4())
        ai_hint, ai_reflection = self._generate_enrichment(capsule_id, artifact, form.description)

        capsule = Capsule(
            id=capsule_id,
            title=title,
            description=form.description,
            media_type=media_type,
            media_blob=artifact.data if artifact is not None else None,
            media_content_type=artifact.content_type if artifact is not None else None,
            media_name=artifact.name if artifact is not None else None,
            unlock_date=unlock_date,
            created_at=now,
            ai_hint=ai_hint,
            ai_reflection=ai_reflection,
        )
        self.repository.save(capsule)
        logger.info(f"Sealed capsule {capsule.id} ({media_type}) until {unlock_date.isoformat()}")

        self._record_event(
            "CAPSULE_SEALED",
            capsule.id,
            {
                "title": title,
                "media_type": media_type,
                "media_bytes": artifact.size if artifact is not None else 0,
                "unlock_date": unlock_date.isoformat(),
                "enriched": bool(ai_hint or ai_reflection),
            },
        )
        return capsule

    def list_capsules(self, now: Optional[datetime] = None) -> list[CapsuleView]:
        """All capsules, unlocked first, each group by ascending unlock date."""
        now = self._now(now)
        return sort_capsules(self.repository.get_all(now), now)

    def get_capsule(self, capsule_id: str, now: Optional[datetime] = None) -> Optional[CapsuleView]:
        return self.repository.get(capsule_id, self._now(now))

    def delete_capsule(self, capsule_id: str) -> None:
        """Delete a capsule forever. Confirmation is the caller's job."""
        self.repository.delete(capsule_id)
        logger.info(f"Deleted capsule {capsule_id}")
        self._record_event("CAPSULE_DELETED", capsule_id, {})

    def stats(self, now: Optional[datetime] = None) -> VaultStats:
        return vault_stats(self.list_capsules(now))

    def refine_note(self, note: str) -> str:
        """Rewrite a note through the enrichment client; unchanged on failure."""
        if not note.strip() or self.enrichment is None:
            return note
        try:
            refined = self.enrichment.refine(note)
        except EnrichmentError as e:
            logger.warning(f"Note refinement failed: {e}")
            return note
        return refined or note

    def export_media(self, view: CapsuleView, dest_dir: Path, now: Optional[datetime] = None) -> Path:
        """Write an unlocked capsule's media into dest_dir.

        Raises:
            ValidationError: If the capsule is still locked, has no media, or
                its media handle has been revoked by a later load
        """
        now = self._now(now)
        if is_locked(view.unlock_date, now):
            raise ValidationError(f"Capsule {view.id} is still locked")
        if not view.media_url:
            raise ValidationError(f"Capsule {view.id} has no media")

        try:
            data, _content_type = self.repository.urls.resolve(view.media_url)
        except KeyError as e:
            raise ValidationError(f"Media handle for capsule {view.id} has expired; reload it") from e

        name = Path(view.media_name or f"capsule-{view.id[:8]}.bin")
        dest_dir.mkdir(parents=True, exist_ok=True)
        target = generate_unique_filename(dest_dir, name.stem, name.suffix)
        target.write_bytes(data)

        self._record_event("CAPSULE_EXPORTED", view.id, {"path": str(target), "bytes": len(data)})
        return target

    def _generate_enrichment(
        self,
        capsule_id: str,
        artifact: Optional[MediaArtifact],
        note: str,
    ) -> tuple[Optional[str], Optional[str]]:
        if not self.enrich or self.enrichment is None:
            return None, None

        ai_hint = None
        if artifact is not None:
            try:
                ai_hint = self.enrichment.hint(artifact.data, artifact.content_type) or None
            except EnrichmentError as e:
                self._enrichment_failed(capsule_id, "hint", e)

        ai_reflection = None
        if note.strip():
            try:
                ai_reflection = self.enrichment.reflect(note) or None
            except EnrichmentError as e:
                self._enrichment_failed(capsule_id, "reflection", e)

        return ai_hint, ai_reflection

    def _enrichment_failed(self, capsule_id: str, kind: str, error: Exception) -> None:
        logger.warning(f"Enrichment ({kind}) failed for capsule {capsule_id}: {error}")
        self._record_event("ENRICHMENT_FAILED", capsule_id, {"kind": kind, "error": str(error)[:200]})

    def _record_event(self, event_type: LedgerEventType, capsule_id: str, payload: dict) -> None:
        # Ledger write failures are logged, never raised.
        if self.ledger_writer is None:
            return
        try:
            self.ledger_writer.append_event(event_type=event_type, payload=payload, capsule_id=capsule_id)
        except OSError as e:
            logger.warning(f"Could not append {event_type} for capsule {capsule_id} to ledger: {e}")

    def _now(self, now: Optional[datetime]) -> datetime:
        return parse_timestamp(now if now is not None else self._clock())
