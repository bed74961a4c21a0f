"""Pydantic models for capsules."""

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field, field_validator

MediaType = Literal["text", "image", "video", "audio"]


def as_utc(value: datetime) -> datetime:
    """Normalize a datetime to aware UTC. Naive values are taken as local time."""
    if value.tzinfo is None:
        value = value.astimezone()
    return value.astimezone(timezone.utc)


class Capsule(BaseModel):
    """A sealed memory as it is persisted.

    Holds only durable fields. Lock status and the media handle are derived
    at read time and live on CapsuleView.
    """

    id: str = Field(description="Unique capsule identifier (uuid4), used as store key")
    title: str = Field(description="Short non-empty title")
    description: str = Field(default="", description="Note to the future self")
    media_type: MediaType = Field(default="text", description="Kind of attached media")
    media_blob: bytes | None = Field(default=None, repr=False, description="Raw artifact bytes")
    media_content_type: str | None = Field(default=None, description="Declared content type of the artifact")
    media_name: str | None = Field(default=None, description="File name of the artifact")
    unlock_date: datetime = Field(description="Instant after which the capsule is readable (UTC)")
    created_at: datetime = Field(description="Creation timestamp (UTC)")
    ai_hint: str | None = Field(default=None, description="Cryptic hint shown while locked")
    ai_reflection: str | None = Field(default=None, description="Reflection shown after unlock")

    model_config = {"frozen": True}

    @field_validator("unlock_date", "created_at")
    @classmethod
    def _normalize_utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    @property
    def has_media(self) -> bool:
        return self.media_blob is not None and self.media_type != "text"


class CapsuleView(Capsule):
    """A capsule as returned by a read, with its derived fields.

    is_locked and media_url are recomputed on every load and must never be
    written back to the store; use to_record() before persisting.
    """

    is_locked: bool = Field(default=True, description="unlock_date > now at read time")
    media_url: str | None = Field(default=None, description="Transient blob: handle to media_blob")

    def to_record(self) -> Capsule:
        """Return the persistable capsule without derived fields."""
        return Capsule.model_validate(self.model_dump(include=set(Capsule.model_fields)))


class CapsuleForm(BaseModel):
    """User input for a new capsule.

    unlock_date may be an ISO-8601 string straight from a form field; it is
    parsed and validated when the capsule is created.
    """

    title: str = ""
    description: str = ""
    unlock_date: datetime | str | None = None
