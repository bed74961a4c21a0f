"""Lock evaluation for capsules.

Apart from utc_now(), nothing here reads the clock or touches the store.
Callers pass `now` explicitly.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Optional, TypeVar

from .errors import ValidationError
from .models.capsule import Capsule, CapsuleView, as_utc

C = TypeVar("C", bound=Capsule)

UNLOCKED_LABEL = "UNLOCKED"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: datetime | str) -> datetime:
    """Parse an ISO-8601 timestamp into an aware UTC datetime.

    A trailing 'Z' is accepted. Naive values (e.g. from a local date-time
    form field) are taken to be in the local timezone.
    """
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value).strip()
        if not text:
            raise ValidationError("Timestamp is empty")
        try:
            dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError as e:
            raise ValidationError(f"Invalid ISO-8601 timestamp: {value!r}") from e

    return as_utc(dt)


def is_locked(unlock_date: datetime, now: datetime) -> bool:
    """A capsule stays locked while its unlock instant is strictly in the future."""
    return as_utc(unlock_date) > as_utc(now)


def sort_capsules(capsules: Iterable[C], now: datetime) -> list[C]:
    """Order capsules for display: unlocked first, then locked.

    Within each group capsules are ascending by unlock_date. The sort is
    stable, so equal dates keep their incoming order.
    """
    return sorted(
        capsules,
        key=lambda c: (is_locked(c.unlock_date, now), as_utc(c.unlock_date)),
    )


@dataclass(frozen=True)
class RemainingTime:
    """Time left until unlock, floor-truncated to whole seconds."""

    days: int = 0
    hours: int = 0
    minutes: int = 0
    seconds: int = 0
    unlocked: bool = False

    @property
    def total_seconds(self) -> int:
        return ((self.days * 24 + self.hours) * 60 + self.minutes) * 60 + self.seconds

    def __str__(self) -> str:
        if self.unlocked:
            return UNLOCKED_LABEL
        return f"{self.days}d {self.hours}h {self.minutes}m {self.seconds}s"


def remaining_time(unlock_date: datetime, now: datetime) -> RemainingTime:
    """Break the time until unlock into days/hours/minutes/seconds.

    Clamped to zero (UNLOCKED) once now >= unlock_date. A sub-second
    remainder floors to 0s but still reads as locked.
    """
    unlock_date, now = as_utc(unlock_date), as_utc(now)
    if now >= unlock_date:
        return RemainingTime(unlocked=True)

    total = int((unlock_date - now).total_seconds())
    days, rest = divmod(total, 86400)
    hours, rest = divmod(rest, 3600)
    minutes, seconds = divmod(rest, 60)
    return RemainingTime(days=days, hours=hours, minutes=minutes, seconds=seconds)


def sealed_days(created_at: datetime, unlock_date: datetime) -> int:
    """Number of days a capsule was sealed for, rounded up."""
    created_at, unlock_date = as_utc(created_at), as_utc(unlock_date)
    seconds = (unlock_date - created_at).total_seconds()
    return max(0, math.ceil(seconds / 86400))


@dataclass(frozen=True)
class VaultStats:
    total: int
    locked: int
    unlocked: int


def vault_stats(views: Iterable[CapsuleView], now: Optional[datetime] = None) -> VaultStats:
    """Count locked and unlocked capsules.

    With `now` the lock status is re-evaluated; without it the views'
    read-time is_locked is used.
    """
    locked = 0
    unlocked = 0
    for view in views:
        flag = view.is_locked if now is None else is_locked(view.unlock_date, now)
        if flag:
            locked += 1
        else:
            unlocked += 1
    return VaultStats(total=locked + unlocked, locked=locked, unlocked=unlocked)
