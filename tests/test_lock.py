"""Tests for lock evaluation, ordering and countdowns."""

from datetime import datetime, timedelta, timezone

import pytest

from chronos.errors import ValidationError
from chronos.lock import (
    is_locked,
    parse_timestamp,
    remaining_time,
    sealed_days,
    sort_capsules,
    vault_stats,
)
from chronos.models.capsule import Capsule, CapsuleView


def _capsule(title, unlock_date, now, **kwargs):
    return CapsuleView(
        id=f"id-{title}",
        title=title,
        unlock_date=unlock_date,
        created_at=now - timedelta(days=10),
        is_locked=is_locked(unlock_date, now),
        **kwargs,
    )


def test_is_locked_strictly_future(now):
    """A capsule is locked only while unlock_date is after now."""
    assert is_locked(now + timedelta(seconds=1), now) is True
    assert is_locked(now, now) is False
    assert is_locked(now - timedelta(days=1), now) is False


def test_sort_unlocked_first_then_ascending(now):
    """Unlocked capsules come first; each group ascends by unlock date."""
    day = timedelta(days=1)
    capsules = [
        _capsule("plus5", now + 5 * day, now),
        _capsule("minus1", now - day, now),
        _capsule("plus1", now + day, now),
        _capsule("plus3", now + 3 * day, now),
    ]

    ordered = sort_capsules(capsules, now)

    assert [c.title for c in ordered] == ["minus1", "plus1", "plus3", "plus5"]


def test_sort_is_stable_for_equal_dates(now):
    """Capsules with equal unlock dates keep their incoming order."""
    when = now + timedelta(days=2)
    capsules = [_capsule(name, when, now) for name in ("a", "b", "c")]

    assert [c.title for c in sort_capsules(capsules, now)] == ["a", "b", "c"]


def test_sort_groups_unlocked_before_later_locked(now):
    """Old unlocked capsules sort before locked ones with earlier creation."""
    capsules = [
        _capsule("locked", now + timedelta(hours=1), now),
        _capsule("old", now - timedelta(days=400), now),
        _capsule("recent", now - timedelta(minutes=1), now),
    ]

    assert [c.title for c in sort_capsules(capsules, now)] == ["old", "recent", "locked"]


def test_remaining_time_floor_breakdown(now):
    """Remaining time is floor-truncated into d/h/m/s."""
    unlock = now + timedelta(days=2, hours=3, minutes=4, seconds=5, milliseconds=900)

    remaining = remaining_time(unlock, now)

    assert (remaining.days, remaining.hours, remaining.minutes, remaining.seconds) == (2, 3, 4, 5)
    assert remaining.unlocked is False
    assert str(remaining) == "2d 3h 4m 5s"
    assert remaining.total_seconds == 2 * 86400 + 3 * 3600 + 4 * 60 + 5


def test_remaining_time_unlocked_at_boundary(now):
    """At or after the unlock instant the countdown reads UNLOCKED."""
    assert str(remaining_time(now, now)) == "UNLOCKED"
    assert remaining_time(now - timedelta(days=1), now).unlocked is True


def test_remaining_time_sub_second_still_locked(now):
    """Less than a second left floors to zero but is not UNLOCKED."""
    remaining = remaining_time(now + timedelta(milliseconds=300), now)

    assert remaining.unlocked is False
    assert str(remaining) == "0d 0h 0m 0s"


def test_sealed_days_rounds_up(now):
    """Sealed duration is reported in whole days, rounded up."""
    assert sealed_days(now, now + timedelta(days=3)) == 3
    assert sealed_days(now, now + timedelta(days=3, hours=1)) == 4
    assert sealed_days(now, now - timedelta(days=1)) == 0


def test_parse_timestamp_utc_suffix():
    """Trailing Z is accepted and the result is UTC."""
    parsed = parse_timestamp("2026-03-01T09:30:00Z")

    assert parsed == datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc)


def test_parse_timestamp_converts_offset():
    """Offsets are normalized to UTC."""
    parsed = parse_timestamp("2026-03-01T09:30:00+02:00")

    assert parsed == datetime(2026, 3, 1, 7, 30, tzinfo=timezone.utc)
    assert parsed.utcoffset() == timedelta(0)


def test_parse_timestamp_naive_is_local():
    """Naive values are interpreted in the local timezone."""
    naive = datetime(2026, 3, 1, 9, 30)

    parsed = parse_timestamp(naive.isoformat())

    assert parsed == naive.astimezone().astimezone(timezone.utc)


@pytest.mark.parametrize("value", ["", "   ", "next tuesday", "2026-13-01"])
def test_parse_timestamp_rejects_invalid(value):
    """Empty or malformed timestamps raise ValidationError."""
    with pytest.raises(ValidationError):
        parse_timestamp(value)


def test_vault_stats_counts(now):
    """Stats count locked and unlocked capsules."""
    views = [
        _capsule("a", now - timedelta(days=1), now),
        _capsule("b", now + timedelta(days=1), now),
        _capsule("c", now + timedelta(days=2), now),
    ]

    stats = vault_stats(views)

    assert (stats.total, stats.locked, stats.unlocked) == (3, 2, 1)


def test_vault_stats_reevaluates_with_now(now):
    """Passing now re-derives lock status instead of trusting the views."""
    views = [_capsule("a", now + timedelta(hours=1), now)]

    stats = vault_stats(views, now=now + timedelta(hours=2))

    assert stats.unlocked == 1
    assert stats.locked == 0


def test_capsule_view_to_record_drops_derived_fields(now):
    """to_record strips is_locked and media_url."""
    view = _capsule("a", now + timedelta(days=1), now, media_url="blob:chronos/x")

    record = view.to_record()

    assert type(record) is Capsule
    assert "is_locked" not in record.model_dump()
    assert "media_url" not in record.model_dump()
