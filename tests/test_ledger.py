"""Tests for the capsule event ledger."""

import json
from datetime import datetime, timedelta, timezone

import pytest

from chronos.ledger import LedgerWriter, read_ledger_tail


@pytest.mark.parametrize(
    "event_type",
    ["CAPSULE_SEALED", "CAPSULE_DELETED", "CAPSULE_EXPORTED", "ENRICHMENT_FAILED"],
)
def test_each_capsule_event_round_trips(vault_paths, event_type):
    """Every capsule event type is written and read back intact."""
    LedgerWriter(vault_paths.ledger_file).append_event(event_type, {"n": 1}, capsule_id="cap-1")

    [event] = read_ledger_tail(vault_paths.ledger_file)

    assert event.event_type == event_type
    assert event.capsule_id == "cap-1"
    assert event.payload == {"n": 1}


def test_unknown_event_type_is_rejected(vault_paths):
    with pytest.raises(ValueError):
        LedgerWriter(vault_paths.ledger_file).append_event("CAPTURE_INGESTED", {})

    assert vault_paths.ledger_file.read_text() == ""


def test_ledger_directory_created_on_first_seal(temp_vault):
    """A fresh vault gets its 90_system directory when the first capsule is sealed."""
    ledger_path = temp_vault / "90_system" / "ledger.jsonl"

    LedgerWriter(ledger_path).append_event("CAPSULE_SEALED", {"title": "First day"}, capsule_id="cap-1")

    assert ledger_path.is_file()


def test_capsule_history_reads_in_append_order(vault_paths):
    """Seal, export and delete of one capsule come back as one ordered run."""
    writer = LedgerWriter(vault_paths.ledger_file, run_id="run-42")
    writer.append_event("CAPSULE_SEALED", {"media_type": "image"}, capsule_id="cap-1")
    writer.append_event("CAPSULE_EXPORTED", {"bytes": 3}, capsule_id="cap-1")
    writer.append_event("CAPSULE_DELETED", {}, capsule_id="cap-1")

    history = read_ledger_tail(vault_paths.ledger_file)

    assert [e.event_type for e in history] == ["CAPSULE_SEALED", "CAPSULE_EXPORTED", "CAPSULE_DELETED"]
    assert {e.run_id for e in history} == {"run-42"}
    assert len({e.event_id for e in history}) == 3
    assert history[0].ts <= history[-1].ts


def test_separate_writers_get_separate_runs(vault_paths):
    first = LedgerWriter(vault_paths.ledger_file).append_event("CAPSULE_SEALED", {})
    second = LedgerWriter(vault_paths.ledger_file).append_event("CAPSULE_SEALED", {})

    assert first.run_id != second.run_id


def test_tail_keeps_only_most_recent(vault_paths):
    writer = LedgerWriter(vault_paths.ledger_file)
    for i in range(7):
        writer.append_event("CAPSULE_SEALED", {"seq": i}, capsule_id=f"cap-{i}")

    recent = read_ledger_tail(vault_paths.ledger_file, n=3)

    assert [e.capsule_id for e in recent] == ["cap-4", "cap-5", "cap-6"]


def test_tail_skips_damaged_lines(vault_paths):
    """Truncated writes and foreign event types do not hide valid capsule events."""
    writer = LedgerWriter(vault_paths.ledger_file)
    writer.append_event("CAPSULE_SEALED", {"seq": 1})
    with open(vault_paths.ledger_file, "a") as f:
        f.write('{"event_id": "partial"\n')
        f.write('{"event_id": "x", "run_id": "y", "ts": "2026-01-01T00:00:00Z", "event_type": "NOPE"}\n')
        f.write("\n")
    writer.append_event("ENRICHMENT_FAILED", {"seq": 2})

    assert [e.payload["seq"] for e in read_ledger_tail(vault_paths.ledger_file)] == [1, 2]


def test_tail_of_missing_or_empty_ledger(vault_paths, temp_vault):
    assert read_ledger_tail(vault_paths.ledger_file) == []
    assert read_ledger_tail(temp_vault / "elsewhere.jsonl") == []


def test_written_line_is_utc_json(vault_paths):
    """Each line is a standalone JSON object with a UTC timestamp."""
    before = datetime.now(timezone.utc) - timedelta(seconds=1)
    LedgerWriter(vault_paths.ledger_file).append_event("CAPSULE_EXPORTED", {"bytes": 4}, capsule_id="abc")

    [line] = vault_paths.ledger_file.read_text().splitlines()
    data = json.loads(line)

    assert set(data) == {"event_id", "run_id", "ts", "event_type", "capsule_id", "payload"}
    assert data["ts"].endswith("Z")
    assert datetime.fromisoformat(data["ts"].replace("Z", "+00:00")) >= before
