"""Tests for the chronos CLI."""

from datetime import timedelta

import pytest
from typer.testing import CliRunner

from chronos.cli import app
from chronos.ledger import read_ledger_tail
from chronos.lock import utc_now
from chronos.models.capsule import Capsule
from chronos.store import CapsuleRepository, SqliteRecordStore

runner = CliRunner()


@pytest.fixture(autouse=True)
def offline_enrichment(monkeypatch):
    """Never reach a real enrichment service from CLI tests."""
    monkeypatch.setenv("CHRONOS_ENRICH_PROVIDER", "offline")


@pytest.fixture
def initialized_vault(temp_vault, vault_paths):
    result = runner.invoke(app, ["init", "--vault", str(temp_vault)])
    assert result.exit_code == 0, result.output
    return vault_paths


def _future(days=30):
    return (utc_now() + timedelta(days=days)).isoformat()


def _last_capsule_id(paths):
    return read_ledger_tail(paths.ledger_file, n=1)[0].capsule_id


def test_init_creates_vault(temp_vault, vault_config):
    """Init creates the system files and is idempotent."""
    result = runner.invoke(app, ["init", "--vault", str(temp_vault)])

    assert result.exit_code == 0
    assert (temp_vault / "90_system" / "config.yaml").exists()
    assert (temp_vault / "90_system" / "ledger.jsonl").exists()
    assert (temp_vault / "90_system" / "capsules.sqlite").exists()
    assert (temp_vault / "exports").is_dir()

    again = runner.invoke(app, ["init", "--vault", str(temp_vault)])
    assert again.exit_code == 0
    assert "already exists" in again.output


def test_commands_require_initialized_vault(tmp_path):
    result = runner.invoke(app, ["list", "--vault", str(tmp_path / "missing")])

    assert result.exit_code == 1
    assert "Vault not initialized" in result.output


def test_seal_text_capsule_and_list(initialized_vault):
    """A sealed note shows up as locked in the listing."""
    vault = str(initialized_vault.root)

    result = runner.invoke(app, ["seal", "Hello", "--unlock", _future(), "--note", "hi there", "--vault", vault])
    assert result.exit_code == 0, result.output
    assert "Capsule sealed" in result.output

    listing = runner.invoke(app, ["list", "--vault", vault])
    assert listing.exit_code == 0
    assert "1 locked" in listing.output
    assert "0 available" in listing.output


def test_seal_with_media_file(initialized_vault, tmp_path):
    """An uploaded image is sealed with the offline hint."""
    image = tmp_path / "photo.png"
    image.write_bytes(b"\x89PNG\r\n")

    result = runner.invoke(
        app,
        ["seal", "Photo", "--unlock", _future(), "--file", str(image), "--vault", str(initialized_vault.root)],
    )

    assert result.exit_code == 0, result.output
    assert "image" in result.output
    assert "A mysterious memory" in result.output


def test_seal_past_date_fails(initialized_vault):
    result = runner.invoke(
        app, ["seal", "Late", "--unlock", _future(days=-1), "--vault", str(initialized_vault.root)]
    )

    assert result.exit_code == 1
    assert "future" in result.output


def test_seal_missing_file_fails(initialized_vault, tmp_path):
    result = runner.invoke(
        app,
        ["seal", "X", "--unlock", _future(), "--file", str(tmp_path / "gone.mp4"), "--vault", str(initialized_vault.root)],
    )

    assert result.exit_code == 1
    assert "not found" in result.output


def test_show_locked_capsule_hides_content(initialized_vault):
    vault = str(initialized_vault.root)
    runner.invoke(app, ["seal", "Secret", "--unlock", _future(), "--note", "the note", "--vault", vault])
    capsule_id = _last_capsule_id(initialized_vault)

    result = runner.invoke(app, ["show", capsule_id[:8], "--vault", vault])

    assert result.exit_code == 0
    assert "Locked" in result.output
    assert "the note" not in result.output

    export = runner.invoke(app, ["show", capsule_id, "--export", "--vault", vault])
    assert export.exit_code == 1


def test_show_unlocked_capsule_and_export(initialized_vault):
    """Unlocked capsules reveal the note and can export their media."""
    now = utc_now()
    repo = CapsuleRepository(SqliteRecordStore(initialized_vault.store_file))
    repo.save(
        Capsule(
            id="0a1b2c3d-0000-4000-8000-000000000000",
            title="Old days",
            description="we were young",
            media_type="audio",
            media_blob=b"OggS",
            media_content_type="audio/ogg",
            media_name="voice.ogg",
            unlock_date=now - timedelta(days=1),
            created_at=now - timedelta(days=366),
        )
    )

    result = runner.invoke(app, ["show", "0a1b2c3d", "--export", "--vault", str(initialized_vault.root)])

    assert result.exit_code == 0, result.output
    assert "we were young" in result.output
    assert "sealed for 365 days" in result.output
    assert (initialized_vault.exports / "voice.ogg").read_bytes() == b"OggS"


def test_show_unknown_capsule(initialized_vault):
    result = runner.invoke(app, ["show", "ffffffff", "--vault", str(initialized_vault.root)])

    assert result.exit_code == 1
    assert "No capsule matches" in result.output


def test_delete_requires_confirmation(initialized_vault):
    vault = str(initialized_vault.root)
    runner.invoke(app, ["seal", "Keep", "--unlock", _future(), "--vault", vault])
    capsule_id = _last_capsule_id(initialized_vault)

    declined = runner.invoke(app, ["delete", capsule_id, "--vault", vault], input="n\n")
    assert declined.exit_code == 0
    assert "Nothing deleted" in declined.output

    deleted = runner.invoke(app, ["delete", capsule_id, "--yes", "--vault", vault])
    assert deleted.exit_code == 0
    assert "Deleted capsule" in deleted.output

    listing = runner.invoke(app, ["list", "--vault", vault])
    assert "The vault is empty" in listing.output


def test_ledger_tail(initialized_vault):
    vault = str(initialized_vault.root)
    runner.invoke(app, ["seal", "Logged", "--unlock", _future(), "--vault", vault])

    result = runner.invoke(app, ["ledger", "tail", "--vault", vault])

    assert result.exit_code == 0
    assert "CAPSULE_SEALED" in result.output


def test_refine_offline_returns_note(temp_vault):
    result = runner.invoke(app, ["refine", "stay curious", "--vault", str(temp_vault)])

    assert result.exit_code == 0
    assert "stay curious" in result.output


def test_version():
    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert "Chronos Vault v" in result.output
