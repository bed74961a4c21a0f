"""Path management and vault structure for Chronos Vault."""

from pathlib import Path

from .config import ChronosConfig


def generate_unique_filename(directory: Path, base_name: str, extension: str = "") -> Path:
    """Generate a unique filename by adding suffix if collision occurs.

    Args:
        directory: Target directory
        base_name: Base filename (without extension)
        extension: File extension (including dot, e.g., '.webm')

    Returns:
        Path object with unique filename
    """
    candidate = directory / f"{base_name}{extension}"
    if not candidate.exists():
        return candidate

    # Try suffixes: _1, _2, _3, ...
    counter = 1
    while True:
        candidate = directory / f"{base_name}_{counter}{extension}"
        if not candidate.exists():
            return candidate
        counter += 1


class VaultPaths:
    """Manages paths within the Chronos vault structure."""

    def __init__(self, vault_root: Path):
        """Initialize vault paths from root directory.

        Args:
            vault_root: Root directory of the Chronos vault
        """
        self.root = vault_root

        self.system = vault_root / "90_system"
        self.exports = vault_root / "exports"

        # System files
        self.config_file = self.system / "config.yaml"
        self.ledger_file = self.system / "ledger.jsonl"
        self.store_file = self.system / "capsules.sqlite"

    @classmethod
    def from_config(cls, config: ChronosConfig) -> "VaultPaths":
        """Create VaultPaths from a ChronosConfig."""
        return cls(config.vault_path)

    def get_all_directories(self) -> list[Path]:
        """Get list of all directories that should exist in the vault."""
        return [
            self.system,
            self.exports,
        ]

    def is_initialized(self) -> bool:
        return self.config_file.exists()
