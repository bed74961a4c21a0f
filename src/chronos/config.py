"""Configuration management for Chronos Vault."""

import logging
import os
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field

try:
    import tomllib  # Python 3.11+
except ImportError:
    import tomli as tomllib  # Python < 3.11

logger = logging.getLogger(__name__)

EnrichmentProvider = Literal["auto", "gemini", "openai", "offline"]


def _find_repo_root(start_dir: Path) -> Path:
    """Find repository root by walking upward looking for .git or pyproject.toml."""
    current_dir = start_dir

    while True:
        if (current_dir / ".git").exists() or (current_dir / "pyproject.toml").exists():
            return current_dir

        parent_dir = current_dir.parent

        # Stop at filesystem root
        if parent_dir == current_dir:
            return start_dir

        current_dir = parent_dir


def _load_repo_config_data(repo_root: Path) -> Optional[dict]:
    """Load repo config data from .chronos/config.toml if it exists."""
    config_file = repo_root / ".chronos" / "config.toml"

    if not config_file.exists():
        return None

    try:
        with open(config_file, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        # Malformed config file is ignored
        logger.warning(f"Ignoring unreadable config {config_file}: {e}")
        return None


def _get_repo_config_value(data: Optional[dict], keys: list[str]) -> Optional[object]:
    """Safely get a nested repo config value."""
    if not data:
        return None
    current: object = data
    for key in keys:
        if not isinstance(current, dict) or key not in current:
            return None
        current = current[key]
    return current


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


def resolve_vault_root(cli_vault_path: Optional[str] = None) -> Path:
    """Resolve vault root path with the following precedence:

    1. CLI --vault option (if provided)
    2. repo-local .chronos/config.toml (walk upward from CWD)
    3. CHRONOS_VAULT_PATH environment variable
    4. ./chronos_vault

    The vault does not need to exist yet; `chronos init` creates it.
    """
    if cli_vault_path:
        return Path(cli_vault_path).expanduser().resolve()

    repo_config = _load_repo_config_data(_find_repo_root(Path.cwd()))
    repo_vault = _get_repo_config_value(repo_config, ["vault_root"])
    if isinstance(repo_vault, str) and repo_vault:
        return Path(repo_vault).expanduser().resolve()

    env_vault = os.environ.get("CHRONOS_VAULT_PATH")
    if env_vault:
        return Path(env_vault).expanduser().resolve()

    return (Path.cwd() / "chronos_vault").resolve()


class EnrichmentConfig(BaseModel):
    """Configuration for generated hints and reflections."""

    enabled: bool = Field(default=True)
    provider: EnrichmentProvider = Field(default="auto")
    model: Optional[str] = Field(default=None)
    temperature: float = Field(default=0.7)
    timeout_seconds: int = Field(default=45)


class ChronosConfig(BaseModel):
    """Configuration for a Chronos vault."""

    vault_path: Path = Field(
        default_factory=lambda: Path(os.environ.get("CHRONOS_VAULT_PATH", "./chronos_vault"))
    )
    enrichment: EnrichmentConfig = Field(default_factory=EnrichmentConfig)

    model_config = {"frozen": False}

    @classmethod
    def from_env(cls, cli_vault_path: Optional[str] = None) -> "ChronosConfig":
        """Load configuration from environment variables, repo config or defaults.

        Args:
            cli_vault_path: Vault path from CLI --vault option (highest precedence)
        """
        vault_path = resolve_vault_root(cli_vault_path)
        repo_config = _load_repo_config_data(_find_repo_root(Path.cwd()))

        def _repo(key: str, default: object) -> object:
            value = _get_repo_config_value(repo_config, ["enrichment", key])
            return default if value is None else value

        return cls(
            vault_path=vault_path,
            enrichment=EnrichmentConfig(
                enabled=_env_bool("CHRONOS_ENRICH_ENABLED", bool(_repo("enabled", True))),
                provider=os.environ.get("CHRONOS_ENRICH_PROVIDER") or _repo("provider", "auto"),
                model=os.environ.get("CHRONOS_ENRICH_MODEL") or _repo("model", None),
                temperature=float(os.environ.get("CHRONOS_ENRICH_TEMPERATURE", _repo("temperature", 0.7))),
                timeout_seconds=int(os.environ.get("CHRONOS_ENRICH_TIMEOUT_SECONDS", _repo("timeout_seconds", 45))),
            ),
        )

    def to_yaml_str(self) -> str:
        """Generate YAML configuration string."""
        return f"""# Chronos Vault Configuration

vault_path: {self.vault_path}

# Generated hints and reflections
enrichment:
  enabled: {self.enrichment.enabled}
  provider: '{self.enrichment.provider}'
  model: '{self.enrichment.model or ""}'
  temperature: {self.enrichment.temperature}
  timeout_seconds: {self.enrichment.timeout_seconds}
"""
