"""Configuration management with Pydantic and XDG base directory support."""

import os
import sys
from pathlib import Path

from pydantic import Field, PrivateAttr, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from gitsig.utils.crypto import load_or_create_hmac_key


def get_xdg_data_home() -> Path:
    """Get XDG_DATA_HOME directory, defaulting to ~/.local/share."""
    xdg_data = os.getenv("XDG_DATA_HOME")
    if xdg_data:
        return Path(xdg_data)
    return Path.home() / ".local" / "share"


def get_xdg_config_home() -> Path:
    """Get XDG_CONFIG_HOME directory, defaulting to ~/.config."""
    xdg_config = os.getenv("XDG_CONFIG_HOME")
    if xdg_config:
        return Path(xdg_config)
    return Path.home() / ".config"


class Settings(BaseSettings):
    """gitsig configuration settings.

    Precedence: CLI flag > environment variable > .env file > defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix="GITSIG_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Network control
    online: bool = Field(
        default=True,
        description="Allow operations that contact remotes (list --remote, push, pull, rm -R)",
    )

    # Data directories
    data_dir: Path | None = Field(
        default=None,
        description="Override data directory (defaults to XDG_DATA_HOME/gitsig)",
    )

    config_dir: Path | None = Field(
        default=None,
        description="Override config directory (defaults to XDG_CONFIG_HOME/gitsig)",
    )

    # Repository and remotes
    repo_path: Path = Field(
        default=Path("."),
        description="Path inside the git repository to operate on",
    )

    default_remote: str = Field(
        default="origin",
        description="Remote used by push/pull when none is given",
    )

    git_executable: str = Field(
        default="git",
        description="git binary used for push, pull and remote reference deletion",
    )

    # Identity recorded on signature wrapper commits
    signer_name: str = Field(
        default="gitsig",
        description="Author/committer name of signature wrapper commits",
    )

    signer_email: str = Field(
        default="gitsig@localhost",
        description="Author/committer email of signature wrapper commits",
    )

    # Non-interactive credential source
    passphrase: SecretStr | None = Field(
        default=None,
        description="Secret key passphrase; replaces the interactive prompt when set",
    )

    # Audit settings
    audit_enabled: bool = Field(
        default=True,
        description="Record signing and reference operations in the append-only audit ledger",
    )

    audit_hmac_key_path: Path | None = Field(
        default=None,
        description="Location of the audit ledger HMAC key for tamper detection",
    )

    log_level: str = Field(
        default="WARNING",
        description="Logging level for gitsig loggers",
    )

    _resolved_data_dir: Path | None = PrivateAttr(default=None)
    _data_dir_warning_emitted: bool = PrivateAttr(default=False)

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value}")
        return level

    def get_data_dir(self) -> Path:
        """Get the data directory, creating if necessary."""
        if self._resolved_data_dir is not None:
            return self._resolved_data_dir

        if self.data_dir:
            data_dir = self.data_dir
            data_dir.mkdir(parents=True, exist_ok=True)
            self._resolved_data_dir = data_dir
            return data_dir

        primary_dir = get_xdg_data_home() / "gitsig"
        try:
            primary_dir.mkdir(parents=True, exist_ok=True)
            self._resolved_data_dir = primary_dir
            return primary_dir
        except PermissionError as exc:
            fallback = Path.cwd() / ".gitsig-data"
            fallback.mkdir(parents=True, exist_ok=True)
            self._resolved_data_dir = fallback
            if not self._data_dir_warning_emitted:
                print(
                    f"Warning: cannot create data directory at {primary_dir} ({exc}). "
                    f"Using local '{fallback}' instead. Pass --data-dir to override.",
                    file=sys.stderr,
                )
                self._data_dir_warning_emitted = True
            return fallback

    def get_config_dir(self) -> Path:
        """Get the config directory, creating if necessary."""
        if self.config_dir:
            config_dir = self.config_dir
        else:
            config_dir = get_xdg_config_home() / "gitsig"

        config_dir.mkdir(parents=True, exist_ok=True)
        return config_dir

    def get_audit_path(self) -> Path:
        """Get path to audit ledger file."""
        return self.get_data_dir() / "audit.jsonl"

    def get_audit_hmac_key(self) -> bytes:
        """Return the HMAC key used to seal audit ledger entries."""
        key_path = (
            self.audit_hmac_key_path
            if self.audit_hmac_key_path is not None
            else self.get_config_dir() / "audit-ledger.key"
        )
        return load_or_create_hmac_key(key_path, length=32)

    def get_signer_identity(self) -> bytes:
        """Return the ``Name <email>`` identity for wrapper commits."""
        return f"{self.signer_name} <{self.signer_email}>".encode("utf-8")

    def get_passphrase(self) -> str | None:
        """Return the configured passphrase, if any."""
        if self.passphrase is None:
            return None
        return self.passphrase.get_secret_value()


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def set_settings(settings: Settings) -> None:
    """Set the global settings instance (useful for testing)."""
    global _settings
    _settings = settings
