"""Configuration management for email dispatch."""

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict
import yaml

from .exceptions import ConfigurationError

ENV_PREFIX = "EMAIL_DISPATCH_"


class SmtpSettings(BaseSettings):
    """SMTP server and default sender configuration."""

    host: Optional[str] = Field(None, description="SMTP server host name")
    port: int = Field(587, description="SMTP server port")
    enable_ssl: bool = Field(True, description="Use STARTTLS, or implicit TLS on port 465")
    timeout_milliseconds: int = Field(100000, gt=0, description="Socket timeout in milliseconds")
    username: Optional[str] = Field(None, description="SMTP login name")
    password: Optional[SecretStr] = Field(None, description="SMTP password")
    domain: Optional[str] = Field(None, description="Windows domain for NTLM-style logins")
    sender_email: Optional[str] = Field(None, description="Default From address")
    sender_name: Optional[str] = Field(None, description="Default From display name")

    model_config = SettingsConfigDict(env_prefix=f"{ENV_PREFIX}SMTP_", case_sensitive=False)


class SenderConfig(BaseSettings):
    """Sender behaviour configuration."""

    max_workers: int = Field(4, ge=1, description="Thread pool size for bulk sends")
    max_recipients_per_type: int = Field(
        100, ge=1, description="Recipient cap for each of to, cc and bcc"
    )

    model_config = SettingsConfigDict(env_prefix=f"{ENV_PREFIX}SENDER_", case_sensitive=False)


class LoggingConfig(BaseSettings):
    """Where dispatch logs go and how verbose they are."""

    level: str = Field("INFO", description="Root log level name")
    format: str = Field(
        "%(asctime)s %(levelname)s [%(name)s] %(message)s",
        description="Console line format",
    )
    file_path: Optional[str] = Field(None, description="JSON log file; no file logging when unset")
    max_file_size: int = Field(5 * 1024 * 1024, gt=0, description="Bytes per log file before rotating")
    backup_count: int = Field(3, ge=0, description="Rotated log files kept")
    console_output: bool = Field(True, description="Log to stderr")

    model_config = SettingsConfigDict(env_prefix=f"{ENV_PREFIX}LOGGING_", case_sensitive=False)


class Settings(BaseSettings):
    """All dispatch settings, one section per concern."""

    smtp: SmtpSettings = Field(default_factory=SmtpSettings)
    sender: SenderConfig = Field(default_factory=SenderConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_nested_delimiter="__",
        case_sensitive=False,
    )


def _load_config_file(config_file: Path) -> Dict[str, Any]:
    """Read a YAML or JSON config file; a missing file yields no settings."""
    if not config_file.exists():
        return {}

    suffix = config_file.suffix.lower()
    if suffix not in (".yaml", ".yml", ".json"):
        raise ConfigurationError(f"Unsupported config file format: {config_file.suffix}")

    with open(config_file, "r") as f:
        try:
            if suffix == ".json":
                return json.load(f)
            return yaml.safe_load(f) or {}
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Invalid config file {config_file}: {e}") from e


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Return ``base`` updated with ``override``, merging nested sections."""
    merged = dict(base)
    for key, value in (override or {}).items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = _deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def _section_from_env(section: str) -> Dict[str, Any]:
    """Collect ``EMAIL_DISPATCH_<SECTION>_*`` variables into a dict."""
    prefix = f"{ENV_PREFIX}{section.upper()}_"
    return {
        key[len(prefix):].lower(): value
        for key, value in os.environ.items()
        if key.upper().startswith(prefix)
    }


@lru_cache()
def load_settings(
    config_dir: Optional[Path] = None,
    env_file: Optional[str] = None,
    config_file: Optional[str] = None,
) -> Settings:
    """
    Build :class:`Settings` for the SMTP transport, sender and logging.

    Each source overrides the previous one:

    - field defaults
    - the config file, ``config.yaml`` in ``config_dir`` unless given
    - ``EMAIL_DISPATCH_*`` variables, after ``.env`` has been loaded into the
      environment without overriding variables that are already set

    Results are cached per argument tuple; call ``load_settings.cache_clear()``
    after changing the environment.

    Args:
        config_dir: Where to look for ``.env`` and ``config.yaml``; defaults to the working directory
        env_file: Explicit dotenv file
        config_file: Explicit YAML or JSON config file

    Returns:
        Settings instance

    Raises:
        ConfigurationError: If the config file or a setting is invalid
    """
    config_dir = Path(config_dir) if config_dir is not None else Path.cwd()

    env_path = Path(env_file) if env_file else config_dir / ".env"
    config_path = Path(config_file) if config_file else config_dir / "config.yaml"

    if env_path.exists():
        load_dotenv(env_path)

    file_config = _load_config_file(config_path)
    env_config = {
        section: _section_from_env(section) for section in ("smtp", "sender", "logging")
    }

    merged_config = _deep_merge(file_config, env_config)

    try:
        return Settings(
            smtp=SmtpSettings(**merged_config.get("smtp", {})),
            sender=SenderConfig(**merged_config.get("sender", {})),
            logging=LoggingConfig(**merged_config.get("logging", {})),
        )
    except Exception as e:
        raise ConfigurationError(f"Failed to load configuration: {e}") from e
