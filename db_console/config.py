"""Configuration management for db-console"""

import logging
import os
from pathlib import Path

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from .backend import ConnectionSettings

load_dotenv()

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "console.yaml"


def get_config_dir(override: str | None = None) -> Path:
    """Get the db-console configuration directory

    Priority (highest to lowest):
    1. override parameter
    2. DB_CONSOLE_CONFIG_DIR environment variable
    3. Default: ~/.db-console

    Args:
        override: Optional path to override config directory

    Returns:
        Path to configuration directory (created if it doesn't exist)
    """
    if override:
        config_dir = Path(os.path.expanduser(override))
    else:
        config_dir_str = os.getenv("DB_CONSOLE_CONFIG_DIR")
        if config_dir_str:
            config_dir = Path(os.path.expanduser(config_dir_str))
        else:
            config_dir = Path.home() / ".db-console"

    config_dir.mkdir(parents=True, exist_ok=True)

    return config_dir


def _env_flag(name: str) -> bool:
    return os.getenv(name, "false").lower() in ("1", "true", "yes")


class ConsoleConfig(BaseModel):
    """Main db-console configuration"""

    # Server addresses: exactly one of these is used, in this order
    address: str | None = Field(default_factory=lambda: os.getenv("DB_CONSOLE_ADDRESS"))
    addresses: list[str] = Field(default_factory=list)
    address_translation: dict[str, str] = Field(default_factory=dict)

    username: str | None = Field(default_factory=lambda: os.getenv("DB_CONSOLE_USERNAME"))
    password: str | None = Field(default_factory=lambda: os.getenv("DB_CONSOLE_PASSWORD"))

    tls_disabled: bool = Field(default_factory=lambda: _env_flag("DB_CONSOLE_TLS_DISABLED"))
    tls_root_ca: str | None = None
    replication_disabled: bool = False

    backend: str | None = Field(
        default_factory=lambda: os.getenv("DB_CONSOLE_BACKEND"),
        description="module:factory returning a Backend, used for non-memory addresses",
    )

    history_dir: str | None = None
    completion_refresh_threshold: int = Field(default=1, ge=0)
    log_level: str = Field(default_factory=lambda: os.getenv("DB_CONSOLE_LOG_LEVEL", "WARNING"))

    @classmethod
    def from_env(cls, config_dir: Path | None = None) -> "ConsoleConfig":
        """Load configuration from environment variables and the YAML file

        Values in console.yaml take precedence over environment defaults.

        Args:
            config_dir: Optional config directory (defaults to get_config_dir())
        """
        if config_dir is None:
            config_dir = get_config_dir()

        return cls(**load_config_from_yaml(config_dir / CONFIG_FILE_NAME))

    def with_overrides(self, **overrides) -> "ConsoleConfig":
        """Copy with every non-None override applied"""
        update = {key: value for key, value in overrides.items() if value is not None}
        return self.model_copy(update=update)

    def history_path(self, config_dir: Path, file_name: str) -> Path:
        base = Path(os.path.expanduser(self.history_dir)) if self.history_dir else config_dir
        return base / file_name

    def server_addresses(self) -> list[str]:
        if self.addresses:
            return list(self.addresses)
        if self.address_translation:
            return list(self.address_translation)
        return [self.address] if self.address else []

    def to_connection_settings(self) -> ConnectionSettings:
        return ConnectionSettings(
            addresses=self.server_addresses(),
            address_translation=dict(self.address_translation),
            username=self.username or "",
            password=self.password or "",
            tls_enabled=not self.tls_disabled,
            tls_root_ca=self.tls_root_ca,
            use_replication=not self.replication_disabled,
        )


def load_config_from_yaml(path: Path) -> dict:
    """Load console settings from a YAML file

    Args:
        path: Path to console.yaml

    Returns:
        Dictionary of setting name -> value, empty when the file is missing or invalid
    """
    if not path.exists():
        return {}

    try:
        with open(path) as f:
            data = yaml.safe_load(f)

        if not data:
            return {}
        if not isinstance(data, dict):
            print(f"Ignoring {path}: expected a mapping of settings")
            return {}

        known = set(ConsoleConfig.model_fields)
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning("Ignoring unknown settings in %s: %s", path, ", ".join(unknown))

        settings = {key: value for key, value in data.items() if key in known}
        # validate now so a bad file is reported here rather than aborting startup
        ConsoleConfig(**settings)
        return settings

    except yaml.YAMLError as e:
        print(f"Error parsing console YAML: {e}")
        return {}
    except ValidationError as e:
        print(f"Invalid settings in {path}: {e}")
        return {}
    except OSError as e:
        print(f"Error loading console settings: {e}")
        return {}
