"""Configuration settings for SoloMail."""

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AzureSettings(BaseSettings):
    """Microsoft identity platform configuration settings."""

    client_id: str = Field(
        default="",
        description="Azure AD application (client) ID",
    )
    tenant: str = Field(
        default="consumers",
        description="Tenant ID, 'consumers' for personal accounts or 'common'",
    )
    authority: str = Field(
        default="login.microsoftonline.com",
        description="Authority host used when no signed-in account provides one",
    )
    scopes: List[str] = Field(
        default_factory=lambda: [
            "https://graph.microsoft.com/User.Read",
            "https://graph.microsoft.com/Mail.Read",
            "https://graph.microsoft.com/Mail.Send",
            "offline_access",
        ],
        description="Delegated Microsoft Graph scopes",
    )

    model_config = SettingsConfigDict(env_prefix="AZURE_")


class MailSettings(BaseSettings):
    """Mailbox access settings."""

    allowed_account: str = Field(
        default="",
        description="The only account address allowed to sign in",
    )
    base_url: str = Field(
        default="https://graph.microsoft.com/v1.0",
        description="Microsoft Graph API base URL",
    )
    page_size: int = Field(
        default=25,
        ge=1,
        le=1000,
        description="Number of messages requested per inbox page",
    )
    max_cached_messages: int = Field(
        default=100,
        ge=1,
        description="Maximum number of messages kept in the in-memory inbox",
    )
    timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Connect/read/write timeout for Graph requests",
    )

    @field_validator("allowed_account")
    @classmethod
    def normalize_account(cls, v: str) -> str:
        """Store the allowed account trimmed and lower-cased."""
        return v.strip().lower()

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Drop a trailing slash so URLs join cleanly."""
        return v.rstrip("/")

    model_config = SettingsConfigDict(env_prefix="MAIL_")


class StorageSettings(BaseSettings):
    """Storage configuration settings."""

    auth_record_file: str = Field(
        default="~/.solomail/auth_record.json",
        description="File holding the serialized authentication record of the signed-in account",
    )
    token_cache_name: str = Field(
        default="solomail_msal_cache",
        description="Name of the persistent MSAL token cache",
    )

    @field_validator("auth_record_file")
    @classmethod
    def expand_path(cls, v: str) -> str:
        """Expand user home directory in paths."""
        return str(Path(v).expanduser())

    model_config = SettingsConfigDict(env_prefix="STORAGE_")


class LoggingSettings(BaseSettings):
    """Logging configuration settings."""

    level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate logging level."""
        v_upper = v.upper()
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid logging level: {v}. Must be one of {valid_levels}")
        return v_upper

    model_config = SettingsConfigDict(env_prefix="LOGGING_")


class Settings(BaseSettings):
    """Main application settings."""

    azure: AzureSettings = Field(default_factory=AzureSettings)
    mail: MailSettings = Field(default_factory=MailSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    @classmethod
    def from_yaml(cls, config_path: Optional[Path] = None) -> "Settings":
        """Load settings from YAML file.

        Args:
            config_path: Path to YAML config file. If None, uses default locations.

        Returns:
            Settings instance loaded from YAML file, or defaults when no file exists.
        """
        if config_path is None:
            possible_paths = [
                Path("config/config.yaml"),
                Path.home() / ".solomail" / "config.yaml",
            ]
            for path in possible_paths:
                if path.exists():
                    config_path = path
                    break

        if config_path is None or not config_path.exists():
            return cls(
                azure=AzureSettings(),
                mail=MailSettings(),
                storage=StorageSettings(),
                logging=LoggingSettings(),
            )

        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f)

        if config_data is None:
            config_data = {}

        return cls(
            azure=AzureSettings(**config_data.get("azure", {})),
            mail=MailSettings(**config_data.get("mail", {})),
            storage=StorageSettings(**config_data.get("storage", {})),
            logging=LoggingSettings(**config_data.get("logging", {})),
        )

    def setup_logging(self) -> None:
        """Configure logging based on settings."""
        logging.basicConfig(
            level=getattr(logging, self.logging.level),
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def ensure_directories(self) -> None:
        """Ensure required directories exist."""
        Path(self.storage.auth_record_file).parent.mkdir(parents=True, exist_ok=True)


@lru_cache()
def get_settings(config_path: Optional[Path] = None) -> Settings:
    """Get cached settings instance.

    Args:
        config_path: Optional path to config file.

    Returns:
        Cached Settings instance.
    """
    env_config_path = os.getenv("SOLOMAIL_CONFIG")
    if env_config_path:
        config_path = Path(env_config_path)

    return Settings.from_yaml(config_path)
