"""Configuration management using Pydantic settings with optional file persistence."""

import json
import os
from pathlib import Path
from typing import Any, Optional

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Paths ---

APP_NAME = "aeroml-wizard"


def get_config_dir(create: bool = True) -> Path:
    """Get the configuration directory (e.g. ~/.config/aeroml-wizard)."""
    if os.name == "nt":
        base = Path(os.environ.get("APPDATA", Path.home() / ".config")).expanduser()
    else:
        base = Path("~/.config").expanduser()

    path = base / APP_NAME
    if create:
        path.mkdir(parents=True, exist_ok=True)
    return path


CONFIG_FILE = get_config_dir(create=False) / "config.json"


def load_config_file() -> dict[str, Any]:
    """Load settings from the JSON config file if it exists."""
    if not CONFIG_FILE.exists():
        return {}

    try:
        text = CONFIG_FILE.read_text(encoding="utf-8")
        if not text.strip():
            return {}
        return json.loads(text)
    except (OSError, ValueError):
        return {}


def save_config_file(config_data: dict[str, Any]) -> None:
    """Save settings to the JSON config file."""
    CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    CONFIG_FILE.write_text(json.dumps(config_data, indent=2), encoding="utf-8")


def build_api_url(base_url: str, path: str) -> str:
    """Join a base URL and an API path without doubling slashes.

    >>> build_api_url("http://127.0.0.1:8000/", "/api/users/login")
    'http://127.0.0.1:8000/api/users/login'
    """
    clean_path = path[1:] if path.startswith("/") else path
    clean_base = base_url[:-1] if base_url.endswith("/") else base_url
    return f"{clean_base}/{clean_path}"


class ApiSettings(BaseSettings):
    """Remote model-training API configuration."""

    model_config = SettingsConfigDict(env_prefix="AEROML_API_")

    base_url: str = Field(default="http://127.0.0.1:8000", description="Base URL of the model-training backend")
    api_token: Optional[SecretStr] = Field(default=None, description="Bearer token sent with every request")
    validate_path: str = Field(default="/api/model-training/validate-dataset")
    train_path: str = Field(default="/api/model-training/train")
    model_info_path: str = Field(default="/api/model-training/model-info/{session_id}")
    request_timeout: float = Field(default=60.0, description="Timeout for non-streaming requests in seconds")

    def url(self, path: str) -> str:
        return build_api_url(self.base_url, path)

    def get_api_token(self) -> Optional[str]:
        return self.api_token.get_secret_value() if self.api_token else None


class TrainingSettings(BaseSettings):
    """Training job configuration."""

    model_config = SettingsConfigDict(env_prefix="AEROML_TRAINING_")

    timeout_seconds: float = Field(default=300.0, description="Upper bound on total wait for one training stream")
    connect_timeout: float = Field(default=30.0, description="Timeout for opening the training stream")


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(env_prefix="AEROML_LOGGING_")

    level: str = Field(default="INFO")
    json_output: bool = Field(default=True, description="Render structured logs as JSON lines")


class AppSettings(BaseSettings):
    """Root application settings.

    Priority: Environment Variables > Config File > Defaults
    """

    model_config = SettingsConfigDict(env_prefix="AEROML_", extra="ignore")

    api: ApiSettings = Field(default_factory=ApiSettings)
    training: TrainingSettings = Field(default_factory=TrainingSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    def save(self) -> Path:
        """Save current configuration to file (excluding secrets)."""
        data = self.model_dump(mode="json", exclude_none=True)
        if "api" in data and "api_token" in data["api"]:
            del data["api"]["api_token"]
        save_config_file(data)
        return CONFIG_FILE


def _load_settings() -> AppSettings:
    """Load settings with file config as base, env vars overlay."""
    file_data = load_config_file()
    return AppSettings(**file_data)


settings = _load_settings()
