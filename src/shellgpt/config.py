"""
Configuration for shellgpt.

Settings are resolved in this order, later sources winning:
1. defaults
2. the JSON config file (~/.shellgpt/config.json)
3. environment variables (a .env file is loaded first)
4. explicit overrides, usually from command-line flags
"""

import json
import logging
import os
from dataclasses import dataclass, fields, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"

ENV_VARS = {
    "openai_api_key": "OPENAI_API_KEY",
    "search_api_key": "SEARCHAPI_API_KEY",
    "google_search_api_key": "GOOGLE_SEARCH_API_KEY",
    "google_search_engine_id": "GOOGLE_SEARCH_ENGINE_ID",
    "model": "SHELLGPT_MODEL",
    "base_url": "OPENAI_BASE_URL",
}


@dataclass
class Settings:
    """Resolved settings for one session.

    Attributes:
        openai_api_key: Key for the model provider
        search_api_key: searchapi.io key (preferred search backend)
        google_search_api_key: Google Custom Search key
        google_search_engine_id: Google Custom Search engine id (cx)
        model: Chat model name
        temperature: Sampling temperature, 0 to 2
        max_tokens: Completion token limit
        max_results: Default number of search results per tool call
        enable_search: Whether search tools are offered to the model
        debug: Verbose logging of tool calls and API interactions
        base_url: Optional custom API base URL
    """

    openai_api_key: Optional[str] = None
    search_api_key: Optional[str] = None
    google_search_api_key: Optional[str] = None
    google_search_engine_id: Optional[str] = None
    model: str = DEFAULT_MODEL
    temperature: float = 0.7
    max_tokens: int = 1000
    max_results: int = 3
    enable_search: bool = True
    debug: bool = False
    base_url: Optional[str] = None

    def validate(self) -> "Settings":
        if not self.openai_api_key:
            raise ConfigurationError(
                "No OpenAI API key available. Set OPENAI_API_KEY or run "
                "'shellgpt config --set-key <key>'."
            )
        if not 0 <= self.temperature <= 2:
            raise ConfigurationError(f"Temperature must be between 0 and 2, got {self.temperature}")
        if self.max_tokens <= 0:
            raise ConfigurationError(f"max_tokens must be a positive integer, got {self.max_tokens}")
        if self.max_results <= 0:
            raise ConfigurationError(f"max_results must be a positive integer, got {self.max_results}")
        return self

    @property
    def has_search_config(self) -> bool:
        return bool(
            self.search_api_key or (self.google_search_api_key and self.google_search_engine_id)
        )


class ConfigManager:
    """Reads and writes the JSON config file holding saved credentials."""

    def __init__(self, config_dir: Optional[Path] = None):
        if config_dir is None:
            config_dir = Path(os.getenv("SHELLGPT_CONFIG_DIR", Path.home() / ".shellgpt"))
        self.config_dir = Path(config_dir)
        self.config_file = self.config_dir / "config.json"

    def get_config_dir(self) -> Path:
        return self.config_dir

    def has_config(self) -> bool:
        return self.config_file.exists()

    def get_config(self) -> Optional[dict[str, Any]]:
        """Return the parsed config file, or None if missing or unreadable."""
        if not self.config_file.exists():
            return None
        try:
            return json.loads(self.config_file.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error loading config: {e}")
            return None

    def load_api_key(self) -> Optional[str]:
        return (self.get_config() or {}).get("apiKey")

    def load_search_api_key(self) -> Optional[str]:
        return (self.get_config() or {}).get("searchApiKey")

    def _update(self, **values) -> None:
        self.config_dir.mkdir(parents=True, exist_ok=True)
        config = self.get_config() or {}
        config.update(values)
        now = datetime.now(timezone.utc).isoformat()
        config["updatedAt"] = now
        config.setdefault("createdAt", now)
        self.config_file.write_text(json.dumps(config, indent=2), encoding="utf-8")

    def save_api_key(self, api_key: str) -> None:
        self._update(apiKey=api_key)
        logger.info("OpenAI API key saved")

    def save_search_api_key(self, search_api_key: str) -> None:
        self._update(searchApiKey=search_api_key)
        logger.info("SearchAPI key saved")

    def clear_config(self) -> bool:
        """Delete the config file. Returns False if there was nothing to delete."""
        if not self.config_file.exists():
            return False
        self.config_file.unlink()
        return True

    def clear_search_config(self) -> bool:
        """Remove only the search key. Returns False if there is no config file."""
        config = self.get_config()
        if config is None:
            return False
        config.pop("searchApiKey", None)
        config["updatedAt"] = datetime.now(timezone.utc).isoformat()
        self.config_file.write_text(json.dumps(config, indent=2), encoding="utf-8")
        return True


def load_settings(
    overrides: Optional[dict[str, Any]] = None,
    config_manager: Optional[ConfigManager] = None,
    validate: bool = True,
) -> Settings:
    """Resolve settings from defaults, config file, environment and overrides.

    Args:
        overrides: Values that win over every other source; None values are ignored
        config_manager: Config file access, defaults to ~/.shellgpt
        validate: Raise ConfigurationError for missing credentials or bad values

    Returns:
        Settings instance
    """
    load_dotenv()
    config_manager = config_manager or ConfigManager()

    values: dict[str, Any] = {}
    saved = config_manager.get_config() or {}
    if saved.get("apiKey"):
        values["openai_api_key"] = saved["apiKey"]
    if saved.get("searchApiKey"):
        values["search_api_key"] = saved["searchApiKey"]

    for field_name, env_var in ENV_VARS.items():
        env_value = os.getenv(env_var)
        if env_value:
            values[field_name] = env_value

    known = {f.name for f in fields(Settings)}
    for key, value in (overrides or {}).items():
        if key not in known:
            raise ConfigurationError(f"Unknown setting: {key}")
        if value is not None:
            values[key] = value

    try:
        settings = replace(Settings(), **values)
        settings.temperature = float(settings.temperature)
        settings.max_tokens = int(settings.max_tokens)
        settings.max_results = int(settings.max_results)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid setting: {e}", original_error=e) from e

    return settings.validate() if validate else settings
