"""
Persisted VibeBuild configuration (API key, model name).

Stored as JSON in the user's config directory. The API key falls back to the
ANTHROPIC_API_KEY environment variable, which the CLI loads from a .env file.
"""

import json
import logging
import os
import threading
from pathlib import Path

from pydantic import BaseModel, ValidationError


logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"


def default_config_path() -> Path:
    override = os.getenv("VIBEBUILD_CONFIG")
    if override:
        return Path(override)
    return Path.home() / ".config" / "vibe-build.json"


class VibeBuildConfig(BaseModel):
    api_key: str = ""
    model: str = DEFAULT_MODEL


def mask_api_key(key: str) -> str:
    """Mask a key for chat output: first and last four characters only."""
    if len(key) > 8:
        return key[:4] + "..." + key[-4:]
    return "****"


class ConfigStore:
    """Loads, caches and saves the configuration file."""

    def __init__(self, path: Path | None = None):
        self.path = path or default_config_path()
        self._lock = threading.Lock()
        self._config = VibeBuildConfig()

    def load(self) -> VibeBuildConfig:
        if not self.path.exists():
            return self._config
        try:
            loaded = VibeBuildConfig.model_validate(json.loads(self.path.read_text()))
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.warning("[VB] Failed to load config %s: %s", self.path, e)
            return self._config
        with self._lock:
            self._config = loaded
        logger.info("[VB] Config loaded (model=%s)", loaded.model)
        return loaded

    def save(self) -> None:
        with self._lock:
            data = self._config.model_dump()
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(data, indent=2))
        except OSError as e:
            logger.error("[VB] Failed to save config: %s", e)

    def get_api_key(self) -> str | None:
        """Configured key, else ANTHROPIC_API_KEY, else None."""
        with self._lock:
            key = self._config.api_key
        key = key or os.getenv("ANTHROPIC_API_KEY", "")
        return key.strip() or None

    def set_api_key(self, key: str) -> None:
        with self._lock:
            self._config = self._config.model_copy(update={"api_key": key})
        self.save()

    @property
    def model(self) -> str:
        with self._lock:
            return self._config.model

    def set_model(self, model: str) -> None:
        with self._lock:
            self._config = self._config.model_copy(update={"model": model})
        self.save()

    def override_model(self, model: str) -> None:
        """Use a model for this process only, without touching the config file."""
        with self._lock:
            self._config = self._config.model_copy(update={"model": model})
