"""Settings for ctxslice, layered from global and project files."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from ctxslice.core.paths import get_paths
from ctxslice.models.config import AppConfig

logger = logging.getLogger(__name__)

USER_FIELDS = {"session_file", "log_level", "api_url", "api_key_env", "model"}


class ConfigManager:
    """Loads, caches and saves :class:`AppConfig` for one workspace."""

    def __init__(self, working_dir: Path | None = None):
        self.working_dir = working_dir or Path.cwd()
        self._config: AppConfig | None = None

    @staticmethod
    def _read_settings(path: Path) -> dict[str, Any]:
        if not path.exists():
            return {}
        try:
            with open(path) as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning("Ignoring unreadable settings file %s: %s", path, exc)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring settings file %s: expected a JSON object", path)
            return {}
        return data

    def load_config(self) -> AppConfig:
        """Merge defaults, ~/.ctxslice/settings.json and the project's
        .ctxslice/settings.json, later sources winning.

        Invalid values discard the whole merge in favour of defaults.
        """
        paths = get_paths(self.working_dir)
        config_data: dict[str, Any] = {}
        config_data.update(self._read_settings(paths.global_settings))
        config_data.update(self._read_settings(paths.project_settings))

        try:
            self._config = AppConfig(**config_data)
        except ValidationError as exc:
            logger.warning("Invalid settings, falling back to defaults: %s", exc)
            self._config = AppConfig()
        return self._config

    def get_config(self) -> AppConfig:
        """Cached config; loads on first call."""
        if self._config is None:
            return self.load_config()
        return self._config

    def save_config(self, config: AppConfig, global_config: bool = False) -> None:
        """Save user-facing settings to the global or project settings file."""
        paths = get_paths(self.working_dir)
        config_path = paths.global_settings if global_config else paths.project_settings
        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = {k: v for k, v in config.model_dump().items() if k in USER_FIELDS and v is not None}
        with open(config_path, "w") as f:
            json.dump(data, f, indent=2)

    def sessions_file(self) -> Path:
        """Resolve the sessions document location."""
        config = self.get_config()
        if config.session_file:
            return Path(config.session_file).expanduser()
        return get_paths(self.working_dir).global_sessions_file
