"""Filesystem locations used by ctxslice.

Everything lives under ``~/.ctxslice/`` (the sessions document and global
settings) or ``<workspace>/.ctxslice/`` (project settings)::

    from ctxslice.core.paths import get_paths

    sessions_file = get_paths().global_sessions_file
    project_settings = get_paths(working_dir=workspace_root).project_settings
"""

from __future__ import annotations

import os
from functools import cached_property
from pathlib import Path
from typing import Optional

APP_DIR_NAME = ".ctxslice"
SETTINGS_FILE_NAME = "settings.json"
SESSIONS_FILE_NAME = "chat_sessions.json"

# Environment overrides
ENV_CTXSLICE_DIR = "CTXSLICE_DIR"
ENV_CTXSLICE_SESSION_FILE = "CTXSLICE_SESSION_FILE"


class Paths:
    """Resolves global and per-workspace locations.

    Environment overrides are read on first access of each property.
    """

    def __init__(self, working_dir: Optional[Path] = None):
        self._working_dir = working_dir or Path.cwd()

    @property
    def working_dir(self) -> Path:
        return self._working_dir

    @cached_property
    def global_dir(self) -> Path:
        """``$CTXSLICE_DIR``, else ``~/.ctxslice``."""
        override = os.environ.get(ENV_CTXSLICE_DIR)
        return Path(override) if override else Path.home() / APP_DIR_NAME

    @cached_property
    def global_settings(self) -> Path:
        return self.global_dir / SETTINGS_FILE_NAME

    @cached_property
    def global_sessions_file(self) -> Path:
        """The single document holding every chat session.

        ``$CTXSLICE_SESSION_FILE`` wins over the location in :attr:`global_dir`.
        """
        override = os.environ.get(ENV_CTXSLICE_SESSION_FILE)
        return Path(override) if override else self.global_dir / SESSIONS_FILE_NAME

    @cached_property
    def project_dir(self) -> Path:
        return self._working_dir / APP_DIR_NAME

    @cached_property
    def project_settings(self) -> Path:
        return self.project_dir / SETTINGS_FILE_NAME

    def ensure_global_dirs(self) -> None:
        self.global_dir.mkdir(parents=True, exist_ok=True)


_paths: Optional[Paths] = None


def get_paths(working_dir: Optional[Path] = None) -> Paths:
    """Shared instance for the current directory, or a fresh one for ``working_dir``."""
    global _paths

    if working_dir is not None:
        return Paths(working_dir)
    if _paths is None:
        _paths = Paths()
    return _paths


def set_paths(paths: Optional[Paths]) -> None:
    """Replace the shared instance (tests)."""
    global _paths
    _paths = paths


def reset_paths() -> None:
    """Drop the shared instance so the next :func:`get_paths` re-reads the environment."""
    global _paths
    _paths = None
