"""Workspace identity."""

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class Workspace:
    """An open project: its display name and absolute root directory."""

    name: str
    root_path: str

    @classmethod
    def from_path(cls, path: Path) -> "Workspace":
        resolved = Path(path).resolve()
        return cls(name=resolved.name, root_path=resolved.as_posix())
