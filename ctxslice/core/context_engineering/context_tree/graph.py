"""Class-level usage graph consumed by the tree builder.

The graph is produced by an external code-analysis engine. Each entry maps a
class to the methods of it that the analysed code actually references.
A JSON form of the graph is supported so that a graph exported by such an
engine can be fed to the builder directly.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from ctxslice.core.exceptions import DeserializationError
from ctxslice.models.file_tree import ElementHandle
from ctxslice.models.workspace import Workspace

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MethodRef:
    """A method declared by an analysed class."""

    name: str
    parameter_types: tuple[str, ...] = ()
    is_constructor: bool = False
    handle: Optional[ElementHandle] = field(default=None, compare=False)

    @property
    def key(self) -> tuple[str, tuple[str, ...]]:
        return (self.name, self.parameter_types)


@dataclass(frozen=True)
class ClassRef:
    """An analysed class and where it lives."""

    qualified_name: Optional[str]
    name: Optional[str]
    file_path: str
    workspace: Workspace
    methods: tuple[MethodRef, ...] = ()
    handle: Optional[ElementHandle] = field(default=None, compare=False)


@dataclass
class ClassUsage:
    """Methods of a class referenced by the analysed code."""

    used_methods: list[MethodRef] = field(default_factory=list)


ClassGraph = dict[ClassRef, ClassUsage]


# ============================================================================
# JSON document
# ============================================================================


class _DocModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GraphWorkspace(_DocModel):
    name: str
    root_path: str


class GraphMethod(_DocModel):
    name: str
    parameter_types: list[str] = Field(default_factory=list)
    constructor: bool = False
    start_line: Optional[int] = None
    end_line: Optional[int] = None


class GraphUsedMethod(_DocModel):
    name: str
    parameter_types: list[str] = Field(default_factory=list)


class GraphClass(_DocModel):
    qualified_name: Optional[str] = None
    name: Optional[str] = None
    file_path: str
    start_line: Optional[int] = None
    end_line: Optional[int] = None
    methods: list[GraphMethod] = Field(default_factory=list)
    used_methods: list[GraphUsedMethod] = Field(default_factory=list)


class GraphDocument(_DocModel):
    """Serialized class graph for one workspace."""

    workspace: GraphWorkspace
    classes: list[GraphClass] = Field(default_factory=list)

    def to_workspace(self) -> Workspace:
        return Workspace(name=self.workspace.name, root_path=self.workspace.root_path)

    def to_class_graph(self) -> ClassGraph:
        workspace = self.to_workspace()
        graph: ClassGraph = {}
        for cls in self.classes:
            methods = tuple(
                MethodRef(
                    name=m.name,
                    parameter_types=tuple(m.parameter_types),
                    is_constructor=m.constructor,
                    handle=_handle(cls.file_path, m.start_line, m.end_line),
                )
                for m in cls.methods
            )
            declared = {m.key: m for m in methods}
            used = []
            for u in cls.used_methods:
                key = (u.name, tuple(u.parameter_types))
                used.append(declared.get(key) or MethodRef(name=u.name, parameter_types=key[1]))
            class_ref = ClassRef(
                qualified_name=cls.qualified_name,
                name=cls.name,
                file_path=cls.file_path,
                workspace=workspace,
                methods=methods,
                handle=_handle(cls.file_path, cls.start_line, cls.end_line),
            )
            if class_ref in graph:
                logger.debug("Duplicate graph entry for %s", cls.qualified_name)
                graph[class_ref].used_methods.extend(used)
            else:
                graph[class_ref] = ClassUsage(used_methods=used)
        return graph


def _handle(file_path: str, start: Optional[int], end: Optional[int]) -> Optional[ElementHandle]:
    if start is None or end is None:
        return None
    return ElementHandle(file_path=file_path, start_line=start, end_line=end)


def load_graph_document(path: Path) -> GraphDocument:
    """Read a graph document from ``path``.

    Raises:
        DeserializationError: If the file is missing, not JSON, or malformed.
    """
    try:
        with open(path) as f:
            data = json.load(f)
        return GraphDocument.model_validate(data)
    except (OSError, json.JSONDecodeError, ValidationError) as exc:
        raise DeserializationError(str(path), str(exc)) from exc


def find_class(graph: ClassGraph, name: str) -> Optional[ClassRef]:
    """Look up a class by qualified name, falling back to a unique simple name."""
    for class_ref in graph:
        if class_ref.qualified_name == name:
            return class_ref
    matches = [c for c in graph if c.name == name]
    return matches[0] if len(matches) == 1 else None


def find_method(
    class_ref: ClassRef, name: str, parameter_types: Optional[tuple[str, ...]] = None
) -> Optional[MethodRef]:
    """Look up a declared method; without ``parameter_types`` the name must be unique."""
    candidates = [m for m in class_ref.methods if m.name == name]
    if parameter_types is not None:
        candidates = [m for m in candidates if m.parameter_types == parameter_types]
    return candidates[0] if len(candidates) == 1 else None
