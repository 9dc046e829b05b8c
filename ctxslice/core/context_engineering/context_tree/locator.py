"""Element lookup backed by a class graph."""

from __future__ import annotations

from typing import Optional, Sequence

from ctxslice.core.context_engineering.context_tree.builder import UNNAMED_CLASS, tree_file_path
from ctxslice.core.context_engineering.context_tree.graph import ClassGraph
from ctxslice.models.file_tree import ElementHandle


class GraphIndex:
    """Maps tree coordinates (file path, class, method signature) to source handles."""

    def __init__(self) -> None:
        self._classes: dict[tuple[str, str], ElementHandle] = {}
        self._methods: dict[tuple[str, str, str, tuple[str, ...]], ElementHandle] = {}

    @classmethod
    def from_graph(cls, graph: ClassGraph) -> "GraphIndex":
        index = cls()
        for class_ref in graph:
            file_path = tree_file_path(class_ref)
            class_name = class_ref.name or UNNAMED_CLASS
            if class_ref.handle is not None:
                index._classes[(file_path, class_name)] = class_ref.handle
            for method in class_ref.methods:
                if method.handle is not None:
                    key = (file_path, class_name, method.name, method.parameter_types)
                    index._methods[key] = method.handle
        return index

    def locate_class(self, file_path: str, class_name: str) -> Optional[ElementHandle]:
        return self._classes.get((file_path, class_name))

    def locate_method(
        self,
        file_path: str,
        class_name: str,
        method_name: str,
        parameter_types: Sequence[str],
    ) -> Optional[ElementHandle]:
        return self._methods.get((file_path, class_name, method_name, tuple(parameter_types)))

    def __len__(self) -> int:
        return len(self._classes) + len(self._methods)
