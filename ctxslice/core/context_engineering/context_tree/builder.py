"""Build a context tree from a class usage graph.

Classes under the workspace root are grouped by module and package; classes
resolved from a Maven-style local repository are grouped by their
``groupId:artifactId:version``. A class whose every declared method is used
becomes a whole-class selection, and a file whose classes are all whole
becomes a whole-file selection.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Optional

from ctxslice.core.context_engineering.context_tree.graph import (
    ClassGraph,
    ClassRef,
    ClassUsage,
    MethodRef,
)
from ctxslice.models.file_tree import (
    DEFAULT_PACKAGE,
    AppFileTree,
    PackageGroup,
    ProjectFile,
    ProjectFileTree,
    ProjectMethod,
)
from ctxslice.models.workspace import Workspace

logger = logging.getLogger(__name__)

UNKNOWN_MODULE = "UnknownModule"
UNNAMED_CLASS = "Unnamed"

_MAVEN_JAR_PATTERN = re.compile(r".*/repository/(.+)/([^/]+)/([^/]+)/([^/]+)\.jar!/.*")


@dataclass(frozen=True)
class MavenCoordinates:
    group_id: str
    artifact_id: str
    version: str


def extract_maven_coordinates(path: str) -> Optional[MavenCoordinates]:
    """Parse coordinates from a path inside a jar in a local Maven repository.

    ``.../repository/com/foo/bar/baz/1.2.3/baz-1.2.3.jar!/com/foo/X.class``
    gives ``com.foo.bar:baz:1.2.3``. Returns None when the path does not
    follow that layout.
    """
    match = _MAVEN_JAR_PATTERN.match(path)
    if match is None:
        return None
    group_path, artifact_id, version, _ = match.groups()
    return MavenCoordinates(
        group_id=group_path.replace("/", "."),
        artifact_id=artifact_id,
        version=version,
    )


def is_local(file_path: str, workspace: Workspace) -> bool:
    return file_path.startswith(workspace.root_path)


def relative_path(file_path: str, workspace: Workspace) -> Optional[str]:
    """Workspace-relative posix path, or None if ``file_path`` is outside the root."""
    try:
        return PurePosixPath(file_path).relative_to(workspace.root_path).as_posix()
    except ValueError:
        return None


def module_name_for(file_path: str, workspace: Workspace) -> str:
    """First path segment under the workspace root."""
    relative = relative_path(file_path, workspace)
    if not relative or relative == ".":
        return UNKNOWN_MODULE
    return relative.split("/")[0]


def package_name_for(qualified_name: Optional[str]) -> str:
    if not qualified_name or "." not in qualified_name:
        return DEFAULT_PACKAGE
    return qualified_name.rsplit(".", 1)[0]


def tree_file_path(class_ref: ClassRef) -> str:
    """Path under which a class's file is keyed in the tree.

    Local files are keyed by their workspace-relative path, external ones by
    their full jar-qualified path.
    """
    if is_local(class_ref.file_path, class_ref.workspace):
        relative = relative_path(class_ref.file_path, class_ref.workspace)
        if relative is not None:
            return relative
        return class_ref.file_path.removeprefix(class_ref.workspace.root_path).lstrip("/")
    return class_ref.file_path


def to_project_method(method: MethodRef) -> ProjectMethod:
    return ProjectMethod(
        method_name=method.name,
        parameter_types=list(method.parameter_types),
        handle=method.handle,
    )


def resolve_package(project_tree: ProjectFileTree, class_ref: ClassRef) -> Optional[PackageGroup]:
    """Find or create the package group a class belongs to.

    Returns None for an external class whose path carries no Maven
    coordinates; such classes are left out of the tree.
    """
    package_name = package_name_for(class_ref.qualified_name)

    if is_local(class_ref.file_path, class_ref.workspace):
        module_name = module_name_for(class_ref.file_path, class_ref.workspace)
        module = project_tree.find_or_create_module(module_name)
        return module.find_or_create_package(package_name)

    coordinates = extract_maven_coordinates(class_ref.file_path)
    if coordinates is None:
        logger.debug(
            "No Maven coordinates in %s, dropping %s",
            class_ref.file_path,
            class_ref.qualified_name,
        )
        return None
    dependency = project_tree.find_or_create_external_dependency(
        coordinates.group_id, coordinates.artifact_id, coordinates.version
    )
    return dependency.find_or_create_package(package_name)


class TreeBuilder:
    """Converts a :data:`ClassGraph` into an :class:`AppFileTree`."""

    def build(self, graph: ClassGraph) -> AppFileTree:
        trees: dict[str, ProjectFileTree] = {}
        skipped = 0

        for class_ref, usage in graph.items():
            workspace = class_ref.workspace
            project_tree = trees.get(workspace.name)
            if project_tree is None:
                project_tree = ProjectFileTree(project_name=workspace.name)
                trees[workspace.name] = project_tree

            package = resolve_package(project_tree, class_ref)
            if package is None:
                skipped += 1
                continue

            project_file = package.find_or_create_file(tree_file_path(class_ref))
            self._fill_class(project_file, class_ref, usage)

        for project_tree in trees.values():
            self._collapse(project_tree)

        if skipped:
            logger.debug("Skipped %d classes with unresolvable external paths", skipped)
        return AppFileTree(project_file_trees=list(trees.values()))

    @staticmethod
    def _fill_class(project_file: ProjectFile, class_ref: ClassRef, usage: ClassUsage) -> None:
        declared = [m for m in class_ref.methods if not m.is_constructor]
        used = [m for m in usage.used_methods if not m.is_constructor]

        project_class = project_file.find_or_create_class(
            class_ref.name or UNNAMED_CLASS, handle=class_ref.handle
        )
        if project_class is None or project_class.whole:
            return

        used_keys = {m.key for m in used}
        if declared and all(m.key in used_keys for m in declared):
            project_class.mark_whole()
            return

        for method in used:
            project_class.add_method(to_project_method(method))

    @staticmethod
    def _collapse(project_tree: ProjectFileTree) -> None:
        for _, project_file in project_tree.iter_files():
            project_file.collapse()


def build_app_file_tree(graph: ClassGraph) -> AppFileTree:
    """Convenience wrapper around :meth:`TreeBuilder.build`."""
    return TreeBuilder().build(graph)
