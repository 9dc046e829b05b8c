"""Incremental edits of a context tree.

Every operation is idempotent and never raises for data-shape problems:
requests that name something absent are no-ops. Whole-collapsing is only done
by :class:`~ctxslice.core.context_engineering.context_tree.builder.TreeBuilder`;
adding methods one by one keeps a class method-granular even once every
method is present.

These functions are not thread-safe; callers serialize mutations of a tree.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path, PurePosixPath
from typing import Optional, Sequence

from ctxslice.core.context_engineering.context_tree.builder import (
    resolve_package,
    to_project_method,
    tree_file_path,
)
from ctxslice.core.context_engineering.context_tree.graph import ClassRef, MethodRef
from ctxslice.core.exceptions import InvalidInputError
from ctxslice.models.file_tree import (
    DEFAULT_PACKAGE,
    AppFileTree,
    PackageGroup,
    ProjectClass,
    ProjectFile,
    ProjectFileTree,
)
from ctxslice.models.workspace import Workspace

logger = logging.getLogger(__name__)


def validate_workspace_file(path: Path, workspace: Workspace) -> str:
    """Return the workspace-relative path of a writable file inside ``workspace``.

    Raises:
        InvalidInputError: If the file is missing, not a regular file, outside
            the workspace, or not writable.
    """
    resolved = Path(path).resolve()
    if not resolved.is_file():
        raise InvalidInputError(path, "not an existing file")
    try:
        relative = resolved.relative_to(Path(workspace.root_path).resolve())
    except ValueError:
        raise InvalidInputError(path, f"outside workspace {workspace.root_path}") from None
    if not os.access(resolved, os.W_OK):
        raise InvalidInputError(path, "file is not writable")
    return relative.as_posix()


def package_name_for_path(relative: str) -> str:
    """Package for a manually added file: its directory below the module, dotted."""
    parts = PurePosixPath(relative).parts[1:-1]
    return ".".join(parts) if parts else DEFAULT_PACKAGE


def add_file(tree: AppFileTree, workspace: Workspace, path: Path) -> bool:
    """Select a whole local file.

    Returns True if the file was inserted, False if it was rejected or is
    already in the tree.
    """
    try:
        relative = validate_workspace_file(path, workspace)
    except InvalidInputError as exc:
        logger.warning("%s", exc)
        return False

    project_tree = tree.find_or_create_project_tree(workspace.name)
    if project_tree.find_file(relative) is not None:
        logger.info("File already exists in session: %s", relative)
        return False

    module = project_tree.find_or_create_module(relative.split("/")[0])
    package = module.find_or_create_package(package_name_for_path(relative))
    package.find_or_create_file(relative, whole=True)
    return True


def _resolve_file(project_tree: ProjectFileTree, class_ref: ClassRef) -> Optional[ProjectFile]:
    file_path = tree_file_path(class_ref)
    found = project_tree.find_file(file_path)
    if found is not None:
        return found[1]
    package = resolve_package(project_tree, class_ref)
    if package is None:
        return None
    return package.find_or_create_file(file_path)


def add_method(tree: AppFileTree, class_ref: ClassRef, method: MethodRef) -> bool:
    """Select one method, creating the path down to its class as needed.

    Returns True if the method was appended. A method of a file or class
    already selected whole is covered by that selection and is not added.
    """
    if not class_ref.name:
        logger.debug("Ignoring method %s of anonymous class", method.name)
        return False

    project_tree = tree.find_or_create_project_tree(class_ref.workspace.name)
    project_file = _resolve_file(project_tree, class_ref)
    if project_file is None:
        return False

    project_class = project_file.find_or_create_class(class_ref.name, handle=class_ref.handle)
    if project_class is None:
        return False
    return project_class.add_method(to_project_method(method))


def remove_selected_nodes(
    tree: AppFileTree,
    workspace: Workspace,
    file_path: Optional[str] = None,
    class_name: Optional[str] = None,
    method_names: Optional[Sequence[str]] = None,
) -> bool:
    """Remove part of a workspace's selection.

    - no ``file_path``: every local file of the workspace
    - ``file_path`` only: that file
    - ``file_path`` and ``class_name``: that class
    - with ``method_names``: those methods (all overloads); the class goes
      too once the removal empties it, the file is kept

    Returns True if anything was removed.
    """
    project_tree = tree.find_project_tree(workspace.name)
    if project_tree is None:
        return False

    if file_path is None:
        removed = bool(project_tree.modules)
        project_tree.modules = []
        return removed

    found = project_tree.find_file(file_path)
    if found is None:
        return False
    package, project_file = found

    if class_name is None:
        return package.remove_file(file_path)

    project_class = project_file.find_class(class_name)
    if project_class is None:
        return False

    if not method_names:
        return project_file.remove_class(class_name)

    names = set(method_names)
    before = len(project_class.methods)
    project_class.methods = [m for m in project_class.methods if m.method_name not in names]
    if len(project_class.methods) == before:
        return False
    if not project_class.methods:
        project_file.remove_class(class_name)
    return True


def clear_external_dependencies(tree: AppFileTree, workspace: Workspace) -> bool:
    project_tree = tree.find_project_tree(workspace.name)
    if project_tree is None or not project_tree.external_dependencies:
        return False
    project_tree.external_dependencies = []
    return True


# ============================================================================
# Merging
# ============================================================================


def _merge_class(target: ProjectClass, source: ProjectClass) -> None:
    if target.whole:
        return
    if source.whole:
        target.mark_whole()
        return
    for method in source.methods:
        target.add_method(method.model_copy(deep=True))


def _merge_file(target: ProjectFile, source: ProjectFile) -> None:
    if target.whole:
        return
    if source.whole:
        target.mark_whole()
        return
    for source_class in source.classes:
        target_class = target.find_class(source_class.class_name)
        if target_class is None:
            target.classes.append(source_class.model_copy(deep=True))
        else:
            _merge_class(target_class, source_class)


def _merge_packages(
    project_tree: ProjectFileTree, target: list[PackageGroup], source: list[PackageGroup]
) -> None:
    for source_package in source:
        for source_file in source_package.files:
            found = project_tree.find_file(source_file.file_path)
            if found is not None:
                _merge_file(found[1], source_file)
                continue
            target_package = next(
                (p for p in target if p.package_name == source_package.package_name), None
            )
            if target_package is None:
                target_package = PackageGroup(package_name=source_package.package_name)
                target.append(target_package)
            target_package.files.append(source_file.model_copy(deep=True))


def merge_trees(target: AppFileTree, source: AppFileTree) -> None:
    """Union ``source`` into ``target`` by key.

    A whole selection on either side wins over an enumerated one; methods are
    appended in order, skipping keys already present.
    """
    for source_tree in source.project_file_trees:
        target_tree = target.find_or_create_project_tree(source_tree.project_name)
        for source_module in source_tree.modules:
            module = target_tree.find_or_create_module(source_module.module_name)
            _merge_packages(target_tree, module.packages, source_module.packages)
        for source_dep in source_tree.external_dependencies:
            dependency = target_tree.find_or_create_external_dependency(*source_dep.key)
            _merge_packages(target_tree, dependency.packages, source_dep.packages)
