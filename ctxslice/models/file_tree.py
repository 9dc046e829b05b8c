"""Context tree models.

The tree groups a curated code selection as
project -> module / external dependency -> package -> file -> class -> method.

Children are kept in ordered lists but are unique by key; use the
``find_or_create_*`` helpers instead of appending directly. A file or class
marked ``whole`` never enumerates children.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterator, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

DEFAULT_PACKAGE = "(default package)"

T = TypeVar("T")


@dataclass(frozen=True)
class ElementHandle:
    """Location of a class or method in source, resolved at render time.

    Lines are 1-based and inclusive.
    """

    file_path: str
    start_line: int
    end_line: int


def _unique(items: list[T], key: Callable[[T], object]) -> list[T]:
    """Drop later items whose key was already seen."""
    seen: set = set()
    result: list[T] = []
    for item in items:
        k = key(item)
        if k in seen:
            continue
        seen.add(k)
        result.append(item)
    return result


class _TreeModel(BaseModel):
    """Base for tree nodes: camelCase JSON keys, equality on persisted fields only."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, type(self)):
            return NotImplemented
        return self.model_dump() == other.model_dump()


class ProjectMethod(_TreeModel):
    """A selected method, identified by name and parameter type signature."""

    method_name: str
    parameter_types: list[str] = Field(default_factory=list)
    handle: Optional[ElementHandle] = Field(default=None, exclude=True)

    @property
    def key(self) -> tuple[str, tuple[str, ...]]:
        return (self.method_name, tuple(self.parameter_types))


class ProjectClass(_TreeModel):
    """A selected class, either whole or a list of methods."""

    class_name: str
    whole: bool = False
    methods: list[ProjectMethod] = Field(default_factory=list)
    handle: Optional[ElementHandle] = Field(default=None, exclude=True)

    @model_validator(mode="after")
    def _enforce_selection(self) -> "ProjectClass":
        if self.whole:
            self.methods = []
        else:
            self.methods = _unique(self.methods, lambda m: m.key)
        return self

    def find_method(
        self, method_name: str, parameter_types: list[str] | tuple[str, ...]
    ) -> Optional[ProjectMethod]:
        key = (method_name, tuple(parameter_types))
        return next((m for m in self.methods if m.key == key), None)

    def add_method(self, method: ProjectMethod) -> bool:
        """Append ``method`` unless the class is whole or already lists its key."""
        if self.whole:
            return False
        if self.find_method(method.method_name, method.parameter_types) is not None:
            return False
        self.methods.append(method)
        return True

    def mark_whole(self) -> None:
        self.whole = True
        self.methods = []


class ProjectFile(_TreeModel):
    """A selected source file, either whole or a list of classes."""

    file_path: str
    whole: bool = False
    classes: list[ProjectClass] = Field(default_factory=list)

    @model_validator(mode="after")
    def _enforce_selection(self) -> "ProjectFile":
        if self.whole:
            self.classes = []
        else:
            self.classes = _unique(self.classes, lambda c: c.class_name)
        return self

    def find_class(self, class_name: str) -> Optional[ProjectClass]:
        return next((c for c in self.classes if c.class_name == class_name), None)

    def find_or_create_class(
        self, class_name: str, handle: Optional[ElementHandle] = None
    ) -> Optional[ProjectClass]:
        """Existing or new class; None for a whole file, which lists no classes."""
        if self.whole:
            return None
        project_class = self.find_class(class_name)
        if project_class is None:
            project_class = ProjectClass(class_name=class_name, handle=handle)
            self.classes.append(project_class)
        return project_class

    def remove_class(self, class_name: str) -> bool:
        before = len(self.classes)
        self.classes = [c for c in self.classes if c.class_name != class_name]
        return len(self.classes) != before

    def mark_whole(self) -> None:
        self.whole = True
        self.classes = []

    def collapse(self) -> bool:
        """Promote to a whole-file selection when every class is whole."""
        if self.classes and all(c.whole for c in self.classes):
            self.mark_whole()
            return True
        return False


class PackageGroup(_TreeModel):
    package_name: str
    files: list[ProjectFile] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_files(self) -> "PackageGroup":
        self.files = _unique(self.files, lambda f: f.file_path)
        return self

    def find_file(self, file_path: str) -> Optional[ProjectFile]:
        return next((f for f in self.files if f.file_path == file_path), None)

    def find_or_create_file(self, file_path: str, whole: bool = False) -> ProjectFile:
        project_file = self.find_file(file_path)
        if project_file is None:
            project_file = ProjectFile(file_path=file_path, whole=whole)
            self.files.append(project_file)
        return project_file

    def remove_file(self, file_path: str) -> bool:
        before = len(self.files)
        self.files = [f for f in self.files if f.file_path != file_path]
        return len(self.files) != before


class _PackageContainer:
    """Shared package lookups for module and external dependency groups."""

    def find_package(self, package_name: str) -> Optional[PackageGroup]:
        return next((p for p in self.packages if p.package_name == package_name), None)

    def find_or_create_package(self, package_name: str) -> PackageGroup:
        package = self.find_package(package_name)
        if package is None:
            package = PackageGroup(package_name=package_name)
            self.packages.append(package)
        return package

    def iter_files(self) -> Iterator[tuple[PackageGroup, ProjectFile]]:
        for package in self.packages:
            for project_file in package.files:
                yield package, project_file


class ModuleGroup(_TreeModel, _PackageContainer):
    """Local code grouped by module (first path segment under the workspace root)."""

    module_name: str
    packages: list[PackageGroup] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_packages(self) -> "ModuleGroup":
        self.packages = _unique(self.packages, lambda p: p.package_name)
        return self


class ExternalDependencyGroup(_TreeModel, _PackageContainer):
    """Library code grouped by its Maven coordinates."""

    group_id: str
    artifact_id: str
    version: str
    packages: list[PackageGroup] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_packages(self) -> "ExternalDependencyGroup":
        self.packages = _unique(self.packages, lambda p: p.package_name)
        return self

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.group_id, self.artifact_id, self.version)


class ProjectFileTree(_TreeModel):
    """Everything selected from one workspace, local and external."""

    project_name: str
    modules: list[ModuleGroup] = Field(default_factory=list)
    external_dependencies: list[ExternalDependencyGroup] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_groups(self) -> "ProjectFileTree":
        self.modules = _unique(self.modules, lambda m: m.module_name)
        self.external_dependencies = _unique(self.external_dependencies, lambda d: d.key)
        return self

    def find_module(self, module_name: str) -> Optional[ModuleGroup]:
        return next((m for m in self.modules if m.module_name == module_name), None)

    def find_or_create_module(self, module_name: str) -> ModuleGroup:
        module = self.find_module(module_name)
        if module is None:
            module = ModuleGroup(module_name=module_name)
            self.modules.append(module)
        return module

    def find_external_dependency(
        self, group_id: str, artifact_id: str, version: str
    ) -> Optional[ExternalDependencyGroup]:
        key = (group_id, artifact_id, version)
        return next((d for d in self.external_dependencies if d.key == key), None)

    def find_or_create_external_dependency(
        self, group_id: str, artifact_id: str, version: str
    ) -> ExternalDependencyGroup:
        dependency = self.find_external_dependency(group_id, artifact_id, version)
        if dependency is None:
            dependency = ExternalDependencyGroup(
                group_id=group_id, artifact_id=artifact_id, version=version
            )
            self.external_dependencies.append(dependency)
        return dependency

    def iter_local_files(self) -> Iterator[tuple[PackageGroup, ProjectFile]]:
        for module in self.modules:
            yield from module.iter_files()

    def iter_external_files(self) -> Iterator[tuple[PackageGroup, ProjectFile]]:
        for dependency in self.external_dependencies:
            yield from dependency.iter_files()

    def iter_files(self) -> Iterator[tuple[PackageGroup, ProjectFile]]:
        yield from self.iter_local_files()
        yield from self.iter_external_files()

    def find_file(
        self, file_path: str, *, include_external: bool = True
    ) -> Optional[tuple[PackageGroup, ProjectFile]]:
        """Locate a file by path anywhere in this project's tree."""
        files = self.iter_files() if include_external else self.iter_local_files()
        return next(((p, f) for p, f in files if f.file_path == file_path), None)

    def files(self) -> list[ProjectFile]:
        return [f for _, f in self.iter_files()]


class AppFileTree(_TreeModel):
    """Root of a session's curated context, one subtree per workspace."""

    project_file_trees: list[ProjectFileTree] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_projects(self) -> "AppFileTree":
        self.project_file_trees = _unique(self.project_file_trees, lambda t: t.project_name)
        return self

    def find_project_tree(self, project_name: str) -> Optional[ProjectFileTree]:
        return next(
            (t for t in self.project_file_trees if t.project_name == project_name), None
        )

    def find_or_create_project_tree(self, project_name: str) -> ProjectFileTree:
        tree = self.find_project_tree(project_name)
        if tree is None:
            tree = ProjectFileTree(project_name=project_name)
            self.project_file_trees.append(tree)
        return tree

    def iter_files(self) -> Iterator[ProjectFile]:
        for tree in self.project_file_trees:
            for _, project_file in tree.iter_files():
                yield project_file

    def is_empty(self) -> bool:
        return next(self.iter_files(), None) is None
