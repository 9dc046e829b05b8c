"""Render a context tree to text for the model.

Whole files are read in full; otherwise only the selected classes and methods
are cut out of the file. Anything that cannot be located in source is logged
and skipped.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Mapping, Optional, Protocol, Sequence

from ctxslice.core.exceptions import RenderMissError
from ctxslice.models.file_tree import AppFileTree, ElementHandle, ProjectFile

logger = logging.getLogger(__name__)

FRAGMENT_SEPARATOR = "\n...\n"

# Extension to language mapping for syntax hints
LANG_MAP = {
    ".py": "python", ".js": "javascript", ".ts": "typescript",
    ".jsx": "jsx", ".tsx": "tsx", ".java": "java", ".kt": "kotlin",
    ".go": "go", ".rs": "rust", ".c": "c", ".cpp": "cpp", ".h": "c",
    ".hpp": "cpp", ".cs": "csharp", ".rb": "ruby", ".php": "php",
    ".swift": "swift", ".scala": "scala", ".groovy": "groovy",
    ".xml": "xml", ".json": "json", ".yaml": "yaml", ".yml": "yaml",
    ".sql": "sql", ".sh": "bash",
}


class SourceReader(Protocol):
    """Reads literal source text for a file in the tree."""

    def read_file(self, file_path: str) -> Optional[str]: ...

    def read_elements(
        self, file_path: str, handles: Sequence[ElementHandle]
    ) -> Optional[str]: ...


class ElementLocator(Protocol):
    """Resolves classes and methods that carry no handle (e.g. after reload)."""

    def locate_class(self, file_path: str, class_name: str) -> Optional[ElementHandle]: ...

    def locate_method(
        self,
        file_path: str,
        class_name: str,
        method_name: str,
        parameter_types: Sequence[str],
    ) -> Optional[ElementHandle]: ...


class FileSystemSourceReader:
    """Reads files from disk, resolving relative paths against a workspace root.

    Paths into archives (``.../lib.jar!/...``) do not exist on disk and read as
    None.
    """

    def __init__(self, root: Path):
        self.root = Path(root)

    def _resolve(self, file_path: str) -> Path:
        path = Path(file_path)
        return path if path.is_absolute() else self.root / path

    def read_file(self, file_path: str) -> Optional[str]:
        path = self._resolve(file_path)
        try:
            return path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            logger.debug("Cannot read %s: %s", path, exc)
            return None

    def read_elements(
        self, file_path: str, handles: Sequence[ElementHandle]
    ) -> Optional[str]:
        text = self.read_file(file_path)
        if text is None:
            return None
        lines = text.splitlines()

        chunks = []
        for handle in sorted(set(handles), key=lambda h: (h.start_line, h.end_line)):
            if handle.start_line < 1 or handle.start_line > len(lines):
                logger.debug("Handle %s is outside %s", handle, file_path)
                continue
            end = min(handle.end_line, len(lines))
            chunks.append("\n".join(lines[handle.start_line - 1 : end]))
        if not chunks:
            return None
        return FRAGMENT_SEPARATOR.join(chunks)


def _language(file_path: str) -> str:
    return LANG_MAP.get(Path(file_path).suffix.lower(), "text")


def wrap_content(file_path: str, content: str, *, whole: bool) -> str:
    tag = "file_content" if whole else "file_fragment"
    return (
        f'<{tag} path="{file_path}" language="{_language(file_path)}">\n'
        f"{content.strip()}\n"
        f"</{tag}>"
    )


class ContextRenderer:
    """Turns the files of one workspace's selection into text fragments."""

    def __init__(self, reader: SourceReader, locator: Optional[ElementLocator] = None):
        self.reader = reader
        self.locator = locator

    def render_context(self, files: Iterable[ProjectFile]) -> list[str]:
        """One fragment per file with at least one element found in source."""
        rendered = []
        for project_file in files:
            fragment = self.render_file(project_file)
            if fragment is not None:
                rendered.append(fragment)
        return rendered

    def render_file(self, project_file: ProjectFile) -> Optional[str]:
        if project_file.whole:
            content = self.reader.read_file(project_file.file_path)
            if content is None:
                logger.warning("%s", RenderMissError(project_file.file_path))
                return None
            return wrap_content(project_file.file_path, content, whole=True)

        handles = self._collect_handles(project_file)
        if not handles:
            return None
        content = self.reader.read_elements(project_file.file_path, handles)
        if not content or not content.strip():
            logger.warning("%s", RenderMissError(project_file.file_path))
            return None
        return wrap_content(project_file.file_path, content, whole=False)

    def render_tree(self, app_tree: AppFileTree, project_name: str) -> str:
        """Render the section of ``project_name``, the workspace this reader reads.

        Other projects resolve their paths against other roots and are skipped;
        use :func:`render_app_tree` to render them with their own renderers.
        """
        return render_app_tree(app_tree, {project_name: self})

    def _collect_handles(self, project_file: ProjectFile) -> list[ElementHandle]:
        handles: list[ElementHandle] = []
        path = project_file.file_path
        for project_class in project_file.classes:
            if project_class.whole:
                handle = project_class.handle or self._locate_class(path, project_class.class_name)
                if handle is None:
                    logger.warning("%s", RenderMissError(path, project_class.class_name))
                    continue
                handles.append(handle)
                continue

            for method in project_class.methods:
                handle = method.handle or self._locate_method(
                    path, project_class.class_name, method.method_name, method.parameter_types
                )
                if handle is None:
                    element = f"{project_class.class_name}.{method.method_name}"
                    logger.warning("%s", RenderMissError(path, element))
                    continue
                handles.append(handle)
        return handles

    def _locate_class(self, file_path: str, class_name: str) -> Optional[ElementHandle]:
        if self.locator is None:
            return None
        return self.locator.locate_class(file_path, class_name)

    def _locate_method(
        self, file_path: str, class_name: str, method_name: str, parameter_types: Sequence[str]
    ) -> Optional[ElementHandle]:
        if self.locator is None:
            return None
        return self.locator.locate_method(file_path, class_name, method_name, parameter_types)


def render_app_tree(app_tree: AppFileTree, renderers: Mapping[str, ContextRenderer]) -> str:
    """Render every project that has a renderer, one section per project."""
    sections = []
    for project_tree in app_tree.project_file_trees:
        renderer = renderers.get(project_tree.project_name)
        if renderer is None:
            logger.info("No source available for project %s, skipping", project_tree.project_name)
            continue
        fragments = renderer.render_context(project_tree.files())
        if not fragments:
            continue
        body = "\n".join(fragments)
        sections.append(f"=== Project: {project_tree.project_name} ===\n{body}")
    return "\n\n".join(sections)
