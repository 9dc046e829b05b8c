"""Tests for rendering a context tree to text."""

import logging
from pathlib import Path

import pytest

from ctxslice.core.context_engineering.context_tree.graph import ClassRef, MethodRef
from ctxslice.core.context_engineering.context_tree.locator import GraphIndex
from ctxslice.core.context_engineering.context_tree.renderer import (
    FRAGMENT_SEPARATOR,
    ContextRenderer,
    FileSystemSourceReader,
    render_app_tree,
    wrap_content,
)
from ctxslice.models.file_tree import (
    AppFileTree,
    ElementHandle,
    ProjectClass,
    ProjectFile,
    ProjectMethod,
)
from ctxslice.models.workspace import Workspace

SOURCE = "\n".join(f"line {n}" for n in range(1, 11)) + "\n"


@pytest.fixture()
def root(tmp_path: Path) -> Path:
    (tmp_path / "core").mkdir()
    (tmp_path / "core" / "A.java").write_text(SOURCE)
    return tmp_path


@pytest.fixture()
def renderer(root: Path) -> ContextRenderer:
    return ContextRenderer(FileSystemSourceReader(root))


class TestFileSystemSourceReader:
    def test_read_elements_slices_sorted_ranges(self, root: Path) -> None:
        reader = FileSystemSourceReader(root)
        handles = [
            ElementHandle("core/A.java", 7, 8),
            ElementHandle("core/A.java", 2, 3),
        ]

        text = reader.read_elements("core/A.java", handles)
        assert text == "line 2\nline 3" + FRAGMENT_SEPARATOR + "line 7\nline 8"

    def test_out_of_range_handles_are_skipped(self, root: Path) -> None:
        reader = FileSystemSourceReader(root)
        assert reader.read_elements("core/A.java", [ElementHandle("core/A.java", 50, 60)]) is None
        assert reader.read_elements("core/A.java", [ElementHandle("core/A.java", 9, 60)]) == (
            "line 9\nline 10"
        )

    def test_archive_paths_are_unreadable(self, root: Path) -> None:
        reader = FileSystemSourceReader(root)
        assert reader.read_file("/m2/lib.jar!/org/x/L.class") is None


class TestContextRenderer:
    def test_whole_file(self, renderer: ContextRenderer) -> None:
        fragments = renderer.render_context([ProjectFile(file_path="core/A.java", whole=True)])

        assert fragments == [wrap_content("core/A.java", SOURCE, whole=True)]
        assert fragments[0].startswith('<file_content path="core/A.java" language="java">')
        assert fragments[0].endswith("line 10\n</file_content>")

    def test_partial_file_uses_handles(self, renderer: ContextRenderer) -> None:
        project_file = ProjectFile(
            file_path="core/A.java",
            classes=[
                ProjectClass(
                    class_name="A",
                    methods=[
                        ProjectMethod(
                            method_name="foo", handle=ElementHandle("core/A.java", 4, 5)
                        )
                    ],
                )
            ],
        )

        fragments = renderer.render_context([project_file])
        assert fragments == [
            '<file_fragment path="core/A.java" language="java">\nline 4\nline 5\n</file_fragment>'
        ]

    def test_missing_elements_are_logged_and_skipped(
        self, renderer: ContextRenderer, caplog: pytest.LogCaptureFixture
    ) -> None:
        project_file = ProjectFile(
            file_path="core/A.java",
            classes=[ProjectClass(class_name="A", methods=[ProjectMethod(method_name="foo")])],
        )

        with caplog.at_level(logging.WARNING):
            fragments = renderer.render_context(
                [project_file, ProjectFile(file_path="core/Gone.java", whole=True)]
            )

        assert fragments == []
        assert "core/A.java#A.foo" in caplog.text
        assert "core/Gone.java" in caplog.text

    def test_locator_resolves_nodes_without_handles(self, root: Path) -> None:
        workspace = Workspace("proj", root.resolve().as_posix())
        class_ref = ClassRef(
            qualified_name="A",
            name="A",
            file_path=f"{workspace.root_path}/core/A.java",
            workspace=workspace,
            methods=(MethodRef("foo", ("int",), handle=ElementHandle("core/A.java", 6, 6)),),
            handle=ElementHandle("core/A.java", 1, 10),
        )
        index = GraphIndex.from_graph({class_ref: None})
        renderer = ContextRenderer(FileSystemSourceReader(root), index)

        method_file = ProjectFile(
            file_path="core/A.java",
            classes=[
                ProjectClass(
                    class_name="A",
                    methods=[ProjectMethod(method_name="foo", parameter_types=["int"])],
                )
            ],
        )
        assert "line 6" in renderer.render_context([method_file])[0]

        class_file = ProjectFile(
            file_path="core/A.java", classes=[ProjectClass(class_name="A", whole=True)]
        )
        assert "line 10" in renderer.render_context([class_file])[0]


class TestRenderTree:
    def test_sections_per_project(self, renderer: ContextRenderer) -> None:
        tree = AppFileTree()
        project_tree = tree.find_or_create_project_tree("proj")
        package = project_tree.find_or_create_module("core").find_or_create_package("x")
        package.find_or_create_file("core/A.java", whole=True)
        tree.find_or_create_project_tree("empty")

        text = renderer.render_tree(tree, "proj")

        assert text.startswith("=== Project: proj ===\n<file_content")
        assert "=== Project: empty ===" not in text

    def test_projects_without_renderer_are_skipped(self, renderer: ContextRenderer) -> None:
        tree = AppFileTree()
        module = tree.find_or_create_project_tree("other").find_or_create_module("m")
        module.find_or_create_package("p").find_or_create_file("core/A.java", whole=True)

        assert render_app_tree(tree, {"proj": renderer}) == ""
        assert "=== Project: other ===" in render_app_tree(tree, {"other": renderer})

    def test_each_project_reads_from_its_own_root(self, tmp_path: Path) -> None:
        for name, body in (("a", "class FromA {}"), ("b", "class FromB {}")):
            (tmp_path / name / "m").mkdir(parents=True)
            (tmp_path / name / "m" / "X.java").write_text(body + "\n")
        tree = AppFileTree()
        module = tree.find_or_create_project_tree("b").find_or_create_module("m")
        module.find_or_create_package("p").find_or_create_file("m/X.java", whole=True)
        renderer_a = ContextRenderer(FileSystemSourceReader(tmp_path / "a"))
        renderer_b = ContextRenderer(FileSystemSourceReader(tmp_path / "b"))

        assert renderer_a.render_tree(tree, "a") == ""

        text = render_app_tree(tree, {"a": renderer_a, "b": renderer_b})
        assert text.startswith("=== Project: b ===\n")
        assert "class FromB {}" in text
        assert "FromA" not in text
