"""Tests for building a context tree from a class usage graph."""

from ctxslice.core.context_engineering.context_tree.builder import (
    DEFAULT_PACKAGE,
    UNKNOWN_MODULE,
    UNNAMED_CLASS,
    TreeBuilder,
    extract_maven_coordinates,
    module_name_for,
    package_name_for,
)
from ctxslice.core.context_engineering.context_tree.graph import (
    ClassGraph,
    ClassRef,
    ClassUsage,
    MethodRef,
)
from ctxslice.models.workspace import Workspace

WORKSPACE = Workspace(name="proj", root_path="/ws/proj")
JAR_PATH = (
    "/home/dev/.m2/repository/org/apache/commons/commons-lang3/3.12.0/"
    "commons-lang3-3.12.0.jar!/org/apache/commons/lang3/StringUtils.class"
)

FOO = MethodRef("foo")
BAR = MethodRef("bar", ("int",))
CTOR = MethodRef("<init>", (), is_constructor=True)


def _local_class(name="A", methods=(FOO, BAR), qualified=None) -> ClassRef:
    return ClassRef(
        qualified_name=qualified or f"com.x.{name}",
        name=name,
        file_path=f"/ws/proj/core/src/main/java/com/x/{name}.java",
        workspace=WORKSPACE,
        methods=tuple(methods),
    )


def _build(graph: ClassGraph):
    return TreeBuilder().build(graph)


class TestLocalClasses:
    def test_partial_usage_lists_methods(self) -> None:
        tree = _build({_local_class(): ClassUsage([FOO])})

        project_tree = tree.find_project_tree("proj")
        module = project_tree.find_module("core")
        package = module.find_package("com.x")
        project_file = package.find_file("core/src/main/java/com/x/A.java")
        assert not project_file.whole
        project_class = project_file.find_class("A")
        assert not project_class.whole
        assert [m.key for m in project_class.methods] == [("foo", ())]

    def test_full_usage_collapses_class_and_file(self) -> None:
        tree = _build({_local_class(): ClassUsage([BAR, FOO])})

        project_file = tree.find_project_tree("proj").find_file("core/src/main/java/com/x/A.java")[1]
        assert project_file.whole
        assert project_file.classes == []

    def test_constructors_are_ignored_for_whole_check(self) -> None:
        tree = _build({_local_class(methods=(CTOR, FOO)): ClassUsage([FOO])})

        project_file = tree.find_project_tree("proj").find_file("core/src/main/java/com/x/A.java")[1]
        assert project_file.whole

    def test_constructor_usage_is_not_listed(self) -> None:
        tree = _build({_local_class(): ClassUsage([CTOR, FOO])})

        project_file = tree.find_project_tree("proj").find_file("core/src/main/java/com/x/A.java")[1]
        assert [m.method_name for m in project_file.find_class("A").methods] == ["foo"]

    def test_class_without_declared_methods_stays_partial(self) -> None:
        tree = _build({_local_class(methods=()): ClassUsage([])})

        project_file = tree.find_project_tree("proj").find_file("core/src/main/java/com/x/A.java")[1]
        assert not project_file.whole
        assert project_file.find_class("A").methods == []

    def test_one_partial_class_keeps_file_partial(self) -> None:
        first = ClassRef("com.x.A", "A", "/ws/proj/core/A.java", WORKSPACE, (FOO,))
        second = ClassRef("com.x.B", "B", "/ws/proj/core/A.java", WORKSPACE, (FOO, BAR))
        tree = _build({first: ClassUsage([FOO]), second: ClassUsage([FOO])})

        project_file = tree.find_project_tree("proj").find_file("core/A.java")[1]
        assert not project_file.whole
        assert project_file.find_class("A").whole
        assert not project_file.find_class("B").whole

    def test_default_package_and_unnamed_class(self) -> None:
        anonymous = ClassRef(None, None, "/ws/proj/core/Main.java", WORKSPACE, (FOO, BAR))
        tree = _build({anonymous: ClassUsage([FOO])})

        package = tree.find_project_tree("proj").find_module("core").find_package(DEFAULT_PACKAGE)
        assert package.find_file("core/Main.java").find_class(UNNAMED_CLASS) is not None

    def test_same_class_is_not_duplicated(self) -> None:
        tree = _build({_local_class(): ClassUsage([FOO, FOO])})

        project_file = tree.find_project_tree("proj").find_file("core/src/main/java/com/x/A.java")[1]
        assert len(project_file.find_class("A").methods) == 1


class TestExternalClasses:
    def test_maven_class_grouped_by_coordinates(self) -> None:
        class_ref = ClassRef(
            "org.apache.commons.lang3.StringUtils",
            "StringUtils",
            JAR_PATH,
            WORKSPACE,
            (MethodRef("isBlank", ("CharSequence",)), MethodRef("isEmpty", ("CharSequence",))),
        )
        tree = _build({class_ref: ClassUsage([MethodRef("isBlank", ("CharSequence",))])})

        project_tree = tree.find_project_tree("proj")
        assert project_tree.modules == []
        dependency = project_tree.find_external_dependency(
            "org.apache.commons", "commons-lang3", "3.12.0"
        )
        assert dependency is not None
        project_file = dependency.find_package("org.apache.commons.lang3").find_file(JAR_PATH)
        assert project_file.find_class("StringUtils").methods[0].method_name == "isBlank"

    def test_non_maven_external_class_is_dropped(self) -> None:
        class_ref = ClassRef("a.B", "B", "/opt/lib/foo.jar!/a/B.class", WORKSPACE, (FOO,))
        tree = _build({class_ref: ClassUsage([FOO])})

        assert tree.is_empty()


class TestHelpers:
    def test_extract_maven_coordinates(self) -> None:
        coordinates = extract_maven_coordinates(
            "/r/repository/com/foo/bar/baz/1.2.3/baz-1.2.3.jar!/com/foo/X.class"
        )
        assert coordinates is not None
        assert (coordinates.group_id, coordinates.artifact_id, coordinates.version) == (
            "com.foo.bar",
            "baz",
            "1.2.3",
        )

    def test_extract_maven_coordinates_mismatch(self) -> None:
        assert extract_maven_coordinates("/tmp/x.jar!/A.class") is None
        assert extract_maven_coordinates("/ws/proj/core/A.java") is None

    def test_module_name_for(self) -> None:
        assert module_name_for("/ws/proj/core/src/A.java", WORKSPACE) == "core"
        assert module_name_for("/ws/proj", WORKSPACE) == UNKNOWN_MODULE

    def test_package_name_for(self) -> None:
        assert package_name_for("com.x.A") == "com.x"
        assert package_name_for("A") == DEFAULT_PACKAGE
        assert package_name_for(None) == DEFAULT_PACKAGE
