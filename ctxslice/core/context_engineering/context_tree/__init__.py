"""Context tree: build, edit and render a curated code selection.

Usage:
    from ctxslice.core.context_engineering.context_tree import TreeBuilder

    tree = TreeBuilder().build(graph)
    mutator.add_method(tree, class_ref, method_ref)
    fragments = ContextRenderer(reader).render_context(tree.iter_files())
"""

from ctxslice.core.context_engineering.context_tree import mutator
from ctxslice.core.context_engineering.context_tree.builder import (
    MavenCoordinates,
    TreeBuilder,
    build_app_file_tree,
    extract_maven_coordinates,
)
from ctxslice.core.context_engineering.context_tree.graph import (
    ClassGraph,
    ClassRef,
    ClassUsage,
    GraphDocument,
    MethodRef,
    load_graph_document,
)
from ctxslice.core.context_engineering.context_tree.locator import GraphIndex
from ctxslice.core.context_engineering.context_tree.renderer import (
    ContextRenderer,
    ElementLocator,
    FileSystemSourceReader,
    SourceReader,
    render_app_tree,
)

__all__ = [
    "ClassGraph",
    "ClassRef",
    "ClassUsage",
    "ContextRenderer",
    "ElementLocator",
    "FileSystemSourceReader",
    "GraphDocument",
    "GraphIndex",
    "MavenCoordinates",
    "MethodRef",
    "SourceReader",
    "TreeBuilder",
    "build_app_file_tree",
    "extract_maven_coordinates",
    "load_graph_document",
    "mutator",
    "render_app_tree",
]
