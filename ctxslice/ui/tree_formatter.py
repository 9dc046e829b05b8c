"""Rich renderables for sessions and context trees."""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from rich.table import Table
from rich.tree import Tree

from ctxslice.models.file_tree import AppFileTree, PackageGroup, ProjectFile
from ctxslice.models.session import ChatSession
from ctxslice.ui.style_tokens import (
    BLUE_LIGHT,
    BLUE_PATH,
    CYAN,
    GOLD,
    GREEN_LIGHT,
    SUBTLE,
    WHOLE_MARKER,
)


def _whole(label: str, whole: bool) -> str:
    if whole:
        return f"{label} [{GREEN_LIGHT}]{WHOLE_MARKER}[/{GREEN_LIGHT}]"
    return label


def _add_file(parent: Tree, project_file: ProjectFile) -> None:
    node = parent.add(_whole(f"[{BLUE_PATH}]{project_file.file_path}[/{BLUE_PATH}]", project_file.whole))
    for project_class in project_file.classes:
        class_node = node.add(
            _whole(f"[{GOLD}]{project_class.class_name}[/{GOLD}]", project_class.whole)
        )
        for method in project_class.methods:
            class_node.add(f"{method.method_name}({', '.join(method.parameter_types)})")


def _add_packages(parent: Tree, packages: Sequence[PackageGroup]) -> None:
    for package in packages:
        package_node = parent.add(package.package_name)
        for project_file in package.files:
            _add_file(package_node, project_file)


def format_app_tree(app_tree: AppFileTree, title: str = "Context") -> Tree:
    """Build a rich tree mirroring the session's selection."""
    root = Tree(f"[bold]{title}[/bold]")
    if app_tree.is_empty():
        root.add(f"[{SUBTLE}]nothing selected[/{SUBTLE}]")
        return root

    for project_tree in app_tree.project_file_trees:
        project_node = root.add(f"[bold {BLUE_LIGHT}]{project_tree.project_name}[/bold {BLUE_LIGHT}]")
        for module in project_tree.modules:
            module_node = project_node.add(f"[{CYAN}]{module.module_name}[/{CYAN}]")
            _add_packages(module_node, module.packages)
        for dependency in project_tree.external_dependencies:
            coordinates = ":".join(dependency.key)
            dependency_node = project_node.add(f"[{CYAN}]{coordinates}[/{CYAN}]")
            _add_packages(dependency_node, dependency.packages)
    return root


def format_sessions_table(
    sessions: Sequence[ChatSession], current_id: Optional[str] = None
) -> Table:
    table = Table(title="Chat Sessions", show_header=True, header_style="bold cyan")
    table.add_column("", width=1)
    table.add_column("ID", style="cyan")
    table.add_column("Started")
    table.add_column("Workspace")
    table.add_column("Messages", justify="right")
    table.add_column("Files", justify="right")
    table.add_column("Title", style="white")

    for session in sessions:
        started = datetime.fromtimestamp(session.start_time / 1000).strftime("%Y-%m-%d %H:%M")
        table.add_row(
            "*" if session.id == current_id else "",
            session.id[:8],
            started,
            session.workspace or "-",
            str(len(session.messages)),
            str(sum(1 for _ in session.app_file_tree.iter_files())),
            session.title(),
        )
    return table
