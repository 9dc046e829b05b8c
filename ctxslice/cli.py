"""Command-line interface entry point for ctxslice."""

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Optional

from rich.console import Console

from ctxslice.core.api.http_client import StreamingHttpClient, extract_delta
from ctxslice.core.context_engineering.context_tree import (
    ContextRenderer,
    FileSystemSourceReader,
    GraphIndex,
    load_graph_document,
    render_app_tree,
)
from ctxslice.core.context_engineering.context_tree.graph import (
    ClassGraph,
    GraphDocument,
    find_class,
    find_method,
)
from ctxslice.core.context_engineering.history import SessionManager
from ctxslice.core.exceptions import DeserializationError, PersistenceError
from ctxslice.core.runtime import ConfigManager, TaskSupervisor
from ctxslice.models.config import AppConfig
from ctxslice.models.message import Role
from ctxslice.models.workspace import Workspace
from ctxslice.ui.style_tokens import ERROR, SUBTLE, SUCCESS, WARNING
from ctxslice.ui.tree_formatter import format_app_tree, format_sessions_table

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a coding assistant. Answer using the code context below; "
    "say so when it does not contain what you need."
)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ctxslice",
        description="Curate code context for chat sessions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  ctxslice add-graph graph.json           # Select everything the graph uses
  ctxslice add-file src/main/App.java     # Select a whole file
  ctxslice remove --file core/src/A.java  # Drop a file from the selection
  ctxslice export --graph graph.json      # Print the rendered context
        """,
    )
    parser.add_argument(
        "--working-dir",
        "-d",
        metavar="PATH",
        help="Workspace directory (defaults to current directory)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose output with detailed logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("sessions", help="List chat sessions")
    subparsers.add_parser("new", help="Start a new session for this workspace")
    subparsers.add_parser("show", help="Show the current session's context tree")

    delete_parser = subparsers.add_parser("delete", help="Delete a session")
    delete_parser.add_argument("session_id", help="Session id or unique id prefix")

    add_file = subparsers.add_parser("add-file", help="Select whole files")
    add_file.add_argument("paths", nargs="+", metavar="PATH", help="Files inside the workspace")

    add_graph = subparsers.add_parser("add-graph", help="Select what a class graph uses")
    add_graph.add_argument("graph", metavar="GRAPH", help="Graph JSON document")
    add_graph.add_argument(
        "--replace",
        action="store_true",
        help="Replace the selection of the graph's projects instead of merging",
    )

    add_method = subparsers.add_parser("add-method", help="Select a single method")
    add_method.add_argument("graph", metavar="GRAPH", help="Graph JSON document")
    add_method.add_argument("class_name", metavar="CLASS", help="Qualified or simple class name")
    add_method.add_argument("method", metavar="METHOD", help="Method name")
    add_method.add_argument(
        "--param",
        action="append",
        dest="params",
        metavar="TYPE",
        help="Parameter type, repeat for each parameter (needed for overloads)",
    )

    remove = subparsers.add_parser("remove", help="Remove part of the selection")
    remove.add_argument("--file", dest="file_path", metavar="PATH", help="File path as shown")
    remove.add_argument("--class", dest="class_name", metavar="CLASS", help="Class name")
    remove.add_argument(
        "--method", dest="methods", nargs="+", metavar="METHOD", help="Method names"
    )

    subparsers.add_parser("clear-external", help="Drop every external dependency")

    export = subparsers.add_parser("export", help="Print the rendered context")
    export.add_argument(
        "--graph", metavar="GRAPH", help="Graph used to locate classes and methods"
    )

    subparsers.add_parser("history", help="Print the current session's chat history")

    ask = subparsers.add_parser("ask", help="Ask a question with the current context")
    ask.add_argument("prompt", metavar="TEXT", help="Question to send")
    ask.add_argument(
        "--graph", metavar="GRAPH", help="Graph used to locate classes and methods"
    )

    return parser


def _configure_logging(config: AppConfig) -> None:
    logging.basicConfig(
        level=config.effective_log_level(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _load_graph_document(console: Console, path: str) -> GraphDocument:
    try:
        return load_graph_document(Path(path))
    except DeserializationError as exc:
        console.print(f"[{ERROR}]Error: {exc}[/{ERROR}]")
        sys.exit(1)


def _load_graph(console: Console, path: str) -> ClassGraph:
    return _load_graph_document(console, path).to_class_graph()


def _resolve_session_id(console: Console, manager: SessionManager, prefix: str) -> str:
    matches = [s.id for s in manager.list_sessions() if s.id.startswith(prefix)]
    if len(matches) != 1:
        reason = "not found" if not matches else "is ambiguous"
        console.print(f"[{ERROR}]Error: Session '{prefix}' {reason}[/{ERROR}]")
        sys.exit(1)
    return matches[0]


def _render_context(
    manager: SessionManager, workspace: Workspace, graph_path: Optional[str], console: Console
) -> str:
    # One reader per known workspace root; other projects are skipped.
    roots = {workspace.name: workspace.root_path}
    locators = {}
    if graph_path:
        document = _load_graph_document(console, graph_path)
        roots.setdefault(document.workspace.name, document.workspace.root_path)
        locators[document.workspace.name] = GraphIndex.from_graph(document.to_class_graph())
    renderers = {
        name: ContextRenderer(FileSystemSourceReader(Path(root)), locators.get(name))
        for name, root in roots.items()
    }
    return render_app_tree(manager.snapshot_tree(workspace), renderers)


def _ask(
    console: Console,
    manager: SessionManager,
    workspace: Workspace,
    config: AppConfig,
    args: argparse.Namespace,
) -> None:
    if not config.api_url:
        console.print(f"[{ERROR}]Error: No api_url configured in settings.json[/{ERROR}]")
        sys.exit(1)
    api_key = os.environ.get(config.api_key_env, "")
    if not api_key:
        console.print(f"[{WARNING}]{config.api_key_env} is not set[/{WARNING}]")

    context = _render_context(manager, workspace, args.graph, console)
    manager.append_message(workspace, Role.USER, args.prompt)
    session = manager.get_current_session(workspace)

    system = SYSTEM_PROMPT + ("\n\n" + context if context else "")
    payload = {"messages": [{"role": "system", "content": system}] + session.to_api_messages()}
    if config.model:
        payload["model"] = config.model

    client = StreamingHttpClient(
        config.api_url,
        {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"},
    )
    reply: list[str] = []

    def stream() -> None:
        for event in client.stream_events(payload):
            delta = extract_delta(event)
            if delta:
                reply.append(delta)
                console.print(delta, end="", markup=False, highlight=False)

    def report(exc: BaseException) -> None:
        console.print(f"\n[{ERROR}]Error: {exc}[/{ERROR}]")

    with TaskSupervisor(max_workers=1) as supervisor:
        supervisor.submit(stream, on_error=report).result()
    console.print()
    if reply:
        manager.append_message(workspace, Role.ASSISTANT, "".join(reply))


def _run_command(
    args: argparse.Namespace,
    console: Console,
    manager: SessionManager,
    workspace: Workspace,
    config: AppConfig,
) -> None:
    if args.command == "sessions":
        current = manager.find_current_session(workspace)
        sessions = manager.list_sessions()
        if not sessions:
            console.print(f"[{SUBTLE}]No sessions yet[/{SUBTLE}]")
            return
        console.print(format_sessions_table(sessions, current.id if current else None))

    elif args.command == "new":
        session = manager.create_new_session(workspace)
        console.print(f"[{SUCCESS}]Started session {session.id}[/{SUCCESS}]")

    elif args.command == "show":
        session = manager.get_current_session(workspace)
        console.print(format_app_tree(session.app_file_tree, title=f"Session {session.id[:8]}"))

    elif args.command == "delete":
        session_id = _resolve_session_id(console, manager, args.session_id)
        manager.delete_session(session_id)
        console.print(f"[{SUCCESS}]Deleted session {session_id}[/{SUCCESS}]")

    elif args.command == "add-file":
        for raw in args.paths:
            path = Path(raw)
            if not path.is_absolute():
                path = Path(workspace.root_path) / path
            if manager.add_file_to_current_session(workspace, path):
                console.print(f"[{SUCCESS}]Added {raw}[/{SUCCESS}]")
            else:
                console.print(f"[{WARNING}]Skipped {raw}[/{WARNING}]")

    elif args.command == "add-graph":
        graph = _load_graph(console, args.graph)
        built = manager.add_graph_to_current_session(workspace, graph, replace=args.replace)
        count = sum(1 for _ in built.iter_files())
        console.print(f"[{SUCCESS}]Selected {count} file(s) from {len(graph)} class(es)[/{SUCCESS}]")

    elif args.command == "add-method":
        graph = _load_graph(console, args.graph)
        class_ref = find_class(graph, args.class_name)
        if class_ref is None:
            console.print(f"[{ERROR}]Error: Class '{args.class_name}' not found[/{ERROR}]")
            sys.exit(1)
        params = tuple(args.params) if args.params is not None else None
        method = find_method(class_ref, args.method, params)
        if method is None:
            console.print(
                f"[{ERROR}]Error: No unique method '{args.method}' in {args.class_name}[/{ERROR}]"
            )
            sys.exit(1)
        if manager.add_method_to_current_session(workspace, class_ref, method):
            console.print(f"[{SUCCESS}]Added {args.class_name}.{args.method}[/{SUCCESS}]")
        else:
            console.print(f"[{WARNING}]Already selected[/{WARNING}]")

    elif args.command == "remove":
        if args.file_path is None and (args.class_name or args.methods):
            console.print(f"[{ERROR}]Error: --class and --method need --file[/{ERROR}]")
            sys.exit(1)
        if args.methods and not args.class_name:
            console.print(f"[{ERROR}]Error: --method needs --class[/{ERROR}]")
            sys.exit(1)
        removed = manager.remove_selected_nodes(
            workspace, args.file_path, args.class_name, args.methods
        )
        if removed:
            console.print(f"[{SUCCESS}]Removed[/{SUCCESS}]")
        else:
            console.print(f"[{WARNING}]Nothing to remove[/{WARNING}]")

    elif args.command == "clear-external":
        manager.clear_external_dependencies(workspace)
        console.print(f"[{SUCCESS}]External dependencies cleared[/{SUCCESS}]")

    elif args.command == "export":
        text = _render_context(manager, workspace, args.graph, console)
        console.print(text, markup=False, highlight=False, soft_wrap=True)

    elif args.command == "history":
        text = manager.export_chat_history(workspace)
        console.print(text, markup=False, highlight=False, soft_wrap=True)

    elif args.command == "ask":
        _ask(console, manager, workspace, config, args)


def main(argv: Optional[list[str]] = None) -> None:
    """Main entry point for the ctxslice CLI."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    console = Console()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    working_dir = Path(args.working_dir) if args.working_dir else Path.cwd()
    if not working_dir.is_dir():
        console.print(f"[{ERROR}]Error: Working directory does not exist: {working_dir}[/{ERROR}]")
        sys.exit(1)

    config_manager = ConfigManager(working_dir)
    config = config_manager.load_config()
    if args.verbose:
        config.verbose = True
    _configure_logging(config)

    manager = SessionManager(sessions_file=config_manager.sessions_file())
    manager.load()
    workspace = Workspace.from_path(working_dir)

    try:
        _run_command(args, console, manager, workspace, config)
    except PersistenceError as e:
        console.print(f"[{ERROR}]Error: {e}[/{ERROR}]")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print(f"\n[{WARNING}]Interrupted.[/{WARNING}]")
        sys.exit(130)
    finally:
        manager.dispose(workspace)


if __name__ == "__main__":
    main()
