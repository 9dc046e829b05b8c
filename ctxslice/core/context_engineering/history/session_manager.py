"""Session persistence and management."""

from __future__ import annotations

import json
import logging
import tempfile
import threading
from pathlib import Path
from typing import Any, Callable, Optional, Sequence

from pydantic import ValidationError

from ctxslice.core.context_engineering.context_tree import mutator
from ctxslice.core.context_engineering.context_tree.builder import TreeBuilder
from ctxslice.core.context_engineering.context_tree.graph import ClassGraph, ClassRef, MethodRef
from ctxslice.core.exceptions import DeserializationError, PersistenceError
from ctxslice.models.file_tree import AppFileTree
from ctxslice.models.message import ChatMessage, Role
from ctxslice.models.session import ChatSession
from ctxslice.models.workspace import Workspace

logger = logging.getLogger(__name__)

SessionListener = Callable[[ChatSession], None]


class SessionManager:
    """Owns every chat session and the context tree curated for each.

    All sessions live in a single JSON document (``~/.ctxslice/chat_sessions.json``
    by default) that is rewritten in full after every change. Each open
    workspace has a current session: the most recently started session created
    in that workspace, or a fresh one.

    Mutations and writes are serialized by one re-entrant lock, so a manager
    can be shared between threads. Listeners are called after each persisted
    change with the affected session.
    """

    def __init__(self, *, sessions_file: Optional[Path] = None):
        """Initialize session manager.

        Args:
            sessions_file: Explicit document location (tests, ``CTXSLICE_SESSION_FILE``).
                Defaults to the global sessions file from :mod:`ctxslice.core.paths`.
        """
        if sessions_file is not None:
            self.sessions_file = Path(sessions_file).expanduser()
        else:
            from ctxslice.core.paths import get_paths

            self.sessions_file = get_paths().global_sessions_file

        self._sessions: dict[str, ChatSession] = {}
        self._current: dict[str, str] = {}
        self._listeners: list[SessionListener] = []
        self._lock = threading.RLock()

    # ========================================================================
    # Lifecycle
    # ========================================================================

    def load(self) -> None:
        """Load sessions from disk.

        Best effort: an unreadable document leaves the store empty and an
        entry that fails validation is dropped; both are logged.
        """
        with self._lock:
            self._sessions = {}
            self._current = {}
            for session in self._read_document():
                self._sessions[session.id] = session

    def _read_document(self) -> list[ChatSession]:
        if not self.sessions_file.exists():
            return []
        try:
            with open(self.sessions_file) as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError, UnicodeDecodeError) as exc:
            logger.error("%s", DeserializationError(str(self.sessions_file), str(exc)))
            return []
        if not isinstance(data, list):
            logger.error(
                "%s", DeserializationError(str(self.sessions_file), "expected a JSON array")
            )
            return []

        sessions = []
        for entry in data:
            try:
                sessions.append(ChatSession.model_validate(entry))
            except ValidationError as exc:
                entry_id = entry.get("id") if isinstance(entry, dict) else None
                logger.error("%s", DeserializationError(f"chat session {entry_id!r}", str(exc)))
        return sessions

    def close(self) -> None:
        """Flush every session to disk."""
        self.save_sessions()

    # ========================================================================
    # Persistence
    # ========================================================================

    def save_sessions(self) -> None:
        """Atomically rewrite the sessions document.

        Raises:
            PersistenceError: If the document cannot be written. In-memory
                sessions are left untouched.
        """
        with self._lock:
            payload = [
                s.model_dump(mode="json", by_alias=True)
                for s in sorted(self._sessions.values(), key=lambda s: s.start_time)
            ]
            tmp_path: Optional[str] = None
            try:
                self.sessions_file.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp_path = tempfile.mkstemp(
                    dir=self.sessions_file.parent, suffix=".tmp", prefix=".chat-sessions-"
                )
                with open(fd, "w") as f:
                    json.dump(payload, f, indent=2)
                Path(tmp_path).replace(self.sessions_file)
            except OSError as exc:
                if tmp_path is not None:
                    Path(tmp_path).unlink(missing_ok=True)
                raise PersistenceError(self.sessions_file, exc) from exc

    # ========================================================================
    # Listeners
    # ========================================================================

    def add_listener(self, listener: SessionListener) -> None:
        with self._lock:
            if listener not in self._listeners:
                self._listeners.append(listener)

    def remove_listener(self, listener: SessionListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def _notify(self, session: ChatSession) -> None:
        for listener in list(self._listeners):
            try:
                listener(session)
            except Exception:
                logger.exception("Session listener %r failed", listener)

    def _commit(self, session: ChatSession) -> None:
        self.save_sessions()
        self._notify(session)

    # ========================================================================
    # Core session operations
    # ========================================================================

    def create_new_session(self, workspace: Workspace) -> ChatSession:
        """Start a new session for ``workspace`` and make it current there.

        The workspace stops being relevant to its previous session; the old
        session itself is kept.
        """
        with self._lock:
            previous = self._current_or_none(workspace)
            if previous is not None:
                previous.relevant_workspaces.discard(workspace.name)

            session = ChatSession(workspace=workspace.name, relevant_workspaces={workspace.name})
            self._sessions[session.id] = session
            self._current[workspace.name] = session.id
            self._commit(session)
            return session

    def _current_or_none(self, workspace: Workspace) -> Optional[ChatSession]:
        session_id = self._current.get(workspace.name)
        if session_id is None:
            return None
        return self._sessions.get(session_id)

    def find_current_session(self, workspace: Workspace) -> Optional[ChatSession]:
        """Select the workspace's current session without creating one.

        On first use the most recently started session of the workspace is
        selected.
        """
        with self._lock:
            session = self._current_or_none(workspace)
            if session is not None:
                return session

            candidates = [s for s in self._sessions.values() if s.workspace == workspace.name]
            if not candidates:
                return None

            session = max(candidates, key=lambda s: s.start_time)
            session.relevant_workspaces.add(workspace.name)
            self._current[workspace.name] = session.id
            return session

    def get_current_session(self, workspace: Workspace) -> ChatSession:
        """Get the workspace's current session, selecting or creating it on first use."""
        with self._lock:
            session = self.find_current_session(workspace)
            if session is None:
                session = self.create_new_session(workspace)
            return session

    def set_current_session(self, session_id: str, workspace: Workspace) -> ChatSession:
        """Switch ``workspace`` to an existing session.

        Raises:
            KeyError: If no session has that id.
        """
        with self._lock:
            session = self._sessions[session_id]
            previous = self._current_or_none(workspace)
            if previous is not None and previous is not session:
                previous.relevant_workspaces.discard(workspace.name)
            session.relevant_workspaces.add(workspace.name)
            self._current[workspace.name] = session.id
            self._notify(session)
            return session

    def get_session(self, session_id: str) -> Optional[ChatSession]:
        return self._sessions.get(session_id)

    def list_sessions(self) -> list[ChatSession]:
        """All sessions, newest first."""
        with self._lock:
            return sorted(self._sessions.values(), key=lambda s: s.start_time, reverse=True)

    def delete_session(self, session_id: str) -> bool:
        """Delete a session; workspaces that showed it fall back on next access."""
        with self._lock:
            session = self._sessions.pop(session_id, None)
            if session is None:
                return False
            for name in [n for n, sid in self._current.items() if sid == session_id]:
                del self._current[name]
            self._commit(session)
            return True

    def dispose(self, workspace: Workspace) -> None:
        """Detach ``workspace`` from its current session without deleting it."""
        with self._lock:
            session = self._current_or_none(workspace)
            if session is not None:
                session.relevant_workspaces.discard(workspace.name)
            self._current.pop(workspace.name, None)

    # ========================================================================
    # Messages
    # ========================================================================

    def append_message(self, workspace: Workspace, role: Role, content: str) -> ChatMessage:
        with self._lock:
            session = self.get_current_session(workspace)
            message = ChatMessage(role=role, content=content)
            session.add_message(message)
            self._commit(session)
            return message

    def truncate_messages_after(self, workspace: Workspace, index: int) -> bool:
        """Drop every message after ``index`` in the current session."""
        with self._lock:
            session = self.get_current_session(workspace)
            if not session.truncate_after(index):
                return False
            self._commit(session)
            return True

    def export_chat_history(self, workspace: Workspace) -> str:
        with self._lock:
            return self.get_current_session(workspace).export_chat_history()

    # ========================================================================
    # Context tree
    # ========================================================================

    def _mutate_tree(self, workspace: Workspace, edit: Callable[[AppFileTree], Any]) -> Any:
        with self._lock:
            session = self.get_current_session(workspace)
            result = edit(session.app_file_tree)
            self._commit(session)
            return result

    def add_file_to_current_session(self, workspace: Workspace, path: Path) -> bool:
        """Select a whole file; invalid or duplicate files are skipped."""
        return self._mutate_tree(
            workspace, lambda tree: mutator.add_file(tree, workspace, path)
        )

    def add_method_to_current_session(
        self, workspace: Workspace, class_ref: ClassRef, method: MethodRef
    ) -> bool:
        return self._mutate_tree(
            workspace, lambda tree: mutator.add_method(tree, class_ref, method)
        )

    def remove_selected_nodes(
        self,
        workspace: Workspace,
        file_path: Optional[str] = None,
        class_name: Optional[str] = None,
        method_names: Optional[Sequence[str]] = None,
    ) -> bool:
        return self._mutate_tree(
            workspace,
            lambda tree: mutator.remove_selected_nodes(
                tree, workspace, file_path, class_name, method_names
            ),
        )

    def clear_external_dependencies(self, workspace: Workspace) -> bool:
        return self._mutate_tree(
            workspace, lambda tree: mutator.clear_external_dependencies(tree, workspace)
        )

    def add_graph_to_current_session(
        self, workspace: Workspace, graph: ClassGraph, *, replace: bool = False
    ) -> AppFileTree:
        """Build a tree from ``graph`` and merge it into the current session.

        With ``replace`` the built projects overwrite the session's subtrees
        of the same name instead of being merged into them.
        """
        built = TreeBuilder().build(graph)

        def edit(tree: AppFileTree) -> bool:
            if replace:
                for project_tree in built.project_file_trees:
                    tree.project_file_trees = [
                        t for t in tree.project_file_trees
                        if t.project_name != project_tree.project_name
                    ]
                    tree.project_file_trees.append(project_tree.model_copy(deep=True))
            else:
                mutator.merge_trees(tree, built)
            return True

        self._mutate_tree(workspace, edit)
        return built

    def snapshot_tree(self, workspace: Workspace) -> AppFileTree:
        """Deep copy of the current tree, safe to render while edits continue."""
        with self._lock:
            return self.get_current_session(workspace).app_file_tree.model_copy(deep=True)
