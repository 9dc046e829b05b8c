"""Session history persistence."""

from ctxslice.core.context_engineering.history.session_manager import SessionManager

__all__ = ["SessionManager"]
