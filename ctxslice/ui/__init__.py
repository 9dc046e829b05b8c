"""Terminal rendering helpers for the ctxslice CLI."""

from ctxslice.ui.tree_formatter import format_app_tree, format_sessions_table

__all__ = ["format_app_tree", "format_sessions_table"]
