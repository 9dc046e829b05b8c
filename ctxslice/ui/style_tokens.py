"""Shared styling tokens for terminal output."""

# Core semantic colors
PRIMARY = "#d0d4dc"
ACCENT = "#82a0ff"
SUBTLE = "#9aa0ac"
ERROR = "#ff5c57"
WARNING = "#ffb347"
SUCCESS = "#6ad18f"

# Tree levels
BLUE_LIGHT = "#9ccffd"  # Project headers
BLUE_PATH = "#58a6ff"  # File paths
CYAN = "#00bfff"  # Modules and dependencies
GREEN_LIGHT = "#89d185"  # Whole selections
GOLD = "#FFD700"  # Classes

WHOLE_MARKER = "(whole)"
