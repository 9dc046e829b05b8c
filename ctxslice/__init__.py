"""ctxslice - curate a minimal slice of a codebase as LLM context."""

__version__ = "0.1.0"
