"""Data models."""

from ctxslice.models.config import AppConfig
from ctxslice.models.file_tree import (
    AppFileTree,
    ElementHandle,
    ExternalDependencyGroup,
    ModuleGroup,
    PackageGroup,
    ProjectClass,
    ProjectFile,
    ProjectFileTree,
    ProjectMethod,
)
from ctxslice.models.message import ChatMessage, Role
from ctxslice.models.session import ChatSession
from ctxslice.models.workspace import Workspace

__all__ = [
    "AppConfig",
    "AppFileTree",
    "ChatMessage",
    "ChatSession",
    "ElementHandle",
    "ExternalDependencyGroup",
    "ModuleGroup",
    "PackageGroup",
    "ProjectClass",
    "ProjectFile",
    "ProjectFileTree",
    "ProjectMethod",
    "Role",
    "Workspace",
]
