"""Runtime services: configuration and background task supervision."""

from ctxslice.core.runtime.config import ConfigManager
from ctxslice.core.runtime.task_supervisor import TaskSupervisor

__all__ = ["ConfigManager", "TaskSupervisor"]
