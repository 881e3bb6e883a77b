"""PyArchitect Playground — per-editor execution state and the host facade."""

from .session import ExecutionSession, SessionState
from .workbench import Workbench

__all__ = ["ExecutionSession", "SessionState", "Workbench"]
