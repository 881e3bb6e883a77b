"""PyArchitect Runtime — the embedded interpreter shared by every playground.

    RuntimeManager  — lifecycle (UNINITIALIZED → INITIALIZING → READY) + run()
    worker          — child process that executes code in a persistent namespace
    protocol        — JSON-lines frames between the two
"""

from .manager import OutputSink, RuntimeManager, RuntimeState, get_runtime

__all__ = ["OutputSink", "RuntimeManager", "RuntimeState", "get_runtime"]
