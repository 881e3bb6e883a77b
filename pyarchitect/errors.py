"""Exception types for the playground core.

Only the runtime, the session and the assistant raise these. The traceback
parser and the autofix response parser never raise.
"""

from __future__ import annotations


class PlaygroundError(Exception):
    """Base exception for PyArchitect."""


class RuntimeUnavailableError(PlaygroundError):
    """The embedded runtime never reached READY. Retry ``initialize()``."""


class ExecutionFailedError(PlaygroundError):
    """User code raised inside the runtime.

    ``diagnostic`` holds the verbatim traceback text.
    """

    def __init__(self, diagnostic: str) -> None:
        super().__init__(diagnostic)
        self.diagnostic = diagnostic


class SessionBusyError(PlaygroundError):
    """A run was requested while the session is already running."""


class AssistantServiceError(PlaygroundError):
    """The generative text service could not be reached or answered garbage."""
