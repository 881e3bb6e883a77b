"""ExecutionSession — one editor's source, output log, and last error.

State machine:

    IDLE --run()--> RUNNING --ok-----> IDLE (last_status="success")
                            --raised-> IDLE (last_status="failed", error set)

  - run() while RUNNING raises SessionBusyError
  - edit()/reset() are allowed in any state; they clear output and error and
    start a new generation. A run still in flight from an older generation
    finishes, but its output and error are dropped instead of landing in the
    fresh log.
  - output chunks from the runtime are not line-aligned; they are segmented
    into lines here, and a trailing partial line is flushed when the run ends
  - on_output, if given, receives each batch of lines as soon as it is complete
"""

from __future__ import annotations

import enum
import re
from collections.abc import Callable

import structlog

from pyarchitect.errors import ExecutionFailedError, RuntimeUnavailableError, SessionBusyError
from pyarchitect.models.schemas import Failure, Output, StructuredError
from pyarchitect.playground import diagnostics
from pyarchitect.runtime.manager import RuntimeManager

logger = structlog.get_logger().bind(component="playground.session")


class SessionState(str, enum.Enum):
    IDLE = "idle"
    RUNNING = "running"


class _LineBuffer:
    """Joins arbitrary text chunks and hands back complete lines."""

    def __init__(self) -> None:
        self._partial = ""

    def feed(self, chunk: str) -> list[str]:
        *complete, self._partial = (self._partial + chunk).split("\n")
        return [line.rstrip("\r") for line in complete]

    def flush(self) -> list[str]:
        if not self._partial:
            return []
        line, self._partial = self._partial.rstrip("\r"), ""
        return [line]


class ExecutionSession:
    """Per-playground orchestrator around a shared RuntimeManager."""

    def __init__(
        self,
        runtime: RuntimeManager,
        initial_code: str = "",
        expected_output: str | None = None,
        on_change: Callable[[str], None] | None = None,
        on_error: Callable[[StructuredError | None], None] | None = None,
        on_output: Callable[[list[str]], None] | None = None,
    ) -> None:
        self._runtime = runtime
        self._initial_code = initial_code
        self._expected = re.compile(expected_output) if expected_output else None
        self._on_change = on_change
        self._on_error = on_error
        self._on_output = on_output

        self._code = initial_code
        self._output: list[str] = []
        self._error: StructuredError | None = None
        self._state = SessionState.IDLE
        self._last_status: str | None = None
        self._passed = False
        self._generation = 0

    # ---- Read access ----

    @property
    def code(self) -> str:
        return self._code

    @property
    def initial_code(self) -> str:
        return self._initial_code

    @property
    def output(self) -> list[str]:
        return list(self._output)

    @property
    def error(self) -> StructuredError | None:
        return self._error

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is SessionState.RUNNING

    @property
    def last_status(self) -> str | None:
        """Either "success" or "failed"; None before the first run and after an edit."""
        return self._last_status

    @property
    def passed(self) -> bool:
        """True after a successful run whose output matches ``expected_output``."""
        return self._passed

    # ---- Editing ----

    def edit(self, text: str) -> None:
        """Replace the source. Clears output and error."""
        self._code = text
        self._clear()
        if self._on_change:
            self._on_change(text)

    def reset(self) -> None:
        """Restore the source the session was created with."""
        self.edit(self._initial_code)

    def _clear(self) -> None:
        self._generation += 1
        self._output = []
        self._last_status = None
        self._passed = False
        self._set_error(None)

    def _set_error(self, error: StructuredError | None) -> None:
        changed = error is not self._error
        self._error = error
        if changed and self._on_error:
            self._on_error(error)

    # ---- Execution ----

    async def run(self) -> Output | Failure:
        """Run the current source.

        Returns Output on success or Failure with the raw traceback; in the
        failure case ``self.error`` holds the parsed StructuredError.

        Raises:
            SessionBusyError: a run is already in flight on this session.
            RuntimeUnavailableError: the runtime could not be started. The
                session is back to IDLE and run() may be retried.
        """
        if self._state is SessionState.RUNNING:
            raise SessionBusyError("A run is already in progress")

        self._state = SessionState.RUNNING
        self._clear()
        generation = self._generation
        source = self._code
        buffer = _LineBuffer()
        run_lines: list[str] = []

        def append(lines: list[str]) -> None:
            run_lines.extend(lines)
            if lines and generation == self._generation:
                self._output.extend(lines)
                if self._on_output:
                    self._on_output(lines)

        try:
            await self._runtime.initialize()
            if not self._runtime.is_ready:
                raise RuntimeUnavailableError("Python runtime is not ready")
            await self._runtime.run(source, sink=lambda chunk: append(buffer.feed(chunk)))
        except ExecutionFailedError as e:
            append(buffer.flush())
            error = diagnostics.parse(e.diagnostic)
            if generation == self._generation:
                self._set_error(error)
                self._last_status = "failed"
            logger.info(
                "session_run_failed",
                kind=error.kind,
                line=error.source_line,
                stale=generation != self._generation,
            )
            return Failure(raw_diagnostic=e.diagnostic)
        except RuntimeUnavailableError as e:
            logger.warning("session_runtime_unavailable", error=str(e))
            raise
        finally:
            self._state = SessionState.IDLE

        append(buffer.flush())
        if generation == self._generation:
            self._last_status = "success"
            self._passed = self._matches_expected()
        logger.info("session_run_succeeded", lines=len(run_lines), passed=self._passed)
        return Output(lines=run_lines)

    def _matches_expected(self) -> bool:
        if self._expected is None:
            return False
        return self._expected.search("\n".join(self._output)) is not None
