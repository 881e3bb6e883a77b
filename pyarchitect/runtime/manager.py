"""RuntimeManager — owns the single embedded interpreter for the process.

Lifecycle:  UNINITIALIZED → INITIALIZING → READY

  - initialize() is idempotent: concurrent callers share one in-flight setup,
    and a READY manager returns immediately
  - a failed setup is logged and leaves the manager UNINITIALIZED; it never
    raises, the next initialize() simply tries again
  - run() streams text chunks to a sink as the worker produces them, then
    returns, or raises ExecutionFailedError carrying the raw traceback
  - runs are serialized by a lock; overlapping runs queue instead of
    interleaving their output
"""

from __future__ import annotations

import asyncio
import enum
import itertools
import sys
from collections.abc import Callable
from typing import Any

import structlog

from pyarchitect.config import settings
from pyarchitect.errors import ExecutionFailedError, RuntimeUnavailableError
from pyarchitect.runtime import protocol

logger = structlog.get_logger().bind(component="runtime.manager")

OutputSink = Callable[[str], None]

# StreamReader line limit; one frame can carry a long unbroken line of output
_FRAME_LIMIT = 16 * 1024 * 1024


class RuntimeState(str, enum.Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"


class RuntimeManager:
    """Process-wide handle to the embedded Python runtime."""

    def __init__(
        self,
        python: str | None = None,
        start_timeout: float | None = None,
        command: list[str] | None = None,
    ) -> None:
        interpreter = python or settings.runtime_python or sys.executable
        self._command = command or [interpreter, "-u", "-m", "pyarchitect.runtime.worker"]
        self._start_timeout = start_timeout or settings.runtime_start_timeout
        self._state = RuntimeState.UNINITIALIZED
        self._init_task: asyncio.Task | None = None
        self._proc: asyncio.subprocess.Process | None = None
        self._stderr_task: asyncio.Task | None = None
        self._sink: OutputSink | None = None
        self._run_lock = asyncio.Lock()
        self._ids = itertools.count(1)
        self.python_version: str | None = None
        # Number of times the expensive setup was started
        self.launches = 0

    @property
    def state(self) -> RuntimeState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is RuntimeState.READY

    # ---- Lifecycle ----

    async def initialize(self) -> None:
        """Bring the runtime to READY. Safe to call any number of times."""
        if self._state is RuntimeState.READY:
            return
        if self._init_task is None:
            self._init_task = asyncio.ensure_future(self._start())
        # Shield so one cancelled caller doesn't abort setup for the others
        await asyncio.shield(self._init_task)

    async def _start(self) -> None:
        self._state = RuntimeState.INITIALIZING
        self.launches += 1
        logger.info("runtime_initializing", command=" ".join(self._command))
        try:
            self._proc = await asyncio.create_subprocess_exec(
                *self._command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                limit=_FRAME_LIMIT,
            )
            self._stderr_task = asyncio.ensure_future(self._drain_stderr(self._proc))
            frame = await asyncio.wait_for(self._read_frame(), timeout=self._start_timeout)
            if frame is None or frame.get("type") != protocol.FRAME_READY:
                raise RuntimeError(f"worker did not report ready (got {frame!r})")
            self.python_version = frame.get("python")
            self._state = RuntimeState.READY
            logger.info("runtime_ready", pid=self._proc.pid, python=self.python_version)
        except Exception as e:
            logger.error("runtime_init_failed", error=str(e) or type(e).__name__)
            await self._terminate()
            self._state = RuntimeState.UNINITIALIZED
        finally:
            self._init_task = None

    async def shutdown(self) -> None:
        """Stop the worker. The next initialize() starts a fresh one."""
        async with self._run_lock:
            await self._terminate()
            self._state = RuntimeState.UNINITIALIZED
        logger.info("runtime_shutdown")

    async def _terminate(self) -> None:
        proc, self._proc = self._proc, None
        if proc is not None and proc.returncode is None:
            if proc.stdin is not None:
                proc.stdin.close()
            try:
                await asyncio.wait_for(proc.wait(), timeout=2.0)
            except asyncio.TimeoutError:
                proc.kill()
                await proc.wait()
        if self._stderr_task is not None:
            self._stderr_task.cancel()
            self._stderr_task = None

    # ---- Output ----

    def set_output_sink(self, sink: OutputSink | None) -> None:
        """Install the default sink. Replaces any previous one.

        Prefer passing ``sink=`` to run(); the default sink is shared by every
        caller that doesn't.
        """
        self._sink = sink

    # ---- Execution ----

    async def run(self, source: str, sink: OutputSink | None = None) -> None:
        """Execute ``source`` in the persistent namespace.

        Raises:
            RuntimeUnavailableError: the runtime could not be brought up, or
                the worker died mid-run. Retryable.
            ExecutionFailedError: user code raised; ``.diagnostic`` is the
                verbatim traceback.
        """
        if not self.is_ready:
            await self.initialize()
        if not self.is_ready:
            raise RuntimeUnavailableError("Python runtime is not ready")

        async with self._run_lock:
            await self._request(
                {"op": protocol.OP_EXEC, "code": source},
                sink if sink is not None else self._sink,
            )

    async def reset_namespace(self) -> None:
        """Forget every variable and import defined by previous runs."""
        if not self.is_ready:
            return
        async with self._run_lock:
            await self._request({"op": protocol.OP_RESET}, None)
        logger.info("runtime_namespace_reset")

    async def _request(self, request: dict[str, Any], sink: OutputSink | None) -> None:
        if self._proc is None or self._proc.stdin is None:
            raise await self._worker_lost("no worker process")
        request_id = next(self._ids)
        try:
            self._proc.stdin.write(protocol.encode({**request, "id": request_id}))
            await self._proc.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            raise await self._worker_lost(str(e) or type(e).__name__)

        while True:
            frame = await self._read_frame()
            if frame is None:
                raise await self._worker_lost("worker exited")
            if frame.get("id") != request_id:
                # Leftover frame from an earlier request
                continue
            kind = frame.get("type")
            if kind == protocol.FRAME_STREAM:
                self._deliver(sink, str(frame.get("text", "")))
            elif kind == protocol.FRAME_DONE:
                logger.debug("run_complete", request_id=request_id)
                return
            elif kind == protocol.FRAME_ERROR:
                diagnostic = str(frame.get("traceback", ""))
                logger.info("run_failed", request_id=request_id, error=diagnostic.strip()[-120:])
                raise ExecutionFailedError(diagnostic)

    def _deliver(self, sink: OutputSink | None, text: str) -> None:
        if sink is None or not text:
            return
        try:
            sink(text)
        except Exception as e:
            logger.warning("output_sink_error", error=str(e))

    async def _read_frame(self) -> dict[str, Any] | None:
        """Next well-formed frame, or None at EOF."""
        if self._proc is None or self._proc.stdout is None:
            raise await self._worker_lost("no worker output channel")
        while True:
            line = await self._proc.stdout.readline()
            if not line:
                return None
            frame = protocol.decode(line)
            if frame is not None:
                return frame
            logger.debug("malformed_frame_skipped", line=line[:80])

    async def _worker_lost(self, reason: str) -> RuntimeUnavailableError:
        logger.error("runtime_worker_lost", reason=reason)
        await self._terminate()
        self._state = RuntimeState.UNINITIALIZED
        return RuntimeUnavailableError(f"Python runtime stopped: {reason}")

    async def _drain_stderr(self, proc: asyncio.subprocess.Process) -> None:
        if proc.stderr is None:
            return
        while True:
            line = await proc.stderr.readline()
            if not line:
                return
            logger.debug("worker_stderr", line=line.decode("utf-8", errors="replace").rstrip())


_runtime: RuntimeManager | None = None


def get_runtime() -> RuntimeManager:
    """Get the process-wide RuntimeManager."""
    global _runtime
    if _runtime is None:
        _runtime = RuntimeManager()
    return _runtime
