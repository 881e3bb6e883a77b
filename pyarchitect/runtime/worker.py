"""Runtime worker — the embedded Python interpreter.

Started by RuntimeManager as ``python -u -m pyarchitect.runtime.worker``.
Every submission runs in ONE persistent globals dict, so variables and
imports survive between runs until a ``reset`` request.

Channel layout:
  - requests arrive on the original stdin
  - frames leave on a private dup of the original stdout
  - fd 1 is pointed at stderr so stray C-level writes can't corrupt frames
  - user code sees an empty stdin (input() raises EOFError)
"""

from __future__ import annotations

import builtins
import io
import os
import sys
import traceback
from typing import Any, TextIO

from pyarchitect.runtime import protocol

# Flush a partial line once this much text is buffered
_FLUSH_CHARS = 8192


class _FrameWriter(io.TextIOBase):
    """File-like object that turns writes into ``stream`` frames.

    Complete lines are sent as soon as they are written; a trailing partial
    line waits for a newline, a flush, or the buffer limit.
    """

    def __init__(self, worker: "Worker", stream: str) -> None:
        self._worker = worker
        self._stream = stream
        self._buffer = ""

    @property
    def encoding(self) -> str:
        return "utf-8"

    def writable(self) -> bool:
        return True

    def write(self, text: str) -> int:
        self._buffer += text
        if "\n" in self._buffer:
            head, _, tail = self._buffer.rpartition("\n")
            self._buffer = tail
            self._worker.stream(self._stream, head + "\n")
        if len(self._buffer) >= _FLUSH_CHARS:
            self.flush()
        return len(text)

    def flush(self) -> None:
        if self._buffer:
            text, self._buffer = self._buffer, ""
            self._worker.stream(self._stream, text)


class Worker:
    """Executes requests against a persistent namespace."""

    def __init__(self, channel: TextIO) -> None:
        self._channel = channel
        self._current_id: Any = None
        self.namespace: dict[str, Any] = {}
        self.reset()
        self.stdout = _FrameWriter(self, "stdout")
        self.stderr = _FrameWriter(self, "stderr")

    def send(self, frame: dict[str, Any]) -> None:
        self._channel.write(protocol.encode(frame).decode("utf-8"))
        self._channel.flush()

    def stream(self, stream: str, text: str) -> None:
        self.send({
            "type": protocol.FRAME_STREAM,
            "id": self._current_id,
            "stream": stream,
            "text": text,
        })

    def reset(self) -> None:
        self.namespace = {"__name__": "__main__", "__builtins__": builtins}

    def handle(self, request: dict[str, Any]) -> None:
        op = request.get("op")
        self._current_id = request.get("id")
        if op == protocol.OP_RESET:
            self.reset()
            self.send({"type": protocol.FRAME_DONE, "id": self._current_id})
        elif op == protocol.OP_EXEC:
            self.execute(str(request.get("code", "")))
        else:
            self.send({
                "type": protocol.FRAME_ERROR,
                "id": self._current_id,
                "traceback": f"ProtocolError: unknown op {op!r}",
            })

    def execute(self, code: str) -> None:
        saved = sys.stdout, sys.stderr
        sys.stdout, sys.stderr = self.stdout, self.stderr
        failure: str | None = None
        try:
            compiled = compile(code, protocol.SOURCE_FILENAME, "exec")
            exec(compiled, self.namespace)  # noqa: S102
        except SystemExit as exc:
            if exc.code not in (None, 0):
                failure = _format_exception(exc)
        except BaseException as exc:
            failure = _format_exception(exc)
        finally:
            self.stdout.flush()
            self.stderr.flush()
            sys.stdout, sys.stderr = saved

        if failure is None:
            self.send({"type": protocol.FRAME_DONE, "id": self._current_id})
        else:
            self.send({"type": protocol.FRAME_ERROR, "id": self._current_id, "traceback": failure})


def _format_exception(exc: BaseException) -> str:
    # Drop the worker's own exec() frame so the trace starts at user code
    tb = exc.__traceback__.tb_next if exc.__traceback__ is not None else None
    return "".join(traceback.format_exception(type(exc), exc, tb))


def _open_channel() -> TextIO:
    channel_fd = os.dup(1)
    os.dup2(2, 1)
    return os.fdopen(channel_fd, "w", encoding="utf-8", buffering=1)


def main() -> None:
    channel = _open_channel()
    requests = sys.stdin
    sys.stdin = io.StringIO("")
    sys.stdout = sys.stderr

    worker = Worker(channel)
    worker.send({"type": protocol.FRAME_READY, "python": sys.version.split()[0]})

    for line in requests:
        request = protocol.decode(line)
        if request is None:
            continue
        worker.handle(request)


if __name__ == "__main__":
    main()
