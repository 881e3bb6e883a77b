"""Wire format between RuntimeManager and the runtime worker.

One JSON object per line in each direction.

Requests (manager → worker, on the worker's stdin):
    {"op": "exec",  "id": 7, "code": "print(1)"}
    {"op": "reset", "id": 8}

Frames (worker → manager, on the worker's private channel):
    {"type": "ready",  "python": "3.12.1"}
    {"type": "stream", "id": 7, "stream": "stdout", "text": "1\\n"}
    {"type": "done",   "id": 7}
    {"type": "error",  "id": 7, "traceback": "Traceback (most recent call last): ..."}
"""

from __future__ import annotations

import json
from typing import Any

OP_EXEC = "exec"
OP_RESET = "reset"

FRAME_READY = "ready"
FRAME_STREAM = "stream"
FRAME_DONE = "done"
FRAME_ERROR = "error"

# Filename user code is compiled under; tracebacks read File "<exec>", line N
SOURCE_FILENAME = "<exec>"


def encode(message: dict[str, Any]) -> bytes:
    """Serialize one request or frame, newline-terminated."""
    return (json.dumps(message, ensure_ascii=False) + "\n").encode("utf-8")


def decode(line: bytes | str) -> dict[str, Any] | None:
    """Parse one line. Returns None for blank or malformed lines."""
    if isinstance(line, bytes):
        line = line.decode("utf-8", errors="replace")
    line = line.strip()
    if not line:
        return None
    try:
        message = json.loads(line)
    except json.JSONDecodeError:
        return None
    return message if isinstance(message, dict) else None
