"""Traceback parsing — raw diagnostic text → StructuredError.

Tracebacks from the runtime are human-readable text with no stable machine
format, so extraction is tiered:

  1. line number  — the LAST ``File "...", line N`` marker (deepest frame)
  2. kind/message — the last non-empty line, if it reads ``SomeError: msg``
  3. fallback     — scan upward for a line that starts with ``SomeError:``
  4. give up      — kind "Error", message = last non-empty line

parse() is total: any string, including "", yields a StructuredError whose
raw_diagnostic is the input unchanged.
"""

from __future__ import annotations

import re

from pyarchitect.models.schemas import StructuredError

GENERIC_KIND = "Error"

_LINE_MARKER_RE = re.compile(r'File ".*?", line (\d+)')

# "NameError", "json.decoder.JSONDecodeError", "UserWarning", "Exception"
_IDENT = r"(?:[A-Za-z_][A-Za-z0-9_]*\.)*(?:(?:[A-Za-z_][A-Za-z0-9_]*)?(?:Error|Warning)|Exception)"

_KIND_WITH_MESSAGE_RE = re.compile(rf"^({_IDENT}): (.*)$")
_KIND_PREFIX_RE = re.compile(rf"^({_IDENT}):")


def parse(raw_diagnostic: str) -> StructuredError:
    """Extract kind, line and message from a traceback. Never raises."""
    text = raw_diagnostic if isinstance(raw_diagnostic, str) else str(raw_diagnostic)

    lines = [line for line in text.strip().splitlines() if line.strip()]
    last_line = lines[-1].strip() if lines else ""

    kind = GENERIC_KIND
    message = last_line

    match = _KIND_WITH_MESSAGE_RE.match(last_line)
    if match:
        kind, message = match.group(1), match.group(2)
    else:
        for line in reversed(lines):
            candidate = line.strip()
            prefix = _KIND_PREFIX_RE.match(candidate)
            if prefix:
                kind = prefix.group(1)
                message = candidate[prefix.end():].strip()
                break

    return StructuredError(
        kind=kind,
        source_line=find_source_line(text),
        message=message,
        raw_diagnostic=text,
    )


def find_source_line(text: str) -> int | None:
    """Line number from the last frame marker, or None."""
    markers = _LINE_MARKER_RE.findall(text)
    if not markers:
        return None
    return int(markers[-1])
