"""Progress store — the list of completed course-module ids.

Persisted as a JSON array (``[1, 2, 5]``) at settings.progress_path. Read
once at startup, rewritten on every change. A missing or unreadable file
means "nothing completed yet".
"""

from __future__ import annotations

import json
from pathlib import Path

import structlog

from pyarchitect.config import settings

logger = structlog.get_logger().bind(component="progress_store")


class ProgressStore:
    """File-backed list of completed module ids."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = Path(path) if path is not None else settings.progress_path
        self._completed: list[int] | None = None

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> list[int]:
        """Return completed ids, reading the file on first use."""
        if self._completed is None:
            self._completed = self._read()
        return list(self._completed)

    def is_complete(self, module_id: int) -> bool:
        return module_id in self.load()

    def mark_complete(self, module_id: int) -> list[int]:
        """Add ``module_id`` (no-op if present) and persist."""
        completed = self.load()
        if module_id not in completed:
            completed.append(module_id)
            self.save(completed)
        return completed

    def save(self, completed: list[int]) -> None:
        self._completed = list(completed)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(self._completed), encoding="utf-8")
        logger.debug("progress_saved", path=str(self._path), completed=len(self._completed))

    def clear(self) -> None:
        self.save([])

    def _read(self) -> list[int]:
        if not self._path.exists():
            return []
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("progress_unreadable", path=str(self._path), error=str(e))
            return []
        if not isinstance(data, list):
            logger.warning("progress_bad_format", path=str(self._path))
            return []
        return [item for item in data if isinstance(item, int) and not isinstance(item, bool)]
