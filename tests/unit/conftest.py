"""Unit-test conftest — MockTextService, FakeRuntime, and shared fixtures.

All fixtures here are available to every test under tests/unit/ without import.
"""

from __future__ import annotations

import asyncio

import pytest

from pyarchitect.errors import ExecutionFailedError
from pyarchitect.tools.text_service import TextResult


NAME_ERROR_TRACEBACK = (
    "Traceback (most recent call last):\n"
    '  File "<exec>", line 3, in <module>\n'
    "NameError: name 'z' is not defined\n"
)


# ─────────────────────────────────────────────────────────────────────────────
# MockTextService — drop-in replacement for TextServiceClient
# ─────────────────────────────────────────────────────────────────────────────

class MockTextService:
    """Configurable fake TextServiceClient.

    Args:
        response:  Text returned by generate() (default: "mock response").
        raises:    If set, generate() raises this exception.
        delay:     Seconds to sleep before generate() returns.
    """

    def __init__(
        self,
        *,
        response: str = "mock response",
        raises: Exception | None = None,
        delay: float = 0.0,
    ) -> None:
        self.response = response
        self.raises = raises
        self.delay = delay
        self.prompts: list[str] = []
        self.models: list[str] = []

    @property
    def calls(self) -> int:
        return len(self.prompts)

    async def generate(self, model: str, prompt: str) -> TextResult:
        self.models.append(model)
        self.prompts.append(prompt)
        if self.delay > 0:
            await asyncio.sleep(self.delay)
        if self.raises:
            raise self.raises
        return TextResult(text=self.response, model=model)

    async def close(self) -> None:
        pass


# ─────────────────────────────────────────────────────────────────────────────
# FakeRuntime — drop-in replacement for RuntimeManager
# ─────────────────────────────────────────────────────────────────────────────

class FakeRuntime:
    """In-memory RuntimeManager stand-in.

    Args:
        chunks:      Text chunks pushed to the sink on every run.
        diagnostic:  If set, run() raises ExecutionFailedError(diagnostic)
                     after the chunks.
        can_start:   False → initialize() never reaches ready.
        hold:        If set, run() waits on this event after the first chunk.
    """

    def __init__(
        self,
        *,
        chunks: list[str] | None = None,
        diagnostic: str | None = None,
        can_start: bool = True,
        hold: asyncio.Event | None = None,
    ) -> None:
        self.chunks = chunks if chunks is not None else []
        self.diagnostic = diagnostic
        self.can_start = can_start
        self.hold = hold
        self.is_ready = False
        self.initialize_calls = 0
        self.sources: list[str] = []

    async def initialize(self) -> None:
        self.initialize_calls += 1
        if self.can_start:
            self.is_ready = True

    async def run(self, source: str, sink=None) -> None:
        self.sources.append(source)
        for i, chunk in enumerate(self.chunks):
            if sink is not None:
                sink(chunk)
            if i == 0 and self.hold is not None:
                await self.hold.wait()
        if not self.chunks and self.hold is not None:
            await self.hold.wait()
        if self.diagnostic is not None:
            raise ExecutionFailedError(self.diagnostic)


# ─────────────────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def mock_text_service():
    """A MockTextService with an instant plain response."""
    return MockTextService()


@pytest.fixture
def mock_text_service_failing():
    """A MockTextService that always raises a connection error."""
    import httpx

    return MockTextService(raises=httpx.ConnectError("service offline"))


@pytest.fixture
def fake_runtime():
    """A FakeRuntime that prints two lines and succeeds."""
    return FakeRuntime(chunks=["hello\n", "world\n"])


@pytest.fixture
def failing_runtime():
    """A FakeRuntime whose runs fail with a NameError on line 3."""
    return FakeRuntime(chunks=["before\n"], diagnostic=NAME_ERROR_TRACEBACK)


@pytest.fixture
def runtime_factory():
    """The FakeRuntime class, for tests that need custom chunks or gating."""
    return FakeRuntime


@pytest.fixture
def text_service_factory():
    """The MockTextService class, for tests that need a custom response."""
    return MockTextService
