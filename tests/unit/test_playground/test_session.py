"""ExecutionSession tests — state machine, output log, error lifecycle.

The runtime is a FakeRuntime (see conftest.py), so no interpreter process is
started. Overlap tests gate a run mid-flight with an asyncio.Event.
"""

from __future__ import annotations

import asyncio

import pytest

from pyarchitect.errors import RuntimeUnavailableError, SessionBusyError
from pyarchitect.models.schemas import Failure, Output
from pyarchitect.playground.session import ExecutionSession, SessionState, _LineBuffer


# ─────────────────────────────────────────────────────────────────────────────
# 1. Successful runs
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_run_success_collects_output(fake_runtime):
    session = ExecutionSession(fake_runtime, initial_code="print('hello')")
    outcome = await session.run()

    assert isinstance(outcome, Output)
    assert outcome.lines == ["hello", "world"]
    assert session.output == ["hello", "world"]
    assert session.error is None
    assert session.last_status == "success"
    assert session.state is SessionState.IDLE
    assert fake_runtime.sources == ["print('hello')"]


@pytest.mark.asyncio
async def test_run_initializes_runtime(fake_runtime):
    session = ExecutionSession(fake_runtime)
    await session.run()
    assert fake_runtime.initialize_calls == 1
    assert fake_runtime.is_ready


@pytest.mark.asyncio
async def test_chunks_are_segmented_into_lines(runtime_factory):
    runtime = runtime_factory(chunks=["hel", "lo\nwor", "ld\r\n", "\n", "tail"])
    session = ExecutionSession(runtime, initial_code="...")
    outcome = await session.run()
    assert outcome.lines == ["hello", "world", "", "tail"]
    assert session.output == ["hello", "world", "", "tail"]


@pytest.mark.asyncio
async def test_sequential_runs_do_not_accumulate_output(fake_runtime):
    session = ExecutionSession(fake_runtime, initial_code="x")
    await session.run()
    await session.run()
    assert session.output == ["hello", "world"]


@pytest.mark.asyncio
async def test_output_property_returns_a_copy(fake_runtime):
    session = ExecutionSession(fake_runtime)
    await session.run()
    session.output.append("tampered")
    assert session.output == ["hello", "world"]


# ─────────────────────────────────────────────────────────────────────────────
# 2. Failed runs
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_run_failure_sets_structured_error(failing_runtime):
    session = ExecutionSession(failing_runtime, initial_code="a = 1\nb = 2\nprint(z)")
    outcome = await session.run()

    assert isinstance(outcome, Failure)
    assert "NameError" in outcome.raw_diagnostic
    assert session.error is not None
    assert session.error.kind == "NameError"
    assert session.error.source_line == 3
    assert session.error.message == "name 'z' is not defined"
    assert session.error.raw_diagnostic == outcome.raw_diagnostic
    assert session.last_status == "failed"
    assert session.state is SessionState.IDLE


@pytest.mark.asyncio
async def test_output_before_failure_is_kept(failing_runtime):
    session = ExecutionSession(failing_runtime)
    await session.run()
    assert session.output == ["before"]


@pytest.mark.asyncio
async def test_success_after_failure_clears_error(runtime_factory):
    runtime = runtime_factory(diagnostic="ValueError: bad")
    session = ExecutionSession(runtime)
    await session.run()
    assert session.error is not None

    runtime.diagnostic = None
    await session.run()
    assert session.error is None
    assert session.last_status == "success"


@pytest.mark.asyncio
async def test_on_error_callback_tracks_changes(failing_runtime):
    seen = []
    session = ExecutionSession(failing_runtime, on_error=seen.append)
    await session.run()
    session.edit("fixed")

    assert len(seen) == 2
    assert seen[0].kind == "NameError"
    assert seen[1] is None


# ─────────────────────────────────────────────────────────────────────────────
# 3. Runtime unavailable
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_unavailable_runtime_raises_and_returns_to_idle(runtime_factory):
    runtime = runtime_factory(can_start=False)
    session = ExecutionSession(runtime, initial_code="print(1)")

    with pytest.raises(RuntimeUnavailableError):
        await session.run()

    assert session.state is SessionState.IDLE
    assert runtime.sources == []
    assert session.error is None


@pytest.mark.asyncio
async def test_run_can_be_retried_after_unavailable(runtime_factory):
    runtime = runtime_factory(chunks=["ok\n"], can_start=False)
    session = ExecutionSession(runtime)
    with pytest.raises(RuntimeUnavailableError):
        await session.run()

    runtime.can_start = True
    outcome = await session.run()
    assert outcome.lines == ["ok"]


# ─────────────────────────────────────────────────────────────────────────────
# 4. Overlap and staleness
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_run_while_running_raises_busy(runtime_factory):
    hold = asyncio.Event()
    runtime = runtime_factory(chunks=["a\n"], hold=hold)
    session = ExecutionSession(runtime)

    first = asyncio.create_task(session.run())
    await asyncio.sleep(0)
    assert session.is_running

    with pytest.raises(SessionBusyError):
        await session.run()

    hold.set()
    outcome = await first
    assert outcome.lines == ["a"]
    assert not session.is_running


@pytest.mark.asyncio
async def test_edit_during_run_drops_stale_output(runtime_factory):
    hold = asyncio.Event()
    runtime = runtime_factory(chunks=["old\n", "late\n"], hold=hold)
    session = ExecutionSession(runtime, initial_code="old code")

    task = asyncio.create_task(session.run())
    await asyncio.sleep(0)
    assert session.output == ["old"]

    session.edit("new code")
    assert session.output == []

    hold.set()
    outcome = await task
    assert outcome.lines == ["old", "late"]
    assert session.output == []
    assert session.last_status is None
    assert session.code == "new code"


@pytest.mark.asyncio
async def test_edit_during_failing_run_drops_stale_error(runtime_factory):
    hold = asyncio.Event()
    runtime = runtime_factory(chunks=["x\n"], diagnostic="TypeError: nope", hold=hold)
    session = ExecutionSession(runtime)

    task = asyncio.create_task(session.run())
    await asyncio.sleep(0)
    session.edit("something else")
    hold.set()
    outcome = await task

    assert isinstance(outcome, Failure)
    assert session.error is None
    assert session.last_status is None


# ─────────────────────────────────────────────────────────────────────────────
# 5. Editing, reset, expected output
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_edit_clears_output_and_error(failing_runtime):
    session = ExecutionSession(failing_runtime)
    await session.run()
    assert session.output
    assert session.error is not None

    session.edit("print('fixed')")
    assert session.code == "print('fixed')"
    assert session.output == []
    assert session.error is None
    assert session.last_status is None


def test_edit_notifies_on_change(fake_runtime):
    changes = []
    session = ExecutionSession(fake_runtime, on_change=changes.append)
    session.edit("a")
    session.edit("b")
    assert changes == ["a", "b"]


def test_reset_restores_initial_code(fake_runtime):
    session = ExecutionSession(fake_runtime, initial_code="print('start')")
    session.edit("something else")
    session.reset()
    assert session.code == "print('start')"
    assert session.initial_code == "print('start')"


@pytest.mark.asyncio
async def test_expected_output_match_sets_passed(fake_runtime):
    session = ExecutionSession(fake_runtime, expected_output=r"hello\nworld")
    await session.run()
    assert session.passed


@pytest.mark.asyncio
async def test_expected_output_mismatch(fake_runtime):
    session = ExecutionSession(fake_runtime, expected_output=r"^goodbye$")
    await session.run()
    assert not session.passed
    assert session.last_status == "success"


@pytest.mark.asyncio
async def test_failed_run_never_passes(failing_runtime):
    session = ExecutionSession(failing_runtime, expected_output="before")
    await session.run()
    assert not session.passed


# ─────────────────────────────────────────────────────────────────────────────
# 6. _LineBuffer
# ─────────────────────────────────────────────────────────────────────────────

def test_line_buffer_holds_partial_until_flush():
    buffer = _LineBuffer()
    assert buffer.feed("abc") == []
    assert buffer.feed("def\ngh") == ["abcdef"]
    assert buffer.flush() == ["gh"]
    assert buffer.flush() == []


def test_line_buffer_multiple_lines_in_one_chunk():
    buffer = _LineBuffer()
    assert buffer.feed("1\n2\n3\n") == ["1", "2", "3"]
    assert buffer.flush() == []


# ─────────────────────────────────────────────────────────────────────────────
# 7. Live output
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_on_output_receives_lines_while_running(runtime_factory):
    hold = asyncio.Event()
    runtime = runtime_factory(chunks=["first\nsec", "ond\n", "tail"], hold=hold)
    batches: list[list[str]] = []
    session = ExecutionSession(runtime, on_output=batches.append)

    task = asyncio.create_task(session.run())
    await asyncio.sleep(0)
    assert batches == [["first"]]

    hold.set()
    await task
    assert batches == [["first"], ["second"], ["tail"]]


@pytest.mark.asyncio
async def test_on_output_skips_stale_lines(runtime_factory):
    hold = asyncio.Event()
    runtime = runtime_factory(chunks=["old\n", "late\n"], hold=hold)
    batches: list[list[str]] = []
    session = ExecutionSession(runtime, on_output=batches.append)

    task = asyncio.create_task(session.run())
    await asyncio.sleep(0)
    session.edit("new")
    hold.set()
    await task
    assert batches == [["old"]]
