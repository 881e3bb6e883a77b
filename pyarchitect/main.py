"""PyArchitect CLI — the playground host.

Commands:
    pyarchitect run       — Run a Python file in the embedded runtime
    pyarchitect repl      — Interactive playground with AI fix / explain
    pyarchitect generate  — Write code for a task description
    pyarchitect explain   — Explain a Python file
    pyarchitect fix       — Run a file and auto-fix the error it raises
    pyarchitect progress  — Show or update completed course modules
    pyarchitect version   — Show version
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from pyarchitect.models.schemas import AssistantNotice, Failure, StructuredError
from pyarchitect.utils import setup_logging

app = typer.Typer(
    name="pyarchitect",
    help="🐍 PyArchitect — Python playground with an AI assistant",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
console = Console()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs on stderr"),
):
    setup_logging("debug" if verbose else "warning")


def _read_source(path: Path) -> str:
    if not path.exists():
        console.print(f"[red]✗ File not found: {path}[/]")
        raise typer.Exit(2)
    return path.read_text(encoding="utf-8")


def _print_output(lines: list[str]) -> None:
    for line in lines:
        console.print(line, style="green", markup=False, highlight=False)


def _print_error(error: StructuredError, show_traceback: bool = False) -> None:
    header = f"[bold red]{error.kind}[/]"
    if error.source_line is not None:
        header += f"  [dim]line {error.source_line}[/]"
    body = f"{header}\n{escape(error.message)}"
    if show_traceback:
        body += f"\n\n[dim]{escape(error.raw_diagnostic.rstrip())}[/]"
    console.print(Panel(body, title="[red]✗ Error[/]", border_style="red"))


def _print_notice(notice: AssistantNotice) -> None:
    style = "green" if notice.applied else ("cyan" if notice.ok else "yellow")
    console.print(Panel(Markdown(notice.body or ""), title=f"[bold]{notice.title}[/]", border_style=style))


def _build_workbench(initial_code: str, expected: str | None = None):
    from pyarchitect.assistant import AIAssistant
    from pyarchitect.playground import ExecutionSession, Workbench
    from pyarchitect.runtime import get_runtime

    session = ExecutionSession(
        get_runtime(),
        initial_code=initial_code,
        expected_output=expected,
        on_output=_print_output,
    )
    return Workbench(session, AIAssistant())


async def _start_runtime() -> bool:
    from pyarchitect.runtime import get_runtime

    runtime = get_runtime()
    with console.status("[dim]Initializing Python...[/]", spinner="dots"):
        await runtime.initialize()
    if not runtime.is_ready:
        console.print("[yellow]⚠ Python runtime failed to start — see logs with --verbose[/]")
    return runtime.is_ready


async def _shutdown() -> None:
    from pyarchitect.runtime import get_runtime
    from pyarchitect.tools.text_service import get_text_service

    await get_runtime().shutdown()
    await get_text_service().close()


# ── pyarchitect run ───────────────────────────────────────────


@app.command()
def run(
    file: Path = typer.Argument(..., help="Python file to run"),
    expect: str = typer.Option(None, "--expect", "-e", help="Regex the output must match"),
    traceback: bool = typer.Option(False, "--traceback", "-t", help="Show the full traceback"),
):
    """▶ Run a Python file in the embedded runtime."""
    ok = asyncio.run(_run(_read_source(file), expect, traceback))
    if not ok:
        raise typer.Exit(1)


async def _run(source: str, expect: str | None, show_traceback: bool) -> bool:
    from pyarchitect.errors import RuntimeUnavailableError

    workbench = _build_workbench(source, expected=expect)
    session = workbench.session
    try:
        if not await _start_runtime():
            return False
        outcome = await session.run()
    except RuntimeUnavailableError as e:
        console.print(f"[yellow]⚠ {e}[/]")
        return False
    finally:
        await _shutdown()

    if isinstance(outcome, Failure):
        _print_error(session.error, show_traceback)
        return False
    if expect is not None:
        if session.passed:
            console.print("[bold green]✓ Output matches expected[/]")
        else:
            console.print(f"[yellow]✗ Output does not match {expect!r}[/]")
            return False
    return True


# ── pyarchitect generate ──────────────────────────────────────


@app.command()
def generate(
    task: str = typer.Argument(..., help="What the code should do"),
    output: Path = typer.Option(None, "--output", "-o", help="Write the code to this file"),
):
    """✨ Write Python code for a task description."""
    asyncio.run(_generate(task, output))


async def _generate(task: str, output: Path | None) -> None:
    workbench = _build_workbench("")
    try:
        with console.status("[dim]Generating...[/]", spinner="dots"):
            notice = await workbench.generate(task)
    finally:
        await _shutdown()

    if not notice.applied:
        _print_notice(notice)
        return
    code = workbench.session.code
    console.print(Syntax(code, "python", line_numbers=True))
    if output is not None:
        output.write_text(code + "\n", encoding="utf-8")
        console.print(f"[dim]Saved to {output}[/]")


# ── pyarchitect explain ───────────────────────────────────────


@app.command()
def explain(file: Path = typer.Argument(..., help="Python file to explain")):
    """💡 Explain a Python file in plain language."""
    asyncio.run(_explain(_read_source(file)))


async def _explain(source: str) -> None:
    workbench = _build_workbench(source)
    try:
        with console.status("[dim]Analyzing code...[/]", spinner="dots"):
            notice = await workbench.explain()
    finally:
        await _shutdown()
    _print_notice(notice)


# ── pyarchitect fix ───────────────────────────────────────────


@app.command()
def fix(
    file: Path = typer.Argument(..., help="Python file to run and repair"),
    write: bool = typer.Option(False, "--write", "-w", help="Overwrite the file with the fix"),
):
    """🔧 Run a file; if it fails, ask the assistant for a fix."""
    asyncio.run(_fix(file, _read_source(file), write))


async def _fix(file: Path, source: str, write: bool) -> None:
    from pyarchitect.errors import RuntimeUnavailableError

    workbench = _build_workbench(source)
    session = workbench.session
    try:
        if not await _start_runtime():
            return
        outcome = await session.run()
        if not isinstance(outcome, Failure):
            console.print("[green]✓ Ran without errors — nothing to fix[/]")
            return
        _print_error(session.error)
        with console.status("[dim]Analyzing error and generating fix...[/]", spinner="dots"):
            notice = await workbench.autofix()
    except RuntimeUnavailableError as e:
        console.print(f"[yellow]⚠ {e}[/]")
        return
    finally:
        await _shutdown()

    _print_notice(notice)
    if notice.applied:
        console.print(Syntax(session.code, "python", line_numbers=True))
        if write:
            file.write_text(session.code + "\n", encoding="utf-8")
            console.print(f"[dim]Wrote fix to {file}[/]")


# ── pyarchitect repl ──────────────────────────────────────────

_REPL_HELP = (
    "[bold green]PyArchitect Playground[/]\n"
    "[dim]Enter code; a blank line runs the block.\n"
    "Commands: [bold]:fix[/bold] auto-fix last error · [bold]:explain[/bold] explain last block · "
    "[bold]:gen <task>[/bold] generate code · [bold]:tb[/bold] show traceback · "
    "[bold]:reset[/bold] clear variables · [bold]:quit[/bold][/]"
)


@app.command()
def repl():
    """💬 Interactive playground. Variables persist between blocks."""
    asyncio.run(_repl())


async def _repl():
    from pyarchitect.errors import RuntimeUnavailableError

    console.print(Panel(_REPL_HELP, border_style="green"))
    workbench = _build_workbench("")
    await _start_runtime()

    try:
        while True:
            try:
                block = _read_block()
            except (EOFError, KeyboardInterrupt):
                console.print("\n[dim]Session ended.[/]")
                break
            if block is None:
                continue

            command, _, arg = block.strip().partition(" ")
            if command in (":quit", ":q", ":exit"):
                break
            try:
                await _repl_dispatch(workbench, block, command, arg)
            except RuntimeUnavailableError as e:
                console.print(f"[yellow]⚠ {e} — try the block again to restart Python[/]")
    finally:
        await _shutdown()


def _read_block() -> str | None:
    first = console.input("[bold cyan]>>> [/]")
    if not first.strip():
        return None
    if first.strip().startswith(":"):
        return first
    lines = [first]
    while True:
        line = console.input("[bold cyan]... [/]")
        if not line.strip():
            break
        lines.append(line)
    return "\n".join(lines)


async def _repl_dispatch(workbench, block: str, command: str, arg: str) -> None:
    from pyarchitect.runtime import get_runtime

    session = workbench.session
    if command == ":reset":
        await get_runtime().reset_namespace()
        session.reset()
        console.print("[dim]Namespace cleared.[/]")
    elif command == ":tb":
        if session.error is not None:
            _print_error(session.error, show_traceback=True)
    elif command == ":explain":
        _print_notice(await workbench.explain())
    elif command == ":fix":
        notice = await workbench.autofix()
        _print_notice(notice)
        if notice.applied:
            console.print(Syntax(session.code, "python"))
            console.print("[dim]Running fixed code...[/]")
            await _repl_run(session)
    elif command == ":gen":
        notice = await workbench.generate(arg)
        if notice.applied:
            console.print(Syntax(session.code, "python"))
            await _repl_run(session)
        else:
            _print_notice(notice)
    else:
        session.edit(block)
        await _repl_run(session)


async def _repl_run(session) -> None:
    outcome = await session.run()
    if isinstance(outcome, Failure):
        _print_error(session.error)


# ── pyarchitect progress ──────────────────────────────────────


@app.command()
def progress(
    complete: int = typer.Option(None, "--complete", "-c", help="Mark a module id as completed"),
    clear: bool = typer.Option(False, "--clear", help="Forget all progress"),
):
    """📈 Show or update completed course modules."""
    from pyarchitect.tools.progress_store import ProgressStore

    store = ProgressStore()
    if clear:
        store.clear()
    if complete is not None:
        store.mark_complete(complete)

    completed = store.load()
    table = Table(title="Completed Modules")
    table.add_column("Module", style="cyan")
    for module_id in sorted(completed):
        table.add_row(str(module_id))
    console.print(table if completed else "[dim]No modules completed yet.[/]")
    console.print(f"[dim]{store.path}[/]")


# ── pyarchitect version ───────────────────────────────────────


@app.command()
def version():
    """📦 Show PyArchitect version."""
    from pyarchitect import __version__
    console.print(f"[bold cyan]🐍 PyArchitect[/] v{__version__}")


# ── Entry point ───────────────────────────────────────────────

if __name__ == "__main__":
    app()
