"""Workbench — the host side of the playground.

Binds one ExecutionSession to the AIAssistant and turns every assistant
outcome into an AssistantNotice the UI can show. Assistant failures never
touch the session: source and error stay as they were.
"""

from __future__ import annotations

import structlog

from pyarchitect.assistant.assistant import AIAssistant
from pyarchitect.errors import AssistantServiceError
from pyarchitect.models.schemas import AssistantNotice, Unparsed
from pyarchitect.playground.session import ExecutionSession

logger = structlog.get_logger().bind(component="playground.workbench")

GENERATE_FAILED = "AI generation failed. Check API configuration."
EXPLAIN_FAILED = "Error generating explanation."
AUTOFIX_FAILED = "Error connecting to AI service."
AUTOFIX_UNPARSED = "Could not automatically apply fix. Here is the AI response:"


class Workbench:
    """Session + assistant, wired the way the playground screen uses them."""

    def __init__(self, session: ExecutionSession, assistant: AIAssistant) -> None:
        self.session = session
        self.assistant = assistant

    async def generate(self, task: str) -> AssistantNotice:
        """Replace the source with code written for ``task``."""
        if not task.strip():
            return AssistantNotice(ok=False, title="Nothing to generate", body="Describe a task first.")
        try:
            result = await self.assistant.generate(task)
        except AssistantServiceError:
            return AssistantNotice(ok=False, title="Generation failed", body=GENERATE_FAILED)
        if result is None:
            return AssistantNotice(title="No change", body="The assistant returned no code.")
        self.session.edit(result.code)
        logger.info("workbench_code_generated", task=task[:60])
        return AssistantNotice(title="Code generated", body=result.code, applied=True)

    async def explain(self) -> AssistantNotice:
        try:
            result = await self.assistant.explain(self.session.code)
        except AssistantServiceError:
            return AssistantNotice(ok=False, title="Explanation failed", body=EXPLAIN_FAILED)
        return AssistantNotice(title="Explanation", body=result.explanation or "No response.")

    async def autofix(self) -> AssistantNotice:
        """Ask for a fix of the last run's error and apply it if it parses."""
        error = self.session.error
        if error is None:
            return AssistantNotice(ok=False, title="Nothing to fix", body="Run the code to get an error first.")
        try:
            result = await self.assistant.autofix(self.session.code, error.raw_diagnostic)
        except AssistantServiceError:
            return AssistantNotice(ok=False, title="Auto-fix failed", body=AUTOFIX_FAILED)

        if isinstance(result, Unparsed):
            # No confirmed fix: leave source and error alone so the user can retry
            return AssistantNotice(title="Auto-fix not applied", body=f"{AUTOFIX_UNPARSED}\n\n{result.raw_text}")

        self.session.edit(result.code)
        logger.info("workbench_autofix_applied", kind=error.kind, line=error.source_line)
        return AssistantNotice(title="Auto-fix applied", body=result.explanation, applied=True)
