"""Prompt templates for the three assistant requests."""

from __future__ import annotations

EXPLANATION_TOKEN = "---EXPLANATION---"
CODE_TOKEN = "---CODE---"

_GENERATE_PROMPT = """\
Write Python code for the following task. Provide ONLY the raw python code \
without markdown backticks or explanations unless comments in the code. \
Task: {task}"""

_EXPLAIN_PROMPT = """\
Explain the following Python code in simple terms for a developer:

{code}"""

_AUTOFIX_PROMPT = """\
I have the following Python code that produced an error.
CODE:
{code}

ERROR:
{error}

Please fix the code.
1. Explain what caused the error.
2. Provide the corrected code.

Return the response in this exact format:
{explanation_token}
(Explanation here)
{code_token}
(Only the fixed python code here, no markdown backticks)
"""


def generate_prompt(task: str) -> str:
    return _GENERATE_PROMPT.format(task=task)


def explain_prompt(code: str) -> str:
    return _EXPLAIN_PROMPT.format(code=code)


def autofix_prompt(code: str, error: str) -> str:
    return _AUTOFIX_PROMPT.format(
        code=code,
        error=error,
        explanation_token=EXPLANATION_TOKEN,
        code_token=CODE_TOKEN,
    )
