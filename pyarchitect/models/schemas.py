"""Core schemas — structured errors, run outcomes, and assistant responses."""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class StructuredError(BaseModel):
    """Parsed, line-addressable view of a runtime diagnostic.

    Replaced wholesale on every run or edit, never mutated.
    """

    model_config = ConfigDict(frozen=True)

    kind: str = Field(default="Error", description="Exception class name, e.g. NameError")
    source_line: int | None = Field(
        default=None,
        description="Line number of the deepest frame in the traceback",
    )
    message: str = Field(default="", description="Text after 'Kind: '")
    raw_diagnostic: str = Field(description="Verbatim diagnostic text as produced by the runtime")


# ---- Run outcomes ----


class Output(BaseModel):
    """A run that completed. ``lines`` are in emission order."""

    kind: Literal["output"] = "output"
    lines: list[str] = Field(default_factory=list)


class Failure(BaseModel):
    """A run the runtime rejected with a traceback."""

    kind: Literal["failure"] = "failure"
    raw_diagnostic: str


ExecutionOutcome = Annotated[Union[Output, Failure], Field(discriminator="kind")]


# ---- Assistant responses ----


class GeneratedCode(BaseModel):
    kind: Literal["generate"] = "generate"
    code: str


class Explanation(BaseModel):
    kind: Literal["explain"] = "explain"
    explanation: str


class AutofixResult(BaseModel):
    """Autofix response that followed the two-section convention."""

    kind: Literal["autofix"] = "autofix"
    explanation: str
    code: str


class Unparsed(BaseModel):
    """Autofix response without the ``---CODE---`` section.

    The host must still show ``raw_text`` to the user.
    """

    kind: Literal["unparsed"] = "unparsed"
    raw_text: str


AssistantResponse = Annotated[
    Union[GeneratedCode, Explanation, AutofixResult, Unparsed],
    Field(discriminator="kind"),
]


class AssistantNotice(BaseModel):
    """What the host shows after an assistant action."""

    ok: bool = Field(default=True, description="False when the service call failed")
    title: str = Field(default="")
    body: str = Field(default="")
    applied: bool = Field(default=False, description="Whether the session source was replaced")
