"""Descriptor models mapping a directory to a Taskwarrior task."""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class Fragment(BaseModel):
    """A literal piece of text or a helper command contributing to a composed field."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    text: str | None = Field(default=None, description="Literal text appended verbatim.")
    command: tuple[str, ...] | None = Field(
        default=None,
        description="Helper command (program followed by its arguments) whose output is appended.",
    )
    regex: str | None = Field(
        default=None,
        description="Pattern applied to the command output; the first group (or whole match) is kept.",
    )

    @field_validator("command", mode="before")
    @classmethod
    def _ensure_command_sequence(cls, value: Any):
        if value is None:
            return None
        if isinstance(value, str) or not isinstance(value, (list, tuple)):
            raise ValueError("Fragment command must be a sequence of strings")
        if not value:
            raise ValueError("Fragment command must not be empty")
        return tuple(value)

    @field_validator("regex")
    @classmethod
    def _compile_regex(cls, value: str | None) -> str | None:
        if value is None:
            return None
        try:
            re.compile(value)
        except re.error as exc:
            raise ValueError(f"Invalid fragment regex '{value}': {exc}") from exc
        return value

    @model_validator(mode="after")
    def _check_kind(self) -> "Fragment":
        if (self.text is None) == (self.command is None):
            raise ValueError("Fragment must define exactly one of `text` or `command`")
        if self.regex is not None and self.command is None:
            raise ValueError("Fragment `regex` is only valid together with `command`")
        return self


class Descriptor(BaseModel):
    """Declarative recipe resolving a directory to a task."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str | None = Field(default=None, description="UUID of an existing task.")
    description: tuple[Fragment, ...] = Field(default_factory=tuple)
    project: tuple[Fragment, ...] = Field(default_factory=tuple)
    tags: tuple[Fragment, ...] = Field(default_factory=tuple)

    @field_validator("id")
    @classmethod
    def _normalize_id(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        if not normalized:
            raise ValueError("Descriptor id must not be empty")
        return normalized

    @field_validator("description", "project", "tags", mode="before")
    @classmethod
    def _ensure_sequence(cls, value: Any):
        if value is None:
            return ()
        if isinstance(value, (list, tuple)):
            return tuple(value)
        raise ValueError("Descriptor `description`, `project` and `tags` must be arrays of fragments")

    @model_validator(mode="after")
    def _require_id_or_description(self) -> "Descriptor":
        if self.id is None and not self.description:
            raise ValueError("Missing required field `id` or `description`")
        return self


DEFAULT_DESCRIPTOR: dict[str, Any] = {
    "description": [
        {
            "command": ["git", "remote", "get-url", "origin"],
            "regex": r"github\.com[:/](.+?)(?:\.git)?$",
        },
        {"text": ":"},
        {"command": ["git", "rev-parse", "--abbrev-ref", "HEAD"]},
    ],
}


__all__ = ["DEFAULT_DESCRIPTOR", "Descriptor", "Fragment"]
