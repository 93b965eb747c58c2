"""Shell command classification for the approval prompt.

Every command the model asks to run is classified before the user sees it:
the category decides how it is displayed, and the danger flag decides the
default answer of the approval prompt. Classification is pure text analysis;
nothing is executed and no file system state is consulted.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from notabene.config import DEFAULT_DANGER_PATTERNS, DangerPattern

# `>` that is neither escaped nor part of `>>`
_WRITE_REDIRECT_RE = re.compile(r"(?<![\\>])>(?!>)\s*([^\s|&;]+)(?:\s|$)")
_APPEND_REDIRECT_RE = re.compile(r"(?<!\\)>>\s*([^\s|&;]+)(?:\s|$)")

_READ_COMMANDS = {"cat", "head", "tail", "less", "more"}

# Sinks that discard output; redirecting into them writes nothing.
_NULL_SINKS = {"/dev/null", "nul", "$null"}


class CommandCategory(str, Enum):
    """What a shell command mainly does, as shown to the user."""

    READ = "read"
    WRITE = "write"
    APPEND = "append"
    DELETE = "delete"
    MOVE = "move"
    COPY = "copy"
    RUN = "run"


@dataclass(frozen=True)
class ClassifiedCommand:
    """Classification result for one command string."""

    category: CommandCategory
    display_text: str
    is_dangerous: bool
    danger_reason: str | None = None


def compile_danger_patterns(
    patterns: Iterable[DangerPattern],
) -> list[tuple[re.Pattern[str], str]]:
    """Compile configured danger patterns, case-insensitive, in order."""
    return [(re.compile(item.pattern, re.IGNORECASE), item.reason) for item in patterns]


_DEFAULT_COMPILED = compile_danger_patterns(DEFAULT_DANGER_PATTERNS)


def _check_dangerous(
    command: str,
    patterns: list[tuple[re.Pattern[str], str]],
) -> tuple[bool, str | None]:
    for regex, reason in patterns:
        if regex.search(command):
            return True, reason
    return False, None


def _is_null_sink(target: str) -> bool:
    return target.lower() in _NULL_SINKS


def _is_delete(line: str) -> bool:
    stripped = line.lstrip()
    return stripped == "rm" or stripped.startswith(("rm ", "rm\t"))


def _is_write(line: str) -> bool:
    """True for a `>` or `>>` redirect into anything but a null sink."""
    for regex in (_WRITE_REDIRECT_RE, _APPEND_REDIRECT_RE):
        match = regex.search(line)
        if match and not _is_null_sink(match.group(1)):
            return True
    return False


def _non_flag_args(parts: list[str]) -> list[str]:
    return [part for part in parts[1:] if not part.startswith("-")]


def _format_multi_line(lines: list[str]) -> str:
    body = "\n".join(f"  {line}" for line in lines)
    return f"({len(lines)} lines):\n{body}"


def classify(
    command: str,
    danger_patterns: list[tuple[re.Pattern[str], str]] | None = None,
) -> ClassifiedCommand:
    """Classify a shell command.

    Args:
        command: Raw command text as requested by the model.
        danger_patterns: Compiled ``(regex, reason)`` pairs, see
            :func:`compile_danger_patterns`. Defaults to the built-in list.

    Returns:
        ClassifiedCommand. A matching danger pattern always sets
        ``is_dangerous`` and its reason wins over the generic per-category
        reason.
    """
    patterns = _DEFAULT_COMPILED if danger_patterns is None else danger_patterns
    trimmed = command.strip()
    is_dangerous, reason = _check_dangerous(trimmed, patterns)

    lines = [line for line in trimmed.split("\n") if line.strip()]
    if len(lines) > 1:
        has_delete = any(_is_delete(line) for line in lines)
        has_write = any(_is_write(line) for line in lines)
        if not is_dangerous and (has_delete or has_write):
            is_dangerous = True
            reason = "contains delete operations" if has_delete else "contains write operations"
        return ClassifiedCommand(CommandCategory.RUN, _format_multi_line(lines), is_dangerous, reason)

    parts = trimmed.split()
    first_word = parts[0] if parts else ""

    if first_word in _READ_COMMANDS and not _is_write(trimmed):
        args = _non_flag_args(parts)
        if args:
            return ClassifiedCommand(CommandCategory.READ, args[0], is_dangerous, reason)

    write_match = _WRITE_REDIRECT_RE.search(trimmed)
    if write_match and ">>" not in trimmed:
        target = write_match.group(1)
        if not _is_null_sink(target):
            return ClassifiedCommand(
                CommandCategory.WRITE, target, True, reason or "writes to file"
            )
        # `rm x 2>/dev/null` is still a delete; only harmless sink writes stop here
        if not _is_delete(trimmed) and first_word != "mv":
            return ClassifiedCommand(CommandCategory.WRITE, target, is_dangerous, reason)

    append_match = _APPEND_REDIRECT_RE.search(trimmed)
    if append_match:
        return ClassifiedCommand(
            CommandCategory.APPEND,
            append_match.group(1),
            True,
            reason or "appends to file",
        )

    if _is_delete(trimmed):
        targets = " ".join(_non_flag_args(parts)) or trimmed
        return ClassifiedCommand(CommandCategory.DELETE, targets, True, reason or "deletes files")

    if first_word in ("mv", "cp"):
        args = _non_flag_args(parts)
        if len(args) >= 2:
            display = f"{args[-2]} → {args[-1]}"
            if first_word == "mv":
                return ClassifiedCommand(CommandCategory.MOVE, display, True, reason or "moves files")
            return ClassifiedCommand(CommandCategory.COPY, display, is_dangerous, reason)

    return ClassifiedCommand(CommandCategory.RUN, trimmed, is_dangerous, reason)
