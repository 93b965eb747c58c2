"""Shell safety: command classification, approval patterns, environment."""

from notabene.shell.approval_patterns import ApprovalPatterns
from notabene.shell.classifier import (
    ClassifiedCommand,
    CommandCategory,
    classify,
    compile_danger_patterns,
)
from notabene.shell.environment import ShellEnvironment

__all__ = [
    "ApprovalPatterns",
    "ClassifiedCommand",
    "CommandCategory",
    "ShellEnvironment",
    "classify",
    "compile_danger_patterns",
]
