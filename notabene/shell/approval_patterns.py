"""Pre-approved shell command patterns (``nb -a "git *"``)."""

from __future__ import annotations

import re
from typing import Iterable


class ApprovalPatterns:
    """Exact commands and ``*`` globs that skip the approval prompt.

    An exact pattern approves the whole trimmed command or any command whose
    first word equals it, so ``ls`` also approves ``ls -la``. In a glob only
    ``*`` is special. Matching is case-sensitive.
    """

    def __init__(self, patterns: Iterable[str] | None = None):
        self._exact: set[str] = set()
        self._globs: list[re.Pattern[str]] = []
        for pattern in patterns or []:
            self.add(pattern)

    def add(self, pattern: str) -> None:
        pattern = pattern.strip()
        if not pattern:
            return
        if "*" in pattern:
            regex = re.escape(pattern).replace(r"\*", ".*")
            self._globs.append(re.compile(regex))
        else:
            self._exact.add(pattern)

    def is_approved(self, command: str) -> bool:
        trimmed = command.strip()
        if trimmed in self._exact:
            return True
        parts = trimmed.split()
        if parts and parts[0] in self._exact:
            return True
        return any(regex.fullmatch(trimmed) for regex in self._globs)

    @property
    def count(self) -> int:
        return len(self._exact) + len(self._globs)

    @property
    def has_patterns(self) -> bool:
        return self.count > 0
