"""Host environment detected at startup and the mutable shell working directory."""

from __future__ import annotations

import getpass
import os
import platform
import shutil
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

from notabene.config import DEFAULT_DETECT_TOOLS
from notabene.exceptions import DirectoryNotFoundError
from notabene.logging import get_logger

log = get_logger(__name__)

_ARCH_ALIASES = {
    "x86_64": "x86_64",
    "amd64": "x86_64",
    "x64": "x86_64",
    "i386": "x86",
    "i686": "x86",
    "x86": "x86",
    "arm64": "arm64",
    "aarch64": "arm64",
    "armv7l": "arm",
    "armv6l": "arm",
    "arm": "arm",
}


def _detect_os() -> tuple[str, str]:
    if sys.platform == "win32":
        return "Windows", platform.version()
    if sys.platform == "darwin":
        return "macOS", platform.mac_ver()[0] or "unknown"
    if sys.platform.startswith("linux"):
        version = "unknown"
        os_release = Path("/etc/os-release")
        try:
            for line in os_release.read_text(encoding="utf-8").splitlines():
                if line.startswith("PRETTY_NAME="):
                    version = line.split("=", 1)[1].strip().strip('"')
                    break
        except OSError:
            pass
        return "Linux", version
    return "Unknown", platform.platform()


def _detect_shell() -> tuple[str, str]:
    if sys.platform == "win32":
        powershell = shutil.which("pwsh") or shutil.which("powershell")
        if powershell:
            return powershell, "PowerShell"
        return os.environ.get("COMSPEC", "cmd.exe"), "cmd"
    shell = os.environ.get("SHELL") or "/bin/sh"
    return shell, Path(shell).name


def _detect_architecture() -> str:
    machine = platform.machine().lower()
    return _ARCH_ALIASES.get(machine, machine or "unknown")


def _detect_username() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return os.environ.get("USER") or os.environ.get("USERNAME") or "unknown"


def _find_executable(name: str) -> str | None:
    try:
        return shutil.which(name)
    except OSError:
        return None


@dataclass
class ShellEnvironment:
    """Where nb runs and where shell commands execute.

    ``launch_directory`` is fixed for the session and keys history storage.
    ``shell_cwd`` starts there and only moves through :meth:`set_cwd`.
    """

    launch_directory: Path
    os: str
    os_version: str
    shell_path: str
    shell_name: str
    architecture: str
    username: str
    home_dir: Path
    case_sensitive_fs: bool
    available_tools: set[str] = field(default_factory=set)
    missing_tools: set[str] = field(default_factory=set)
    shell_cwd: Path = field(init=False)

    def __post_init__(self) -> None:
        self.launch_directory = Path(self.launch_directory).resolve()
        self.shell_cwd = self.launch_directory

    @classmethod
    def detect(
        cls,
        tools_to_detect: Iterable[str] | None = None,
        launch_directory: Path | str | None = None,
    ) -> "ShellEnvironment":
        """Inspect the host once at startup."""
        os_name, os_version = _detect_os()
        shell_path, shell_name = _detect_shell()

        available: set[str] = set()
        missing: set[str] = set()
        for tool in tools_to_detect if tools_to_detect is not None else DEFAULT_DETECT_TOOLS:
            if _find_executable(tool):
                available.add(tool)
            else:
                missing.add(tool)

        env = cls(
            launch_directory=Path(launch_directory) if launch_directory else Path.cwd(),
            os=os_name,
            os_version=os_version,
            shell_path=shell_path,
            shell_name=shell_name,
            architecture=_detect_architecture(),
            username=_detect_username(),
            home_dir=Path.home(),
            case_sensitive_fs=os_name not in ("Windows", "macOS"),
            available_tools=available,
            missing_tools=missing,
        )
        log.debug(
            "Detected shell environment",
            os=os_name,
            shell=shell_name,
            available=sorted(available),
        )
        return env

    @property
    def is_windows(self) -> bool:
        return self.os == "Windows"

    def set_cwd(self, path: str | Path) -> Path:
        """Change the shell working directory.

        Relative paths resolve against the current ``shell_cwd``.

        Raises:
            DirectoryNotFoundError: if the resolved path is not a directory.
        """
        candidate = Path(path).expanduser()
        if not candidate.is_absolute():
            candidate = self.shell_cwd / candidate
        resolved = candidate.resolve()
        if not resolved.is_dir():
            raise DirectoryNotFoundError(str(resolved))
        self.shell_cwd = resolved
        return resolved

    def summary(self) -> dict[str, Any]:
        """Plain projection of the environment for prompts and diagnostics."""
        return {
            "os": self.os,
            "os_version": self.os_version,
            "shell": self.shell_name,
            "architecture": self.architecture,
            "user": self.username,
            "home": str(self.home_dir),
            "cwd": str(self.shell_cwd),
            "case_sensitive_fs": self.case_sensitive_fs,
            "available_tools": sorted(self.available_tools),
            "missing_tools": sorted(self.missing_tools),
        }

    def build_prompt_section(self) -> str:
        """Markdown block describing the environment for the system prompt."""
        info = self.summary()
        available = ", ".join(info["available_tools"]) or "none detected"
        missing = ", ".join(info["missing_tools"]) or "none"
        return "\n".join([
            "## Environment",
            f"- OS: {info['os']} ({info['os_version']})",
            f"- Shell: {info['shell']}",
            f"- Architecture: {info['architecture']}",
            f"- User: {info['user']}",
            f"- Home: {info['home']}",
            f"- Working directory: {info['cwd']}",
            f"- Case-sensitive filesystem: {'yes' if info['case_sensitive_fs'] else 'no'}",
            "",
            "## Available Tools",
            f"Present: {available}",
            f"Not found: {missing}",
        ])
