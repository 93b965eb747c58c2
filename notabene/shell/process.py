"""Process-tree termination for timed-out shell commands."""

from __future__ import annotations

import asyncio
import os
import signal
import subprocess
import sys
from typing import Any

from notabene.logging import get_logger

log = get_logger(__name__)


def new_session_kwargs() -> dict[str, Any]:
    """Spawn options that put the child at the root of its own process group."""
    if sys.platform == "win32":
        return {"creationflags": subprocess.CREATE_NEW_PROCESS_GROUP}
    return {"start_new_session": True}


async def kill_process_tree(process: asyncio.subprocess.Process) -> None:
    """Kill ``process`` and every descendant, then reap it.

    The child must have been started with :func:`new_session_kwargs`. On
    POSIX its pid is then also the process group id, so the group is killed
    even after the shell itself has exited and left background children.
    """
    if sys.platform == "win32":
        if process.returncode is None:
            try:
                killer = await asyncio.create_subprocess_exec(
                    "taskkill",
                    "/F",
                    "/T",
                    "/PID",
                    str(process.pid),
                    stdout=asyncio.subprocess.DEVNULL,
                    stderr=asyncio.subprocess.DEVNULL,
                )
                await killer.wait()
            except OSError as e:
                log.warning("taskkill failed", pid=process.pid, error=str(e))
    else:
        try:
            os.killpg(process.pid, signal.SIGKILL)
        except (ProcessLookupError, PermissionError):
            pass

    if process.returncode is None:
        try:
            process.kill()
        except ProcessLookupError:
            pass
    await process.wait()
