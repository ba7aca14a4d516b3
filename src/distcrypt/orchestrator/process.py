"""Subprocess helpers shared by workers, master dispatch and storage proxy."""

from __future__ import annotations

import asyncio
import logging
import os
import subprocess
from collections.abc import Callable

from distcrypt.errors import SpawnError

logger = logging.getLogger(__name__)

STREAM_LIMIT_BYTES = 1024 * 1024


async def spawn(argv: list[str], *, env: dict[str, str] | None = None) -> asyncio.subprocess.Process:
    """Start ``argv`` with piped stdout/stderr; launch failures become ``SpawnError``."""

    if not argv:
        raise SpawnError("Command is empty.", argv=argv)
    try:
        return await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=env,
            limit=STREAM_LIMIT_BYTES,
        )
    except FileNotFoundError as error:
        raise SpawnError(f"Executable not found: {argv[0]}", argv=argv) from error
    except OSError as error:
        raise SpawnError(f"Failed to start {argv[0]}: {error}", argv=argv) from error


async def pump_lines(stream: asyncio.StreamReader | None, on_line: Callable[[str], None]) -> None:
    """Forward each non-blank line of ``stream`` until EOF.

    A line longer than the stream limit is forwarded in several pieces.
    A trailing chunk without a newline is forwarded at EOF.
    """

    if stream is None:
        return
    while True:
        try:
            raw = await stream.readuntil(b"\n")
        except asyncio.IncompleteReadError as error:
            _forward(error.partial, on_line)
            return
        except asyncio.LimitOverrunError as error:
            # the oversized chunk is still buffered
            raw = await stream.read(error.consumed)
        _forward(raw, on_line)


def _forward(raw: bytes, on_line: Callable[[str], None]) -> None:
    text = raw.decode("utf-8", errors="replace").rstrip("\r\n")
    if text.strip():
        on_line(text)


async def wait_with_output(
    process: asyncio.subprocess.Process,
    *,
    on_stdout: Callable[[str], None],
    on_stderr: Callable[[str], None],
) -> int:
    """Pump both streams concurrently and return the exit code."""

    await asyncio.gather(
        pump_lines(process.stdout, on_stdout),
        pump_lines(process.stderr, on_stderr),
    )
    return await process.wait()


def terminate(process: asyncio.subprocess.Process, *, os_name: str | None = None) -> bool:
    """Send a termination request without waiting for the exit.

    Windows has no SIGTERM, so the whole process tree is force-killed via
    ``taskkill``; elsewhere the process receives SIGTERM.
    """

    current_os_name = os_name or os.name
    try:
        if current_os_name == "nt":
            subprocess.Popen(  # noqa: S603
                ["taskkill", "/pid", str(process.pid), "/f", "/t"],  # noqa: S607
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        else:
            process.terminate()
    except ProcessLookupError:
        logger.info("Process %s already exited", process.pid)
        return False
    except OSError as error:
        logger.error("Failed to terminate process %s: %s", process.pid, error)
        return False
    return True
