"""Shared test fixtures."""

from __future__ import annotations

import shlex
import sys
from pathlib import Path

import pytest

from distcrypt.config import ExecutableSettings, FallbackSettings, Settings

ECHO_WORKER_COMMAND = f"{shlex.quote(sys.executable)} -m distcrypt.orchestrator.backend.echo_worker"
ECHO_MASTER_COMMAND = f"{shlex.quote(sys.executable)} -m distcrypt.orchestrator.backend.echo_master"


def write_script(path: Path, body: str) -> str:
    """Write a throwaway Python program and return a command string running it."""

    path.write_text(body.strip() + "\n", "utf-8")
    return f"{shlex.quote(sys.executable)} {shlex.quote(str(path))}"


def make_settings(
    *,
    master_command: str = ECHO_MASTER_COMMAND,
    worker_command: str = ECHO_WORKER_COMMAND,
    storage_command: str = "distributed_encryption",
    allow_placeholder_output: bool = True,
    fallback_enabled: bool = True,
) -> Settings:
    return Settings(
        executables=ExecutableSettings(
            worker_command=worker_command,
            master_command=master_command,
            storage_command=storage_command,
        ),
        fallback=FallbackSettings(
            enabled=fallback_enabled,
            allow_placeholder_output=allow_placeholder_output,
        ),
    )


class EventRecorder:
    """Sink that keeps every event for later assertions."""

    def __init__(self) -> None:
        self.events: list[object] = []

    def __call__(self, event: object) -> None:
        self.events.append(event)

    def of_kind(self, kind: str) -> list[object]:
        return [event for event in self.events if event.kind == kind]

    def texts(self, kind: str) -> list[str]:
        return [event.text for event in self.of_kind(kind)]


@pytest.fixture()
def recorder() -> EventRecorder:
    return EventRecorder()
