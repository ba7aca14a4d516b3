"""Controllers for distcrypt CLI commands."""

from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from distcrypt.boundary import JsonLinesBoundary
from distcrypt.config import Settings
from distcrypt.errors import FallbackFailure
from distcrypt.orchestrator.events import (
    Event,
    JobCompleted,
    JobError,
    JobOutput,
    JobWarning,
    WorkerError,
    WorkerOutput,
    WorkerStopped,
    WorkerStopping,
)
from distcrypt.orchestrator.fallback import FallbackCodec
from distcrypt.orchestrator.models import Mode
from distcrypt.orchestrator.paths import candidate_key_paths, resolve_output_path
from distcrypt.orchestrator.service import Orchestrator, RunJobRequest
from distcrypt.storage import RemoteStorageClient

logger = logging.getLogger(__name__)

LineSink = Callable[[str], None]


@dataclass(slots=True)
class RunJobCommand:
    """CLI input for a one-shot distributed job."""

    input_path: Path
    mode: Mode
    worker_addresses: tuple[str, ...]
    output_path: Path | None = None


@dataclass(slots=True)
class FallbackCommand:
    """CLI input for running the local codec directly."""

    input_path: Path
    mode: Mode
    output_path: Path | None = None


@dataclass(slots=True)
class PathsCommand:
    """CLI input for path resolution preview."""

    input_path: Path
    mode: Mode
    output_path: Path | None = None


@dataclass(slots=True)
class StorageCommand:
    """CLI input for remote storage proxy operations."""

    action: str
    args: tuple[str, ...] = ()
    folder: str | None = None


@dataclass(slots=True)
class CommandResult:
    """Lines to print plus the process exit code."""

    lines: list[str] = field(default_factory=list)
    exit_code: int = 0

    @property
    def success(self) -> bool:
        return self.exit_code == 0


class CryptoCliController:
    """Wires settings, orchestrator and storage proxy for CLI commands."""

    def __init__(self, settings_factory: Callable[[], Settings] = Settings.from_env) -> None:
        self.settings_factory = settings_factory

    def run_job(self, command: RunJobCommand, emit: LineSink) -> CommandResult:
        """Start workers, run one job while streaming events, then stop the workers."""

        settings = self._settings()
        return asyncio.run(self._run_job(settings, command, emit))

    def fallback(self, command: FallbackCommand) -> CommandResult:
        settings = self._settings()
        codec = FallbackCodec(
            default_key=settings.fallback.default_key,
            allow_placeholder_output=settings.fallback.allow_placeholder_output,
        )
        if not command.input_path.is_file():
            return CommandResult([f"Input file not found: {command.input_path}"], exit_code=1)
        output_path = resolve_output_path(command.input_path, command.mode, command.output_path)
        operation = codec.encrypt if command.mode is Mode.ENCRYPT else codec.decrypt
        try:
            result = operation(command.input_path, output_path)
        except FallbackFailure as error:
            return CommandResult([f"Fallback {command.mode.value} failed: {error}"], exit_code=1)
        lines = [f"Output saved to {result.output_path}"]
        if result.key_source:
            lines.append(f"Key source: {result.key_source}")
        if result.placeholder:
            lines.append("WARNING: output is an undecrypted placeholder copy.")
            return CommandResult(lines, exit_code=3)
        return CommandResult(lines)

    def paths(self, command: PathsCommand) -> CommandResult:
        output_path = resolve_output_path(command.input_path, command.mode, command.output_path)
        lines = [f"Output: {output_path}"]
        if command.mode is Mode.DECRYPT:
            for index, candidate in enumerate(
                candidate_key_paths(command.input_path, output_path),
                start=1,
            ):
                marker = "found" if candidate.is_file() else "missing"
                lines.append(f"Key candidate {index}: {candidate} ({marker})")
        return CommandResult(lines)

    def storage(self, command: StorageCommand, emit: LineSink) -> CommandResult:
        settings = self._settings()
        client = RemoteStorageClient(
            storage_command=settings.executables.storage_argv(),
            default_folder=settings.storage.default_folder,
            sink=lambda event: emit(format_event(event)),
        )
        if command.action == "configure":
            coroutine = client.configure(command.args[0], command.folder)
        elif command.action == "upload":
            remote = command.args[1] if len(command.args) > 1 else None
            coroutine = client.upload(Path(command.args[0]), remote)
        elif command.action == "download":
            coroutine = client.download(command.args[0], Path(command.args[1]))
        else:
            raise ValueError(f"Unsupported storage action: {command.action!r}")
        result = asyncio.run(coroutine)
        return CommandResult([result.message], exit_code=0 if result.success else 1)

    def serve(self, write_line: LineSink) -> None:
        """Run the JSON-lines boundary on stdin until shutdown or EOF."""

        settings = self._settings()

        async def _serve() -> None:
            boundary = JsonLinesBoundary(Orchestrator(settings), write_line)
            await boundary.serve(sys.stdin)

        asyncio.run(_serve())

    def _settings(self) -> Settings:
        settings = self.settings_factory()
        settings.validate()
        return settings

    async def _run_job(
        self,
        settings: Settings,
        command: RunJobCommand,
        emit: LineSink,
    ) -> CommandResult:
        orchestrator = Orchestrator(settings, sink=lambda event: emit(format_event(event)))
        result = CommandResult()
        try:
            worker_ids: list[int] = []
            for address in command.worker_addresses:
                started = await orchestrator.start_worker(address)
                if started.ok:
                    worker_ids.append(started.worker.id)
                    emit(f"worker {started.worker.id} running on {address}")
                else:
                    emit(f"worker {started.worker.id} failed to start: {started.error}")
            job = await orchestrator.run_job(
                RunJobRequest(
                    input_path=command.input_path,
                    mode=command.mode,
                    worker_ids=tuple(worker_ids),
                    output_path=command.output_path,
                ),
            )
        finally:
            await orchestrator.shutdown()
        result.lines.append(f"Job {job.job_id}: {job.outcome.value}")
        if job.output_path is not None:
            result.lines.append(f"Output: {job.output_path}")
        result.exit_code = job.code
        return result


def format_event(event: Event) -> str:  # noqa: PLR0911
    """Human-readable one-line rendering of a boundary event."""

    if isinstance(event, WorkerOutput):
        return f"[worker {event.id}] {event.text}"
    if isinstance(event, WorkerError):
        return f"[worker {event.id}] ERROR {event.text}"
    if isinstance(event, WorkerStopping):
        return f"[worker {event.id}] stopping"
    if isinstance(event, WorkerStopped):
        return f"[worker {event.id}] stopped (code {event.code})"
    if isinstance(event, JobOutput):
        return event.text
    if isinstance(event, JobWarning):
        return f"WARNING: {event.text}"
    if isinstance(event, JobError):
        return f"ERROR: {event.text}"
    if isinstance(event, JobCompleted):
        suffix = " (degraded)" if event.degraded else ""
        return f"Completed with code {event.code}: {event.outcome}{suffix}"
    raise TypeError(f"Unsupported event: {event!r}")
