"""Proxy for the external remote-storage CLI (configure/upload/download)."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from distcrypt.config import DEFAULT_STORAGE_FOLDER
from distcrypt.errors import SpawnError
from distcrypt.orchestrator import process as proc
from distcrypt.orchestrator.events import (
    EventSink,
    JobError,
    JobOutput,
    discard_event,
)

logger = logging.getLogger(__name__)

STORAGE_JOB_ID = "storage"


@dataclass(slots=True)
class StorageResult:
    """Exit status and captured lines of one storage command."""

    success: bool
    message: str
    exit_code: int | None
    stdout_lines: list[str] = field(default_factory=list)
    stderr_lines: list[str] = field(default_factory=list)


class RemoteStorageClient:
    """Runs fixed storage subcommands and relays their output lines."""

    def __init__(
        self,
        *,
        storage_command: list[str],
        default_folder: str = DEFAULT_STORAGE_FOLDER,
        sink: EventSink = discard_event,
    ) -> None:
        self.storage_command = list(storage_command)
        self.default_folder = default_folder
        self.sink = sink

    async def configure(self, token: str, folder: str | None = None) -> StorageResult:
        return await self._run(
            ["dropbox-config", token, folder or self.default_folder],
            action="configuration",
            success_message="Dropbox configuration saved successfully",
            relay=False,
        )

    async def upload(self, local_path: Path, remote_path: str | None = None) -> StorageResult:
        args = ["dropbox-upload", str(local_path)]
        if remote_path:
            args.append(remote_path)
        return await self._run(
            args,
            action="upload",
            success_message="File uploaded successfully to Dropbox",
        )

    async def download(self, remote_path: str, local_path: Path) -> StorageResult:
        return await self._run(
            ["dropbox-download", remote_path, str(local_path)],
            action="download",
            success_message="File downloaded successfully from Dropbox",
        )

    async def _run(
        self,
        args: list[str],
        *,
        action: str,
        success_message: str,
        relay: bool = True,
    ) -> StorageResult:
        argv = [*self.storage_command, *args]
        # the access token is the only secret passed on argv
        logger.info("Running storage %s: %s", action, " ".join([*self.storage_command, args[0]]))
        result = StorageResult(success=False, message="", exit_code=None)

        def _on_stdout(text: str) -> None:
            result.stdout_lines.append(text)
            logger.info("Storage %s output: %s", action, text)
            if relay:
                self.sink(JobOutput(job_id=STORAGE_JOB_ID, text=text))

        def _on_stderr(text: str) -> None:
            result.stderr_lines.append(text)
            logger.warning("Storage %s error: %s", action, text)
            if relay:
                self.sink(JobError(job_id=STORAGE_JOB_ID, text=text))

        try:
            handle = await proc.spawn(argv)
        except SpawnError as error:
            logger.error("Error executing storage %s: %s", action, error)
            result.message = str(error)
            return result

        result.exit_code = await proc.wait_with_output(
            handle,
            on_stdout=_on_stdout,
            on_stderr=_on_stderr,
        )
        logger.info("Storage %s process exited with code %s", action, result.exit_code)
        if result.exit_code == 0:
            result.success = True
            result.message = success_message
        else:
            result.message = "\n".join(result.stderr_lines) or f"Storage {action} failed"
        return result
