"""Per-job master process dispatch and artifact-based outcome determination."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from uuid import uuid4

from distcrypt.errors import (
    FallbackFailure,
    InputNotFound,
    OutputDirCreateError,
    SpawnError,
    TotalFailure,
)
from distcrypt.orchestrator import process as proc
from distcrypt.orchestrator.events import (
    EventSink,
    JobCompleted,
    JobError,
    JobOutput,
    JobWarning,
    discard_event,
)
from distcrypt.orchestrator.fallback import FallbackCodec
from distcrypt.orchestrator.models import (
    DEGRADED_EXIT_CODE,
    FallbackResult,
    Job,
    JobOutcome,
    JobResult,
    Mode,
)
from distcrypt.orchestrator.paths import (
    ENCRYPTED_SUFFIX,
    candidate_key_paths,
)

logger = logging.getLogger(__name__)


class MasterDispatcher:
    """Runs one master process per job and decides the job outcome.

    Success is judged by the presence of the output artifact, not by the
    master's exit code. A master that exits nonzero but leaves the artifact
    behind is reported as succeeded; a missing artifact triggers the fallback
    codec.
    """

    def __init__(
        self,
        *,
        master_command: list[str],
        codec: FallbackCodec | None,
        sink: EventSink = discard_event,
    ) -> None:
        self.master_command = list(master_command)
        self.codec = codec
        self.sink = sink

    async def run(self, job: Job) -> JobResult:
        """Execute ``job`` to a terminal outcome and emit ``JobCompleted``."""

        logger.info(
            "Processing job %s: %s -> %s, mode=%s",
            job.id,
            job.input_path,
            job.output_path,
            job.mode.value,
        )
        try:
            self._check_input(job)
        except InputNotFound as error:
            logger.error("%s", error)
            self._error(job, str(error))
            return self._complete(job, JobOutcome.FAILED)

        self._prepare_output_dir(job)
        self._probe_output_dir(job)
        if job.mode is Mode.DECRYPT:
            self._precheck_decrypt(job)

        argv = [
            *self.master_command,
            job.mode.value,
            str(job.input_path),
            str(job.output_path),
            *job.worker_addresses,
        ]
        logger.info("Master process args: %s", " ".join(argv))
        try:
            handle = await proc.spawn(argv)
        except SpawnError as error:
            logger.error("Master process error: %s", error)
            self._error(job, f"Process error: {error}")
            return self._complete(job, JobOutcome.FAILED)

        job.attach_master(handle)
        job.exit_code = await proc.wait_with_output(
            handle,
            on_stdout=lambda text: self._on_stdout(job, text),
            on_stderr=lambda text: self._on_stderr(job, text),
        )
        logger.info("Master process for job %s exited with code %s", job.id, job.exit_code)

        artifact = self._find_artifact(job)
        if artifact is not None:
            if job.exit_code != 0:
                logger.warning(
                    "Master exited with code %s but artifact %s exists; treating as success",
                    job.exit_code,
                    artifact,
                )
            size = artifact.stat().st_size
            logger.info("Output file created successfully: %s (%d bytes)", artifact, size)
            self._output(
                job,
                f"File processing completed successfully. Output saved to {artifact}",
            )
            return self._complete(job, JobOutcome.SUCCEEDED, artifact)

        logger.error(
            "Output file was not created: %s (mode=%s, exit code=%s)",
            job.output_path,
            job.mode.value,
            job.exit_code,
        )
        return await self._run_fallback(job)

    def _check_input(self, job: Job) -> None:
        if not job.input_path.is_file():
            raise InputNotFound(job.input_path)
        logger.info("Input file size: %d bytes", job.input_path.stat().st_size)

    def _prepare_output_dir(self, job: Job) -> None:
        output_dir = job.output_path.parent
        try:
            output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as error:
            failure = OutputDirCreateError(output_dir, str(error))
            logger.error("%s", failure)
            self._warning(job, str(failure))

    def _probe_output_dir(self, job: Job) -> None:
        probe = job.output_path.parent / f".distcrypt-probe-{uuid4().hex}.tmp"
        try:
            probe.write_bytes(b"probe")
        except OSError as error:
            logger.error("Failed to write probe file in output directory: %s", error)
            self._warning(
                job,
                f"Cannot write to output directory {probe.parent}. "
                f"{job.mode.value.capitalize()}ion may fail.",
            )
            return
        try:
            probe.unlink()
        except OSError as error:
            logger.warning("Could not remove probe file %s: %s", probe, error)

    def _precheck_decrypt(self, job: Job) -> None:
        if not job.input_path.name.endswith(ENCRYPTED_SUFFIX):
            logger.warning(
                "Decrypting a file without %s extension: %s",
                ENCRYPTED_SUFFIX,
                job.input_path,
            )
        found = next(
            (path for path in candidate_key_paths(job.input_path, job.output_path) if path.is_file()),
            None,
        )
        if found is None:
            logger.warning("No key file found for %s in standard locations", job.input_path)
            self._warning(
                job,
                "No encryption key file found. Will attempt decryption anyway.",
            )
        else:
            logger.info("Found key file for decryption: %s", found)

    def _find_artifact(self, job: Job) -> Path | None:
        return job.output_path if job.output_path.is_file() else None

    async def _run_fallback(self, job: Job) -> JobResult:
        if self.codec is None:
            self._error(
                job,
                f"File processing failed with code: {job.exit_code}. Fallback is disabled.",
            )
            return self._complete(job, JobOutcome.FAILED)

        logger.info("Attempting fallback %s for job %s", job.mode.value, job.id)
        operation = self.codec.encrypt if job.mode is Mode.ENCRYPT else self.codec.decrypt
        try:
            result: FallbackResult = await asyncio.to_thread(
                operation,
                job.input_path,
                job.output_path,
            )
        except TotalFailure as error:
            self._error(job, f"File processing failed with code: {job.exit_code}.")
            self._error(job, f"Fallback method failed: {error}")
            return self._complete(job, JobOutcome.FAILED)
        except FallbackFailure as error:
            self._error(job, f"File processing failed with code: {job.exit_code}.")
            self._error(job, f"Fallback method also failed: {error}")
            return self._complete(job, JobOutcome.FAILED)

        if result.placeholder:
            self._error(
                job,
                "Fallback decryption failed; wrote an undecrypted placeholder copy to "
                f"{result.output_path}. This output is NOT decrypted.",
            )
            return self._complete(job, JobOutcome.DEGRADED, result.output_path)

        logger.info("Fallback %s succeeded for job %s", job.mode.value, job.id)
        self._output(
            job,
            "File processing completed using fallback method. "
            f"Output saved to {result.output_path}",
        )
        return self._complete(job, JobOutcome.FALLBACK_SUCCEEDED, result.output_path)

    def _complete(
        self,
        job: Job,
        outcome: JobOutcome,
        output_path: Path | None = None,
    ) -> JobResult:
        job.resolve(outcome)
        if outcome.ok:
            code = 0
        elif outcome is JobOutcome.DEGRADED:
            code = DEGRADED_EXIT_CODE
        else:
            code = job.exit_code or 1
        self.sink(
            JobCompleted(
                job_id=job.id,
                code=code,
                outcome=outcome.value,
                degraded=outcome is JobOutcome.DEGRADED,
            ),
        )
        logger.info("Job %s completed: outcome=%s code=%d", job.id, outcome.value, code)
        return JobResult(job_id=job.id, outcome=outcome, code=code, output_path=output_path)

    def _on_stdout(self, job: Job, text: str) -> None:
        logger.info("Master stdout: %s", text)
        self._output(job, text)

    def _on_stderr(self, job: Job, text: str) -> None:
        logger.warning("Master stderr: %s", text)
        self._error(job, text)

    def _output(self, job: Job, text: str) -> None:
        self.sink(JobOutput(job_id=job.id, text=text))

    def _warning(self, job: Job, text: str) -> None:
        self.sink(JobWarning(job_id=job.id, text=text))

    def _error(self, job: Job, text: str) -> None:
        self.sink(JobError(job_id=job.id, text=text))
