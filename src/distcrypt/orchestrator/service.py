"""Composition root exposing worker and job operations to the boundary."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from distcrypt.config import Settings
from distcrypt.errors import JobStateError
from distcrypt.orchestrator.dispatcher import MasterDispatcher
from distcrypt.orchestrator.events import (
    Event,
    EventSink,
    JobCompleted,
    JobError,
    discard_event,
)
from distcrypt.orchestrator.fallback import FallbackCodec
from distcrypt.orchestrator.models import (
    Job,
    JobOutcome,
    JobResult,
    Mode,
    WorkerSnapshot,
    WorkerStartResult,
)
from distcrypt.orchestrator.paths import resolve_output_path
from distcrypt.orchestrator.registry import WorkerRegistry

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RunJobRequest:
    """Boundary input for one encrypt/decrypt job."""

    input_path: Path
    mode: Mode
    worker_ids: tuple[int, ...] = ()
    output_path: Path | None = None


@dataclass(slots=True)
class _Forwarder:
    sinks: list[EventSink] = field(default_factory=list)

    def __call__(self, event: Event) -> None:
        for sink in self.sinks:
            sink(event)


class Orchestrator:
    """Owns the worker registry and the set of in-flight jobs."""

    def __init__(
        self,
        settings: Settings,
        *,
        sink: EventSink = discard_event,
        os_name: str | None = None,
    ) -> None:
        self.settings = settings
        self._sink = _Forwarder([sink])
        self.registry = WorkerRegistry(
            worker_command=settings.executables.worker_argv(),
            sink=self._sink,
            os_name=os_name,
        )
        codec = (
            FallbackCodec(
                default_key=settings.fallback.default_key,
                allow_placeholder_output=settings.fallback.allow_placeholder_output,
            )
            if settings.fallback.enabled
            else None
        )
        self.dispatcher = MasterDispatcher(
            master_command=settings.executables.master_argv(),
            codec=codec,
            sink=self._sink,
        )
        self._jobs: dict[str, Job] = {}

    def subscribe(self, sink: EventSink) -> None:
        self._sink.sinks.append(sink)

    async def start_worker(self, address: str) -> WorkerStartResult:
        return await self.registry.start(address)

    def stop_worker(self, worker_id: int) -> bool:
        return self.registry.stop(worker_id)

    def list_workers(self) -> list[WorkerSnapshot]:
        return self.registry.list()

    @property
    def in_flight(self) -> list[Job]:
        return list(self._jobs.values())

    async def run_job(self, request: RunJobRequest) -> JobResult:
        """Resolve paths, select workers and dispatch one master process."""

        workers = self.registry.select(request.worker_ids)
        try:
            output_path = resolve_output_path(
                request.input_path,
                request.mode,
                request.output_path,
            )
            job = Job(
                mode=request.mode,
                input_path=Path(request.input_path),
                output_path=output_path,
                workers=tuple(workers),
            )
        except (ValueError, JobStateError) as error:
            return self._reject(f"Invalid job paths: {error}")
        logger.info("Generated output file path: %s", output_path)

        if not workers:
            logger.error("No valid workers selected for %s", request.mode.value)
            return self._reject("No valid workers selected", job_id=job.id)
        logger.info(
            "Selected %d workers for %s: %s",
            len(workers),
            request.mode.value,
            ", ".join(job.worker_addresses),
        )

        self._jobs[job.id] = job
        try:
            return await self.dispatcher.run(job)
        finally:
            self._jobs.pop(job.id, None)

    async def shutdown(self) -> None:
        """Stop every worker and wait for their exit events."""

        self.registry.stop_all()
        await self.registry.drain()

    def _reject(self, message: str, *, job_id: str = "-") -> JobResult:
        self._sink(JobError(job_id=job_id, text=message))
        self._sink(JobCompleted(job_id=job_id, code=1, outcome=JobOutcome.FAILED.value))
        return JobResult(job_id=job_id, outcome=JobOutcome.FAILED, code=1)
