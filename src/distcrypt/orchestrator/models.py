"""Domain models for workers, jobs and key material."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from uuid import uuid4

from distcrypt.errors import JobStateError

DEFAULT_KEY_SOURCE = "default"
DEGRADED_EXIT_CODE = 3


def utc_now() -> datetime:
    """Current UTC timestamp."""

    return datetime.now(tz=UTC)


class Mode(str, Enum):
    """Job direction, also the keyword passed to the master executable."""

    ENCRYPT = "encrypt"
    DECRYPT = "decrypt"


class WorkerStatus(str, Enum):
    """Worker process lifecycle states."""

    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


class JobOutcome(str, Enum):
    """Job outcome; everything except PENDING is terminal."""

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FALLBACK_SUCCEEDED = "fallback_succeeded"
    DEGRADED = "degraded"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self is not JobOutcome.PENDING

    @property
    def ok(self) -> bool:
        return self in {JobOutcome.SUCCEEDED, JobOutcome.FALLBACK_SUCCEEDED}


@dataclass(slots=True)
class Worker:
    """One spawned worker process tracked by the registry."""

    id: int
    address: str
    handle: asyncio.subprocess.Process | None
    status: WorkerStatus = WorkerStatus.STARTING
    error: str | None = None

    @property
    def live(self) -> bool:
        return self.handle is not None and self.handle.returncode is None

    def snapshot(self) -> WorkerSnapshot:
        return WorkerSnapshot(id=self.id, address=self.address, status=self.status)


@dataclass(frozen=True, slots=True)
class WorkerSnapshot:
    """Read-only worker view for listings."""

    id: int
    address: str
    status: WorkerStatus

    def to_payload(self) -> dict[str, object]:
        return {"id": self.id, "address": self.address, "status": self.status.value}


@dataclass(slots=True)
class WorkerStartResult:
    """Outcome of a start request; carries the error instead of raising it."""

    worker: WorkerSnapshot
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_payload(self) -> dict[str, object]:
        if self.error is not None:
            return {"id": self.worker.id, "address": self.worker.address, "error": self.error}
        return self.worker.to_payload()


@dataclass(slots=True)
class Job:
    """One encrypt-or-decrypt request spanning a single master invocation."""

    mode: Mode
    input_path: Path
    output_path: Path
    workers: tuple[WorkerSnapshot, ...] = ()
    id: str = field(default_factory=lambda: uuid4().hex[:12])
    master_handle: asyncio.subprocess.Process | None = None
    outcome: JobOutcome = JobOutcome.PENDING
    exit_code: int | None = None

    def __post_init__(self) -> None:
        if self.output_path == self.input_path:
            raise JobStateError(f"Job output path must differ from input path: {self.input_path}")

    @property
    def worker_addresses(self) -> list[str]:
        return [worker.address for worker in self.workers]

    def attach_master(self, handle: asyncio.subprocess.Process) -> None:
        if self.master_handle is not None:
            raise JobStateError(f"Job {self.id} already has a master process.")
        self.master_handle = handle

    def resolve(self, outcome: JobOutcome) -> None:
        if not outcome.terminal:
            raise JobStateError(f"Cannot resolve job {self.id} to {outcome.value}.")
        if self.outcome.terminal:
            raise JobStateError(
                f"Job {self.id} already resolved as {self.outcome.value}; "
                f"refusing {outcome.value}.",
            )
        self.outcome = outcome


@dataclass(slots=True)
class JobResult:
    """Reported job completion."""

    job_id: str
    outcome: JobOutcome
    code: int
    output_path: Path | None = None

    @property
    def degraded(self) -> bool:
        return self.outcome is JobOutcome.DEGRADED


@dataclass(frozen=True, slots=True)
class KeyMaterial:
    """Key bytes plus where they came from (a path or ``"default"``)."""

    data: bytes
    source: str

    @property
    def is_default(self) -> bool:
        return self.source == DEFAULT_KEY_SOURCE


@dataclass(frozen=True, slots=True)
class FallbackResult:
    """Artifact written by the fallback codec."""

    output_path: Path
    key_source: str | None
    placeholder: bool = False
