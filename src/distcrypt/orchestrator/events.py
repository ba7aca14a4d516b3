"""Events emitted towards the presentation boundary."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import ClassVar


@dataclass(frozen=True, slots=True)
class WorkerOutput:
    kind: ClassVar[str] = "worker-output"

    id: int
    text: str

    def to_payload(self) -> dict[str, object]:
        return {"id": self.id, "text": self.text}


@dataclass(frozen=True, slots=True)
class WorkerError:
    kind: ClassVar[str] = "worker-error"

    id: int
    text: str

    def to_payload(self) -> dict[str, object]:
        return {"id": self.id, "text": self.text}


@dataclass(frozen=True, slots=True)
class WorkerStopping:
    kind: ClassVar[str] = "worker-stopping"

    id: int

    def to_payload(self) -> dict[str, object]:
        return {"id": self.id}


@dataclass(frozen=True, slots=True)
class WorkerStopped:
    kind: ClassVar[str] = "worker-stopped"

    id: int
    code: int | None

    def to_payload(self) -> dict[str, object]:
        return {"id": self.id, "code": self.code}


@dataclass(frozen=True, slots=True)
class JobOutput:
    kind: ClassVar[str] = "job-output"

    job_id: str
    text: str

    def to_payload(self) -> dict[str, object]:
        return {"job_id": self.job_id, "text": self.text}


@dataclass(frozen=True, slots=True)
class JobWarning:
    kind: ClassVar[str] = "job-warning"

    job_id: str
    text: str

    def to_payload(self) -> dict[str, object]:
        return {"job_id": self.job_id, "text": self.text}


@dataclass(frozen=True, slots=True)
class JobError:
    kind: ClassVar[str] = "job-error"

    job_id: str
    text: str

    def to_payload(self) -> dict[str, object]:
        return {"job_id": self.job_id, "text": self.text}


@dataclass(frozen=True, slots=True)
class JobCompleted:
    """Terminal job event; ``code`` is 0 only for clean or fallback success."""

    kind: ClassVar[str] = "job-completed"

    job_id: str
    code: int
    outcome: str
    degraded: bool = False

    def to_payload(self) -> dict[str, object]:
        return {
            "job_id": self.job_id,
            "code": self.code,
            "outcome": self.outcome,
            "degraded": self.degraded,
        }


Event = (
    WorkerOutput
    | WorkerError
    | WorkerStopping
    | WorkerStopped
    | JobOutput
    | JobWarning
    | JobError
    | JobCompleted
)
EventSink = Callable[[Event], None]


def discard_event(_: Event) -> None:
    """Default sink for callers that only need return values."""
