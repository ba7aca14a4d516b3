"""Lifecycle registry for long-running worker processes."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable

from distcrypt.errors import SpawnError
from distcrypt.orchestrator import process as proc
from distcrypt.orchestrator.events import (
    EventSink,
    WorkerError,
    WorkerOutput,
    WorkerStopped,
    WorkerStopping,
    discard_event,
)
from distcrypt.orchestrator.models import (
    Worker,
    WorkerSnapshot,
    WorkerStartResult,
    WorkerStatus,
)

logger = logging.getLogger(__name__)


class WorkerRegistry:
    """Owns spawned workers; ids are assigned in start order and are never reused.

    An entry is ``starting`` while its spawn is pending. It is reported
    ``running`` as soon as its process is spawned. Nothing confirms that it
    accepts connections yet.
    """

    def __init__(
        self,
        *,
        worker_command: list[str],
        sink: EventSink = discard_event,
        os_name: str | None = None,
    ) -> None:
        self.worker_command = list(worker_command)
        self.sink = sink
        self.os_name = os_name
        self._workers: list[Worker] = []
        self._next_id = 0
        self._tasks: set[asyncio.Task[None]] = set()

    async def start(self, address: str) -> WorkerStartResult:
        """Spawn a worker bound to ``address``; spawn failures are returned, not raised."""

        # reserve the id before the first suspension point
        worker = Worker(id=self._next_id, address=address, handle=None)
        self._next_id += 1
        self._workers.append(worker)
        worker_id = worker.id
        argv = [*self.worker_command, address]
        logger.info("Starting worker %d on %s", worker_id, address)
        try:
            handle = await proc.spawn(argv)
        except SpawnError as error:
            logger.error("Worker %d failed to start: %s", worker_id, error)
            worker.status = WorkerStatus.STOPPED
            worker.error = str(error)
            return WorkerStartResult(worker=worker.snapshot(), error=str(error))

        worker.handle = handle
        worker.status = WorkerStatus.RUNNING
        if not any(entry is worker for entry in self._workers):
            logger.info("Worker %d was dropped by stop_all while starting", worker_id)
            proc.terminate(handle, os_name=self.os_name)
            worker.status = WorkerStatus.STOPPING
        self._track(asyncio.create_task(self._watch(worker, handle)))
        logger.info(
            "Worker %d started (pid %s) with status '%s'",
            worker_id,
            handle.pid,
            worker.status.value,
        )
        return WorkerStartResult(worker=worker.snapshot())

    def stop(self, worker_id: int) -> bool:
        """Request termination; the status becomes ``stopped`` on the process's own exit."""

        worker = self.get(worker_id)
        if worker is None or not worker.live:
            logger.warning("Worker %s not found or not running", worker_id)
            return False
        logger.info("Stopping worker %d", worker_id)
        if not proc.terminate(worker.handle, os_name=self.os_name):
            return False
        worker.status = WorkerStatus.STOPPING
        self.sink(WorkerStopping(id=worker.id))
        return True

    def stop_all(self) -> None:
        """Terminate every live worker and forget all entries (shutdown only)."""

        logger.info("Stopping all workers")
        for worker in self._workers:
            if worker.live:
                logger.info("Stopping worker %d", worker.id)
                proc.terminate(worker.handle, os_name=self.os_name)
                worker.status = WorkerStatus.STOPPING
        self._workers = []

    def list(self) -> list[WorkerSnapshot]:
        return [worker.snapshot() for worker in self._workers]

    def get(self, worker_id: int) -> Worker | None:
        for worker in self._workers:
            if worker.id == worker_id:
                return worker
        return None

    def select(self, worker_ids: Iterable[int]) -> list[WorkerSnapshot]:
        """Known workers among ``worker_ids``, in registry order."""

        wanted = set(worker_ids)
        return [worker.snapshot() for worker in self._workers if worker.id in wanted]

    async def drain(self) -> None:
        """Wait until every worker's output pumps and exit watcher have finished."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _watch(self, worker: Worker, handle: asyncio.subprocess.Process) -> None:
        code = await proc.wait_with_output(
            handle,
            on_stdout=lambda text: self._on_stdout(worker.id, text),
            on_stderr=lambda text: self._on_stderr(worker.id, text),
        )
        worker.status = WorkerStatus.STOPPED
        logger.info("Worker %d exited with code %s", worker.id, code)
        self.sink(WorkerStopped(id=worker.id, code=code))

    def _on_stdout(self, worker_id: int, text: str) -> None:
        logger.info("Worker %d stdout: %s", worker_id, text)
        self.sink(WorkerOutput(id=worker_id, text=text))

    def _on_stderr(self, worker_id: int, text: str) -> None:
        logger.warning("Worker %d stderr: %s", worker_id, text)
        self.sink(WorkerError(id=worker_id, text=text))

    def _track(self, task: asyncio.Task[None]) -> None:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
