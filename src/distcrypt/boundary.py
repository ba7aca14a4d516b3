"""JSON-lines adapter between the orchestrator and a presentation process."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any, TextIO

from distcrypt.orchestrator.events import Event
from distcrypt.orchestrator.models import Mode
from distcrypt.orchestrator.service import Orchestrator, RunJobRequest

logger = logging.getLogger(__name__)


class BoundaryRequestError(ValueError):
    """Malformed request from the presentation side."""


class JsonLinesBoundary:
    """Reads one JSON request per line and writes replies and events as JSON lines."""

    def __init__(self, orchestrator: Orchestrator, write_line: Callable[[str], None]) -> None:
        self.orchestrator = orchestrator
        self.write_line = write_line
        self._jobs: set[asyncio.Task[None]] = set()
        self._closed = False
        orchestrator.subscribe(self._emit_event)

    @property
    def closed(self) -> bool:
        return self._closed

    async def serve(self, reader: TextIO) -> None:
        """Process requests until ``shutdown`` or EOF, then stop all workers."""

        try:
            while not self._closed:
                line = await asyncio.to_thread(reader.readline)
                if not line:
                    break
                if not line.strip():
                    continue
                await self.dispatch_line(line)
        finally:
            if self._jobs:
                await asyncio.gather(*list(self._jobs), return_exceptions=True)
            await self.orchestrator.shutdown()
            self._closed = True

    async def dispatch_line(self, line: str) -> None:
        """Handle one raw request; ``run_job`` is scheduled so other requests keep flowing."""

        try:
            request = _parse_request(line)
        except BoundaryRequestError as error:
            self._write({"reply": "error", "error": str(error)})
            return
        if request["op"] == "run_job":
            task = asyncio.create_task(self._reply_later(request))
            self._jobs.add(task)
            task.add_done_callback(self._jobs.discard)
            return
        await self._reply_later(request)

    async def handle(self, request: dict[str, Any]) -> dict[str, Any]:
        """Execute one parsed request and return its reply payload."""

        op = request.get("op")
        if op == "start_worker":
            address = _require_str(request, "address")
            return (await self.orchestrator.start_worker(address)).to_payload()
        if op == "stop_worker":
            worker_id = _require_int(request, "id")
            return {"id": worker_id, "success": self.orchestrator.stop_worker(worker_id)}
        if op == "list_workers":
            return {"workers": [w.to_payload() for w in self.orchestrator.list_workers()]}
        if op == "run_job":
            return await self._run_job(request)
        if op == "shutdown":
            self._closed = True
            return {}
        raise BoundaryRequestError(f"Unknown op: {op!r}")

    async def _run_job(self, request: dict[str, Any]) -> dict[str, Any]:
        try:
            mode = Mode(_require_str(request, "mode").lower())
        except ValueError as error:
            raise BoundaryRequestError(f"Invalid mode: {request.get('mode')!r}") from error
        raw_ids = request.get("worker_ids", [])
        if not isinstance(raw_ids, list) or not all(
            isinstance(item, int) and not isinstance(item, bool) for item in raw_ids
        ):
            raise BoundaryRequestError("worker_ids must be a list of integers.")
        output = request.get("output")
        if output is not None and not isinstance(output, str):
            raise BoundaryRequestError("output must be a string.")
        result = await self.orchestrator.run_job(
            RunJobRequest(
                input_path=Path(_require_str(request, "input")),
                mode=mode,
                worker_ids=tuple(raw_ids),
                output_path=Path(output) if output else None,
            ),
        )
        return {
            "job_id": result.job_id,
            "code": result.code,
            "outcome": result.outcome.value,
            "output": str(result.output_path) if result.output_path else None,
        }

    async def _reply_later(self, request: dict[str, Any]) -> None:
        op = request["op"]
        try:
            payload = await self.handle(request)
        except BoundaryRequestError as error:
            self._write({"reply": "error", "op": op, "error": str(error)})
            return
        self._write({"reply": op, **payload})

    def _emit_event(self, event: Event) -> None:
        self._write({"event": event.kind, **event.to_payload()})

    def _write(self, payload: dict[str, Any]) -> None:
        self.write_line(json.dumps(payload, ensure_ascii=False))


def _parse_request(line: str) -> dict[str, Any]:
    try:
        request = json.loads(line)
    except json.JSONDecodeError as error:
        raise BoundaryRequestError(f"Invalid JSON: {error.msg}") from error
    if not isinstance(request, dict):
        raise BoundaryRequestError("Request must be a JSON object.")
    if not isinstance(request.get("op"), str):
        raise BoundaryRequestError("Request is missing string field 'op'.")
    return request


def _require_str(request: dict[str, Any], key: str) -> str:
    value = request.get(key)
    if not isinstance(value, str) or not value.strip():
        raise BoundaryRequestError(f"Field {key!r} must be a non-empty string.")
    return value


def _require_int(request: dict[str, Any], key: str) -> int:
    value = request.get(key)
    if not isinstance(value, int) or isinstance(value, bool):
        raise BoundaryRequestError(f"Field {key!r} must be an integer.")
    return value
