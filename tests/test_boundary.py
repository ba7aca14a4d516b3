from __future__ import annotations

import asyncio
import io
import json
from pathlib import Path

import allure
import pytest

from conftest import make_settings
from distcrypt.boundary import BoundaryRequestError, JsonLinesBoundary
from distcrypt.orchestrator.service import Orchestrator

pytestmark = [
    allure.epic("Presentation Boundary"),
    allure.feature("JSON Lines Protocol"),
]


class _Lines:
    def __init__(self) -> None:
        self.lines: list[str] = []

    def __call__(self, line: str) -> None:
        self.lines.append(line)

    @property
    def messages(self) -> list[dict]:
        return [json.loads(line) for line in self.lines]

    def replies(self, op: str) -> list[dict]:
        return [message for message in self.messages if message.get("reply") == op]

    def events(self, kind: str) -> list[dict]:
        return [message for message in self.messages if message.get("event") == kind]


def test_serve_handles_worker_and_job_requests(tmp_path: Path) -> None:
    source = tmp_path / "doc.txt"
    source.write_text("contents")
    requests = [
        {"op": "start_worker", "address": "127.0.0.1:50051"},
        {"op": "list_workers"},
        {"op": "run_job", "input": str(source), "mode": "encrypt", "worker_ids": [0]},
    ]
    reader = io.StringIO("".join(json.dumps(request) + "\n" for request in requests))
    out = _Lines()

    async def scenario() -> None:
        boundary = JsonLinesBoundary(Orchestrator(make_settings()), out)
        await boundary.serve(reader)

    asyncio.run(scenario())

    assert out.replies("start_worker") == [
        {"reply": "start_worker", "id": 0, "address": "127.0.0.1:50051", "status": "running"},
    ]
    assert out.replies("list_workers")[0]["workers"][0]["id"] == 0
    job_reply = out.replies("run_job")[0]
    assert job_reply["code"] == 0
    assert job_reply["outcome"] == "succeeded"
    assert job_reply["output"] == str(tmp_path / "doc.txt.encrypted")
    completed = out.events("job-completed")
    assert completed[0]["job_id"] == job_reply["job_id"]
    assert out.events("worker-stopped")[0]["id"] == 0


def test_malformed_requests_get_error_replies() -> None:
    out = _Lines()

    async def scenario() -> None:
        boundary = JsonLinesBoundary(Orchestrator(make_settings()), out)
        await boundary.dispatch_line("not json")
        await boundary.dispatch_line("[1, 2]")
        await boundary.dispatch_line('{"op": "explode"}')
        await boundary.dispatch_line('{"op": "stop_worker", "id": "zero"}')
        await boundary.dispatch_line('{"op": "stop_worker", "id": 3}')

    asyncio.run(scenario())

    errors = out.replies("error")
    assert errors[0]["error"].startswith("Invalid JSON")
    assert errors[1]["error"] == "Request must be a JSON object."
    assert errors[2]["error"] == "Unknown op: 'explode'"
    assert "'id' must be an integer" in errors[3]["error"]
    assert out.replies("stop_worker") == [{"reply": "stop_worker", "id": 3, "success": False}]


def test_run_job_validates_mode_and_worker_ids(tmp_path: Path) -> None:
    boundary = JsonLinesBoundary(Orchestrator(make_settings()), _Lines())

    with pytest.raises(BoundaryRequestError, match="Invalid mode"):
        asyncio.run(boundary.handle({"op": "run_job", "input": "a", "mode": "shred"}))
    with pytest.raises(BoundaryRequestError, match="worker_ids"):
        asyncio.run(
            boundary.handle(
                {"op": "run_job", "input": "a", "mode": "decrypt", "worker_ids": [True]},
            ),
        )


def test_shutdown_request_closes_boundary() -> None:
    reader = io.StringIO('{"op": "shutdown"}\n{"op": "list_workers"}\n')
    out = _Lines()

    async def scenario() -> JsonLinesBoundary:
        boundary = JsonLinesBoundary(Orchestrator(make_settings()), out)
        await boundary.serve(reader)
        return boundary

    boundary = asyncio.run(scenario())

    assert boundary.closed is True
    assert out.replies("shutdown") == [{"reply": "shutdown"}]
    assert out.replies("list_workers") == []
