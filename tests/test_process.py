from __future__ import annotations

import asyncio
from pathlib import Path

import allure

from conftest import write_script
from distcrypt.config import split_command
from distcrypt.orchestrator import process as proc

pytestmark = [
    allure.epic("Worker Fleet"),
    allure.feature("Process Output Streaming"),
]


def _pump(chunks: list[bytes], limit: int) -> list[str]:
    lines: list[str] = []

    async def scenario() -> None:
        stream = asyncio.StreamReader(limit=limit)
        for chunk in chunks:
            stream.feed_data(chunk)
        stream.feed_eof()
        await proc.pump_lines(stream, lines.append)

    asyncio.run(scenario())
    return lines


def test_pump_lines_skips_blank_lines_and_strips_newlines() -> None:
    assert _pump([b"first\r\n\n   \nsec", b"ond\n"], limit=64) == ["first", "second"]


def test_pump_lines_forwards_unterminated_tail() -> None:
    assert _pump([b"done\npartial"], limit=64) == ["done", "partial"]


def test_pump_lines_keeps_lines_longer_than_limit() -> None:
    long_line = b"x" * 40 + b"TAIL"

    lines = _pump([long_line + b"\nnext\n"], limit=16)

    assert "".join(lines[:-1]) == long_line.decode()
    assert lines[-1] == "next"


def test_oversized_process_line_is_delivered(tmp_path: Path) -> None:
    size = proc.STREAM_LIMIT_BYTES + 10
    command = write_script(
        tmp_path / "chatty.py",
        f"""
import sys
sys.stdout.write("A" * {size} + "TAIL\\n")
sys.stdout.write("after\\n")
sys.stdout.flush()
""",
    )
    out: list[str] = []
    err: list[str] = []

    async def scenario() -> int:
        handle = await proc.spawn(split_command(command))
        return await proc.wait_with_output(handle, on_stdout=out.append, on_stderr=err.append)

    code = asyncio.run(scenario())

    assert code == 0
    assert err == []
    assert out[-1] == "after"
    joined = "".join(out[:-1])
    assert len(joined) == size + len("TAIL")
    assert joined.endswith("TAIL")
