from __future__ import annotations

from pathlib import Path

import allure
from click.testing import CliRunner

from conftest import ECHO_MASTER_COMMAND, ECHO_WORKER_COMMAND, write_script
from distcrypt.main import distcrypt
from distcrypt.orchestrator.fallback import xor_transform

pytestmark = [
    allure.epic("Command Line"),
    allure.feature("distcrypt CLI"),
]


def _env(**overrides: str) -> dict[str, str]:
    env = {
        "DISTCRYPT_WORKER_COMMAND": ECHO_WORKER_COMMAND,
        "DISTCRYPT_MASTER_COMMAND": ECHO_MASTER_COMMAND,
    }
    env.update(overrides)
    return env


def test_run_encrypts_through_master(tmp_path: Path) -> None:
    source = tmp_path / "notes.txt"
    source.write_text("hello")

    result = CliRunner().invoke(
        distcrypt,
        ["run", str(source), "--mode", "encrypt", "--worker", "127.0.0.1:50051"],
        env=_env(),
    )

    assert result.exit_code == 0, result.output
    assert "worker 0 running on 127.0.0.1:50051" in result.output
    assert "Completed with code 0: succeeded" in result.output
    assert (tmp_path / "notes.txt.encrypted").read_text() == "hello"


def test_run_exit_code_reflects_failed_job(tmp_path: Path) -> None:
    result = CliRunner().invoke(
        distcrypt,
        ["run", str(tmp_path / "missing"), "--mode", "decrypt", "--worker", "127.0.0.1:1"],
        env=_env(),
    )

    assert result.exit_code == 1
    assert "ERROR: Input file not found" in result.output


def test_run_falls_back_when_master_leaves_no_artifact(tmp_path: Path) -> None:
    master = write_script(tmp_path / "quiet_master.py", "import sys\nsys.exit(9)\n")
    source = tmp_path / "data.bin"
    source.write_bytes(b"payload")

    result = CliRunner().invoke(
        distcrypt,
        ["run", str(source), "--mode", "encrypt", "--worker", "127.0.0.1:1"],
        env=_env(DISTCRYPT_MASTER_COMMAND=master, DISTCRYPT_FALLBACK_KEY="k"),
    )

    assert result.exit_code == 0, result.output
    assert "fallback_succeeded" in result.output
    assert (tmp_path / "data.bin.encrypted").read_bytes() == xor_transform(b"payload", b"k")


def test_fallback_commands_round_trip(tmp_path: Path) -> None:
    source = tmp_path / "letter.txt"
    source.write_text("dear reader")
    runner = CliRunner()

    encrypted = runner.invoke(distcrypt, ["fallback", "encrypt", str(source)], env=_env())
    source.unlink()
    decrypted = runner.invoke(
        distcrypt,
        ["fallback", "decrypt", str(tmp_path / "letter.txt.encrypted")],
        env=_env(),
    )

    assert encrypted.exit_code == 0, encrypted.output
    assert decrypted.exit_code == 0, decrypted.output
    assert f"Key source: {tmp_path / 'letter.txt.encrypted.key'}" in decrypted.output
    assert (tmp_path / "letter.txt").read_text() == "dear reader"


def test_paths_lists_key_candidates(tmp_path: Path) -> None:
    (tmp_path / "encryption_key.bin").write_bytes(b"k")

    result = CliRunner().invoke(
        distcrypt,
        ["paths", str(tmp_path / "a.pdf.encrypted"), "--mode", "decrypt"],
    )

    assert result.exit_code == 0
    assert f"Output: {tmp_path / 'a.pdf'}" in result.output
    assert f"Key candidate 1: {tmp_path / 'encryption_key.bin'} (found)" in result.output
    assert f"Key candidate 2: {tmp_path / 'a.pdf.encrypted.key'} (missing)" in result.output


def test_storage_upload_reports_missing_executable(tmp_path: Path) -> None:
    result = CliRunner().invoke(
        distcrypt,
        ["storage", "upload", "file.bin"],
        env=_env(DISTCRYPT_STORAGE_COMMAND=str(tmp_path / "no-storage-cli")),
    )

    assert result.exit_code == 1
    assert "Executable not found" in result.output


def test_invalid_environment_is_a_usage_error(tmp_path: Path) -> None:
    result = CliRunner().invoke(
        distcrypt,
        ["paths", str(tmp_path / "a.txt"), "--mode", "encrypt"],
        env=_env(DISTCRYPT_FALLBACK_ENABLED="maybe"),
    )

    assert result.exit_code == 2
    assert "Invalid boolean value for DISTCRYPT_FALLBACK_ENABLED" in result.output
    assert not isinstance(result.exception, ValueError)


def test_invalid_log_level_is_a_bad_parameter(tmp_path: Path) -> None:
    result = CliRunner().invoke(
        distcrypt,
        ["--log-level", "LOUD", "paths", str(tmp_path / "a.txt"), "--mode", "encrypt"],
        env=_env(),
    )

    assert result.exit_code == 2
    assert "--log-level" in result.output
    assert not isinstance(result.exception, ValueError)
