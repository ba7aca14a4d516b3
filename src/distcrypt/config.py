"""Runtime configuration for workers, master dispatch and fallback codec."""

from __future__ import annotations

import logging
import os
import shlex
from dataclasses import dataclass, field

DEFAULT_FALLBACK_KEY = b"FALLBACK_ENCRYPTION_KEY_DEMO_ONLY"
DEFAULT_STORAGE_FOLDER = "/encryption_files"


@dataclass(slots=True)
class ExecutableSettings:
    """External executables, each as a shell-style command string."""

    worker_command: str = "worker"
    master_command: str = "master"
    storage_command: str = "distributed_encryption"

    def worker_argv(self) -> list[str]:
        return split_command(self.worker_command)

    def master_argv(self) -> list[str]:
        return split_command(self.master_command)

    def storage_argv(self) -> list[str]:
        return split_command(self.storage_command)


@dataclass(slots=True)
class FallbackSettings:
    """Local fallback codec settings."""

    enabled: bool = True
    default_key: bytes = DEFAULT_FALLBACK_KEY
    allow_placeholder_output: bool = True


@dataclass(slots=True)
class StorageSettings:
    """Remote storage proxy settings."""

    default_folder: str = DEFAULT_STORAGE_FOLDER


@dataclass(slots=True)
class Settings:
    """Application settings grouped by domain concerns."""

    executables: ExecutableSettings = field(default_factory=ExecutableSettings)
    fallback: FallbackSettings = field(default_factory=FallbackSettings)
    storage: StorageSettings = field(default_factory=StorageSettings)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment with sane defaults for local development."""

        fallback_key = os.getenv("DISTCRYPT_FALLBACK_KEY")
        return cls(
            executables=ExecutableSettings(
                worker_command=os.getenv("DISTCRYPT_WORKER_COMMAND", "worker"),
                master_command=os.getenv("DISTCRYPT_MASTER_COMMAND", "master"),
                storage_command=os.getenv("DISTCRYPT_STORAGE_COMMAND", "distributed_encryption"),
            ),
            fallback=FallbackSettings(
                enabled=_env_bool("DISTCRYPT_FALLBACK_ENABLED", default=True),
                default_key=(
                    fallback_key.encode("utf-8") if fallback_key else DEFAULT_FALLBACK_KEY
                ),
                allow_placeholder_output=_env_bool(
                    "DISTCRYPT_ALLOW_PLACEHOLDER_OUTPUT",
                    default=True,
                ),
            ),
            storage=StorageSettings(
                default_folder=os.getenv("DISTCRYPT_STORAGE_FOLDER", DEFAULT_STORAGE_FOLDER),
            ),
            log_level=os.getenv("DISTCRYPT_LOG_LEVEL", "INFO"),
        )

    def validate(self) -> None:
        """Raise configuration error if commands or key material are unusable."""

        for name, command in (
            ("DISTCRYPT_WORKER_COMMAND", self.executables.worker_command),
            ("DISTCRYPT_MASTER_COMMAND", self.executables.master_command),
            ("DISTCRYPT_STORAGE_COMMAND", self.executables.storage_command),
        ):
            try:
                argv = split_command(command)
            except ValueError as error:
                raise ValueError(f"{name} is not a valid command: {error}") from error
            if not argv:
                raise ValueError(f"{name} must not be empty.")
        if not self.fallback.default_key:
            raise ValueError("DISTCRYPT_FALLBACK_KEY must not be empty.")
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ValueError(f"Invalid DISTCRYPT_LOG_LEVEL: {self.log_level!r}")


def split_command(command: str, *, os_name: str | None = None) -> list[str]:
    """Split a configured command string into argv, keeping Windows backslashes."""

    current_os_name = os_name or os.name
    argv = shlex.split(command.strip(), posix=current_os_name != "nt")
    if current_os_name == "nt":
        argv = [_strip_outer_quotes(part) for part in argv]
    return argv


def _strip_outer_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
        return value[1:-1]
    return value


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")
