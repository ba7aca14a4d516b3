"""Error taxonomy shared by the registry, dispatcher and fallback codec."""

from __future__ import annotations

from pathlib import Path


class DistcryptError(Exception):
    """Base class for coordinator errors."""


class SpawnError(DistcryptError, RuntimeError):
    """External executable is missing or cannot be launched."""

    def __init__(self, message: str, *, argv: list[str] | None = None) -> None:
        super().__init__(message)
        self.argv = list(argv or [])


class InputNotFound(DistcryptError, FileNotFoundError):
    """Job input file does not exist."""

    def __init__(self, path: Path) -> None:
        super().__init__(f"Input file not found: {path}")
        self.path = path


class OutputDirCreateError(DistcryptError, OSError):
    """Output directory could not be created."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Failed to create output directory {path}: {reason}")
        self.path = path


class NoKeyFound(DistcryptError):
    """No key artifact was discovered; the default key is used instead."""


class FallbackFailure(DistcryptError):
    """The local fallback codec could not produce an artifact."""


class TotalFailure(FallbackFailure):
    """Every recovery tier failed, including the placeholder copy."""


class JobStateError(DistcryptError, RuntimeError):
    """A job transition violated its lifecycle invariants."""
