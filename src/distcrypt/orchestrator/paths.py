"""Output-path and key-file resolution heuristics."""

from __future__ import annotations

import os
from pathlib import Path

from distcrypt.orchestrator.models import Mode

ENCRYPTED_SUFFIX = ".encrypted"
DECRYPTED_SUFFIX = ".decrypted"
KEY_SUFFIX = ".key"
SHARED_KEY_FILENAME = "encryption_key.bin"


def resolve_output_path(
    input_path: Path | str,
    mode: Mode,
    requested_output_path: Path | str | None = None,
) -> Path:
    """Compute the job output path; never returns the input path itself."""

    source = Path(input_path)
    requested = str(requested_output_path or "").strip()

    if not requested:
        if mode is Mode.ENCRYPT:
            resolved = _append(source, ENCRYPTED_SUFFIX)
        else:
            stripped = strip_encrypted_suffix(source)
            resolved = stripped if stripped != source else _insert_decrypted(source)
    else:
        target = Path(requested)
        if mode is Mode.ENCRYPT:
            resolved = target if target.name.endswith(ENCRYPTED_SUFFIX) else _append(
                target, ENCRYPTED_SUFFIX
            )
        elif _same_path(target, source):
            resolved = _append(source, DECRYPTED_SUFFIX)
        else:
            resolved = target

    if _same_path(resolved, source):
        suffix = ENCRYPTED_SUFFIX if mode is Mode.ENCRYPT else DECRYPTED_SUFFIX
        resolved = _append(source, suffix)
    return resolved


def candidate_key_paths(input_path: Path | str, output_path: Path | str) -> list[Path]:
    """Ordered key-file candidates; the first existing file wins during discovery."""

    source = Path(input_path)
    output_key = _append(Path(output_path), KEY_SUFFIX)
    candidates: list[Path] = []
    if output_key.exists():
        candidates.append(output_key)
    candidates.extend(
        [
            source.parent / SHARED_KEY_FILENAME,
            _append(source, KEY_SUFFIX),
            _append(strip_encrypted_suffix(source), KEY_SUFFIX),
        ],
    )

    ordered: list[Path] = []
    for candidate in candidates:
        if candidate not in ordered:
            ordered.append(candidate)
    return ordered


def strip_encrypted_suffix(path: Path | str) -> Path:
    """Drop a trailing ``.encrypted``; paths without it (or with nothing left) are unchanged."""

    source = Path(path)
    name = source.name
    if name.endswith(ENCRYPTED_SUFFIX) and len(name) > len(ENCRYPTED_SUFFIX):
        return source.with_name(name[: -len(ENCRYPTED_SUFFIX)])
    return source


def _insert_decrypted(path: Path) -> Path:
    if path.suffix:
        return path.with_name(f"{path.stem}{DECRYPTED_SUFFIX}{path.suffix}")
    return _append(path, DECRYPTED_SUFFIX)


def _append(path: Path, suffix: str) -> Path:
    return path.with_name(path.name + suffix)


def _same_path(left: Path, right: Path) -> bool:
    return os.path.normpath(left) == os.path.normpath(right)
