"""Local fallback codec used when the distributed pipeline leaves no artifact.

The transform is a byte-wise XOR against a repeating key. It preserves length,
treats every byte independently and is its own inverse, so the same call both
encrypts and decrypts. It offers no real confidentiality: it exists so that a
job still yields a recoverable artifact when the external master fails.

Decryption has a secondary tier. When the primary path hits an I/O error the
raw input is copied to the output with a plaintext notice appended. Callers
receive ``FallbackResult.placeholder=True`` for that case and must report it as
degraded output, not as success.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from distcrypt.config import DEFAULT_FALLBACK_KEY
from distcrypt.errors import FallbackFailure, NoKeyFound, TotalFailure
from distcrypt.orchestrator.models import (
    DEFAULT_KEY_SOURCE,
    FallbackResult,
    KeyMaterial,
    utc_now,
)
from distcrypt.orchestrator.paths import KEY_SUFFIX, candidate_key_paths

logger = logging.getLogger(__name__)

VERIFIED_SUFFIX = ".verified"
PLACEHOLDER_NOTICE = b"\n\nTHIS IS A PLACEHOLDER FILE - ACTUAL DECRYPTION FAILED\n"


def xor_transform(data: bytes, key: bytes) -> bytes:
    """XOR ``data`` with ``key`` repeated to the same length."""

    if not key:
        raise ValueError("XOR key must not be empty.")
    if not data:
        return b""
    repeats, remainder = divmod(len(data), len(key))
    keystream = key * repeats + key[:remainder]
    mixed = int.from_bytes(data, "big") ^ int.from_bytes(keystream, "big")
    return mixed.to_bytes(len(data), "big")


class FallbackCodec:
    """Deterministic XOR codec with key discovery and a placeholder tier."""

    def __init__(
        self,
        *,
        default_key: bytes = DEFAULT_FALLBACK_KEY,
        allow_placeholder_output: bool = True,
    ) -> None:
        if not default_key:
            raise ValueError("Fallback default key must not be empty.")
        self.default_key = default_key
        self.allow_placeholder_output = allow_placeholder_output

    def encrypt(self, input_path: Path, output_path: Path) -> FallbackResult:
        """Encrypt with the default key and persist it as ``<output>.key``."""

        logger.info("Using fallback encryption for %s -> %s", input_path, output_path)
        key_path = output_path.with_name(output_path.name + KEY_SUFFIX)
        try:
            data = input_path.read_bytes()
            logger.info("Read input file %s (%d bytes)", input_path, len(data))
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.write_bytes(xor_transform(data, self.default_key))
            key_path.write_bytes(self.default_key)
        except OSError as error:
            logger.error("Fallback encryption failed: %s", error)
            raise FallbackFailure(f"Fallback encryption failed: {error}") from error

        logger.info("Wrote fallback ciphertext to %s and key to %s", output_path, key_path)
        return FallbackResult(output_path=output_path, key_source=str(key_path))

    def discover_key(self, input_path: Path, output_path: Path) -> KeyMaterial:
        """Return the first readable candidate key, else the default key."""

        try:
            return _read_first_key(candidate_key_paths(input_path, output_path))
        except NoKeyFound:
            logger.warning(
                "No key file found for %s, using default fallback key (NOT SECURE)",
                input_path,
            )
            return KeyMaterial(data=self.default_key, source=DEFAULT_KEY_SOURCE)

    def decrypt(self, input_path: Path, output_path: Path) -> FallbackResult:
        """Decrypt with discovered key material; may degrade to a placeholder copy."""

        logger.info("Using fallback decryption for %s -> %s", input_path, output_path)
        try:
            data = input_path.read_bytes()
            key = self.discover_key(input_path, output_path)
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.write_bytes(xor_transform(data, key.data))
            marker = output_path.with_name(output_path.name + VERIFIED_SUFFIX)
            marker.write_text(f"Decryption completed: {utc_now().isoformat()}", "utf-8")
        except OSError as error:
            logger.error("Fallback decryption failed: %s", error)
            if not self.allow_placeholder_output:
                raise FallbackFailure(f"Fallback decryption failed: {error}") from error
            return self._write_placeholder(input_path, output_path)

        logger.info(
            "Wrote decrypted data to %s (%d bytes) using key from %s",
            output_path,
            len(data),
            key.source,
        )
        return FallbackResult(output_path=output_path, key_source=key.source)

    def _write_placeholder(self, input_path: Path, output_path: Path) -> FallbackResult:
        logger.info("Trying placeholder copy for %s", output_path)
        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(input_path, output_path)
            with output_path.open("ab") as handle:
                handle.write(PLACEHOLDER_NOTICE)
        except OSError as error:
            logger.error("Placeholder copy also failed: %s", error)
            raise TotalFailure(f"All decryption fallbacks failed: {error}") from error
        logger.warning("Created placeholder copy of encrypted input at %s", output_path)
        return FallbackResult(output_path=output_path, key_source=None, placeholder=True)


def _read_first_key(candidates: list[Path]) -> KeyMaterial:
    for candidate in candidates:
        if not candidate.is_file():
            continue
        try:
            data = candidate.read_bytes()
        except OSError as error:
            logger.warning("Error reading key file %s: %s", candidate, error)
            continue
        if not data:
            logger.warning("Ignoring empty key file %s", candidate)
            continue
        logger.info("Read key file %s (%d bytes)", candidate, len(data))
        return KeyMaterial(data=data, source=str(candidate))
    raise NoKeyFound("No usable key file among: " + ", ".join(str(c) for c in candidates))
