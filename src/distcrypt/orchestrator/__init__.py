"""Worker registry, master dispatch and local fallback for distributed encryption.

Why a fallback codec at all?
~~~~~~~~~~~~~~~~~~~~~~~~~~~~
The master and worker binaries are external and fail in noisy, partial ways:
nonzero exits after writing a full artifact, clean exits with nothing written,
crashes mid-stream.  The dispatcher therefore judges a job by the artifact on
disk and, when none appears, produces one locally with a deterministic XOR
codec so the caller still has something recoverable.  Output that could not
be decrypted at all is reported as ``degraded``, never as plain success.
"""
