"""
Atomic file writing with fsync so a key or PEM file is never left half-written.

Pattern:
  1. Write to a temporary file in the same directory
  2. fsync it
  3. chmod it (when a mode is requested) before it becomes visible
  4. Rename atomically over the destination (atomic on POSIX filesystems)
"""
from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Optional


def atomic_write_bytes(path: Path, content: bytes, mode: Optional[int] = None) -> None:
    """
    Atomically write *content* to *path*, creating parent directories.

    With *mode* set, the permissions are applied to the temporary file, so the
    destination never exists with looser permissions.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, temp_path = tempfile.mkstemp(
        prefix=f".{path.name}.",
        suffix=".tmp",
        dir=str(path.parent),
    )

    try:
        with os.fdopen(fd, "wb") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        if mode is not None:
            os.chmod(temp_path, mode)
        os.replace(temp_path, path)
    except Exception:
        try:
            os.unlink(temp_path)
        except OSError:
            pass
        raise


def atomic_write_text(
    path: Path,
    content: str,
    encoding: str = "utf-8",
    mode: Optional[int] = None,
) -> None:
    """Text flavour of `atomic_write_bytes`."""
    atomic_write_bytes(path, content.encode(encoding), mode=mode)
