"""
Account-key storage.

The client only needs three operations on its store (read, write, exists)
and only ever touches one file: ``<base_path>/<identity>/account.pem``,
where the identity is lower-cased and every run of characters outside
``[a-z0-9]`` is collapsed to a single hyphen.
"""
from __future__ import annotations

import re
import stat
from pathlib import Path, PurePosixPath
from typing import Protocol

from storage.atomic import atomic_write_bytes

ACCOUNT_KEY_FILENAME = "account.pem"

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


def normalize_identity(identity: str) -> str:
    return _NON_ALNUM_RE.sub("-", identity.lower())


def account_key_path(base_path: str, identity: str) -> str:
    """Relative store path of the account key for *identity*."""
    return str(PurePosixPath(base_path) / normalize_identity(identity) / ACCOUNT_KEY_FILENAME)


class KeyStore(Protocol):
    def read(self, path: str) -> bytes: ...

    def write(self, path: str, data: bytes) -> None: ...

    def exists(self, path: str) -> bool: ...


class FilesystemKeyStore:
    """Store rooted at a local directory; writes are atomic and mode 0o600."""

    def __init__(self, root: str | Path = ".") -> None:
        self.root = Path(root)

    def _resolve(self, path: str) -> Path:
        return self.root / path

    def read(self, path: str) -> bytes:
        return self._resolve(path).read_bytes()

    def write(self, path: str, data: bytes) -> None:
        atomic_write_bytes(self._resolve(path), data, mode=stat.S_IRUSR | stat.S_IWUSR)

    def exists(self, path: str) -> bool:
        return self._resolve(path).is_file()

    def __repr__(self) -> str:
        return f"FilesystemKeyStore({str(self.root)!r})"


class MemoryKeyStore:
    """Dict-backed store for tests and for callers that persist keys elsewhere."""

    def __init__(self) -> None:
        self.files: dict[str, bytes] = {}

    def read(self, path: str) -> bytes:
        try:
            return self.files[path]
        except KeyError:
            raise FileNotFoundError(path) from None

    def write(self, path: str, data: bytes) -> None:
        self.files[path] = data

    def exists(self, path: str) -> bool:
        return path in self.files
