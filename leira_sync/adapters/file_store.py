"""File-backed key-value store.

Each key is one UTF-8 file ``<root>/<key>.json``. Writes go to a temp file in
the same directory and are moved into place with ``os.replace()``, so a crash
mid-write leaves either the old value or the new one, never a torn file.
"""

from __future__ import annotations

import logging
import os
import random
import re
from pathlib import Path

from leira_sync.core.errors import StorageError, ValidationError

logger = logging.getLogger(__name__)

_KEY_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_-]{0,63}$")


class FileKeyValueStore:
    """KeyValueStoreProtocol implementation over a directory of JSON files."""

    def __init__(self, root: Path) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, key: str) -> Path:
        """Return the file path backing a key.

        Raises:
            ValidationError: If the key is not a plain identifier.
        """
        if not _KEY_RE.match(key):
            raise ValidationError(f"Invalid storage key: {key!r}")
        return self._root / f"{key}.json"

    def lock_path_for(self, key: str) -> Path:
        """Return the lock file path guarding a key."""
        return self.path_for(key).with_suffix(".lock")

    def get(self, key: str) -> str | None:
        path = self.path_for(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(f"Failed to read '{key}': {e}") from e

    def set(self, key: str, value: str) -> None:
        path = self.path_for(key)
        tmp_path = path.with_name(f".{path.name}.{os.getpid()}-{random.randbytes(4).hex()}.tmp")
        try:
            self._root.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(value, encoding="utf-8")
            os.replace(str(tmp_path), str(path))
        except OSError as e:
            try:
                tmp_path.unlink(missing_ok=True)
            except OSError:
                logger.debug("Could not remove temp file %s", tmp_path.name)
            raise StorageError(f"Failed to write '{key}': {e}") from e

    def remove(self, key: str) -> None:
        path = self.path_for(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to remove '{key}': {e}") from e
