"""
Durable blob storage for leaderboard backups.

Purpose
-------
Named-object put/get keyed by (container, object name). The filesystem
implementation maps a container to a directory under a configured root.

Guarantees
----------
- `put` is all-or-nothing: the payload is written and fsynced to a hidden
  temporary file in the container, then hard-linked into place. A reader
  never sees a partially written object.
- Objects are immutable: `put` on an existing name fails with
  `StorageWriteError` instead of overwriting it.
- Blocking file I/O runs in a worker thread so the event loop is never
  stalled by a large backup.
"""

from __future__ import annotations

import asyncio
import os
import tempfile
from pathlib import Path
from typing import List, Protocol, Union

from seasonboard.core.exceptions import StorageReadError, StorageWriteError
from seasonboard.core.logging.logger import get_logger

logger = get_logger(__name__)


class BlobStore(Protocol):
    """Named-object storage used by the backup path."""

    async def put(self, container: str, name: str, data: bytes) -> None: ...

    async def get(self, container: str, name: str) -> bytes: ...

    async def list(self, container: str) -> List[str]: ...


def _is_safe_segment(segment: str) -> bool:
    return bool(segment) and not segment.startswith(".") and "/" not in segment and "\\" not in segment


class FilesystemBlobStore:
    """
    Blob storage on a local or mounted filesystem.

    Parameters
    ----------
    root:
        Directory that holds one sub-directory per container.
    """

    def __init__(self, root: Union[str, Path]) -> None:
        self.root = Path(root)

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    async def put(self, container: str, name: str, data: bytes) -> None:
        """
        Store `data` under (container, name).

        Raises
        ------
        StorageWriteError
            If the name is invalid, already exists, or the write fails.
        """
        await asyncio.to_thread(self._put_sync, container, name, data)
        logger.info(
            "Blob stored",
            extra={"container": container, "object": name, "size_bytes": len(data)},
        )

    async def get(self, container: str, name: str) -> bytes:
        """
        Read the whole object stored under (container, name).

        Raises
        ------
        StorageReadError
            If the name is invalid, the object is missing or unreadable.
        """
        data = await asyncio.to_thread(self._get_sync, container, name)
        logger.debug(
            "Blob read",
            extra={"container": container, "object": name, "size_bytes": len(data)},
        )
        return data

    async def list(self, container: str) -> List[str]:
        """Object names in `container`, sorted; empty if it does not exist."""
        return await asyncio.to_thread(self._list_sync, container)

    # =========================================================================
    # BLOCKING IMPLEMENTATION
    # =========================================================================

    def _object_path(self, container: str, name: str) -> Path:
        return self.root / container / name

    def _put_sync(self, container: str, name: str, data: bytes) -> None:
        if not (_is_safe_segment(container) and _is_safe_segment(name)):
            raise StorageWriteError(
                "Invalid container or object name",
                details={"container": container, "object": name},
                is_retryable=False,
            )

        target = self._object_path(container, name)
        tmp_path = None
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                dir=target.parent, prefix=".tmp-", suffix=".part", delete=False
            ) as tmp:
                tmp_path = tmp.name
                tmp.write(data)
                tmp.flush()
                os.fsync(tmp.fileno())

            # link() fails if the target exists, which makes the publish both
            # atomic and non-overwriting
            os.link(tmp_path, target)
        except FileExistsError as exc:
            raise StorageWriteError(
                f"Backup '{name}' already exists in '{container}'",
                details={"container": container, "object": name},
                is_retryable=False,
            ) from exc
        except OSError as exc:
            logger.error(
                "Blob write failed",
                extra={
                    "container": container,
                    "object": name,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
            )
            raise StorageWriteError(
                f"Could not write '{name}' to '{container}'",
                details={"container": container, "object": name, "error": str(exc)},
            ) from exc
        finally:
            if tmp_path is not None:
                Path(tmp_path).unlink(missing_ok=True)

    def _get_sync(self, container: str, name: str) -> bytes:
        if not (_is_safe_segment(container) and _is_safe_segment(name)):
            raise StorageReadError(
                "Invalid container or object name",
                details={"container": container, "object": name},
            )

        try:
            return self._object_path(container, name).read_bytes()
        except FileNotFoundError as exc:
            raise StorageReadError(
                f"Backup '{name}' not found in '{container}'",
                details={"container": container, "object": name, "missing": True},
            ) from exc
        except OSError as exc:
            logger.error(
                "Blob read failed",
                extra={
                    "container": container,
                    "object": name,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
            )
            raise StorageReadError(
                f"Could not read '{name}' from '{container}'",
                details={"container": container, "object": name, "error": str(exc)},
            ) from exc

    def _list_sync(self, container: str) -> List[str]:
        if not _is_safe_segment(container):
            raise StorageReadError("Invalid container name", details={"container": container})

        directory = self.root / container
        if not directory.is_dir():
            return []
        return sorted(
            entry.name
            for entry in directory.iterdir()
            if entry.is_file() and not entry.name.startswith(".")
        )
