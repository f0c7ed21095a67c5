"""
Leaderboard backup / restore.

Purpose
-------
Turn one `LeaderboardResponse` into a self-contained byte blob, store it
under a timestamped name in blob storage, and read it back.

Artifact Format
---------------
UTF-8 JSON envelope:

    {
      "format": "seasonboard.leaderboard-backup",
      "version": 1,
      "created_at": "2026-10-18T12:00:00+00:00",
      "leaderboard": { ...LeaderboardResponse... }
    }

Decoding rejects any other format tag or version, non-UTF-8 bytes,
non-JSON text and leaderboards that fail the record schema.

Naming
------
`leaderboard_backup_YYYYMMDD_HHMMSS_ffffff.json` (UTC, microseconds). Lexicographic
order of names is chronological order of backups.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from seasonboard.core.exceptions import DecodeError, EncodeError
from seasonboard.core.logging.logger import get_logger
from seasonboard.core.storage.blob_store import BlobStore
from seasonboard.domain.models.leaderboard import LeaderboardResponse

logger = get_logger(__name__)

BACKUP_FORMAT = "seasonboard.leaderboard-backup"
BACKUP_VERSION = 1
BACKUP_NAME_PREFIX = "leaderboard_backup_"
BACKUP_NAME_TIME_FORMAT = "%Y%m%d_%H%M%S_%f"


def backup_name(now: Optional[datetime] = None) -> str:
    """
    Build a sortable backup object name.

    Example
    -------
    >>> backup_name(datetime(2026, 10, 18, 9, 5, 3, tzinfo=timezone.utc))
    'leaderboard_backup_20261018_090503_000000.json'
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return f"{BACKUP_NAME_PREFIX}{now.strftime(BACKUP_NAME_TIME_FORMAT)}.json"


class BackupCodec:
    """Stateless encoder/decoder for backup artifacts."""

    def __init__(self, clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)) -> None:
        self._clock = clock

    def encode(self, snapshot: LeaderboardResponse) -> bytes:
        """
        Encode a snapshot into a backup artifact.

        Raises
        ------
        EncodeError
            If the snapshot cannot be serialized.
        """
        envelope: Dict[str, Any] = {
            "format": BACKUP_FORMAT,
            "version": BACKUP_VERSION,
            "created_at": self._clock().isoformat(),
            "leaderboard": snapshot.to_dict(),
        }
        try:
            text = json.dumps(
                envelope,
                sort_keys=True,
                separators=(",", ":"),
                ensure_ascii=False,
                allow_nan=False,
            )
        except (TypeError, ValueError) as exc:
            raise EncodeError(
                f"Cannot encode leaderboard backup: {exc}",
                details={"leaderboard_id": snapshot.data.id, "error": str(exc)},
            ) from exc
        return text.encode("utf-8")

    def decode(self, blob: bytes) -> LeaderboardResponse:
        """
        Decode a backup artifact back into the snapshot it holds.

        Raises
        ------
        DecodeError
            If the blob is corrupt, foreign, or of an unknown version.
        """
        try:
            envelope = json.loads(blob.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as exc:
            raise DecodeError(
                "Backup is not UTF-8 JSON",
                details={"error": str(exc)},
            ) from exc

        if not isinstance(envelope, dict) or envelope.get("format") != BACKUP_FORMAT:
            raise DecodeError("Blob is not a seasonboard leaderboard backup")

        version = envelope.get("version")
        if version != BACKUP_VERSION:
            raise DecodeError(
                f"Unsupported backup version {version!r}",
                details={"version": version, "supported": BACKUP_VERSION},
            )

        unknown = sorted(set(envelope) - {"format", "version", "created_at", "leaderboard"})
        if unknown or "leaderboard" not in envelope:
            raise DecodeError(
                "Backup envelope has unexpected shape",
                details={"unknown_fields": unknown},
            )

        # MalformedRecord is a DecodeError
        return LeaderboardResponse.from_dict(envelope["leaderboard"])


class BackupManager:
    """
    Moves snapshots between the codec and blob storage.

    Holds no state between calls beyond its collaborators.
    """

    def __init__(self, store: BlobStore, codec: Optional[BackupCodec] = None) -> None:
        self._store = store
        self._codec = codec or BackupCodec()

    async def backup(self, snapshot: LeaderboardResponse, container: str, name: str) -> None:
        """
        Encode `snapshot` and upload it as (container, name).

        Raises
        ------
        EncodeError
            If the snapshot cannot be serialized (nothing is uploaded).
        StorageWriteError
            If the upload fails or the name already exists.
        """
        blob = self._codec.encode(snapshot)
        await self._store.put(container, name, blob)
        logger.info(
            "Leaderboard backed up",
            extra={
                "container": container,
                "object": name,
                "players": len(snapshot.included),
                "size_bytes": len(blob),
            },
        )

    async def restore(self, container: str, name: str) -> LeaderboardResponse:
        """
        Download (container, name) and decode the snapshot it holds.

        Raises
        ------
        StorageReadError
            If the backup does not exist or cannot be read.
        DecodeError
            If the backup is corrupt or in a foreign format.
        """
        blob = await self._store.get(container, name)
        snapshot = self._codec.decode(blob)
        logger.info(
            "Leaderboard backup decoded",
            extra={"container": container, "object": name, "players": len(snapshot.included)},
        )
        return snapshot
