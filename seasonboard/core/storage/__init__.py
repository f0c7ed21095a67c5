"""Blob storage for leaderboard backups."""

from seasonboard.core.storage.blob_store import BlobStore, FilesystemBlobStore

__all__ = ["BlobStore", "FilesystemBlobStore"]
