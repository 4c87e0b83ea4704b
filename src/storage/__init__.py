"""
Storage module for claims and their documents.

Provides:
- SQLite-based storage for claims, documents and per-category verification results
- Object storage for uploaded files, with signed URLs
"""

from .claim_store import ClaimStore
from .object_store import (
    STORAGE_FOLDERS,
    LocalObjectStore,
    ObjectStore,
    new_upload_id,
    object_path,
    safe_file_name,
)

__all__ = [
    "ClaimStore",
    "ObjectStore",
    "LocalObjectStore",
    "STORAGE_FOLDERS",
    "new_upload_id",
    "object_path",
    "safe_file_name",
]
