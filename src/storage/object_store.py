"""
Object storage for claim documents.

ObjectStore is the narrow contract the pipeline needs: idempotent bucket and
folder setup, putObject, and signed URLs. LocalObjectStore keeps objects on
the local filesystem and signs URLs with HMAC, so no external storage
service is required.
"""

import hashlib
import hmac
import logging
import re
import time
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional
from urllib.parse import parse_qs, unquote, urlencode, urlparse

from ..claims.errors import UpstreamError
from ..claims.schema import DocumentCategory

logger = logging.getLogger(__name__)

STORAGE_FOLDERS = {
    DocumentCategory.IDENTITY: "identity-documents",
    DocumentCategory.INVOICE: "invoices",
    DocumentCategory.SUPPORTING: "supporting-documents",
}

KEEP_MARKER = ".keep"


def new_upload_id() -> str:
    """Generate an ID shared by the files of one upload."""
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:13]}"


def safe_file_name(upload_id: str, original_name: Optional[str], mime_type: str = "") -> str:
    """
    Build '<upload_id>-<stem>.<ext>' with the stem reduced to [A-Za-z0-9-].

    The extension falls back to the MIME subtype when the name has none.
    """
    original_name = Path(original_name or "").name
    stem, dot, ext = original_name.rpartition(".")
    if not dot:
        stem, ext = original_name, ""
    stem = re.sub(r"[^a-zA-Z0-9]", "-", stem) or "unnamed"
    ext = re.sub(r"[^a-zA-Z0-9]", "", ext) or (mime_type.split("/")[-1] if mime_type else "") or "bin"
    return f"{upload_id}-{stem}.{ext.lower()}"


def object_path(category: DocumentCategory, file_name: str) -> str:
    """Path of a document inside the bucket."""
    return f"{STORAGE_FOLDERS[DocumentCategory(category)]}/{file_name}"


class ObjectStore(ABC):
    """Storage contract for uploaded documents."""

    @abstractmethod
    def ensure_bucket(self, bucket: str) -> None:
        """Create the bucket if it does not exist (idempotent)."""

    @abstractmethod
    def ensure_folder(self, bucket: str, folder: str) -> None:
        """Create a folder inside the bucket if it does not exist (idempotent)."""

    @abstractmethod
    def put_object(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        """Store bytes and return the object locator ('<bucket>/<path>')."""

    @abstractmethod
    def get_signed_url(self, locator: str, ttl: int) -> str:
        """Return a URL granting read access to the object for ttl seconds."""

    def ensure_layout(self, bucket: str) -> None:
        """Ensure the bucket and every document folder exist."""
        self.ensure_bucket(bucket)
        for folder in STORAGE_FOLDERS.values():
            self.ensure_folder(bucket, folder)


class LocalObjectStore(ObjectStore):
    """
    Filesystem-backed object store.

    Usage:
        store = LocalObjectStore(Path("data/objects"), secret="...")
        store.ensure_layout("trueclaim")
        locator = store.put_object("trueclaim", "invoices/x.png", data, "image/png")
        url = store.get_signed_url(locator, ttl=3600)
    """

    def __init__(self, root: Path, secret: str):
        self.root = Path(root)
        self.secret = secret.encode("utf-8")

    def _resolve(self, bucket: str, path: str = "") -> Path:
        base = (self.root / bucket).resolve()
        target = (base / path).resolve()
        if target != base and base not in target.parents:
            raise UpstreamError(f"Path escapes bucket: {path}", stage="storage")
        return target

    def ensure_bucket(self, bucket: str) -> None:
        bucket_dir = self._resolve(bucket)
        if not bucket_dir.exists():
            logger.info(f"Creating bucket {bucket}")
        try:
            bucket_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise UpstreamError(f"Could not create bucket {bucket}", stage="storage") from e

    def ensure_folder(self, bucket: str, folder: str) -> None:
        folder_dir = self._resolve(bucket, folder)
        try:
            folder_dir.mkdir(parents=True, exist_ok=True)
            (folder_dir / KEEP_MARKER).touch(exist_ok=True)
        except OSError as e:
            # put_object recreates missing parents
            logger.error(f"Error creating folder {folder}: {e}")

    def put_object(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        target = self._resolve(bucket, path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as e:
            raise UpstreamError(f"Upload failed for {path}", stage="storage") from e
        logger.info(f"Stored {len(data)} bytes at {bucket}/{path} ({content_type})")
        return f"{bucket}/{path}"

    def read_object(self, locator: str) -> bytes:
        """Read an object back by locator."""
        bucket, _, path = locator.partition("/")
        try:
            return self._resolve(bucket, path).read_bytes()
        except OSError as e:
            raise UpstreamError(f"Object not readable: {locator}", stage="storage") from e

    def _signature(self, locator: str, expires: int) -> str:
        message = f"{locator}:{expires}".encode("utf-8")
        return hmac.new(self.secret, message, hashlib.sha256).hexdigest()

    def get_signed_url(self, locator: str, ttl: int) -> str:
        expires = int(time.time()) + int(ttl)
        bucket, _, path = locator.partition("/")
        query = urlencode({"expires": expires, "signature": self._signature(locator, expires)})
        return f"{self._resolve(bucket, path).as_uri()}?{query}"

    def verify_signed_url(self, url: str, now: Optional[float] = None) -> bool:
        """Check a URL's signature and expiry."""
        parsed = urlparse(url)
        params = parse_qs(parsed.query)
        try:
            expires = int(params["expires"][0])
            signature = params["signature"][0]
        except (KeyError, IndexError, ValueError):
            return False
        if (now if now is not None else time.time()) > expires:
            return False

        try:
            relative = Path(unquote(parsed.path)).resolve().relative_to(self.root.resolve())
        except ValueError:
            return False
        locator = relative.as_posix()
        return hmac.compare_digest(signature, self._signature(locator, expires))
