"""
Private blob storage for uploaded patient documents.

Documents are written to a private container (no public read access) and
served through short-lived read-only URLs. A local directory backend is used
for development; configure ``BLOB_BACKEND=azure`` for Azure Blob Storage.
"""
import logging
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, Optional
from urllib.parse import quote

from azure.core.exceptions import AzureError, ResourceExistsError, ResourceNotFoundError
from azure.storage.blob import (
    BlobSasPermissions,
    BlobServiceClient,
    ContentSettings,
    generate_blob_sas,
)

from ..core.exceptions import ConfigurationError, UploadError

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9.-]")


def sanitize_filename(file_name: str) -> str:
    """Replace every character outside ``[A-Za-z0-9.-]`` with ``_``."""
    return _UNSAFE_FILENAME_CHARS.sub("_", file_name)


def build_blob_name(patient_id: str, file_name: str, timestamp_ms: Optional[int] = None) -> str:
    """``{patient_id}/{timestamp}-{sanitized filename}``; sorts chronologically per patient."""
    if timestamp_ms is None:
        timestamp_ms = time.time_ns() // 1_000_000
    return f"{patient_id}/{timestamp_ms}-{sanitize_filename(file_name)}"


@dataclass
class StorageStats:
    total_files: int
    total_size: int
    container_name: str


class BlobStorage(ABC):
    """Minimal interface each blob backend must implement."""

    name: str = "base"

    def __init__(self, container: str):
        self.container = container

    def ensure_ready(self) -> None:
        """Validate configuration before a batch starts. Raises ``ConfigurationError``."""

    @abstractmethod
    def upload(self, blob_name: str, data: bytes, content_type: str, metadata: Dict[str, str]) -> str:
        """Store ``data`` under ``blob_name`` and return its (non-public) URL. Raises ``UploadError``."""

    @abstractmethod
    def download(self, blob_name: str) -> bytes:
        """Return the blob contents. Raises ``FileNotFoundError`` if missing."""

    @abstractmethod
    def delete(self, blob_name: str) -> None:
        """Delete the blob if it exists."""

    @abstractmethod
    def generate_read_url(self, blob_name: str, expires_in: timedelta) -> str:
        """Time-limited, read-only URL for ``blob_name``."""

    @abstractmethod
    def stats(self) -> StorageStats:
        ...


class LocalBlobStorage(BlobStorage):
    """Filesystem storage for development. Read URLs are ``file://`` URIs and do not expire."""

    name = "local"

    def __init__(self, root: str, container: str = "patient-documents"):
        super().__init__(container)
        self.root = Path(root).expanduser().resolve() / container

    def _resolve(self, blob_name: str) -> Path:
        path = (self.root / blob_name).resolve()
        if self.root not in path.parents:
            raise ValueError(f"Blob name escapes the container: {blob_name}")
        return path

    def ensure_ready(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    def upload(self, blob_name: str, data: bytes, content_type: str, metadata: Dict[str, str]) -> str:
        path = self._resolve(blob_name)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "xb") as fh:
                fh.write(data)
        except FileExistsError as exc:
            raise UploadError(f"Blob already exists: {blob_name}") from exc
        except OSError as exc:
            raise UploadError(f"Could not write {blob_name}: {exc}") from exc
        return path.as_uri()

    def download(self, blob_name: str) -> bytes:
        path = self._resolve(blob_name)
        if not path.exists():
            raise FileNotFoundError(blob_name)
        return path.read_bytes()

    def delete(self, blob_name: str) -> None:
        path = self._resolve(blob_name)
        if path.exists():
            path.unlink()

    def generate_read_url(self, blob_name: str, expires_in: timedelta) -> str:
        path = self._resolve(blob_name)
        if not path.exists():
            raise FileNotFoundError(blob_name)
        return path.as_uri()

    def stats(self) -> StorageStats:
        files = [p for p in self.root.rglob("*") if p.is_file()] if self.root.exists() else []
        return StorageStats(
            total_files=len(files),
            total_size=sum(p.stat().st_size for p in files),
            container_name=self.container,
        )


def _metadata_value(value: str) -> str:
    # Blob metadata must be ASCII
    return value if value.isascii() else quote(value)


class AzureBlobStorage(BlobStorage):
    """Azure Blob Storage backend with private container and SAS read URLs."""

    name = "azure"

    def __init__(
        self,
        container: str,
        connection_string: Optional[str] = None,
        account_name: Optional[str] = None,
        account_key: Optional[str] = None,
    ):
        super().__init__(container)
        self.connection_string = connection_string
        self.account_name = account_name
        self.account_key = account_key
        self._container_client = None

    def _service_client(self):
        if self.connection_string:
            client = BlobServiceClient.from_connection_string(self.connection_string)
            self.account_name = self.account_name or client.account_name
            self.account_key = self.account_key or getattr(client.credential, "account_key", None)
            return client
        if self.account_name and self.account_key:
            return BlobServiceClient(
                account_url=f"https://{self.account_name}.blob.core.windows.net",
                credential={"account_name": self.account_name, "account_key": self.account_key},
            )
        raise ConfigurationError("Azure Storage credentials not configured")

    @property
    def container_client(self):
        if self._container_client is None:
            container_client = self._service_client().get_container_client(self.container)
            try:
                # No public_access argument: the container stays private
                container_client.create_container()
            except ResourceExistsError:
                pass
            self._container_client = container_client
        return self._container_client

    def ensure_ready(self) -> None:
        self.container_client

    def upload(self, blob_name: str, data: bytes, content_type: str, metadata: Dict[str, str]) -> str:
        blob = self.container_client.get_blob_client(blob_name)
        try:
            blob.upload_blob(
                data,
                overwrite=False,
                content_settings=ContentSettings(content_type=content_type),
                metadata={k: _metadata_value(v) for k, v in metadata.items()},
            )
        except ResourceExistsError as exc:
            raise UploadError(f"Blob already exists: {blob_name}") from exc
        except AzureError as exc:
            raise UploadError(f"Azure upload failed for {blob_name}: {exc}") from exc
        return blob.url

    def download(self, blob_name: str) -> bytes:
        blob = self.container_client.get_blob_client(blob_name)
        try:
            return blob.download_blob().readall()
        except ResourceNotFoundError as exc:
            raise FileNotFoundError(blob_name) from exc

    def delete(self, blob_name: str) -> None:
        blob = self.container_client.get_blob_client(blob_name)
        try:
            blob.delete_blob()
        except ResourceNotFoundError:
            logger.info("Blob %s already deleted", blob_name)

    def generate_read_url(self, blob_name: str, expires_in: timedelta) -> str:
        blob = self.container_client.get_blob_client(blob_name)
        if not self.account_key:
            raise ConfigurationError("An account key is required to sign read URLs")
        token = generate_blob_sas(
            account_name=self.account_name,
            container_name=self.container,
            blob_name=blob_name,
            account_key=self.account_key,
            permission=BlobSasPermissions(read=True),
            expiry=datetime.now(timezone.utc) + expires_in,
        )
        return f"{blob.url}?{token}"

    def stats(self) -> StorageStats:
        total_files = 0
        total_size = 0
        for blob in self.container_client.list_blobs():
            total_files += 1
            total_size += blob.size or 0
        return StorageStats(total_files=total_files, total_size=total_size, container_name=self.container)


def build_blob_storage(settings) -> BlobStorage:
    backend = settings.BLOB_BACKEND.strip().lower()

    if backend in {"local", "filesystem", "fs"}:
        return LocalBlobStorage(root=settings.LOCAL_STORAGE_ROOT, container=settings.STORAGE_CONTAINER)

    if backend in {"azure", "azure_blob"}:
        # Credentials are checked lazily so a misconfigured backend only fails
        # the operations that need it.
        return AzureBlobStorage(
            container=settings.STORAGE_CONTAINER,
            connection_string=settings.AZURE_STORAGE_CONNECTION_STRING,
            account_name=settings.AZURE_STORAGE_ACCOUNT_NAME,
            account_key=settings.AZURE_STORAGE_ACCOUNT_KEY,
        )

    raise ConfigurationError(f"Unsupported blob backend '{settings.BLOB_BACKEND}'")
