"""
Persistence sinks for accepted applications

Every sink stores one record per reference number and reports an
attempt to reuse a reference as ReferenceCollisionError.
"""
import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Optional

from azure.core.exceptions import AzureError, ResourceExistsError, ResourceNotFoundError
from azure.storage.blob import BlobServiceClient, ContentSettings
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.errors import ReferenceCollisionError, StorageError
from ..db.models import ApplicationRow

logger = logging.getLogger(__name__)

Record = dict[str, Any]


def _reference_of(record: Record) -> str:
    try:
        return record["referenceNumber"]
    except KeyError:
        raise StorageError("Record has no referenceNumber") from None


def _serialize(record: Record) -> str:
    return json.dumps(record, indent=4, ensure_ascii=False)


class StorageSink(ABC):
    """Durable destination for accepted application records"""

    @abstractmethod
    def save(self, record: Record) -> None:
        """
        Persist a record under its referenceNumber

        Raises:
            ReferenceCollisionError: A record with this reference already exists
            StorageError: The record could not be durably written
        """

    @abstractmethod
    def get(self, reference_number: str) -> Optional[Record]:
        """Fetch a stored record, or None if absent"""

    @abstractmethod
    def list(self) -> list[Record]:
        """All stored records"""

    def check_health(self) -> bool:
        return True


class InMemoryStorageSink(StorageSink):
    """Process-local sink for tests and single-process runs"""

    def __init__(self):
        self._records: dict[str, Record] = {}
        self._lock = threading.Lock()

    def save(self, record: Record) -> None:
        reference = _reference_of(record)
        with self._lock:
            if reference in self._records:
                raise ReferenceCollisionError(reference)
            self._records[reference] = json.loads(json.dumps(record))

    def get(self, reference_number: str) -> Optional[Record]:
        with self._lock:
            return self._records.get(reference_number)

    def list(self) -> list[Record]:
        with self._lock:
            return list(self._records.values())


class FileStorageSink(StorageSink):
    """One pretty-printed JSON file per application: <dir>/<reference>.json"""

    def __init__(self, directory: str | Path = settings.APPLICATIONS_DIR):
        self.directory = Path(directory)

    def _path(self, reference_number: str) -> Path:
        return self.directory / f"{reference_number}.json"

    def save(self, record: Record) -> None:
        reference = _reference_of(record)
        path = self._path(reference)
        try:
            self.directory.mkdir(mode=0o755, parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=".", suffix=".tmp")
        except OSError as e:
            raise StorageError(f"Cannot write to applications directory: {e}") from e

        # Full write to a temp file, then an exclusive link into place
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(_serialize(record))
            os.link(tmp_name, path)
        except FileExistsError:
            raise ReferenceCollisionError(reference) from None
        except OSError as e:
            raise StorageError(f"Failed to save application file: {e}") from e
        finally:
            Path(tmp_name).unlink(missing_ok=True)

    def get(self, reference_number: str) -> Optional[Record]:
        path = self._path(reference_number)
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            raise StorageError(f"Failed to read application file: {e}") from e

    def list(self) -> list[Record]:
        if not self.directory.is_dir():
            return []
        records = []
        for path in sorted(self.directory.glob("*.json")):
            record = self.get(path.stem)
            if record is not None:
                records.append(record)
        return records

    def check_health(self) -> bool:
        try:
            self.directory.mkdir(mode=0o755, parents=True, exist_ok=True)
        except OSError:
            return False
        return self.directory.is_dir()


class DatabaseStorageSink(StorageSink):
    """One row per application in the applications table"""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def save(self, record: Record) -> None:
        reference = _reference_of(record)
        personal = record.get("personalInfo", {})
        programme = record.get("programmeInfo", {})
        row = ApplicationRow(
            reference_number=reference,
            email=personal.get("email", ""),
            programme=programme.get("programme", ""),
            payload=record,
            submitted_at=_parse_timestamp(record.get("submittedAt")),
        )
        db = self.session_factory()
        try:
            db.add(row)
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ReferenceCollisionError(reference) from None
        except SQLAlchemyError as e:
            db.rollback()
            raise StorageError(f"Failed to insert application: {e}") from e
        finally:
            db.close()

    def get(self, reference_number: str) -> Optional[Record]:
        db = self.session_factory()
        try:
            row = db.get(ApplicationRow, reference_number)
            return dict(row.payload) if row else None
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read application: {e}") from e
        finally:
            db.close()

    def list(self) -> list[Record]:
        db = self.session_factory()
        try:
            rows = db.query(ApplicationRow).order_by(ApplicationRow.submitted_at).all()
            return [dict(row.payload) for row in rows]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list applications: {e}") from e
        finally:
            db.close()

    def check_health(self) -> bool:
        db = self.session_factory()
        try:
            db.query(ApplicationRow.reference_number).limit(1).all()
            return True
        except SQLAlchemyError:
            return False
        finally:
            db.close()


class BlobStorageSink(StorageSink):
    """Azure Blob Storage sink: applications/<reference>.json per record"""

    PREFIX = "applications/"

    def __init__(self, client: BlobServiceClient, container_name: str):
        self.client = client
        self.container_name = container_name
        self._ensure_container()

    @classmethod
    def from_settings(cls) -> "BlobStorageSink":
        client = BlobServiceClient.from_connection_string(
            settings.AZURE_STORAGE_CONNECTION_STRING
        )
        return cls(client, settings.AZURE_STORAGE_CONTAINER_NAME)

    def _ensure_container(self) -> None:
        """Create container if it doesn't exist"""
        try:
            container_client = self.client.get_container_client(self.container_name)
            if not container_client.exists():
                container_client.create_container()
        except AzureError as e:
            logger.warning(f"Could not verify/create container {self.container_name}: {e}")

    def _blob_name(self, reference_number: str) -> str:
        return f"{self.PREFIX}{reference_number}.json"

    def save(self, record: Record) -> None:
        reference = _reference_of(record)
        blob_client = self.client.get_blob_client(
            container=self.container_name,
            blob=self._blob_name(reference),
        )
        try:
            blob_client.upload_blob(
                _serialize(record).encode("utf-8"),
                overwrite=False,
                content_settings=ContentSettings(content_type="application/json"),
            )
        except ResourceExistsError:
            raise ReferenceCollisionError(reference) from None
        except AzureError as e:
            raise StorageError(f"Failed to upload application blob: {e}") from e

    def get(self, reference_number: str) -> Optional[Record]:
        blob_client = self.client.get_blob_client(
            container=self.container_name,
            blob=self._blob_name(reference_number),
        )
        try:
            return json.loads(blob_client.download_blob().readall())
        except ResourceNotFoundError:
            return None
        except (AzureError, ValueError) as e:
            raise StorageError(f"Failed to download application blob: {e}") from e

    def list(self) -> list[Record]:
        container_client = self.client.get_container_client(self.container_name)
        try:
            names = [blob.name for blob in container_client.list_blobs(name_starts_with=self.PREFIX)]
        except AzureError as e:
            raise StorageError(f"Failed to list application blobs: {e}") from e
        records = []
        for name in sorted(names):
            reference = name[len(self.PREFIX):].removesuffix(".json")
            record = self.get(reference)
            if record is not None:
                records.append(record)
        return records

    def check_health(self) -> bool:
        try:
            return self.client.get_container_client(self.container_name).exists()
        except AzureError:
            return False


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            pass
    return datetime.now(timezone.utc)


def build_storage_sink(backend: str) -> StorageSink:
    """Construct the sink named by STORAGE_BACKEND"""
    backend = backend.lower()
    if backend == "file":
        return FileStorageSink(settings.APPLICATIONS_DIR)
    if backend == "database":
        from ..core.database import SessionLocal

        return DatabaseStorageSink(SessionLocal)
    if backend == "blob":
        return BlobStorageSink.from_settings()
    if backend == "memory":
        return InMemoryStorageSink()
    raise ValueError(f"Unknown storage backend: {backend}")


@lru_cache
def get_storage_sink() -> StorageSink:
    """FastAPI dependency returning the configured sink"""
    return build_storage_sink(settings.STORAGE_BACKEND)
