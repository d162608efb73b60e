"""
File-backed local store for applications submitted in local-only mode

The whole collection lives under one key of a JSON document and is
rewritten in full on every append.
"""
import json
import os
import tempfile
from pathlib import Path
from typing import Any

STORAGE_KEY = "applications"


class LocalStoreError(Exception):
    """The local store could not be read or written"""


class LocalStore:
    """Ordered, append-only collection of application records"""

    def __init__(self, path: str | Path, key: str = STORAGE_KEY):
        self.path = Path(path)
        self.key = key

    def _read_document(self) -> dict[str, Any]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            raise LocalStoreError(f"Cannot read {self.path}: {e}") from e

        if not raw.strip():
            return {}
        try:
            document = json.loads(raw)
        except ValueError as e:
            raise LocalStoreError(f"Corrupt local store {self.path}: {e}") from e
        if not isinstance(document, dict):
            raise LocalStoreError(f"Corrupt local store {self.path}: not a JSON object")
        return document

    def list(self) -> list[dict[str, Any]]:
        records = self._read_document().get(self.key) or []
        if not isinstance(records, list):
            raise LocalStoreError(f"Corrupt local store {self.path}: '{self.key}' is not a list")
        return records

    def append(self, record: dict[str, Any]) -> None:
        """Read the whole collection, append, write the whole collection back"""
        document = self._read_document()
        records = self.list()
        records.append(record)
        document[self.key] = records

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".store-", suffix=".json")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(document, fh, ensure_ascii=False)
            os.replace(tmp_name, self.path)
        except OSError as e:
            raise LocalStoreError(f"Cannot write {self.path}: {e}") from e
