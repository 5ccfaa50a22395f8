from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from ..models.raw_dataset import DatasetDecodeError, RawDataset
from ..models.records import Domain

"""Client-local durable key-value storage and the staging store on top of it.

Each key is one JSON document ``<directory>/<key>.json``. Writes go through a
temporary file and ``os.replace`` so a crash never leaves half a document.
There is no locking: concurrent writers are last-write-wins, which is fine for
single-operator use.
"""

__all__ = [
    "LocalStore",
    "StagingStore",
]

logger = logging.getLogger(__name__)


class LocalStore:
    """Directory-backed JSON key-value store. No expiry."""

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        if not key or "/" in key or "\\" in key or key.startswith("."):
            raise ValueError(f"invalid storage key: {key!r}")
        return self.directory / f"{key}.json"

    def get_text(self, key: str) -> str | None:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def get_json(self, key: str) -> Any:
        """Decoded document, or None when the key is missing or the document is corrupt."""
        text = self.get_text(key)
        if text is None:
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            logger.warning("stored document %s is not valid JSON: %s", key, e)
            return None

    def put_text(self, key: str, text: str) -> None:
        path = self._path(key)
        self.directory.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def put_json(self, key: str, value: Any) -> None:
        self.put_text(key, json.dumps(value, ensure_ascii=False))

    def remove(self, key: str) -> bool:
        path = self._path(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        return True


class StagingStore:
    """Last uploaded dataset per domain, kept until cleared or overwritten.

    Key: ``{domain}_file_data``.
    """

    def __init__(self, store: LocalStore) -> None:
        self._store = store

    def put(self, domain: Domain | str, dataset: RawDataset) -> None:
        domain = Domain(domain)
        self._store.put_text(domain.staging_key, dataset.to_json())
        logger.debug("staged %s rows for %s", dataset.row_count, domain.value)

    def get(self, domain: Domain | str) -> RawDataset | None:
        domain = Domain(domain)
        data = self._store.get_json(domain.staging_key)
        if data is None:
            return None
        try:
            return RawDataset.from_dict(data)
        except DatasetDecodeError as e:
            logger.warning("staged data for %s is unreadable: %s", domain.value, e)
            return None

    def has_data(self, domain: Domain | str) -> bool:
        dataset = self.get(domain)
        return dataset is not None and bool(dataset.headers) and dataset.row_count > 0

    def clear(self, domain: Domain | str) -> bool:
        return self._store.remove(Domain(domain).staging_key)
