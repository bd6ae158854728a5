"""Persistent catalog of registered indexes.

The catalog is a single JSON document mapping index names to the path and
language they were registered with, so the registry can reopen them after
a restart::

    {"docs": {"path": "/srv/indexes/docs", "lang": "en"}}
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, ConfigDict, ValidationError


logger = logging.getLogger(__name__)

CATALOG_FILENAME = "databases.json"


class CatalogEntry(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    path: str
    lang: str = "none"


class Catalog(Protocol):
    """Storage the registry mirrors successful creates and removes into."""

    def get_entries(self) -> dict[str, CatalogEntry]: ...

    def set_entry(self, name: str, path: str, language: str) -> None: ...

    def remove_entry(self, name: str) -> None: ...


class JsonCatalog:
    """Catalog stored as ``databases.json`` in a cache directory."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)
        self.path = self.directory / CATALOG_FILENAME

    def get_entries(self) -> dict[str, CatalogEntry]:
        entries: dict[str, CatalogEntry] = {}
        for name, raw in self._read().items():
            try:
                entries[name] = CatalogEntry.model_validate(raw)
            except ValidationError as exc:
                logger.warning("Skipping malformed catalog entry %s: %s", name, exc)
        return entries

    def set_entry(self, name: str, path: str, language: str) -> None:
        data = self._read()
        data[name] = CatalogEntry(path=str(path), lang=language).model_dump()
        self._write(data)

    def remove_entry(self, name: str) -> None:
        data = self._read()
        if data.pop(name, None) is not None:
            self._write(data)

    def _read(self) -> dict:
        try:
            content = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        try:
            data = json.loads(content)
        except json.JSONDecodeError as exc:
            logger.warning("Catalog %s is not valid JSON, treating it as empty: %s", self.path, exc)
            return {}
        if not isinstance(data, dict):
            logger.warning("Catalog %s does not hold an object, treating it as empty", self.path)
            return {}
        return data

    def _write(self, data: dict) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
        tmp_path.replace(self.path)
