"""Client-local key/value storage backed by one JSON file.

``LocalStore`` plays the part of browser local storage: string keys mapped
to JSON documents, all kept in a single file on disk.  ``ItineraryStore``
keeps the itinerary under a fixed key.  Reads fail soft and writes are
fire-and-forget; both only log on error.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

from rando_planner.config import STATE_PATH, STORAGE_KEY
from rando_planner.persist.codec import from_document, to_document
from rando_planner.query.itinerary import Itinerary

logger = logging.getLogger(__name__)


class LocalStore:
    """JSON documents keyed by string, persisted to *path*."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = Path(path) if path else STATE_PATH

    def _read_all(self) -> dict:
        if not self.path.exists():
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} does not hold a JSON object")
        return data

    def get(self, key: str) -> Any:
        """Return the document under *key*; raises on unreadable storage."""
        return self._read_all().get(key)

    def set(self, key: str, value: Any) -> None:
        try:
            data = self._read_all()
        except (OSError, ValueError) as exc:
            logger.warning("Discarding unreadable storage %s: %s", self.path, exc)
            data = {}
        data[key] = value
        self._write_all(data)

    def remove(self, key: str) -> None:
        data = self._read_all()
        if key in data:
            del data[key]
            self._write_all(data)

    def _write_all(self, data: dict) -> None:
        # Write to a .part file and rename so a crash never truncates storage
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".part")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_path, self.path)


class ItineraryStore:
    """Save and restore the itinerary under a fixed storage key."""

    def __init__(self, store: LocalStore, key: str = STORAGE_KEY) -> None:
        self.store = store
        self.key = key

    def load(self) -> Optional[Itinerary]:
        """Restore the saved itinerary, or None when absent or unreadable."""
        try:
            doc = self.store.get(self.key)
        except Exception as exc:
            logger.error("Error loading itinerary from %s: %s", self.store.path, exc)
            return None
        if doc is None:
            return None
        itinerary = from_document(doc)
        if itinerary is not None:
            logger.info("Restored itinerary with %d legs", len(itinerary.legs))
        return itinerary

    def save(self, itinerary: Itinerary) -> None:
        try:
            self.store.set(self.key, to_document(itinerary))
        except Exception as exc:
            logger.error("Error saving itinerary to %s: %s", self.store.path, exc)

    def clear(self) -> None:
        try:
            self.store.remove(self.key)
        except Exception as exc:
            logger.error("Error clearing saved itinerary: %s", exc)
