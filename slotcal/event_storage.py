"""
Persistent Event Storage for slotcal.

Abstract base class and implementations for storing the event collection.
The whole collection is one document, keyed by a storage identifier:

    {"state": {"events": [...]}, "version": 0}

A missing or unreadable document loads as an empty collection.
"""

import json
import os
import sys
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Optional

from .event_model import Event
from .exceptions import MalformedStoreError


DEFAULT_STORAGE_KEY = "event-storage"
DOCUMENT_VERSION = 0


def _debug_print(msg: str) -> None:
    timestamp = datetime.now().strftime("%H:%M:%S")
    print(f"[{timestamp}] STORAGE: {msg}", file=sys.stderr)


def encode_document(events: list[Event]) -> dict:
    return {
        "state": {"events": [e.to_dict() for e in events]},
        "version": DOCUMENT_VERSION,
    }


def decode_document(data) -> list[Event]:
    """
    Read the events out of a decoded document.

    Records that cannot be read are skipped and logged.

    Raises:
        MalformedStoreError: if the document does not have the expected shape.
    """
    if not isinstance(data, dict):
        raise MalformedStoreError(f"Expected an object, got {type(data).__name__}")
    state = data.get("state")
    if not isinstance(state, dict):
        raise MalformedStoreError("Missing 'state' object")
    records = state.get("events", [])
    if not isinstance(records, list):
        raise MalformedStoreError("'state.events' is not a list")

    events = []
    for record in records:
        try:
            events.append(Event.from_dict(record))
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            _debug_print(f"Skipping unreadable event record: {e}")
    return events


class EventStorageBackend(ABC):
    """
    Abstract base class for event storage backends.

    Implementations must handle persistence (JSON file, memory, etc).
    """

    @abstractmethod
    def load_events(self) -> list[Event]:
        """Load the whole collection. Never raises for bad data."""
        pass

    @abstractmethod
    def save_events(self, events: list[Event]) -> None:
        """Replace the stored collection."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Remove the stored document."""
        pass


class MemoryEventStorage(EventStorageBackend):
    """
    Keeps the encoded document in memory.

    Useful for tests and for running without a data directory.
    """

    def __init__(self, document: Optional[dict] = None):
        self.document = document
        self.save_count = 0

    def load_events(self) -> list[Event]:
        if self.document is None:
            return []
        try:
            return decode_document(self.document)
        except MalformedStoreError as e:
            _debug_print(f"Malformed in-memory document, starting empty: {e}")
            return []

    def save_events(self, events: list[Event]) -> None:
        self.document = encode_document(events)
        self.save_count += 1

    def clear(self) -> None:
        self.document = None


class JsonEventStorage(EventStorageBackend):
    """
    JSON file-based event storage.

    Structure:
    - {storage_dir}/{storage_key}.json - the event collection document
    """

    def __init__(self, storage_dir: Path, storage_key: str = DEFAULT_STORAGE_KEY):
        self.storage_dir = Path(storage_dir)
        self.storage_key = storage_key

        # Create directory
        self.storage_dir.mkdir(parents=True, exist_ok=True)

        _debug_print(f"Initialized JSON storage at {self.file_path}")

    @property
    def file_path(self) -> Path:
        # Replace characters that are problematic in filenames
        return self.storage_dir / (self.storage_key.replace(":", "_").replace("/", "_") + ".json")

    def load_events(self) -> list[Event]:
        """Load all events. Missing or malformed documents give an empty list."""
        file_path = self.file_path
        if not file_path.exists():
            return []

        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            events = decode_document(data)
        except (OSError, ValueError, MalformedStoreError) as e:
            # json.JSONDecodeError and UnicodeDecodeError are ValueErrors
            _debug_print(f"Error loading events from {file_path}, starting empty: {e}")
            return []

        _debug_print(f"Loaded {len(events)} events from {self.storage_key}")
        return events

    def save_events(self, events: list[Event]) -> None:
        """Save the full event list, replacing the file atomically."""
        file_path = self.file_path
        tmp_path = file_path.with_suffix(".json.tmp")

        try:
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(encode_document(events), f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, file_path)
            _debug_print(f"Saved {len(events)} events for {self.storage_key}")
        except OSError as e:
            _debug_print(f"Error saving events for {self.storage_key}: {e}")

    def clear(self) -> None:
        try:
            self.file_path.unlink()
        except FileNotFoundError:
            pass


def get_default_storage_dir() -> Path:
    """Get the default storage directory respecting XDG."""
    xdg_data = os.environ.get('XDG_DATA_HOME', os.path.expanduser('~/.local/share'))
    return Path(xdg_data) / 'slotcal' / 'storage'


def create_storage_backend(
    storage_dir: Optional[Path] = None,
    storage_key: str = DEFAULT_STORAGE_KEY,
) -> EventStorageBackend:
    """Factory function to create a storage backend."""
    if storage_dir is None:
        storage_dir = get_default_storage_dir()

    return JsonEventStorage(storage_dir, storage_key)
