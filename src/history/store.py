# src/history/store.py — v2
"""Analysis history: a JSON array file, read-modify-append.

Appends are not protected against concurrent writers; a single front end
owns the file. A file that cannot be decoded is never overwritten: append
moves it aside first so its content can still be recovered by hand.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from mediaquote.core.models import HistoryEntry

logger = logging.getLogger(__name__)

_ENTRIES = TypeAdapter(list[HistoryEntry])


class HistoryStore:
    """File-backed list of successful runs."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    def read(self) -> list[HistoryEntry]:
        """Return stored entries, oldest first.

        A missing, blank or undecodable file reads as an empty history.
        """
        try:
            return self._load()
        except (UnicodeDecodeError, ValidationError) as e:
            logger.warning("Unreadable history file %s: %s", self._path, e)
            return []

    def append(self, entry: HistoryEntry) -> None:
        """Append one entry, rewriting the whole file.

        An undecodable file is renamed to ``<name>.corrupt-<UTC stamp>``
        and a new history is started with this entry.
        """
        try:
            entries = self._load()
        except (UnicodeDecodeError, ValidationError) as e:
            backup = self._quarantine()
            logger.warning(
                "History file %s unreadable (%s); moved to %s", self._path, e, backup,
            )
            entries = []
        entries.append(entry)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_bytes(_ENTRIES.dump_json(entries, indent=2))
        logger.debug("History now holds %d entries", len(entries))

    def _load(self) -> list[HistoryEntry]:
        if not self._path.exists():
            return []
        raw = self._path.read_bytes().decode("utf-8")
        if not raw.strip():
            return []
        return _ENTRIES.validate_json(raw)

    def _quarantine(self) -> Path:
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%f")
        backup = self._path.with_name(f"{self._path.name}.corrupt-{stamp}")
        self._path.rename(backup)
        return backup
