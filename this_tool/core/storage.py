"""JSON-file storage backend for clipboard history."""

import json
import logging
import os
import shutil
import tempfile
from collections import Counter
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Tuple

from pydantic import ValidationError

from this_tool.models.schemas import ClipboardEntry, ClipKind

logger = logging.getLogger(__name__)

HISTORY_FILENAME = "history.json"
DEFAULT_MAX_ENTRIES = 100


class DataDirectoryError(RuntimeError):
    """The data directory cannot be created or used."""


class HistoryStore:
    """Bounded, newest-first clipboard history persisted as one JSON array.

    The recorder is the only writer. Readers never see a partial file because
    every write goes to a temp file in the same directory and is renamed over
    the log.
    """

    def __init__(self, data_dir: Path, max_entries: int = DEFAULT_MAX_ENTRIES):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.data_dir = Path(data_dir)
        self.history_path = self.data_dir / HISTORY_FILENAME
        self.max_entries = max_entries

    def ensure_data_dir(self) -> None:
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DataDirectoryError(
                f"Cannot create data directory {self.data_dir}: {e}"
            ) from e

    def load(self) -> List[ClipboardEntry]:
        """Read the log; anything unreadable counts as empty history."""
        entries, _ = self._read()
        return entries

    def _read(self) -> Tuple[List[ClipboardEntry], bool]:
        """Return ``(entries, intact)``; ``intact`` is False if records were dropped."""
        try:
            raw = self.history_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return [], True
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("History read error: %s", e)
            return [], False

        try:
            records = json.loads(raw)
        except ValueError as e:
            logger.warning("History file is not valid JSON: %s", e)
            return [], False

        if not isinstance(records, list):
            logger.warning("History file is not a JSON array, ignoring it")
            return [], False

        entries = []
        for record in records:
            try:
                entries.append(ClipboardEntry.model_validate(record))
            except ValidationError as e:
                logger.warning("Skipping invalid history record: %s", e)
        return entries, len(entries) == len(records)

    def append(self, entry: ClipboardEntry) -> List[ClipboardEntry]:
        """Insert ``entry`` at the front and evict past the cap.

        Returns the evicted entries. Raises ``OSError`` if the log cannot be
        written; in that case nothing is evicted. When the previous log could
        not be read in full, sidecars no retained entry points at are removed.
        """
        history, intact = self._read()
        history.insert(0, entry)

        retained = history[: self.max_entries]
        evicted = history[self.max_entries :]

        self._write(retained)
        self._remove_sidecars(evicted, retained)
        if not intact:
            self._remove_orphaned_sidecars(retained)
        return evicted

    def _write(self, entries: List[ClipboardEntry]) -> None:
        self.ensure_data_dir()
        records = [entry.to_record() for entry in entries]

        fd, tmp_name = tempfile.mkstemp(
            prefix=".history-", suffix=".tmp", dir=str(self.data_dir)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(records, handle, indent=2, ensure_ascii=False)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self.history_path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise

    def _remove_sidecars(
        self, evicted: List[ClipboardEntry], retained: List[ClipboardEntry]
    ) -> None:
        keep = {entry.sidecar_path for entry in retained if entry.sidecar_path}
        for entry in evicted:
            path = entry.sidecar_path
            if not path or path in keep:
                continue
            try:
                os.unlink(path)
                logger.debug("Removed evicted sidecar %s", path)
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning("Could not remove sidecar %s: %s", path, e)

    def _remove_orphaned_sidecars(self, retained: List[ClipboardEntry]) -> None:
        keep = {
            Path(entry.sidecar_path).name
            for entry in retained
            if entry.sidecar_path and Path(entry.sidecar_path).parent == self.data_dir
        }
        prefixes = tuple(f"{kind.value}_" for kind in ClipKind)
        for child in self.data_dir.iterdir():
            if not child.name.startswith(prefixes) or child.name in keep:
                continue
            if not child.is_file():
                continue
            try:
                child.unlink()
                logger.info("Removed orphaned sidecar %s", child)
            except OSError as e:
                logger.warning("Could not remove orphaned sidecar %s: %s", child, e)

    def new_sidecar_path(self, kind: ClipKind, extension: str, when: datetime) -> Path:
        """Collision-free ``{kind}_{unix_seconds}.{ext}`` path in the data dir."""
        stem = f"{kind.value}_{int(when.timestamp())}"
        candidate = self.data_dir / f"{stem}.{extension}"
        counter = 1
        while candidate.exists():
            candidate = self.data_dir / f"{stem}_{counter}.{extension}"
            counter += 1
        return candidate

    def count(self) -> int:
        return len(self.load())

    def clear(self) -> int:
        """Delete everything under the data directory."""
        if not self.data_dir.is_dir():
            return 0

        removed = 0
        for child in self.data_dir.iterdir():
            try:
                if child.is_dir() and not child.is_symlink():
                    shutil.rmtree(child)
                else:
                    child.unlink()
                removed += 1
            except OSError as e:
                logger.warning("Could not remove %s: %s", child, e)
        return removed

    def get_stats(self) -> Dict[str, Any]:
        """Get statistics about stored history."""
        history = self.load()
        kinds = Counter(entry.kind.value for entry in history)

        stats: Dict[str, Any] = {
            "total_entries": len(history),
            "max_entries": self.max_entries,
            "by_kind": {kind.value: kinds.get(kind.value, 0) for kind in ClipKind},
            "data_dir": str(self.data_dir),
            "history_path": str(self.history_path),
            "oldest_entry": None,
            "newest_entry": None,
        }
        if history:
            stats["newest_entry"] = history[0].to_record()["timestamp"]
            stats["oldest_entry"] = history[-1].to_record()["timestamp"]
        return stats

