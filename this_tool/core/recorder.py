"""Clipboard watcher that turns changes into bounded history."""

import asyncio
import hashlib
import io
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional

import pyperclip
from PIL import Image, ImageGrab

from this_tool.core.storage import HistoryStore
from this_tool.models.schemas import ClipboardEntry, ClipKind

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.2

IMAGE_SIGNATURES = (
    (b"\x89PNG", "png"),
    (b"\xff\xd8\xff", "jpg"),
    (b"II*\x00", "tiff"),
    (b"MM\x00*", "tiff"),
)


def sniff_image_extension(data: bytes) -> str:
    for signature, extension in IMAGE_SIGNATURES:
        if data.startswith(signature):
            return extension
    return "png"


def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


@dataclass
class ClipboardSnapshot:
    """Everything the clipboard currently offers."""

    image: Optional[bytes] = None
    files: List[str] = field(default_factory=list)
    text: Optional[str] = None

    def is_empty(self) -> bool:
        return not self.image and not self.files and not self.text

    def fingerprint(self) -> Optional[str]:
        if self.is_empty():
            return None
        digest = hashlib.sha256()
        if self.image:
            digest.update(b"image:")
            digest.update(self.image)
        elif self.files:
            digest.update(b"file:")
            digest.update("\n".join(self.files).encode("utf-8"))
        else:
            digest.update(b"text:")
            digest.update(self.text.encode("utf-8"))
        return digest.hexdigest()


class ClipboardSource(ABC):
    @abstractmethod
    def read(self) -> ClipboardSnapshot:
        ...


class SystemClipboard(ClipboardSource):
    """Reads the OS clipboard with Pillow (images, file lists) and pyperclip (text)."""

    def read(self) -> ClipboardSnapshot:
        snapshot = ClipboardSnapshot()

        grabbed = self._grab()
        if isinstance(grabbed, Image.Image):
            snapshot.image = self._encode(grabbed)
        elif isinstance(grabbed, list):
            snapshot.files = [str(Path(item)) for item in grabbed if item]

        if snapshot.image is None and not snapshot.files:
            snapshot.text = self._paste()
        return snapshot

    def _grab(self):
        try:
            return ImageGrab.grabclipboard()
        except (OSError, NotImplementedError) as e:
            logger.debug("Image clipboard unavailable: %s", e)
            return None

    def _encode(self, image) -> bytes:
        image_format = image.format if image.format in ("PNG", "JPEG", "TIFF") else "PNG"
        buffer = io.BytesIO()
        image.save(buffer, format=image_format)
        return buffer.getvalue()

    def _paste(self) -> Optional[str]:
        try:
            return pyperclip.paste() or None
        except pyperclip.PyperclipException as e:
            logger.debug("Text clipboard unavailable: %s", e)
            return None


class ClipboardRecorder:
    """Polls a clipboard source and appends each new payload to the history."""

    def __init__(
        self,
        store: HistoryStore,
        source: Optional[ClipboardSource] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.source = source or SystemClipboard()
        self.poll_interval = poll_interval
        self.clock = clock
        self.last_fingerprint: Optional[str] = None
        self._stopping = asyncio.Event()

    def prime(self) -> None:
        """Remember what is on the clipboard now without recording it."""
        self.last_fingerprint = self.source.read().fingerprint()

    def on_clipboard_change(
        self, snapshot: Optional[ClipboardSnapshot] = None
    ) -> Optional[ClipboardEntry]:
        """Record ``snapshot`` unless it was already processed."""
        if snapshot is None:
            snapshot = self.source.read()

        fingerprint = snapshot.fingerprint()
        if fingerprint is None or fingerprint == self.last_fingerprint:
            return None
        self.last_fingerprint = fingerprint

        try:
            self.store.ensure_data_dir()
            entry = self.classify(snapshot, self.clock())
        except OSError as e:
            logger.error("Failed to save clipboard payload: %s", e)
            return None
        if entry is None:
            return None

        try:
            self.store.append(entry)
        except OSError as e:
            logger.error("Failed to save history: %s", e)
            self._discard_sidecar(entry)
            return None

        logger.info("Clipboard changed: %s, %s", entry.kind.value, entry.content[:50])
        return entry

    def classify(self, snapshot: ClipboardSnapshot, when: datetime) -> Optional[ClipboardEntry]:
        """Build an entry, writing its sidecar file. Image wins, then files, then text."""
        if snapshot.image:
            extension = sniff_image_extension(snapshot.image)
            path = self.store.new_sidecar_path(ClipKind.IMAGE, extension, when)
            path.write_bytes(snapshot.image)
            return ClipboardEntry(
                timestamp=when,
                content=f"Image ({len(snapshot.image)} bytes)",
                kind=ClipKind.IMAGE,
                sidecar_path=str(path),
            )

        if snapshot.files:
            return ClipboardEntry(
                timestamp=when,
                content="\n".join(snapshot.files),
                kind=ClipKind.FILE,
            )

        if snapshot.text:
            path = self.store.new_sidecar_path(ClipKind.TEXT, "txt", when)
            path.write_text(snapshot.text, encoding="utf-8")
            return ClipboardEntry(
                timestamp=when,
                content=snapshot.text,
                kind=ClipKind.TEXT,
                sidecar_path=str(path),
            )

        return None

    def _discard_sidecar(self, entry: ClipboardEntry) -> None:
        if not entry.sidecar_path:
            return
        try:
            Path(entry.sidecar_path).unlink()
        except OSError as e:
            logger.warning("Could not remove orphaned sidecar %s: %s", entry.sidecar_path, e)

    async def run(self) -> None:
        """Poll until ``stop()`` is called."""
        self._stopping.clear()
        logger.info("Clipboard monitoring started. Data stored in: %s", self.store.data_dir)
        while not self._stopping.is_set():
            try:
                self.on_clipboard_change()
            except Exception as e:
                logger.exception("Clipboard poll failed: %s", e)
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                pass
        logger.info("Clipboard monitoring stopped")

    def stop(self) -> None:
        self._stopping.set()

    def clear_history(self) -> int:
        removed = self.store.clear()
        self.last_fingerprint = None
        logger.info("History cleared (%d files removed)", removed)
        return removed
