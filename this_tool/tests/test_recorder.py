"""Tests for the clipboard recorder."""

import asyncio
import io
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import Mock, patch

import pyperclip
import pytest
from PIL import Image

from this_tool.core.recorder import (
    ClipboardRecorder,
    ClipboardSnapshot,
    ClipboardSource,
    SystemClipboard,
    sniff_image_extension,
)
from this_tool.core.storage import HistoryStore
from this_tool.models.schemas import ClipKind

NOW = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


class FakeClipboard(ClipboardSource):
    def __init__(self, snapshot=None):
        self.snapshot = snapshot or ClipboardSnapshot()

    def read(self):
        return self.snapshot


@pytest.fixture
def store(tmp_path):
    return HistoryStore(tmp_path / ".this", max_entries=3)


@pytest.fixture
def source():
    return FakeClipboard()


@pytest.fixture
def recorder(store, source):
    return ClipboardRecorder(store, source, poll_interval=0.01, clock=lambda: NOW)


class TestSniffImageExtension:
    @pytest.mark.parametrize(
        "data,expected",
        [
            (PNG_BYTES, "png"),
            (b"\xff\xd8\xff\xe0rest", "jpg"),
            (b"II*\x00rest", "tiff"),
            (b"MM\x00*rest", "tiff"),
            (b"GIF89a", "png"),
            (b"", "png"),
        ],
    )
    def test_signatures(self, data, expected):
        assert sniff_image_extension(data) == expected


class TestClassification:
    """Image, then file references, then text."""

    def test_image_wins(self, recorder, store):
        snapshot = ClipboardSnapshot(image=PNG_BYTES, files=["/tmp/a.txt"], text="hello")

        entry = recorder.on_clipboard_change(snapshot)

        assert entry.kind is ClipKind.IMAGE
        assert entry.content == f"Image ({len(PNG_BYTES)} bytes)"
        assert entry.sidecar_path == str(store.data_dir / f"image_{int(NOW.timestamp())}.png")
        assert Path(entry.sidecar_path).read_bytes() == PNG_BYTES

    def test_jpeg_sidecar_extension(self, recorder):
        entry = recorder.on_clipboard_change(ClipboardSnapshot(image=b"\xff\xd8\xff\xe0data"))

        assert entry.sidecar_path.endswith(".jpg")

    def test_files_before_text(self, recorder):
        snapshot = ClipboardSnapshot(files=["/tmp/a.txt", "/tmp/b.pdf"], text="/tmp/a.txt")

        entry = recorder.on_clipboard_change(snapshot)

        assert entry.kind is ClipKind.FILE
        assert entry.content == "/tmp/a.txt\n/tmp/b.pdf"
        assert entry.sidecar_path is None

    def test_text_gets_sidecar(self, recorder):
        entry = recorder.on_clipboard_change(ClipboardSnapshot(text="hello world"))

        assert entry.kind is ClipKind.TEXT
        assert entry.content == "hello world"
        assert entry.sidecar_path.endswith(".txt")
        assert Path(entry.sidecar_path).read_text(encoding="utf-8") == "hello world"

    def test_empty_clipboard_creates_nothing(self, recorder, store):
        assert recorder.on_clipboard_change(ClipboardSnapshot()) is None
        assert store.load() == []

    def test_entry_is_persisted(self, recorder, store):
        entry = recorder.on_clipboard_change(ClipboardSnapshot(text="hello"))

        assert store.load() == [entry]


class TestChangeDetection:
    def test_same_payload_is_processed_once(self, recorder, store):
        snapshot = ClipboardSnapshot(text="hello")

        assert recorder.on_clipboard_change(snapshot) is not None
        assert recorder.on_clipboard_change(ClipboardSnapshot(text="hello")) is None
        assert len(store.load()) == 1

    def test_new_payload_is_recorded(self, recorder, store):
        recorder.on_clipboard_change(ClipboardSnapshot(text="one"))
        recorder.on_clipboard_change(ClipboardSnapshot(text="two"))

        assert [entry.content for entry in store.load()] == ["two", "one"]

    def test_prime_skips_existing_clipboard(self, recorder, source, store):
        source.snapshot = ClipboardSnapshot(text="already there")

        recorder.prime()

        assert recorder.on_clipboard_change() is None
        assert store.load() == []

    def test_reads_source_when_no_snapshot_given(self, recorder, source):
        source.snapshot = ClipboardSnapshot(text="from source")

        assert recorder.on_clipboard_change().content == "from source"

    def test_eviction_through_recorder(self, store, source):
        ticks = iter(range(10))
        recorder = ClipboardRecorder(
            store,
            source,
            clock=lambda: datetime.fromtimestamp(1_700_000_000 + next(ticks), tz=timezone.utc),
        )
        entries = [
            recorder.on_clipboard_change(ClipboardSnapshot(text=f"text {index}"))
            for index in range(5)
        ]

        assert [entry.content for entry in store.load()] == ["text 4", "text 3", "text 2"]
        for entry in entries[:2]:
            assert not Path(entry.sidecar_path).exists()
        for entry in entries[2:]:
            assert Path(entry.sidecar_path).exists()


class TestFailureHandling:
    def test_log_write_failure_drops_change(self, recorder, store):
        with patch.object(store, "append", side_effect=OSError("disk full")):
            assert recorder.on_clipboard_change(ClipboardSnapshot(text="lost")) is None

        assert store.load() == []
        assert [p for p in store.data_dir.iterdir()] == []

    def test_sidecar_write_failure_drops_change(self, recorder, store):
        with patch.object(Path, "write_bytes", side_effect=OSError("read-only")):
            assert recorder.on_clipboard_change(ClipboardSnapshot(image=PNG_BYTES)) is None

        assert store.load() == []

    def test_failed_change_is_not_retried_immediately(self, recorder, store):
        snapshot = ClipboardSnapshot(text="once")
        with patch.object(store, "append", side_effect=OSError("disk full")):
            recorder.on_clipboard_change(snapshot)

        assert recorder.on_clipboard_change(snapshot) is None


class TestPolling:
    @pytest.mark.asyncio
    async def test_run_records_and_stops(self, recorder, source, store):
        source.snapshot = ClipboardSnapshot(text="polled")

        task = asyncio.create_task(recorder.run())
        await asyncio.sleep(0.05)
        recorder.stop()
        await asyncio.wait_for(task, timeout=1)

        assert [entry.content for entry in store.load()] == ["polled"]

    @pytest.mark.asyncio
    async def test_run_survives_source_errors(self, store):
        source = Mock(spec=ClipboardSource)
        source.read.side_effect = RuntimeError("pasteboard gone")
        recorder = ClipboardRecorder(store, source, poll_interval=0.01)

        task = asyncio.create_task(recorder.run())
        await asyncio.sleep(0.05)
        recorder.stop()
        await asyncio.wait_for(task, timeout=1)

        assert source.read.call_count > 1

    def test_clear_history(self, recorder, store):
        recorder.on_clipboard_change(ClipboardSnapshot(text="hello"))

        assert recorder.clear_history() == 2
        assert store.load() == []
        assert recorder.last_fingerprint is None


class TestSystemClipboard:
    def test_reads_image(self):
        buffer = io.BytesIO()
        Image.new("RGB", (2, 2), "red").save(buffer, format="PNG")
        image = Image.open(io.BytesIO(buffer.getvalue()))

        with patch("this_tool.core.recorder.ImageGrab.grabclipboard", return_value=image):
            snapshot = SystemClipboard().read()

        assert sniff_image_extension(snapshot.image) == "png"
        assert snapshot.text is None

    def test_reads_file_list(self):
        with patch(
            "this_tool.core.recorder.ImageGrab.grabclipboard",
            return_value=["/tmp/a.txt", "/tmp/b.png"],
        ):
            snapshot = SystemClipboard().read()

        assert snapshot.files == ["/tmp/a.txt", "/tmp/b.png"]

    def test_reads_text(self):
        with patch(
            "this_tool.core.recorder.ImageGrab.grabclipboard", return_value=None
        ), patch("this_tool.core.recorder.pyperclip.paste", return_value="copied"):
            snapshot = SystemClipboard().read()

        assert snapshot.text == "copied"
        assert snapshot.image is None

    def test_unavailable_clipboard_is_empty(self):
        with patch(
            "this_tool.core.recorder.ImageGrab.grabclipboard",
            side_effect=NotImplementedError("no clipboard"),
        ), patch(
            "this_tool.core.recorder.pyperclip.paste",
            side_effect=pyperclip.PyperclipException("no mechanism"),
        ):
            snapshot = SystemClipboard().read()

        assert snapshot.is_empty()
