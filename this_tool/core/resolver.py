"""Merge clipboard history and recent files into one ranked answer."""

import logging
from typing import List

from this_tool.core.filters import matches, normalize_filter
from this_tool.core.scanner import DirectoryScanner
from this_tool.core.storage import HistoryStore
from this_tool.models.schemas import ClipboardCandidate, FileCandidate, RecentItem

logger = logging.getLogger(__name__)

DEFAULT_LIST_SIZE = 10


class ResolutionError(LookupError):
    """Nothing matched the query."""


class NoContentFound(ResolutionError):
    def __init__(self):
        super().__init__("No clipboard history or recent files found")


class NoRecentFiles(ResolutionError):
    def __init__(self):
        super().__init__("No recent files found")


class NoMatchingContent(ResolutionError):
    def __init__(self, filter_text: str):
        self.filter_text = filter_text
        super().__init__(f"No content found matching filter: {filter_text}")


class RecencyResolver:
    """Answers "what did I just copy or touch".

    Candidates from both sources are ranked by timestamp, newest first. A
    clipboard entry beats a file with the same timestamp.
    """

    def __init__(self, store: HistoryStore, scanner: DirectoryScanner):
        self.store = store
        self.scanner = scanner

    def clipboard_candidates(self, filter_text: str = "") -> List[ClipboardCandidate]:
        return [
            ClipboardCandidate(entry=entry)
            for entry in self.store.load()
            if matches(entry, filter_text)
        ]

    def file_candidates(self, filter_text: str = "") -> List[FileCandidate]:
        return [FileCandidate(file=item) for item in self.scanner.recent_files(filter_text)]

    def ranked(self, filter_text: str = "") -> List[RecentItem]:
        filter_text = normalize_filter(filter_text)
        items: List[RecentItem] = []
        items.extend(self.clipboard_candidates(filter_text))
        items.extend(self.file_candidates(filter_text))
        # sort is stable: clipboard entries stay ahead on equal timestamps
        items.sort(key=lambda item: item.timestamp, reverse=True)
        return items

    def resolve_default(self) -> RecentItem:
        items = self.ranked()
        if not items:
            raise NoContentFound()
        return items[0]

    def resolve_filtered(self, filter_text: str) -> RecentItem:
        filter_text = normalize_filter(filter_text)
        if not filter_text:
            return self.resolve_default()

        items = self.ranked(filter_text)
        if not items:
            raise NoMatchingContent(filter_text)
        return items[0]

    def resolve_recent_only(self, filter_text: str = "") -> FileCandidate:
        files = self.file_candidates(normalize_filter(filter_text))
        if not files:
            raise NoRecentFiles()
        return files[0]

    def list_top_n(self, filter_text: str = "", n: int = DEFAULT_LIST_SIZE) -> List[RecentItem]:
        if n <= 0:
            return []
        return self.ranked(filter_text)[:n]

    def resolve_nth(self, k: int, filter_text: str = "") -> RecentItem:
        """Return the k-th ranked candidate, counting from 1."""
        if k < 1:
            raise ValueError("rank must be at least 1")

        filter_text = normalize_filter(filter_text)
        items = self.ranked(filter_text)
        if len(items) < k:
            logger.debug("Only %d candidates, rank %d requested", len(items), k)
            if filter_text:
                raise NoMatchingContent(filter_text)
            raise NoContentFound()
        return items[k - 1]
