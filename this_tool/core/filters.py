"""Filter predicate shared by clipboard entries and scanned files."""

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Tuple, Union

from this_tool.models.schemas import ClipboardEntry, ClipKind

IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".gif")


@dataclass(frozen=True)
class TypeFilter:
    """A recognized type keyword and what it selects."""

    keywords: Tuple[str, ...]
    kind: Optional[ClipKind] = None
    extensions: Tuple[str, ...] = ()
    any_path: bool = False

    def matches_extension(self, path: str) -> bool:
        return path.lower().endswith(self.extensions) if self.extensions else False


# Checked in order, first match wins
TYPE_FILTERS = (
    TypeFilter(("image", "img"), kind=ClipKind.IMAGE, extensions=IMAGE_EXTENSIONS),
    TypeFilter(("text", "txt"), kind=ClipKind.TEXT, extensions=(".txt",)),
    TypeFilter(("file",), kind=ClipKind.FILE, any_path=True),
    TypeFilter(("png",), extensions=(".png",)),
    TypeFilter(("jpg", "jpeg"), extensions=(".jpg", ".jpeg")),
    TypeFilter(("pdf",), extensions=(".pdf",)),
)

Candidate = Union[ClipboardEntry, str, Path]


def normalize_filter(value: Union[str, Iterable[str], None]) -> str:
    """Join filter tokens into one lowercase filter string."""
    if value is None:
        return ""
    if not isinstance(value, str):
        value = " ".join(value)
    return " ".join(value.split()).lower()


def type_filter_for(filter_text: str) -> Optional[TypeFilter]:
    filter_text = normalize_filter(filter_text)
    for type_filter in TYPE_FILTERS:
        if any(keyword in filter_text for keyword in type_filter.keywords):
            return type_filter
    return None


def matches(candidate: Candidate, filter_text: str) -> bool:
    """Decide whether a clipboard entry or file path passes ``filter_text``."""
    filter_text = normalize_filter(filter_text)
    if not filter_text:
        return True

    type_filter = type_filter_for(filter_text)
    if isinstance(candidate, ClipboardEntry):
        return _matches_entry(candidate, filter_text, type_filter)
    return _matches_path(str(candidate), filter_text, type_filter)


def _matches_entry(
    entry: ClipboardEntry, filter_text: str, type_filter: Optional[TypeFilter]
) -> bool:
    if type_filter is not None:
        if type_filter.kind is not None:
            return entry.kind is type_filter.kind
        paths = entry.listed_paths()
        if entry.sidecar_path:
            paths.append(entry.sidecar_path)
        return any(type_filter.matches_extension(path) for path in paths)

    if filter_text in entry.content.lower():
        return True
    return bool(entry.sidecar_path) and filter_text in entry.sidecar_path.lower()


def _matches_path(
    path: str, filter_text: str, type_filter: Optional[TypeFilter]
) -> bool:
    if type_filter is not None:
        return type_filter.any_path or type_filter.matches_extension(path)
    return filter_text in path.lower()
