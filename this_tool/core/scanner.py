"""Recently touched file discovery with an indexed-search fast path."""

import logging
import os
import subprocess
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from this_tool.core.filters import TypeFilter, matches, normalize_filter, type_filter_for
from this_tool.models.schemas import Config, RecentFile

logger = logging.getLogger(__name__)

MDFIND_PATH = "/usr/bin/mdfind"
SPOTLIGHT_TIMEOUT = 2.0


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ScanStrategy(ABC):
    """Finds candidate paths under ``roots`` touched since ``since``."""

    name = "base"

    @abstractmethod
    def scan(
        self, roots: Sequence[Path], since: datetime, type_filter: Optional[TypeFilter]
    ) -> List[str]:
        ...


class SpotlightStrategy(ScanStrategy):
    """Query the macOS Spotlight index through ``mdfind``."""

    name = "spotlight"

    def __init__(self, executable: Optional[str] = None, timeout: float = SPOTLIGHT_TIMEOUT):
        self.executable = executable or MDFIND_PATH
        self.timeout = timeout

    def build_query(self, since: datetime, type_filter: Optional[TypeFilter]) -> str:
        stamp = since.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        query = f"kMDItemFSContentChangeDate >= $time.iso({stamp})"
        if type_filter is not None and type_filter.extensions:
            names = " || ".join(
                f"kMDItemDisplayName == '*{ext}'c" for ext in type_filter.extensions
            )
            query += f" && ({names})"
        return query

    def build_command(
        self, roots: Sequence[Path], since: datetime, type_filter: Optional[TypeFilter]
    ) -> List[str]:
        command = [self.executable]
        for root in roots:
            command.extend(["-onlyin", str(root)])
        command.append(self.build_query(since, type_filter))
        return command

    def scan(
        self, roots: Sequence[Path], since: datetime, type_filter: Optional[TypeFilter]
    ) -> List[str]:
        if not roots:
            return []

        command = self.build_command(roots, since, type_filter)
        try:
            # subprocess.run kills the child when the timeout expires
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired:
            logger.warning("mdfind timed out after %.1fs", self.timeout)
            return []
        except OSError as e:
            logger.debug("mdfind unavailable: %s", e)
            return []

        if result.returncode != 0:
            logger.debug("mdfind exited with %s: %s", result.returncode, result.stderr.strip())
            return []

        return [line for line in result.stdout.splitlines() if line.strip()]


class WalkStrategy(ScanStrategy):
    """Enumerate every file under the roots and check its timestamps."""

    name = "walk"

    def scan(
        self, roots: Sequence[Path], since: datetime, type_filter: Optional[TypeFilter]
    ) -> List[str]:
        threshold = since.timestamp()
        found = []
        for root in roots:
            for dirpath, dirnames, filenames in os.walk(root):
                dirnames[:] = [name for name in dirnames if not name.startswith(".")]
                for filename in filenames:
                    if filename.startswith("."):
                        continue
                    path = os.path.join(dirpath, filename)
                    try:
                        stat = os.stat(path)
                    except OSError:
                        continue
                    if max(stat.st_mtime, stat.st_atime) >= threshold:
                        found.append(path)
        return found


class DirectoryScanner:
    """Recent files under the configured directories, newest first."""

    def __init__(
        self,
        config: Config,
        strategies: Optional[Sequence[ScanStrategy]] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.config = config
        self.strategies = list(strategies) if strategies is not None else [
            SpotlightStrategy(),
            WalkStrategy(),
        ]
        self.clock = clock

    def existing_roots(self) -> List[Path]:
        return [path for path in self.config.expanded_directories() if path.is_dir()]

    def recent_files(self, filter_text: str = "") -> List[RecentFile]:
        filter_text = normalize_filter(filter_text)
        roots = self.existing_roots()
        if not roots:
            return []

        since = self.clock() - self.config.freshness_window
        type_filter = type_filter_for(filter_text)

        paths: List[str] = []
        for strategy in self.strategies:
            paths = strategy.scan(roots, since, type_filter)
            if paths:
                logger.debug("%s strategy found %d paths", strategy.name, len(paths))
                break

        threshold = since.timestamp()
        results = []
        for path in dict.fromkeys(paths):
            try:
                stat = os.stat(path)
            except OSError:
                continue
            if not os.path.isfile(path):
                continue
            if max(stat.st_mtime, stat.st_atime) < threshold:
                continue
            if not matches(path, filter_text):
                continue
            results.append(
                RecentFile(
                    path=path,
                    modified_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
                )
            )

        results.sort(key=lambda item: (-item.modified_at.timestamp(), item.path))
        return results
