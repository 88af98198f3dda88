"""
Input discovery and output workspace layout.

Discovery is non-recursive and deterministic: matching files are returned
sorted by name with duplicates removed. Patterns match case-insensitively,
so "*.jpg" also picks up "IMG_0001.JPG".
"""

import fnmatch
import os
from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Sequence


DEFAULT_PATTERNS: Sequence[str] = (
    "*.jpg",
    "*.jpeg",
    "*.cr2",
    "*.cr3",
    "*.nef",
    "*.arw",
    "*.dng",
    "*.raf",
)

FILE_CATEGORIES: Dict[str, str] = {
    ".jpg": "JPEG",
    ".jpeg": "JPEG",
    ".cr2": "Canon RAW",
    ".cr3": "Canon RAW",
    ".nef": "Nikon RAW",
    ".arw": "Sony RAW",
    ".dng": "DNG",
    ".raf": "Fujifilm RAW",
}


def normalize_pattern(pattern: str) -> str:
    """Accept 'jpg', '.jpg' or '*.jpg'."""
    pattern = pattern.strip().lower()
    if any(ch in pattern for ch in "*?["):
        return pattern
    return "*." + pattern.lstrip(".")


def discover_images(directory: str, patterns: Optional[Sequence[str]] = None) -> List[str]:
    """
    List files in a directory matching any pattern.

    Args:
        directory: Directory to scan (not recursive)
        patterns: Glob patterns or bare extensions; DEFAULT_PATTERNS if empty

    Returns:
        Sorted absolute paths
    """
    root = Path(directory)
    if not root.is_dir():
        return []
    wanted = [normalize_pattern(p) for p in (patterns or DEFAULT_PATTERNS)]
    found = set()
    for entry in root.iterdir():
        if entry.name.startswith(".") or not entry.is_file():
            continue
        name = entry.name.lower()
        if any(fnmatch.fnmatch(name, pattern) for pattern in wanted):
            found.add(str(entry.resolve()))
    return sorted(found)


def categorize_files(paths: Sequence[str]) -> Dict[str, int]:
    """Count files per human-readable type."""
    counts = Counter(
        FILE_CATEGORIES.get(os.path.splitext(p)[1].lower(), "Other") for p in paths
    )
    return dict(sorted(counts.items()))


def default_project_name(directory: str, now: Optional[datetime] = None) -> str:
    stamp = (now or datetime.now()).strftime("%Y%m%d-%H%M%S")
    return f"{Path(directory).resolve().name}-{stamp}"


@dataclass(frozen=True)
class Workspace:
    """Output directory layout for one run."""

    root: str

    @property
    def scripts(self) -> str:
        return os.path.join(self.root, "scripts")

    @property
    def flambient(self) -> str:
        return os.path.join(self.root, "flambient")

    @property
    def metadata(self) -> str:
        return os.path.join(self.root, "metadata")

    @property
    def edited(self) -> str:
        return os.path.join(self.root, "edited")

    def prepare(self) -> "Workspace":
        for path in (self.scripts, self.flambient, self.metadata):
            Path(path).mkdir(parents=True, exist_ok=True)
        return self
