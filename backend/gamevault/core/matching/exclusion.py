"""Detection of folders that hold non-game content (movies, TV, archives)."""

from __future__ import annotations

import re

# Application working directories and other reserved names (compared casefolded)
RESERVED_FOLDER_NAMES = frozenset({"gamevault", "game-library-app", "adult"})

_EXCLUSION_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        # Resolution markers; a bare "4K" is too common in game titles
        r"\b(?:480p|720p|1080p|2160p)\b",
        r"\[4K\]",
        # Rip sources
        r"\b(?:Blu-?Ray|WEB-?DL|WEBRip|HDRip|BRRip|DVDRip|HDTV)\b",
        # Scene video tags
        r"\b(?:YTS|YIFY|RARBG|x264|x265|HEVC)\b",
        # Video files and archives
        r"\.(?:mkv|avi|mp4|m4v|wmv|mov|rar|zip|7z)$",
        # TV episode numbering: S01E05 anywhere, 1x05 only between scene dots
        r"\bS\d{1,2}E\d{1,3}\b",
        r"(?:^|\.)\d{1,2}x\d{2}(?:\.|$)",
    )
)


def is_excluded(folder_name: str) -> bool:
    """Return True when a raw folder name should be skipped entirely.

    Checked against the raw name, before normalization.
    """
    name = folder_name.strip()
    if not name or name.startswith("."):
        return True
    if name.casefold() in RESERVED_FOLDER_NAMES:
        return True
    return any(pattern.search(name) for pattern in _EXCLUSION_PATTERNS)
