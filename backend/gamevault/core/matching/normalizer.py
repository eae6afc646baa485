"""Folder name normalization.

Turns a raw game folder name such as ``Cyberpunk 2077 [FitGirl Repack]`` into
a candidate search title (``Cyberpunk 2077``). Rules run in a fixed order and
the whole rule set is repeated until the title stops changing, which makes
``normalize`` idempotent.
"""

from __future__ import annotations

import re

# Bracketed tags that carry release-group, repack or quality markers
_RELEASE_TAG = re.compile(
    r"\[[^\]]*?(?:FitGirl|DODI|ElAmigos|Repack|Monkey|KaOs|xatab|GOG|CODEX|PLAZA|"
    r"SKIDROW|EMPRESS|TENOKE|RUNE|YTS|YIFY|RARBG|BluRay|WEB-?DL|720p|1080p|2160p|4K)"
    r"[^\]]*\]",
    re.IGNORECASE,
)

# "Portable by Ksenia", "Repack by xatab"
_PACKAGER_CREDIT = re.compile(r"\b(?:Portable|Repack|Rip)\s+by\s+[\w.\-]+", re.IGNORECASE)
# "Some Game - by Someone" at the very end
_TRAILING_CREDIT = re.compile(r"\s+-\s+by\s+\w+$", re.IGNORECASE)

_VERSION = re.compile(r"\bv\d+(?:\.\d+)*\w*", re.IGNORECASE)
# Scene group appended with a dash: "Game.Name.v1.2-CODEX"
_GROUP_SUFFIX = re.compile(r"\s*-(?:GOG|CODEX|PLAZA|SKIDROW|EMPRESS|TENOKE|RUNE)$")

_EDITION_SUFFIX = re.compile(
    r"[\s\-:]+(?:EE|NG|MCE|CGC|GOTY(?:\s+Edition)?|Complete\s+Edition|Dilogy)$",
    re.IGNORECASE,
)

_PARENTHETICAL = re.compile(r"\s*\([^()]*\)")

_WORD_SEPARATORS = re.compile(r"[._]+")
_WHITESPACE = re.compile(r"\s+")
_EDGE_SEPARATORS = re.compile(r"^[\s\-_:]+|[\s\-_:]+$")


def _apply_rules(title: str) -> str:
    # Dots and underscores only count as separators in scene-style names
    # without spaces, so "S.T.A.L.K.E.R. 2" keeps its dots. Decided before
    # any rule runs because removals leave spaces behind.
    scene_style = not _WHITESPACE.search(title.strip())

    title = _RELEASE_TAG.sub(" ", title)
    title = _PACKAGER_CREDIT.sub(" ", title)
    title = _TRAILING_CREDIT.sub("", title)
    title = _VERSION.sub(" ", title)
    title = _GROUP_SUFFIX.sub("", title)
    title = _EDITION_SUFFIX.sub("", title.rstrip())
    title = _PARENTHETICAL.sub(" ", title)

    if scene_style:
        title = _WORD_SEPARATORS.sub(" ", title)

    title = _WHITESPACE.sub(" ", title)
    return _EDGE_SEPARATORS.sub("", title)


def normalize(raw_folder_name: str) -> str:
    """Strip packaging noise from a folder name.

    Never raises. When every character is stripped away the trimmed input is
    returned instead, so a folder never ends up without a title.

    >>> normalize("Cyberpunk 2077 [FitGirl Repack]")
    'Cyberpunk 2077'
    """
    original = raw_folder_name.strip()
    title = original

    # Every rule only removes text or turns separators into spaces, so this
    # reaches a fixed point.
    while True:
        cleaned = _apply_rules(title)
        if cleaned == title:
            break
        title = cleaned

    return title or original
