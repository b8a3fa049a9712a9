"""Map file paths and editor language ids to the scanner that handles them."""

from __future__ import annotations

from enum import Enum
from pathlib import PurePath


class LanguageKind(str, Enum):
    JAVASCRIPT = "javascript"
    GRAPHQL = "graphql"
    UNKNOWN = "unknown"


_SUFFIXES: dict[str, LanguageKind] = {
    ".js": LanguageKind.JAVASCRIPT,
    ".jsx": LanguageKind.JAVASCRIPT,
    ".mjs": LanguageKind.JAVASCRIPT,
    ".cjs": LanguageKind.JAVASCRIPT,
    ".ts": LanguageKind.JAVASCRIPT,
    ".tsx": LanguageKind.JAVASCRIPT,
    ".mts": LanguageKind.JAVASCRIPT,
    ".cts": LanguageKind.JAVASCRIPT,
    ".vue": LanguageKind.JAVASCRIPT,
    ".svelte": LanguageKind.JAVASCRIPT,
    ".graphql": LanguageKind.GRAPHQL,
    ".gql": LanguageKind.GRAPHQL,
    ".graphqls": LanguageKind.GRAPHQL,
    ".prisma": LanguageKind.GRAPHQL,
}

# Editor language identifiers the annotation provider is registered for
_LANGUAGE_IDS: dict[str, LanguageKind] = {
    "javascript": LanguageKind.JAVASCRIPT,
    "javascriptreact": LanguageKind.JAVASCRIPT,
    "typescript": LanguageKind.JAVASCRIPT,
    "typescriptreact": LanguageKind.JAVASCRIPT,
    "graphql": LanguageKind.GRAPHQL,
}


def classify_language(path: str | PurePath) -> LanguageKind:
    """Classify a file by its suffix (case-insensitive)."""
    return _SUFFIXES.get(PurePath(path).suffix.lower(), LanguageKind.UNKNOWN)


def language_from_id(language_id: str) -> LanguageKind:
    """Classify an editor language identifier such as ``typescriptreact``."""
    return _LANGUAGE_IDS.get(language_id, LanguageKind.UNKNOWN)
