"""Open documents and workspace folders, as supplied by the editor."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import unquote, urlparse

from gqlens.extract.languages import LanguageKind, classify_language, language_from_id


@dataclass
class TextDocument:
    uri: str
    text: str
    language: LanguageKind
    version: int = 0

    @property
    def path(self) -> Path | None:
        """Filesystem path for ``file://`` documents."""
        parsed = urlparse(self.uri)
        if parsed.scheme != "file":
            return None
        return Path(unquote(parsed.path))

    @classmethod
    def from_path(cls, path: str | Path) -> TextDocument:
        path = Path(path).resolve()
        return cls(
            uri=path.as_uri(),
            text=path.read_text(encoding="utf-8", errors="replace"),
            language=classify_language(path),
        )


class Workspace:
    """Workspace folders in declared order plus the open documents."""

    def __init__(self, folders: Sequence[str | Path]):
        self.folders = [Path(f).resolve() for f in folders]
        self._documents: dict[str, TextDocument] = {}

    def __contains__(self, uri: str) -> bool:
        return uri in self._documents

    def open(self, path: str | Path) -> TextDocument:
        """Open (or re-read) a file from disk."""
        document = TextDocument.from_path(path)
        previous = self._documents.get(document.uri)
        if previous is not None:
            document.version = previous.version + 1
        self._documents[document.uri] = document
        return document

    def open_text(self, uri: str, text: str, language_id: str | None = None) -> TextDocument:
        """Open a document whose text is supplied by the editor."""
        if language_id is not None:
            language = language_from_id(language_id)
        else:
            language = classify_language(urlparse(uri).path)
        document = TextDocument(uri=uri, text=text, language=language)
        self._documents[uri] = document
        return document

    def change(self, uri: str, text: str) -> TextDocument:
        document = self.get(uri)
        document.text = text
        document.version += 1
        return document

    def close(self, uri: str) -> None:
        self._documents.pop(uri, None)

    def get(self, uri: str) -> TextDocument:
        try:
            return self._documents[uri]
        except KeyError:
            raise KeyError(f"Document not open: {uri}") from None
