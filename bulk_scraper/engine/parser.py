"""Title and visible-text extraction from raw HTML bytes."""

from __future__ import annotations

from typing import NamedTuple

from selectolax.parser import HTMLParser, Node

from ..config import ExtractConfig


class ExtractError(ValueError):
    """Raised when a document cannot be decoded or parsed."""


class ExtractedPage(NamedTuple):
    title: str | None
    text: str


class Extractor:
    """Turn raw page bytes into ``(title, text)``.

    The title is read before non-content subtrees are stripped, so ``text``
    never repeats it. Text nodes are joined with the configured separator and
    runs of whitespace are collapsed.
    """

    def __init__(self, config: ExtractConfig | None = None) -> None:
        self.config = config or ExtractConfig()

    def __call__(self, content: bytes | str) -> ExtractedPage:
        return self.extract(content)

    def extract(self, content: bytes | str) -> ExtractedPage:
        tree = self._parse(content)
        title = self._title(tree)
        if self.config.strip_tags:
            tree.strip_tags(self.config.strip_tags)
        root = tree.body or tree.root
        text = self._text(root) if root is not None else ""
        return ExtractedPage(title=title, text=text)

    # ------------------------------------------------------------------
    def _parse(self, content: bytes | str) -> HTMLParser:
        if not isinstance(content, (bytes, bytearray, str)):
            raise ExtractError(f"Unsupported content type: {type(content).__name__}")
        if not content or not content.strip():
            raise ExtractError("Empty document")
        try:
            if isinstance(content, str):
                return HTMLParser(content)
            return HTMLParser(
                bytes(content),
                detect_encoding=True,
                use_meta_tags=True,
                decode_errors=self.config.decode_errors,
            )
        except (UnicodeError, LookupError) as exc:
            raise ExtractError(f"Could not decode document: {exc}") from exc
        except Exception as exc:  # noqa: BLE001
            raise ExtractError(f"Could not parse document: {exc}") from exc

    def _title(self, tree: HTMLParser) -> str | None:
        node = tree.css_first("title")
        if node is None:
            return None
        return self._collapse(node.text(deep=True, separator=" ", strip=True), " ")

    def _text(self, root: Node) -> str:
        separator = self.config.separator
        raw = root.text(deep=True, separator=separator, strip=True)
        return self._collapse(raw, separator)

    @staticmethod
    def _collapse(text: str, separator: str) -> str:
        if separator == " ":
            return " ".join(text.split())
        parts = (part.strip() for part in text.split(separator))
        return separator.join(part for part in parts if part)


__all__ = ["ExtractError", "ExtractedPage", "Extractor"]
