"""Thin adapter around EbookLib and BeautifulSoup.

Keeps the rest of the package independent of the EPUB library API:
``parse_epub_file`` returns plain sections plus a Dublin Core ``info`` dict,
``extract_text`` turns sections into plain text and ``count_words`` applies
the word rule used everywhere in reports.
"""

from __future__ import annotations

import logging
import re
import warnings
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import ebooklib
from bs4 import BeautifulSoup
from ebooklib import epub

from epub_counter.errors import EpubParseError
from epub_counter.models.results import EpubMetadata

logger = logging.getLogger(__name__)

UNKNOWN_TITLE = "Unknown Title"
UNKNOWN_AUTHOR = "Unknown Author"

_DC_FIELDS = ("title", "creator", "language", "publisher")

_TAG_RE = re.compile(r"<[^>]*>")
_WHITESPACE_RE = re.compile(r"\s+")
# Latin letters, digits or CJK unified ideographs (U+4E00-U+9FFF).
_WORD_CHAR_RE = re.compile(r"[a-zA-Z0-9\u4e00-\u9fff]")


@dataclass
class EpubSection:
    id: str
    content: bytes

    def to_text(self) -> str:
        soup = BeautifulSoup(self.content, "html.parser")
        for tag in soup(["head", "script", "style"]):
            tag.decompose()
        return soup.get_text("\n", strip=True)


@dataclass
class EpubParseResult:
    sections: List[EpubSection] = field(default_factory=list)
    info: Dict[str, Optional[str]] = field(default_factory=dict)


def _first_dc_value(book: epub.EpubBook, name: str) -> Optional[str]:
    values = book.get_metadata("DC", name)
    for value, _attrs in values or []:
        if value and str(value).strip():
            return str(value).strip()
    return None


def _content_documents(book: epub.EpubBook) -> List[Any]:
    """Content documents in reading (spine) order, navigation excluded."""
    items = []
    for idref, *_linear in book.spine:
        item = book.get_item_with_id(idref)
        if item is not None and item.get_type() == ebooklib.ITEM_DOCUMENT and item.is_chapter():
            items.append(item)
    if items:
        return items
    # No usable spine: fall back to manifest order.
    return [item for item in book.get_items_of_type(ebooklib.ITEM_DOCUMENT) if item.is_chapter()]


def parse_epub_file(file_path: str) -> EpubParseResult:
    """Parse *file_path* and return its sections and metadata.

    Raises:
        FileNotFoundError / PermissionError: unchanged, so they keep their
            filesystem classification.
        EpubParseError: for anything else the EPUB library rejects.
    """
    try:
        with warnings.catch_warnings():
            # EbookLib emits future/user warnings about its own defaults.
            warnings.simplefilter("ignore")
            book = epub.read_epub(file_path, options={"ignore_ncx": True})
        sections = [
            EpubSection(id=item.get_id(), content=item.get_content())
            for item in _content_documents(book)
        ]
        info = {name: _first_dc_value(book, name) for name in _DC_FIELDS}
    except (FileNotFoundError, PermissionError):
        raise
    except Exception as exc:
        raise EpubParseError(f"Failed to parse EPUB file '{file_path}': {exc}") from exc

    logger.debug("Parsed %s: %d sections", file_path, len(sections))
    return EpubParseResult(sections=sections, info=info)


def extract_metadata(info: Optional[Dict[str, Optional[str]]]) -> EpubMetadata:
    """Coalesce Dublin Core fields, defaulting title and author."""
    if not info:
        return EpubMetadata(title=UNKNOWN_TITLE, author=UNKNOWN_AUTHOR)
    return EpubMetadata(
        title=info.get("title") or UNKNOWN_TITLE,
        author=info.get("author") or info.get("creator") or UNKNOWN_AUTHOR,
        language=info.get("language") or None,
        publisher=info.get("publisher") or None,
    )


def extract_text(sections: Optional[List[EpubSection]]) -> str:
    """Concatenate the plain text of every section, one newline between sections."""
    if not sections:
        return ""
    parts = [text for text in (section.to_text() for section in sections) if text]
    return "\n".join(parts)


def count_words(text: str) -> int:
    """Count whitespace-separated tokens that contain a word character.

    HTML tags are replaced by spaces first.  A CJK run without spaces is one
    token; pure punctuation counts as nothing.
    """
    if not text:
        return 0
    plain = _TAG_RE.sub(" ", text)
    return sum(1 for word in _WHITESPACE_RE.split(plain) if word and _WORD_CHAR_RE.search(word))
