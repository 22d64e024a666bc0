"""Shared fixtures: tiny EPUB builder, offline tokenizers and a fake queue."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

import pytest
from ebooklib import epub

from epub_counter.errors import ResourceLimitError
from epub_counter.models.results import EpubRecord, FailedFile, ProcessingResult, TokenizerResult
from epub_counter.services.tokenizers import Tokenizer
from epub_counter.workers.job_queue import JobQueue


class WordTokenizer(Tokenizer):
    """Counts whitespace-separated words; stands in for a real backend."""

    def __init__(self, name: str = "fake") -> None:
        self.name = name
        self.calls: List[str] = []
        self.disposed = False

    async def count_tokens(self, text: str) -> int:
        self.calls.append(text)
        return len(text.split())

    def dispose(self) -> None:
        self.disposed = True


class BrokenTokenizer(Tokenizer):
    def __init__(self, name: str = "broken") -> None:
        self.name = name

    async def count_tokens(self, text: str) -> int:
        raise RuntimeError("backend unavailable")


def word_tokenizer_factory(names: Sequence[str]) -> List[Tokenizer]:
    return [WordTokenizer(name) for name in names]


def build_epub(
    path: Path,
    title: Optional[str] = "Test Book",
    author: Optional[str] = "Jane Doe",
    chapters: Sequence[str] = ("<h1>Intro</h1><p>Hello world from the test.</p>",),
    language: str = "en",
    publisher: Optional[str] = None,
) -> Path:
    book = epub.EpubBook()
    book.set_identifier(f"id-{path.stem}")
    if title:
        book.set_title(title)
    book.set_language(language)
    if author:
        book.add_author(author)
    if publisher:
        book.add_metadata("DC", "publisher", publisher)

    items = []
    for index, body in enumerate(chapters, start=1):
        chapter = epub.EpubHtml(title=f"Chapter {index}", file_name=f"chap_{index}.xhtml", lang=language)
        chapter.content = f"<html><body>{body}</body></html>"
        book.add_item(chapter)
        items.append(chapter)

    book.toc = tuple(items)
    book.add_item(epub.EpubNcx())
    book.add_item(epub.EpubNav())
    book.spine = ["nav", *items]
    epub.write_epub(str(path), book)
    return path


@pytest.fixture
def make_epub(tmp_path: Path) -> Callable[..., Path]:
    def _make(name: str = "book.epub", **kwargs) -> Path:
        return build_epub(tmp_path / name, **kwargs)

    return _make


@pytest.fixture
def corrupt_epub(tmp_path: Path) -> Path:
    path = tmp_path / "corrupt.epub"
    path.write_bytes(b"this is definitely not a zip archive")
    return path


class FakeProcessor:
    """Stand-in for ``process_file_with_errors`` with an optional gate.

    With ``gated=True`` every file waits on :attr:`release`, which lets a test
    observe the queue while a job is mid-file.
    """

    def __init__(self, failing=(), fatal=(), gated: bool = False) -> None:
        self.calls: List[str] = []
        self.failing = set(failing)
        self.fatal = set(fatal)
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        if not gated:
            self.release.set()

    async def __call__(self, file_path, tokenizers, max_mb, output_dir, verbose=False) -> ProcessingResult:
        self.calls.append(file_path)
        self.started.set()
        await self.release.wait()
        if file_path in self.fatal:
            raise ResourceLimitError(f"Extracted text of '{file_path}' is too large")

        result = ProcessingResult(total=1)
        if file_path in self.failing:
            result.failed.append(FailedFile(file=file_path, error="boom"))
            return result
        filename = os.path.basename(file_path)
        result.successful.append(
            EpubRecord(filename=filename, file_path=file_path, word_count=10, title="T", author="A")
        )
        result.token_counts[file_path] = [TokenizerResult(name=t.name, count=5) for t in tokenizers]
        return result


def make_queue(tmp_path: Path, files: Dict[str, List[str]], processor, **kwargs) -> JobQueue:
    """JobQueue whose discovery returns ``files[path]`` and that never touches real EPUBs."""

    def discover(path, recursive=False):
        return list(files.get(path, []))

    kwargs.setdefault("tokenizer_factory", word_tokenizer_factory)
    kwargs.setdefault("write_results", False)
    return JobQueue(output_dir=tmp_path, discover_files=discover, process_file=processor, **kwargs)
