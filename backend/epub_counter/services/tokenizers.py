"""Token counting backends behind a single asynchronous interface.

Three execution styles live behind :class:`Tokenizer`:

* ``gpt4``: tiktoken ``cl100k_base``; fast, synchronous, with a lazily created
  encoder cached on the instance.
* ``claude``: the Hugging Face ``Xenova/claude-tokenizer`` definition, loaded
  once per instance and encoded in a worker thread.  It approximates Claude 3+
  counts; the exact tokenizer is not public.
* ``hf:<model>``: any Hub model that ships a ``tokenizer.json``.  The first
  call downloads the definition over HTTP, every call is asynchronous.

Callers always ``await count_tokens`` and never branch on the backend type.
Instances cache their encoder; reuse one instance across files of a batch,
and call :meth:`Tokenizer.dispose` to release it.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Iterable, List, Optional

import httpx
import tiktoken
from tokenizers import Tokenizer as HFTokenizerModel

from epub_counter.config import settings
from epub_counter.errors import TokenizerLoadError, UnknownTokenizerError
from epub_counter.models.results import FAILED_TOKEN_COUNT, TokenizerResult

logger = logging.getLogger(__name__)

PRESET_TOKENIZERS = ("gpt4", "claude")
HF_PREFIX = "hf:"


class Tokenizer(ABC):
    """Uniform token counting capability."""

    name: str

    @abstractmethod
    async def count_tokens(self, text: str) -> int:
        """Return the number of tokens in *text*."""

    def dispose(self) -> None:
        """Drop any cached encoder; the next call reinitialises it."""


class GPT4Tokenizer(Tokenizer):
    name = "gpt4"

    def __init__(self) -> None:
        self._encoder: Optional[tiktoken.Encoding] = None

    def _get_encoder(self) -> tiktoken.Encoding:
        if self._encoder is None:
            # Resolves to cl100k_base; follows tiktoken if the mapping changes.
            self._encoder = tiktoken.encoding_for_model("gpt-4")
        return self._encoder

    async def count_tokens(self, text: str) -> int:
        # Book text may legitimately contain "<|endoftext|>"; count it as text.
        return len(self._get_encoder().encode(text, disallowed_special=()))

    def dispose(self) -> None:
        self._encoder = None


class ClaudeTokenizer(Tokenizer):
    name = "claude"

    def __init__(self, repo: str | None = None) -> None:
        self.repo = repo or settings.CLAUDE_TOKENIZER_REPO
        self._tokenizer: Optional[HFTokenizerModel] = None
        self._lock = threading.Lock()

    def _get_tokenizer(self) -> HFTokenizerModel:
        with self._lock:
            if self._tokenizer is None:
                logger.info("Loading Claude tokenizer from %s", self.repo)
                self._tokenizer = HFTokenizerModel.from_pretrained(self.repo)
            return self._tokenizer

    def _count(self, text: str) -> int:
        return len(self._get_tokenizer().encode(text, add_special_tokens=False).ids)

    async def count_tokens(self, text: str) -> int:
        return await asyncio.to_thread(self._count, text)

    def dispose(self) -> None:
        with self._lock:
            self._tokenizer = None


class HFTokenizer(Tokenizer):
    """Tokenizer for an arbitrary Hugging Face Hub model (``hf:<model>``)."""

    def __init__(self, model_name: str) -> None:
        self.model_name = model_name
        self.name = f"{HF_PREFIX}{model_name}"
        self._tokenizer: Optional[HFTokenizerModel] = None
        self._load_lock = asyncio.Lock()

    @property
    def tokenizer_url(self) -> str:
        return f"{settings.HF_ENDPOINT}/{self.model_name}/resolve/main/tokenizer.json"

    async def _download_definition(self) -> str:
        headers = {"Authorization": f"Bearer {settings.HF_TOKEN}"} if settings.HF_TOKEN else {}
        async with httpx.AsyncClient(timeout=settings.HF_TIMEOUT_SECONDS, follow_redirects=True) as client:
            response = await client.get(self.tokenizer_url, headers=headers)
            response.raise_for_status()
            return response.text

    async def _initialize(self) -> HFTokenizerModel:
        # Concurrent first callers share a single download.
        async with self._load_lock:
            if self._tokenizer is not None:
                return self._tokenizer
            try:
                logger.info("Downloading tokenizer for %s", self.model_name)
                definition = await self._download_definition()
                self._tokenizer = HFTokenizerModel.from_str(definition)
            except Exception as exc:
                raise TokenizerLoadError(
                    f'Failed to load tokenizer for model "{self.model_name}". '
                    f"Error: {exc}\n\n"
                    "Please check that:\n"
                    "1. The model name is correct\n"
                    "2. The model exists on the Hugging Face Hub: https://huggingface.co/models\n"
                    "3. You have an internet connection (first download requires network)"
                ) from exc
            return self._tokenizer

    async def count_tokens(self, text: str) -> int:
        tokenizer = await self._initialize()
        encoding = await asyncio.to_thread(tokenizer.encode, text)
        return len(encoding.ids)

    def dispose(self) -> None:
        self._tokenizer = None


def _unknown_tokenizer_message(name: str) -> str:
    return (
        f"Unknown tokenizer: {name}. Valid presets: {', '.join(PRESET_TOKENIZERS)}. "
        "Or use hf:model-name for Hugging Face models."
    )


def validate_tokenizer_names(names: Iterable[Any]) -> List[str]:
    """Return the identifiers that :func:`create_tokenizers` would reject."""
    invalid = []
    for name in names:
        if not isinstance(name, str):
            invalid.append(str(name))
        elif name in PRESET_TOKENIZERS:
            continue
        elif name.startswith(HF_PREFIX) and name[len(HF_PREFIX):].strip():
            continue
        else:
            invalid.append(name)
    return invalid


def create_tokenizers(names: Iterable[str]) -> List[Tokenizer]:
    """Build one tokenizer per identifier, keeping input order.

    Raises:
        UnknownTokenizerError: for any identifier that is neither a preset nor
            ``hf:<model>``.  Nothing is built in that case.
    """
    tokenizers: List[Tokenizer] = []
    for name in names:
        if name == "gpt4":
            tokenizers.append(GPT4Tokenizer())
        elif name == "claude":
            tokenizers.append(ClaudeTokenizer())
        elif name.startswith(HF_PREFIX) and name[len(HF_PREFIX):].strip():
            tokenizers.append(HFTokenizer(name[len(HF_PREFIX):].strip()))
        else:
            raise UnknownTokenizerError(_unknown_tokenizer_message(name))
    return tokenizers


async def tokenize_text(text: str, tokenizers: Iterable[Tokenizer]) -> List[TokenizerResult]:
    """Run every tokenizer over *text*, one after another.

    Output order matches *tokenizers*.  A failing backend yields a count of
    ``-1`` and a warning; it never aborts the remaining tokenizers.
    """
    results: List[TokenizerResult] = []
    for tokenizer in tokenizers:
        try:
            count = await tokenizer.count_tokens(text)
            results.append(TokenizerResult(name=tokenizer.name, count=count))
        except Exception as exc:
            logger.warning("Tokenizer '%s' failed: %s", tokenizer.name, exc)
            results.append(TokenizerResult(name=tokenizer.name, count=FAILED_TOKEN_COUNT))
    return results
