"""Application-wide configuration loader.

This module
1. parses environment variables (workspace root, output locations, tokenizer
   defaults, Hugging Face access, server binding);
2. provides a singleton ``settings`` object that other modules import.

Both the CLI and the HTTP server read the same object, so a value exported in
the shell applies to either entry point.
"""

import os
from pathlib import Path

# backend/epub_counter/config.py -> repository root
_PROJECT_ROOT = Path(__file__).resolve().parents[2]


class Settings:
    """Settings helper that gracefully falls back to sane defaults.

    Rationale
    ---------
    An environment variable exported with an empty value (``HF_ENDPOINT=""``)
    makes ``os.getenv("HF_ENDPOINT", default)`` return an empty string rather
    than ``None``, which then overrides the useful in-code default.  Every
    setting therefore uses the idiom

        os.getenv(KEY) or DEFAULT

    so that *falsy* values ("", None) are replaced by the specified DEFAULT.

    Relative API paths resolve against ``WORKSPACE_ROOT`` and never against the
    server's current working directory, so behaviour does not depend on how
    the process was launched.
    """

    WORKSPACE_ROOT: Path = Path(os.getenv('EPUB_COUNTER_ROOT') or _PROJECT_ROOT).resolve()
    RESULTS_DIR: Path = Path(os.getenv('EPUB_COUNTER_RESULTS_DIR') or WORKSPACE_ROOT / 'results')
    LOG_DIR: Path = Path(os.getenv('EPUB_COUNTER_LOG_DIR') or WORKSPACE_ROOT / 'logs')
    LOG_LEVEL: str = (os.getenv('EPUB_COUNTER_LOG_LEVEL') or 'INFO').upper()

    DEFAULT_TOKENIZERS: list[str] = [
        name.strip() for name in (os.getenv('EPUB_COUNTER_TOKENIZERS') or 'gpt4').split(',') if name.strip()
    ]
    DEFAULT_MAX_MB: float = float(os.getenv('EPUB_COUNTER_MAX_MB') or '500')
    # Pause after a file-level error is printed so bursts stay readable.
    ERROR_PAUSE_SECONDS: float = float(os.getenv('EPUB_COUNTER_ERROR_PAUSE') or '0.5')
    UPLOAD_MAX_BYTES: int = int(os.getenv('EPUB_COUNTER_UPLOAD_MAX_BYTES') or str(1024 * 1024))

    HF_ENDPOINT: str = (os.getenv('HF_ENDPOINT') or 'https://huggingface.co').rstrip('/')
    HF_TOKEN: str = os.getenv('HF_TOKEN') or ''
    HF_TIMEOUT_SECONDS: float = float(os.getenv('HF_TIMEOUT_SECONDS') or '60')
    CLAUDE_TOKENIZER_REPO: str = os.getenv('CLAUDE_TOKENIZER_REPO') or 'Xenova/claude-tokenizer'

    SERVER_HOST: str = os.getenv('EPUB_COUNTER_HOST') or '0.0.0.0'
    SERVER_PORT: int = int(os.getenv('EPUB_COUNTER_PORT') or '8787')
    CORS_ORIGINS: list[str] = [
        origin.strip() for origin in (os.getenv('EPUB_COUNTER_CORS_ORIGINS') or '*').split(',') if origin.strip()
    ]

    SSE_CLOSE_ON_TERMINAL: bool = (os.getenv('EPUB_COUNTER_SSE_CLOSE') or '').lower() in ('1', 'true', 'yes')
    SSE_POLL_SECONDS: float = float(os.getenv('EPUB_COUNTER_SSE_POLL') or '1.0')


settings = Settings()
