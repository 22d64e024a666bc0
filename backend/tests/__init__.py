# Ensure the `backend` directory is importable so `epub_counter` resolves
from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path

# Add the backend directory to PYTHONPATH so imports like `from epub_counter.*` work
ROOT_DIR = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT_DIR))

# Keep test runs away from the repository's logs/ and results/ folders and
# make error handling fast and streams finite.
_TEST_TMP = Path(tempfile.mkdtemp(prefix="epub-counter-tests-"))
os.environ.setdefault("EPUB_COUNTER_LOG_DIR", str(_TEST_TMP / "logs"))
os.environ.setdefault("EPUB_COUNTER_RESULTS_DIR", str(_TEST_TMP / "results"))
os.environ.setdefault("EPUB_COUNTER_ERROR_PAUSE", "0")
os.environ.setdefault("EPUB_COUNTER_SSE_CLOSE", "1")
os.environ.setdefault("EPUB_COUNTER_SSE_POLL", "0.01")
