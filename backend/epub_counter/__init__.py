"""Word and token counting for batches of EPUB files."""

__version__ = "0.1.0"
