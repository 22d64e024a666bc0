"""Command-line entry point (``epub-counter``)."""
