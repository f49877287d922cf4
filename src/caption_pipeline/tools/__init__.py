"""Command-line tools for the caption pipeline."""
