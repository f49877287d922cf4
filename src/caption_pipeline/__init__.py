"""Caption artifact pipeline: WebVTT generation plus registry/filesystem reconciliation."""

__version__ = "0.3.0"
