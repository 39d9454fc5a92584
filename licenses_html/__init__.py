"""Aggregate third-party license texts into one static HTML page."""

__version__ = "1.0.0"
