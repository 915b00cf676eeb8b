"""Courier - HTTP client processor for message pipelines"""

__version__ = "0.1.0"
