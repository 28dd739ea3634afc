"""Utility modules shared across the pipeline."""

from .log import console, setup_logging

__all__ = ["console", "setup_logging"]
