"""Monitoring package exports."""

from __future__ import annotations

from .logger import configure_logging, get_logger

__all__ = ["configure_logging", "get_logger"]
