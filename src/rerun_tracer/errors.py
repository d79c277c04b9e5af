"""Exceptions raised by rerun-tracer.

Duplicate example ids and interrupted runs are not errors; they are
classifications recorded by the registries. Failures while writing a
snapshot are not wrapped either, the underlying ``OSError`` or encoder error
reaches the caller as is.
"""

from __future__ import annotations

from typing import Dict, Optional


class TracerError(Exception):
    """Base exception for all rerun-tracer errors."""

    def __init__(self, message: str, details: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class SnapshotError(TracerError):
    """A previous snapshot exists but cannot be trusted."""


class SerializerError(TracerError):
    """Unknown or misconfigured report serializer."""
