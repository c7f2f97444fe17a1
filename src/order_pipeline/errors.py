"""
Error types raised by the extraction and rendering steps.
Missing fields are never errors: they come back as empty values.
"""
from __future__ import annotations


class OrderPipelineError(Exception):
    """Base class for pipeline failures."""


class InvalidDocument(OrderPipelineError):
    """The bytes are not a readable PDF, or the PDF is password protected."""

    def __init__(self, message: str, reason: str = "corrupt"):
        super().__init__(message)
        self.reason = reason


class RemoteExtractionFailed(OrderPipelineError):
    """LLM extraction failed: no client, API error, non-JSON or off-schema reply."""


class AssetUnavailable(OrderPipelineError):
    """A render asset (logo) could not be loaded. Recovered inside the renderer."""
