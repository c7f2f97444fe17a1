"""
Order receipt pipeline: PDF ingestion -> field and line item extraction -> formatted order PDF.
"""

from .errors import AssetUnavailable, InvalidDocument, OrderPipelineError, RemoteExtractionFailed
from .models import CompanyIdentity, ExtractedOrder, LineItem, OrderDocument, ProcessedOrder
from .pipeline import extract_order, process_order_pdf, run_on_folder
from .render import render_order

__all__ = [
    "extract_order",
    "render_order",
    "process_order_pdf",
    "run_on_folder",
    "ExtractedOrder",
    "LineItem",
    "OrderDocument",
    "CompanyIdentity",
    "ProcessedOrder",
    "OrderPipelineError",
    "InvalidDocument",
    "RemoteExtractionFailed",
    "AssetUnavailable",
]
