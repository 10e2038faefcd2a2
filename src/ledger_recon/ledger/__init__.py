"""Ledger invariants shared by every ingestion path."""

from .gst import GstSplit, gross_to_exclusive, split_gst_posting
from .validation import (
    XOR_MESSAGE,
    validate_double_entry,
    validate_gst,
    validate_line,
    validate_transaction,
)

__all__ = [
    "GstSplit",
    "gross_to_exclusive",
    "split_gst_posting",
    "XOR_MESSAGE",
    "validate_double_entry",
    "validate_gst",
    "validate_line",
    "validate_transaction",
]
