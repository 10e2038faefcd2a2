"""Utility modules."""

from .exceptions import (
    ReconciliationError,
    StatementParseError,
    LedgerImportError,
    ConfigurationError,
    ValidationError,
    ConflictError,
    NotFoundError,
    ReportGenerationError,
    explain_error,
)
from .logging_config import LOGGER_NAME, setup_logging

__all__ = [
    "ReconciliationError",
    "StatementParseError",
    "LedgerImportError",
    "ConfigurationError",
    "ValidationError",
    "ConflictError",
    "NotFoundError",
    "ReportGenerationError",
    "explain_error",
    "LOGGER_NAME",
    "setup_logging",
]
