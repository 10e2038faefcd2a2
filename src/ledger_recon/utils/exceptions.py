"""Custom exceptions for the reconciliation application."""

from typing import Iterable, Union


class ReconciliationError(Exception):
    """Base exception for reconciliation errors."""

    pass


class StatementParseError(ReconciliationError):
    """Error reading a bank statement file."""

    pass


class LedgerImportError(ReconciliationError):
    """Error reading a ledger CSV export."""

    pass


class ConfigurationError(ReconciliationError):
    """Error in configuration."""

    pass


class ValidationError(ReconciliationError):
    """
    Data validation error.

    Collects every issue found so the caller gets a single
    human-readable message with the issues joined by "; ".
    """

    def __init__(self, issues: Union[str, Iterable[str]]):
        if isinstance(issues, str):
            issues = [issues]
        self.issues = [issue for issue in issues if issue]
        super().__init__("; ".join(self.issues))


class ConflictError(ReconciliationError):
    """Operation conflicts with the current reconciliation state."""

    pass


class NotFoundError(ReconciliationError):
    """Unknown session, account, or posting id."""

    def __init__(self, resource: str, identifier: str):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} {identifier} not found")


class ReportGenerationError(ReconciliationError):
    """Error generating Excel report."""

    pass


def explain_error(error: BaseException) -> str:
    """Return the single human-readable message for an error."""
    if isinstance(error, ValidationError):
        return "; ".join(error.issues) or "Validation failed"
    return str(error) or error.__class__.__name__
