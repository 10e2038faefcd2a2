"""Reconciliation sessions."""

from .session import ReconciliationSessionService

__all__ = ["ReconciliationSessionService"]
