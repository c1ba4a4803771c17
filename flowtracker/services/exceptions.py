"""
Service-level exceptions.

This module contains exceptions that can be raised by the engine services
and the repositories backing them. Validation rejections of lifecycle
operations are not exceptions; they are reported through
``OperationResult.applied``.
"""

class FlowTrackerError(Exception):
    """Base exception for the flow tracker engine."""
    pass

class InvalidDateError(FlowTrackerError, ValueError):
    """Raised when an input cannot be normalized to a calendar date."""
    pass

class RepositoryError(FlowTrackerError):
    """Raised when the storage backend could not read or persist data."""
    pass

class TransactionRollbackError(RepositoryError):
    """Raised when undoing a failed transaction itself fails."""
    pass
