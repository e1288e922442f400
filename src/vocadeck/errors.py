"""Exceptions raised by vocadeck services."""
from typing import Optional


class VocadeckError(Exception):
    """Base class for all vocadeck errors."""


class StoreError(VocadeckError):
    """A read or write against the progress store failed."""

    def __init__(self, operation: str, cause: Optional[Exception] = None):
        self.operation = operation
        self.cause = cause
        message = f"Store operation '{operation}' failed"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class NotFoundError(VocadeckError):
    """A deck or word referenced by the caller does not exist."""
