"""Errors raised while preparing a batch."""
from typing import List, Optional


class BatchValidationError(ValueError):
    """Raised when input is rejected before any remote call is made."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or []
