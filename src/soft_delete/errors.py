"""
Soft Delete Errors

Configuration and precondition failures raised by the soft-delete layer.
Expected "nothing happened" outcomes are reported as ``False`` / ``0`` instead.
"""

from typing import Optional


class SoftDeleteError(Exception):
    """Base class for soft-delete errors"""


class MissingColumnError(SoftDeleteError, LookupError):
    """The configured soft-delete column is missing from the table schema"""

    def __init__(self, field: str, table: str, message: Optional[str] = None):
        self.field = field
        self.table = table
        super().__init__(message or f"Configured field `{field}` is missing from the table `{table}`.")


class InvalidArgumentError(SoftDeleteError, ValueError):
    """An operation was called with arguments it cannot act on"""
