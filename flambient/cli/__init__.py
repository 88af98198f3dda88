"""
Operator command surface.

Commands validate input before any job exists and surface remote failures
as a resumable job id rather than an exception.
"""

from .errors import (
    CLIError,
    ValidationError,
    ConfirmationDenied,
)

__all__ = [
    "CLIError",
    "ValidationError",
    "ConfirmationDenied",
]
