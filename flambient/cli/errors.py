"""
Operator-facing errors for the flambient commands.

These are raised before a job is persisted or a file is touched, so the
operator can correct the invocation and run the same command again.
"""

from typing import Optional


class CLIError(Exception):
    """Base exception for flambient command failures."""
    pass


class ValidationError(CLIError):
    """Invocation or input rejected; no job was created."""

    def __init__(self, message: str, option: Optional[str] = None):
        self.message = message
        self.option = option
        super().__init__(f"{option}: {message}" if option else message)


class ConfirmationDenied(CLIError):
    """Operator declined the upload; the PENDING job gets cancelled with this reason."""

    def __init__(self, question: str = ""):
        self.question = question
        super().__init__("Declined by operator")
