"""
Classification-specific error types.

All errors inherit from ClassificationError for easy catching.
Errors are explicit and provide actionable messages.
"""


class ClassificationError(Exception):
    """Base exception for all classification failures."""
    pass


class ExifToolNotFoundError(ClassificationError):
    """Raised when exiftool is not available on the system."""

    def __init__(self, binary: str = "exiftool"):
        self.binary = binary
        super().__init__(
            f"{binary} not found. Please install exiftool to enable exposure classification."
        )


class ExifExtractionError(ClassificationError):
    """Raised when the EXIF extraction process fails or returns unusable output."""

    def __init__(self, directory: str, reason: str):
        self.directory = directory
        self.reason = reason
        super().__init__(f"Failed to extract EXIF data from {directory}: {reason}")


class InvalidStrategyError(ClassificationError):
    """Raised when a classification strategy is unknown or incompletely configured."""

    def __init__(self, strategy: str, reason: str):
        self.strategy = strategy
        self.reason = reason
        super().__init__(f"Invalid classification strategy '{strategy}': {reason}")
