"""
Blending-specific error types.

All errors inherit from BlendError for easy catching.
"""


class BlendError(Exception):
    """Base exception for all blending failures."""
    pass


class ScriptWriteError(BlendError):
    """Raised when a recipe script cannot be written to disk."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to write script {path}: {reason}")


class CompositingEngineError(BlendError):
    """Raised when the compositing engine is missing or cannot be started."""

    def __init__(self, binary: str, reason: str):
        self.binary = binary
        self.reason = reason
        super().__init__(f"Compositing engine '{binary}' unavailable: {reason}")
