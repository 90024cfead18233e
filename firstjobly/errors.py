"""
Error taxonomy shared by the normalizer, the stores and the HTTP layer.

Each error carries the HTTP status the API answers with, so the routing
layer never has to guess.
"""

from typing import Optional


class FirstJoblyError(Exception):
    """Base class for errors surfaced to callers."""

    def __init__(self, message: str, status_code: int = 400, details: Optional[str] = None):
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class ValidationError(FirstJoblyError):
    """Bad or missing required input."""

    def __init__(self, message: str):
        super().__init__(message, status_code=400)


class PersistenceError(FirstJoblyError):
    """Engine unreachable, unexpected constraint violation or timeout."""

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message, status_code=500, details=details)


class NotFound(FirstJoblyError):
    def __init__(self, message: str = "Post not found"):
        super().__init__(message, status_code=404)
