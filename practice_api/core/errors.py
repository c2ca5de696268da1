"""
Service error taxonomy
Shared by the explanation pipeline and the practice session services
"""
from typing import Optional


class PracticeServiceError(Exception):
    """Base exception for practice and explanation service errors"""

    code = "PRACTICE_SERVICE_ERROR"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        if code:
            self.code = code


class DependencyError(PracticeServiceError):
    """A required collaborator was not configured or could not be reached"""

    code = "DEPENDENCY_ERROR"


class RateLimitError(PracticeServiceError):
    """Quota exceeded for the requesting identity"""

    code = "RATE_LIMITED"

    def __init__(
        self,
        message: str,
        remaining: int,
        retry_after_seconds: Optional[int] = None,
        code: Optional[str] = None
    ):
        super().__init__(message, code)
        self.remaining = remaining
        self.retry_after_seconds = retry_after_seconds


class NotFoundError(PracticeServiceError):
    """Referenced entity does not exist"""

    code = "NOT_FOUND"


class OperationValidationError(PracticeServiceError):
    """Operation is malformed or references state outside the session"""

    code = "INVALID_OPERATION"
