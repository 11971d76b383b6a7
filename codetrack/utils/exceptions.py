"""
Custom exceptions for the tracking core with user-friendly error messages.
"""

class CodeTrackException(Exception):
    """Base exception for tracker errors surfaced to callers."""
    def __init__(self, message: str, user_message: str = None):
        super().__init__(message)
        self.user_message = user_message or message

class InvalidInputError(CodeTrackException):
    """Raised for malformed usernames, unknown platforms or missing review reasons."""
    def __init__(self, field: str, reason: str):
        self.field = field
        super().__init__(
            f"Invalid {field}: {reason}",
            f"❌ {reason}"
        )

class ValidationError(CodeTrackException):
    """Raised when a configuration update is rejected (e.g. unknown grading metric)."""
    def __init__(self, key: str, reason: str):
        self.key = key
        super().__init__(
            f"Configuration '{key}' rejected: {reason}",
            f"❌ {reason}"
        )

class InvalidTransitionError(CodeTrackException):
    """Raised when a platform link status change is not allowed."""
    def __init__(self, platform: str, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(
            f"Illegal {platform} link transition {current} -> {target}",
            f"❌ This {platform} profile cannot move from '{current}' to '{target}'."
        )

class StudentNotFoundError(CodeTrackException):
    """Raised when a student id does not exist."""
    def __init__(self, student_id: str):
        super().__init__(
            f"Student '{student_id}' not found",
            f"❌ Student '{student_id}' not found!"
        )

class LinkNotFoundError(CodeTrackException):
    """Raised when a student has no link for the requested platform."""
    def __init__(self, student_id: str, platform: str):
        super().__init__(
            f"No {platform} link for student '{student_id}'",
            f"❌ No {platform} profile has been submitted yet."
        )

class RateLimitError(CodeTrackException):
    """Raised when a student requests refreshes too often."""
    def __init__(self, window: int):
        super().__init__(
            f"Refresh rate limit exceeded ({window}s window)",
            f"❌ Please wait before refreshing your profiles again (limit: once every {window} seconds)."
        )
