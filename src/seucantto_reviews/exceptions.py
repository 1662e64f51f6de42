"""
Exception hierarchy for the SeuCantto review pipeline and access gate.
"""

from typing import List


class ReviewPipelineError(Exception):
    """Base class for review build errors."""


class MissingFieldsError(ReviewPipelineError):
    """A review file lacks one or more required front-matter fields."""

    def __init__(self, filename: str, missing: List[str]):
        self.filename = filename
        self.missing = missing
        super().__init__(f"{filename}: missing required fields: {', '.join(missing)}")


class FatalValidationError(ReviewPipelineError):
    """The batch as a whole is invalid and must not be published."""


class FeedFormatError(ValueError):
    """A feed document has neither the list nor the {metadata, reviews} shape."""


class AccessDenied(Exception):
    """Base class for access gate denials."""


class RateLimitDenied(AccessDenied):
    """
    The identity is over a limit for this action.

    Attributes:
        action: Gated action name ("otp_generation", "otp_verification", "review")
        lockout_end: Epoch millis when the action becomes available again
    """

    def __init__(self, action: str, lockout_end: int, message: str):
        self.action = action
        self.lockout_end = lockout_end
        super().__init__(message)


class OtpMismatch(AccessDenied):
    """Submitted code does not match the outstanding one."""

    def __init__(self, remaining_attempts: int):
        self.remaining_attempts = remaining_attempts
        super().__init__(f"Invalid code. {remaining_attempts} attempt(s) remaining.")


class OtpExpired(AccessDenied):
    """No live code exists for the identity."""

    def __init__(self, message: str = "Code expired. Request a new one."):
        super().__init__(message)
