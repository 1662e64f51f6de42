"""
SeuCantto Reviews

Builds the storefront's published review feed from markdown sources and
rate-limits the OTP login and review submission flows.
"""

__version__ = "1.0.0"

from .build.builder import ReviewBuilder
from .gate.limiter import AccessGate
from .gate.otp import OtpService
from .gate.session import SessionManager
from .models.review import ReviewRecord

__all__ = ["ReviewBuilder", "ReviewRecord", "AccessGate", "OtpService", "SessionManager"]
