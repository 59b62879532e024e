"""
core/errors.py -- Application error taxonomy.

Stores, the OTP ledger, the session issuer and the auth flow raise these
instead of HTTPException so they stay usable outside FastAPI. api/main.py maps
every AppError to the shared error envelope:

    {"error": {"code": ..., "message": ..., "detail": ...}}

Each class carries its HTTP status and a default machine-readable code. Call
sites may pass a more specific code (e.g. "already_verified") and message.

Layer rule: core/ is the kernel. No imports from other project packages.
"""

from __future__ import annotations


class AppError(Exception):
    """Base class for errors that translate directly into an HTTP response."""

    status_code: int = 500
    code: str = "internal_error"
    message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None, code: str | None = None, detail: str | None = None) -> None:
        self.message = message or self.message
        self.code = code or self.code
        self.detail = detail
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "detail": self.detail}


class ValidationError(AppError):
    status_code = 400
    code = "validation_error"
    message = "Request validation failed."


class UnauthenticatedError(AppError):
    status_code = 401
    code = "unauthorized"
    message = "Authentication required."


class UnverifiedError(AppError):
    """Correct credentials, but the email address has not been confirmed yet."""

    status_code = 403
    code = "unverified"
    message = "Email address has not been verified."


class ForbiddenError(AppError):
    status_code = 403
    code = "forbidden"
    message = "You do not have permission to perform this action."


class NotFoundError(AppError):
    status_code = 404
    code = "not_found"
    message = "Resource not found."


class ConflictError(AppError):
    status_code = 409
    code = "conflict"
    message = "Resource already exists."


class DuplicateEmailError(ConflictError):
    code = "duplicate_email"
    message = "Email already registered."


class OtpNotFoundError(AppError):
    status_code = 400
    code = "otp_not_found"
    message = "Verification code not found. Please request a new code."


class OtpExpiredError(AppError):
    status_code = 400
    code = "otp_expired"
    message = "Verification code has expired. Please request a new code."


class OtpMismatchError(AppError):
    status_code = 400
    code = "otp_mismatch"
    message = "Invalid verification code."


class DeliveryError(AppError):
    """Outbound notification failed. Non-fatal during registration."""

    status_code = 503
    code = "delivery_failed"
    message = "Failed to send the email. Please try again."
