"""Auth error codes and the user-facing sentences they map to"""

import enum
from typing import Optional


class AuthErrorCode(str, enum.Enum):
    EMAIL_ALREADY_IN_USE = "email-already-in-use"
    INVALID_EMAIL = "invalid-email"
    OPERATION_NOT_ALLOWED = "operation-not-allowed"
    WEAK_PASSWORD = "weak-password"
    USER_DISABLED = "user-disabled"
    USER_NOT_FOUND = "user-not-found"
    WRONG_PASSWORD = "wrong-password"
    TOO_MANY_REQUESTS = "too-many-requests"
    NETWORK_REQUEST_FAILED = "network-request-failed"
    INVALID_RESET_TOKEN = "invalid-action-code"


AUTH_ERROR_MESSAGES = {
    AuthErrorCode.EMAIL_ALREADY_IN_USE: "This email is already registered. Please sign in instead.",
    AuthErrorCode.INVALID_EMAIL: "Please enter a valid email address.",
    AuthErrorCode.OPERATION_NOT_ALLOWED: "Email/password accounts are not enabled. Please contact support.",
    AuthErrorCode.WEAK_PASSWORD: "Password should be at least 6 characters long.",
    AuthErrorCode.USER_DISABLED: "This account has been disabled. Please contact support.",
    AuthErrorCode.USER_NOT_FOUND: "No account found with this email. Please sign up first.",
    AuthErrorCode.WRONG_PASSWORD: "Incorrect password. Please try again.",
    AuthErrorCode.TOO_MANY_REQUESTS: "Too many failed attempts. Please try again later.",
    AuthErrorCode.NETWORK_REQUEST_FAILED: "Network error. Please check your internet connection.",
    AuthErrorCode.INVALID_RESET_TOKEN: "This reset link is invalid or has expired. Please request a new one.",
}

GENERIC_AUTH_ERROR = "An error occurred. Please try again."

# HTTP status each code is reported with
AUTH_ERROR_STATUS = {
    AuthErrorCode.EMAIL_ALREADY_IN_USE: 409,
    AuthErrorCode.INVALID_EMAIL: 400,
    AuthErrorCode.OPERATION_NOT_ALLOWED: 403,
    AuthErrorCode.WEAK_PASSWORD: 400,
    AuthErrorCode.USER_DISABLED: 403,
    AuthErrorCode.USER_NOT_FOUND: 404,
    AuthErrorCode.WRONG_PASSWORD: 401,
    AuthErrorCode.TOO_MANY_REQUESTS: 429,
    AuthErrorCode.NETWORK_REQUEST_FAILED: 503,
    AuthErrorCode.INVALID_RESET_TOKEN: 400,
}


def auth_error_message(code: Optional[str]) -> str:
    """Map an error code to its sentence; unknown codes get the generic one"""
    try:
        return AUTH_ERROR_MESSAGES[AuthErrorCode(code)]
    except ValueError:
        return GENERIC_AUTH_ERROR


class AuthError(Exception):
    """An identity failure carrying one of the known codes"""

    def __init__(self, code: AuthErrorCode):
        super().__init__(code.value)
        self.code = code

    @property
    def message(self) -> str:
        return auth_error_message(self.code)

    @property
    def status_code(self) -> int:
        return AUTH_ERROR_STATUS.get(self.code, 400)
