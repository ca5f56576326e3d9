from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")


class ClothesShareError(Exception):
    """Base for every error surfaced to the user as an error notice."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ClothesShareError):
    """Missing or invalid form fields, caught before any store call."""

    status_code = 400


class PermissionDeniedError(ClothesShareError):
    status_code = 403


class NotFoundError(ClothesShareError):
    status_code = 404


class StoreError(ClothesShareError):
    status_code = 500


class ConflictError(StoreError):
    """A version-checked write lost against a concurrent writer."""

    status_code = 409


class AuthErrorKind(str, Enum):
    INVALID_CREDENTIALS = "invalid_credentials"
    EMAIL_IN_USE = "email_in_use"
    POPUP_BLOCKED = "popup_blocked"
    POPUP_DISMISSED = "popup_dismissed"
    UNAUTHORIZED_ORIGIN = "unauthorized_origin"
    NETWORK = "network"
    UNKNOWN = "unknown"


AUTH_MESSAGES = {
    AuthErrorKind.INVALID_CREDENTIALS: "Invalid email or password",
    AuthErrorKind.EMAIL_IN_USE: "Email already registered",
    AuthErrorKind.POPUP_BLOCKED: "Popup was blocked. Please allow popups and try again.",
    AuthErrorKind.POPUP_DISMISSED: "Sign-in was cancelled.",
    AuthErrorKind.UNAUTHORIZED_ORIGIN: "This domain is not authorized for Google sign-in.",
    AuthErrorKind.NETWORK: "Network error. Please check your connection and try again.",
    AuthErrorKind.UNKNOWN: "Sign-in failed. Please try again.",
}


class AuthError(ClothesShareError):
    status_code = 401

    def __init__(self, kind: AuthErrorKind, message: Optional[str] = None):
        super().__init__(message or AUTH_MESSAGES[kind])
        self.kind = kind
        if kind is AuthErrorKind.EMAIL_IN_USE:
            self.status_code = 400


@dataclass
class Result(Generic[T]):
    """
    Tagged outcome of a gateway call: either ok with a value,
    or not ok with the error that stopped it.
    """

    ok: bool
    value: Optional[T] = None
    error: Optional[ClothesShareError] = None

    @classmethod
    def success(cls, value: Any = None) -> "Result":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: ClothesShareError) -> "Result":
        return cls(ok=False, error=error)

    def unwrap(self) -> T:
        if not self.ok:
            raise self.error
        return self.value
