"""
Error kinds shared by every stage of the tool.

Library code raises `AliasedProfilesError`; only the CLI turns one into
an `error: <message>` line and a non-zero exit.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional

from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    NoCredentialsError,
    ParamValidationError,
    PartialCredentialsError,
    ProfileNotFound,
    ReadTimeoutError,
)


class ErrorKind(str, Enum):
    CONFIGURATION = "configuration"
    AUTHENTICATION = "authentication"
    AUTHORIZATION_DENIED = "authorization-denied"
    MFA_UNAVAILABLE = "mfa-unavailable"
    TRANSPORT = "transport"
    PROVIDER = "provider"
    CANCELLED = "cancelled"
    IO = "io"


AUTHENTICATION_CODES = (
    "UnrecognizedClientException",
    "InvalidClientTokenId",
    "ExpiredToken",
    "ExpiredTokenException",
    "SignatureDoesNotMatch",
    "AuthFailure",
    "IncompleteSignature",
)

AUTHORIZATION_CODES = (
    "UnauthorizedOperation",
    "AuthorizationError",
)

THROTTLING_CODES = (
    "Throttling",
    "ThrottlingException",
    "TooManyRequestsException",
    "RequestLimitExceeded",
)


class AliasedProfilesError(Exception):
    def __init__(
        self, kind: ErrorKind, message: str, cause: Optional[BaseException] = None
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f"AliasedProfilesError({self.kind.value!r}, {self.message!r})"


def cancelled() -> AliasedProfilesError:
    return AliasedProfilesError(ErrorKind.CANCELLED, "operation cancelled")


def get_error_code(error: BaseException) -> str:
    """Return the provider error code, or the exception class name."""
    response = getattr(error, "response", None)
    if response is not None:
        return response.get("Error", {}).get("Code", "Unknown")
    return error.__class__.__name__


def is_access_denied(error: BaseException) -> bool:
    if isinstance(error, AliasedProfilesError):
        return error.kind is ErrorKind.AUTHORIZATION_DENIED
    if not isinstance(error, ClientError):
        return False
    code = get_error_code(error)
    return code.startswith("AccessDenied") or code in AUTHORIZATION_CODES


def classify(error: BaseException) -> ErrorKind:
    """Map a botocore exception onto an ErrorKind."""
    if isinstance(error, AliasedProfilesError):
        return error.kind
    if isinstance(error, (ProfileNotFound, ParamValidationError)):
        return ErrorKind.CONFIGURATION
    if isinstance(error, (NoCredentialsError, PartialCredentialsError)):
        return ErrorKind.AUTHENTICATION
    if isinstance(
        error,
        (
            EndpointConnectionError,
            ConnectTimeoutError,
            ReadTimeoutError,
            ConnectionClosedError,
        ),
    ):
        return ErrorKind.TRANSPORT
    if isinstance(error, ClientError):
        code = get_error_code(error)
        if is_access_denied(error):
            return ErrorKind.AUTHORIZATION_DENIED
        if code in AUTHENTICATION_CODES:
            return ErrorKind.AUTHENTICATION
        if code in THROTTLING_CODES:
            return ErrorKind.TRANSPORT
        return ErrorKind.PROVIDER
    if isinstance(error, BotoCoreError):
        return ErrorKind.PROVIDER
    if isinstance(error, OSError):
        return ErrorKind.IO
    return ErrorKind.PROVIDER


def wrap(error: BaseException, context: str) -> AliasedProfilesError:
    """Wrap any exception in an AliasedProfilesError, keeping its kind."""
    if isinstance(error, AliasedProfilesError):
        return error
    return AliasedProfilesError(classify(error), f"{context}: {error}", cause=error)
