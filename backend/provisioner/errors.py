"""
Provisioning error taxonomy.

Every fatal failure surfaces as a ProvisionError subclass so callers (the CLI,
deployment tooling) can tell an unreachable endpoint from a bad credential or
a conflicting index definition. AlreadyExistsError is the one recoverable
kind: steps catch it and record the object as skipped.
"""

from pymongo.errors import (
    AutoReconnect,
    CollectionInvalid,
    ConfigurationError,
    ConnectionFailure,
    DuplicateKeyError,
    InvalidName,
    NetworkTimeout,
    OperationFailure,
    ServerSelectionTimeoutError,
)


# MongoDB server error codes used for classification
BAD_VALUE = 2
FAILED_TO_PARSE = 9
UNAUTHORIZED = 13
AUTHENTICATION_FAILED = 18
NAMESPACE_EXISTS = 48
CANNOT_CREATE_INDEX = 67
INDEX_OPTIONS_CONFLICT = 85
INDEX_KEY_SPECS_CONFLICT = 86
DUPLICATE_KEY = 11000
ATLAS_UNAUTHORIZED = 8000
USER_ALREADY_EXISTS = 51003

ALREADY_EXISTS_CODES = frozenset({NAMESPACE_EXISTS, USER_ALREADY_EXISTS})
AUTHORIZATION_CODES = frozenset({UNAUTHORIZED, AUTHENTICATION_FAILED, ATLAS_UNAUTHORIZED})
VALIDATION_CODES = frozenset(
    {
        BAD_VALUE,
        FAILED_TO_PARSE,
        CANNOT_CREATE_INDEX,
        DUPLICATE_KEY,
        INDEX_OPTIONS_CONFLICT,
        INDEX_KEY_SPECS_CONFLICT,
    }
)


class ProvisionError(Exception):
    """Base class for provisioning failures."""

    def __init__(
        self,
        message: str,
        step: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.step = step
        self.cause = cause

    def __str__(self) -> str:
        if self.step:
            return f"[{self.step}] {self.message}"
        return self.message


class AlreadyExistsError(ProvisionError):
    """The principal, collection, index or document is already present."""


class ConnectivityError(ProvisionError):
    """Endpoint unreachable, timed out, or connection dropped mid-run."""


class AuthorizationError(ProvisionError):
    """Credentials rejected or insufficient for the requested operation."""


class ValidationError(ProvisionError):
    """Malformed or conflicting declaration (e.g. index options mismatch, or
    existing data that violates a declared unique index)."""


def is_already_exists(exc: BaseException) -> bool:
    """Check whether a driver error only reports that the object already exists."""
    if isinstance(exc, CollectionInvalid):
        return True
    if isinstance(exc, OperationFailure):
        if exc.code in ALREADY_EXISTS_CODES:
            return True
        return exc.code is None and "already exists" in str(exc).lower()
    return False


def classify_error(exc: BaseException, step: str | None = None) -> ProvisionError:
    """
    Translate a pymongo exception into the provisioning taxonomy.

    Args:
        exc: Exception raised by the driver.
        step: Name of the provisioning step that was running.

    Returns:
        ProvisionError: The matching subclass, with the original error as cause.
    """
    if isinstance(exc, ProvisionError):
        return exc

    message = str(exc) or type(exc).__name__

    # ServerSelectionTimeoutError, NetworkTimeout and AutoReconnect are all
    # ConnectionFailure subclasses; listed for readability.
    if isinstance(
        exc, (ServerSelectionTimeoutError, NetworkTimeout, AutoReconnect, ConnectionFailure)
    ):
        return ConnectivityError(message, step=step, cause=exc)

    if is_already_exists(exc):
        return AlreadyExistsError(message, step=step, cause=exc)

    # E11000 outside createUser means data violates a declared unique index
    if isinstance(exc, DuplicateKeyError):
        return ValidationError(message, step=step, cause=exc)

    if isinstance(exc, OperationFailure):
        if exc.code in AUTHORIZATION_CODES or "not authorized" in message.lower():
            return AuthorizationError(message, step=step, cause=exc)
        if exc.code in VALIDATION_CODES:
            return ValidationError(message, step=step, cause=exc)
        return ProvisionError(message, step=step, cause=exc)

    if isinstance(exc, (ConfigurationError, InvalidName)):
        return ValidationError(message, step=step, cause=exc)

    return ProvisionError(message, step=step, cause=exc)
