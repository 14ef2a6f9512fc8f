# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Error taxonomy for the grbac decision engine.

Every error raised by grbac derives from RbacError and carries a structured
error code and source, so callers can tell a legitimate denial
(PermissionDenied) apart from a broken authorization subsystem
(ConfigurationError, SourceError, RemoteTransportError).
"""

from enum import Enum
from datetime import datetime
from typing import Dict, Any, Optional, Sequence


class ErrorCode(Enum):
    """Structured error codes for grbac."""

    # Validation errors
    VALIDATION_FAILED = "validation_failed"
    INVALID_IDENTIFIER = "invalid_identifier"
    INVALID_PERMISSIONS = "invalid_permissions"
    INVALID_COMBINATOR_COMBINATION = "invalid_combinator_combination"

    # Configuration errors
    CONFIGURATION_ERROR = "configuration_error"
    REMOTE_NOT_CONFIGURED = "remote_not_configured"
    UNKNOWN_PRINCIPAL_TYPE = "unknown_principal_type"

    # Decision outcomes
    PERMISSION_DENIED = "permission_denied"
    REMOTE_DENIED = "remote_denied"

    # Infrastructure errors
    SOURCE_ERROR = "source_error"
    ENGINE_NOT_READY = "engine_not_ready"
    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"


class ErrorSource(Enum):
    """Sources where errors can originate."""

    VALIDATION = "validation"
    CONFIGURATION = "configuration"
    AUTHORIZATION = "authorization"
    DATA_SOURCE = "data_source"
    ENGINE = "engine"
    NETWORK = "network"


class RbacError(Exception):
    """
    Base exception class for all grbac errors.

    Provides an error code, the subsystem the error came from and an
    optional underlying cause.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        source: ErrorSource = ErrorSource.ENGINE,
        cause: Optional[Exception] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        self.code = code
        self.message = message
        self.source = source
        self.cause = cause
        self.metadata = metadata or {}
        self.timestamp = datetime.now()

        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary representation."""
        result = {
            "error": self.code.value,
            "error_description": self.message,
            "error_source": self.source.value,
            "timestamp": self.timestamp.isoformat(),
        }

        if self.metadata:
            result["metadata"] = self.metadata

        if self.cause:
            result["caused_by"] = str(self.cause)

        return result

    def is_denial(self) -> bool:
        """Check if this error is an expected access decision, not a fault."""
        return False


class ValidationError(RbacError):
    """Malformed caller input."""

    def __init__(self, message: str, field: Optional[str] = None,
                 code: ErrorCode = ErrorCode.VALIDATION_FAILED, **kwargs):
        self.field = field
        metadata = kwargs.pop("metadata", {})
        if field:
            metadata["field"] = field
        super().__init__(
            code=code,
            message=message,
            source=ErrorSource.VALIDATION,
            metadata=metadata,
            **kwargs
        )


class InvalidIdentifier(ValidationError):
    """Raised when a principal id is not convertible to a number."""

    def __init__(self, value: Any, message: str = "Invalid id value: must be a number"):
        self.value = value
        super().__init__(message, field="principal_id", code=ErrorCode.INVALID_IDENTIFIER)


class InvalidCombinatorCombination(ValidationError):
    """Raised when a combinator does not fit the number of requested permissions."""

    def __init__(self, combinator: Any, count: int, message: Optional[str] = None):
        self.combinator = combinator
        self.count = count
        super().__init__(
            message or f"Invalid combinator {combinator!r} for {count} permission(s)",
            field="combinator",
            code=ErrorCode.INVALID_COMBINATOR_COMBINATION,
        )


class ConfigurationError(RbacError):
    """Missing or invalid configuration, raised at construction time."""

    def __init__(self, message: str, code: ErrorCode = ErrorCode.CONFIGURATION_ERROR, **kwargs):
        super().__init__(
            code=code,
            message=message,
            source=ErrorSource.CONFIGURATION,
            **kwargs
        )


class RemoteNotConfigured(ConfigurationError):
    """Raised when remote delegation is requested without an endpoint."""

    def __init__(self, message: str = "Remote authorization url is not configured"):
        super().__init__(message, code=ErrorCode.REMOTE_NOT_CONFIGURED)


class UnknownPrincipalType(RbacError):
    """Raised when no configuration exists for a principal type."""

    def __init__(self, principal_type: Any, message: str = "Principal type does not exist"):
        self.principal_type = principal_type
        super().__init__(
            code=ErrorCode.UNKNOWN_PRINCIPAL_TYPE,
            message=message,
            source=ErrorSource.CONFIGURATION,
            metadata={"principal_type": principal_type},
        )


class PermissionDenied(RbacError):
    """A legitimate, expected denial of access."""

    def __init__(self, message: str = "Permission denied.",
                 principal_id: Any = None,
                 permissions: Optional[Sequence[str]] = None,
                 code: ErrorCode = ErrorCode.PERMISSION_DENIED, **kwargs):
        self.principal_id = principal_id
        self.permissions = list(permissions or [])
        metadata = kwargs.pop("metadata", {})
        if principal_id is not None:
            metadata["principal_id"] = principal_id
        if self.permissions:
            metadata["permissions"] = self.permissions
        super().__init__(
            code=code,
            message=message,
            source=ErrorSource.AUTHORIZATION,
            metadata=metadata,
            **kwargs
        )

    def is_denial(self) -> bool:
        return True


class RemoteAuthorizationDenied(PermissionDenied):
    """Raised when the remote authority answers with a non-2xx status."""

    def __init__(self, status_code: int, status_text: str = "",
                 url: Optional[str] = None, **kwargs):
        self.status_code = status_code
        self.status_text = status_text
        self.url = url
        metadata = kwargs.pop("metadata", {})
        metadata["status_code"] = status_code
        metadata["status_text"] = status_text
        super().__init__(
            message=f"{status_code} - {status_text}".rstrip(" -"),
            code=ErrorCode.REMOTE_DENIED,
            metadata=metadata,
            **kwargs
        )


class RemoteTransportError(RbacError):
    """Network or timeout failure talking to the remote authority."""

    def __init__(self, message: str, url: Optional[str] = None,
                 timed_out: bool = False, cause: Optional[Exception] = None):
        self.url = url
        self.timed_out = timed_out
        super().__init__(
            code=ErrorCode.TIMEOUT if timed_out else ErrorCode.NETWORK_ERROR,
            message=message,
            source=ErrorSource.NETWORK,
            cause=cause,
            metadata={"url": url} if url else None,
        )


class SourceError(RbacError):
    """A roles or users data source failed."""

    def __init__(self, message: str, cause: Optional[Exception] = None):
        super().__init__(
            code=ErrorCode.SOURCE_ERROR,
            message=message,
            source=ErrorSource.DATA_SOURCE,
            cause=cause,
        )


class EngineNotReady(RbacError):
    """Raised when the rule index is queried before it was ever compiled."""

    def __init__(self, message: str = "Rule index has not been compiled. Did you forget to call initialize()?"):
        super().__init__(
            code=ErrorCode.ENGINE_NOT_READY,
            message=message,
            source=ErrorSource.ENGINE,
        )


__all__ = [
    'ErrorCode',
    'ErrorSource',
    'RbacError',
    'ValidationError',
    'InvalidIdentifier',
    'InvalidCombinatorCombination',
    'ConfigurationError',
    'RemoteNotConfigured',
    'UnknownPrincipalType',
    'PermissionDenied',
    'RemoteAuthorizationDenied',
    'RemoteTransportError',
    'SourceError',
    'EngineNotReady',
]
