"""
Tenant error hierarchy.

Every error raised by the tenant connection manager derives from `TenantError` and carries the
tenant it concerns, the operation that failed, a machine-readable `TenantErrorType`, a timestamp,
whether retrying can help, and the HTTP status an adapter should answer with.

Messages never contain connection strings or credentials; the driver exception stays available
as `cause` (and `__cause__`) for operators.
"""

import asyncio
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pymongo.errors import (
    ConfigurationError,
    ConnectionFailure,
    ExecutionTimeout,
    OperationFailure,
    PyMongoError,
)

from luxgen_tenancy.utils.security_utils import redact_uri

# MongoDB server error codes for authentication / authorization failures
AUTH_ERROR_CODES = {13, 18}


class TenantErrorType(str, Enum):
    """Classification of tenant database failures."""

    CONNECTION_FAILED = "CONNECTION_FAILED"
    AUTHENTICATION_FAILED = "AUTHENTICATION_FAILED"
    DATABASE_NOT_FOUND = "DATABASE_NOT_FOUND"
    TENANT_NOT_FOUND = "TENANT_NOT_FOUND"
    CONTEXT_FAILED = "CONTEXT_FAILED"
    OPERATION_FAILED = "OPERATION_FAILED"
    HEALTH_CHECK_FAILED = "HEALTH_CHECK_FAILED"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    LIMIT_EXCEEDED = "LIMIT_EXCEEDED"
    RECORD_NOT_FOUND = "RECORD_NOT_FOUND"
    RECORD_CONFLICT = "RECORD_CONFLICT"


class TenantError(Exception):
    """Base class for all tenant connection manager errors."""

    status_code: int = 500
    public_message: str = "Tenant database error"

    def __init__(
        self,
        message: str,
        tenant_id: Optional[str] = None,
        operation: Optional[str] = None,
        error_type: TenantErrorType = TenantErrorType.OPERATION_FAILED,
        retryable: bool = False,
        cause: Optional[BaseException] = None,
    ):
        self.message = message
        self.tenant_id = tenant_id
        self.operation = operation
        self.error_type = error_type
        self.retryable = retryable
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Client-safe representation used by the HTTP adapters."""
        return {
            "success": False,
            "error": self.public_message,
            "error_type": self.error_type.value,
            "message": self.message,
            "tenant_id": self.tenant_id,
            "retryable": self.retryable,
        }


def _describe_cause(cause: BaseException) -> str:
    detail = redact_uri(str(cause)).strip()
    return f"{type(cause).__name__}: {detail}" if detail else type(cause).__name__


def is_retryable_cause(cause: BaseException) -> bool:
    """
    Decide whether a connection failure is transient.

    Timeouts, refused connections and server selection failures are transient; authentication and
    configuration failures are not.
    """
    if isinstance(cause, OperationFailure):
        return cause.code not in AUTH_ERROR_CODES
    if isinstance(cause, ConfigurationError):
        return False
    if isinstance(cause, (ConnectionFailure, ExecutionTimeout)):
        return True
    if isinstance(cause, (asyncio.TimeoutError, TimeoutError, ConnectionRefusedError, ConnectionResetError)):
        return True
    if isinstance(cause, PyMongoError):
        return bool(getattr(cause, "timeout", False))
    return False


class TenantConnectionError(TenantError):
    """A connection to the tenant's database could not be established."""

    status_code = 500
    public_message = "Tenant database error"

    def __init__(self, tenant_id: str, cause: BaseException, operation: str = "connect"):
        if isinstance(cause, OperationFailure) and cause.code in AUTH_ERROR_CODES:
            error_type = TenantErrorType.AUTHENTICATION_FAILED
        else:
            error_type = TenantErrorType.CONNECTION_FAILED
        super().__init__(
            f"Failed to connect to database for tenant '{tenant_id}' ({_describe_cause(cause)})",
            tenant_id=tenant_id,
            operation=operation,
            error_type=error_type,
            retryable=is_retryable_cause(cause),
            cause=cause,
        )


class TenantNotFoundError(TenantError):
    """No tenant configuration matches the given id or slug."""

    status_code = 404
    public_message = "Tenant not found"

    def __init__(self, identifier: str):
        super().__init__(
            f"Tenant configuration not found: {identifier}",
            tenant_id=identifier,
            operation="resolve",
            error_type=TenantErrorType.TENANT_NOT_FOUND,
            retryable=False,
        )


class TenantContextError(TenantError):
    """A full request context could not be assembled for a tenant."""

    def __init__(
        self,
        message: str,
        tenant_id: Optional[str] = None,
        status_code: int = 500,
        cause: Optional[TenantError] = None,
        error_type: Optional[TenantErrorType] = None,
    ):
        if error_type is None:
            error_type = cause.error_type if cause is not None else TenantErrorType.CONTEXT_FAILED
        super().__init__(
            message,
            tenant_id=tenant_id,
            operation="bind_context",
            error_type=error_type,
            retryable=cause.retryable if cause is not None else False,
            cause=cause,
        )
        self.status_code = status_code
        if status_code == 400:
            self.public_message = "Tenant context required"
        elif status_code == 403:
            self.public_message = "Tenant not active"
        elif status_code == 404:
            self.public_message = "Tenant not found"
        else:
            self.public_message = "Tenant database error"


class OperationFailedError(TenantError):
    """A database operation failed for a tenant whose connection lifecycle already started."""

    status_code = 500
    public_message = "Tenant database operation failed"

    def __init__(self, tenant_id: str, operation: str, cause: Optional[BaseException] = None, message: str = ""):
        if not message:
            message = f"Operation '{operation}' failed for tenant '{tenant_id}'"
            if cause is not None:
                message = f"{message} ({_describe_cause(cause)})"
        super().__init__(
            message,
            tenant_id=tenant_id,
            operation=operation,
            error_type=TenantErrorType.OPERATION_FAILED,
            retryable=is_retryable_cause(cause) if cause is not None else False,
            cause=cause,
        )


class RecordValidationError(TenantError):
    """A record payload does not match its record shape."""

    status_code = 422
    public_message = "Invalid record"

    def __init__(self, tenant_id: str, model_name: str, errors: Any):
        self.errors = errors
        super().__init__(
            f"Invalid {model_name} record for tenant '{tenant_id}'",
            tenant_id=tenant_id,
            operation=f"validate_{model_name.lower()}",
            error_type=TenantErrorType.VALIDATION_FAILED,
            retryable=False,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["details"] = self.errors
        return data


class RecordNotFoundError(TenantError):
    """No record of the tenant has the requested id."""

    status_code = 404
    public_message = "Record not found"

    def __init__(self, tenant_id: str, model_name: str, record_id: str):
        super().__init__(
            f"{model_name} '{record_id}' not found for tenant '{tenant_id}'",
            tenant_id=tenant_id,
            operation=f"get_{model_name.lower()}",
            error_type=TenantErrorType.RECORD_NOT_FOUND,
            retryable=False,
        )


class RecordConflictError(TenantError):
    """A record collides with a unique index of its tenant (e.g. a duplicate user email)."""

    status_code = 409
    public_message = "Record already exists"

    def __init__(self, tenant_id: str, model_name: str, fields: Optional[list] = None):
        self.fields = fields or []
        described = ", ".join(self.fields) or "a unique key"
        super().__init__(
            f"{model_name} with the same {described} already exists for tenant '{tenant_id}'",
            tenant_id=tenant_id,
            operation=f"write_{model_name.lower()}",
            error_type=TenantErrorType.RECORD_CONFLICT,
            retryable=False,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["fields"] = self.fields
        return data
