"""Error Hierarchy — typed exceptions for scheduling, authorization, chain and storage failures.

Invariants:
    - Each concrete error class fixes its code, category, severity and HTTP status as
      class attributes; instances only add the message and context
    - Client-side problems map to 4xx, infrastructure problems to 5xx
    - to_response() produces the REST envelope used by api/error_handlers.py
    - Messages never contain authorization material

Design Decisions:
    - Single hierarchy with AutopayError base: FastAPI global handler catches all
    - ErrorContext carries ids for log correlation, not for the client to act on
    - The execution pipeline never raises these past its boundary; it converts them into
      ExecutionResult failures (core/execution_result.py)
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class ErrorSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    VALIDATION = "validation"
    AUTHORIZATION = "authorization"
    SCHEDULING = "scheduling"
    NOT_FOUND = "resource_not_found"
    PERSISTENCE = "database"
    CHAIN = "blockchain"
    KEY_STORAGE = "key_storage"


@dataclass
class ErrorContext:
    """Correlation data attached to an error (payment, owner, failing operation)."""
    payment_id: str | None = None
    owner_id: str | None = None
    operation: str | None = None
    retry_after_ms: int | None = None
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class AutopayError(Exception):
    """Base exception for all Autopay errors."""

    code = "AUTOPAY_ERROR"
    category = ErrorCategory.SCHEDULING
    severity = ErrorSeverity.ERROR
    http_status = 500

    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(message)
        self.message = message
        self.context = context or ErrorContext()

    def to_response(self) -> dict:
        ctx = self.context
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": ctx.occurred_at.isoformat(),
                "context": {
                    "payment_id": ctx.payment_id,
                    "owner_id": ctx.owner_id,
                    "retry_after_ms": ctx.retry_after_ms,
                },
            }
        }


# ─── Client errors (4xx) ────────────────────────────────────────

class ScheduleValidationError(AutopayError):
    """Schedule request violates a creation-time rule."""
    code = "SCHEDULE_VALIDATION_ERROR"
    category = ErrorCategory.VALIDATION
    http_status = 400

    def __init__(self, message: str, field: str, context: ErrorContext | None = None):
        super().__init__(message, context)
        self.field = field


class InvalidAuthorizationError(AutopayError):
    """Authorization material cannot derive a signing identity."""
    code = "INVALID_AUTHORIZATION"
    category = ErrorCategory.VALIDATION
    http_status = 400

    def __init__(self, context: ErrorContext | None = None):
        super().__init__("Invalid private key format", context)


class AuthorizationMismatchError(AutopayError):
    code = "AUTHORIZATION_MISMATCH"
    category = ErrorCategory.AUTHORIZATION
    http_status = 403

    def __init__(self, context: ErrorContext | None = None):
        super().__init__("Private key does not match wallet address", context)


class ResourceNotFoundError(AutopayError):
    code = "RESOURCE_NOT_FOUND"
    category = ErrorCategory.NOT_FOUND
    http_status = 404

    def __init__(
        self, resource_type: str, resource_id: str, context: ErrorContext | None = None,
    ):
        super().__init__(f"{resource_type} '{resource_id}' not found", context)


# ─── Infrastructure errors (5xx) ────────────────────────────────

class DatabaseError(AutopayError):
    code = "DATABASE_ERROR"
    category = ErrorCategory.PERSISTENCE
    severity = ErrorSeverity.CRITICAL
    http_status = 503

    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(f"Database {operation} failed: {message}", context)
        self.operation = operation


class BlockchainRPCError(AutopayError):
    """Blockchain RPC call failed (timeout, connection, node rejection)."""
    code = "BLOCKCHAIN_RPC_ERROR"
    category = ErrorCategory.CHAIN
    severity = ErrorSeverity.CRITICAL
    http_status = 503

    def __init__(
        self,
        message: str,
        rpc_method: str,
        retry_after_ms: int | None = None,
        context: ErrorContext | None = None,
    ):
        context = context or ErrorContext()
        context.operation = rpc_method
        context.retry_after_ms = retry_after_ms
        super().__init__(f"Blockchain RPC error ({rpc_method}): {message}", context)
        self.rpc_method = rpc_method


class DecryptionError(AutopayError):
    """Encrypted authorization material cannot be recovered."""
    code = "DECRYPTION_ERROR"
    category = ErrorCategory.KEY_STORAGE
    severity = ErrorSeverity.CRITICAL

    def __init__(self, context: ErrorContext | None = None):
        super().__init__("Failed to decrypt private key", context)
