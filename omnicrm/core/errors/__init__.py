"""Classification of integration and processing errors into user-facing guidance."""

from .classification import (
    ErrorBatchResult,
    ErrorCategory,
    ErrorClassification,
    ErrorReport,
    ErrorSeverity,
    RecoveryAction,
    RecoveryStrategy,
    classify_error,
    classify_error_batch,
    generate_error_report,
)

__all__ = [
    "ErrorBatchResult",
    "ErrorCategory",
    "ErrorClassification",
    "ErrorReport",
    "ErrorSeverity",
    "RecoveryAction",
    "RecoveryStrategy",
    "classify_error",
    "classify_error_batch",
    "generate_error_report",
]
