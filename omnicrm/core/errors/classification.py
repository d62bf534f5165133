"""
Error classification for Google sync and processing failures.

Technical error messages are matched against an ordered table of patterns and
turned into a category, a severity, a user-facing message and a list of
recovery strategies the UI can offer. The first matching pattern wins;
unrecognized errors fall back to a generic processing classification.
"""

from __future__ import annotations

import re
import traceback
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, Field

from omnicrm.core.logging_config import get_logger

logger = get_logger(__name__)


class ErrorCategory(str, Enum):
    AUTHENTICATION = "authentication"
    NETWORK = "network"
    QUOTA = "quota"
    DATA_FORMAT = "data_format"
    PROCESSING = "processing"
    PERMISSION = "permission"
    CONFIGURATION = "configuration"


class ErrorSeverity(str, Enum):
    CRITICAL = "critical"  # Blocks all functionality
    HIGH = "high"  # Blocks major functionality
    MEDIUM = "medium"  # Partial failure, some data lost
    LOW = "low"  # Minor issues, most data preserved


class RecoveryAction(str, Enum):
    RETRY = "retry"
    REFRESH_TOKEN = "refresh_token"
    ADJUST_PREFERENCES = "adjust_preferences"
    SKIP_ITEM = "skip_item"
    CONTACT_SUPPORT = "contact_support"
    PROCESS_JOBS = "process_jobs"
    WAIT_AND_RETRY = "wait_and_retry"


SEVERITY_ORDER = [ErrorSeverity.CRITICAL, ErrorSeverity.HIGH, ErrorSeverity.MEDIUM, ErrorSeverity.LOW]

SEVERITY_TITLES = {
    ErrorSeverity.CRITICAL: "Critical Issue",
    ErrorSeverity.HIGH: "High Priority",
    ErrorSeverity.MEDIUM: "Moderate Issue",
    ErrorSeverity.LOW: "Minor Issue",
}


class RecoveryStrategy(BaseModel):
    """An action the user (or the system) can take to recover."""

    action: RecoveryAction
    label: str
    description: str
    auto_retryable: bool
    estimated_time: Optional[str] = None
    prevention_tips: List[str] = Field(default_factory=list)


class ErrorClassification(BaseModel):
    """Result of classifying one error."""

    category: ErrorCategory
    severity: ErrorSeverity
    user_message: str
    technical_message: str
    recovery_strategies: List[RecoveryStrategy]
    retryable: bool
    estimated_impact: str
    debug_context: Dict[str, Any] = Field(default_factory=dict)


class ErrorBatchSummary(BaseModel):
    total_errors: int
    by_category: Dict[str, int]
    by_severity: Dict[str, int]
    most_critical: Optional[ErrorClassification] = None
    suggested_actions: List[RecoveryStrategy]


class ErrorBatchResult(BaseModel):
    classifications: List[ErrorClassification]
    summary: ErrorBatchSummary


class ErrorReport(BaseModel):
    title: str
    message: str
    actions: List[RecoveryStrategy]
    severity: ErrorSeverity
    impact: str


def _strategy(
    action: RecoveryAction,
    label: str,
    description: str,
    auto_retryable: bool,
    estimated_time: Optional[str] = None,
    prevention_tips: Sequence[str] = (),
) -> RecoveryStrategy:
    return RecoveryStrategy(
        action=action,
        label=label,
        description=description,
        auto_retryable=auto_retryable,
        estimated_time=estimated_time,
        prevention_tips=list(prevention_tips),
    )


@dataclass(frozen=True)
class ErrorPattern:
    pattern: re.Pattern
    category: ErrorCategory
    severity: ErrorSeverity
    user_message: str
    strategies: Tuple[RecoveryStrategy, ...]

    def recovery_strategies(self) -> List[RecoveryStrategy]:
        return [strategy.model_copy(deep=True) for strategy in self.strategies]


ERROR_PATTERNS: Tuple[ErrorPattern, ...] = (
    ErrorPattern(
        pattern=re.compile(r"invalid.?credentials|unauthorized|401|access.?denied|token.*invalid", re.IGNORECASE),
        category=ErrorCategory.AUTHENTICATION,
        severity=ErrorSeverity.CRITICAL,
        user_message="Your Google account connection has expired or been revoked",
        strategies=(
            _strategy(
                RecoveryAction.REFRESH_TOKEN,
                "Reconnect Google Account",
                "Sign in to Google again to restore access",
                False,
                "1-2 minutes",
                ["Keep your Google account password secure", "Avoid revoking app permissions manually"],
            ),
            _strategy(
                RecoveryAction.CONTACT_SUPPORT,
                "Contact Support",
                "Get help if reconnection doesn't work",
                False,
                "24 hours",
            ),
        ),
    ),
    ErrorPattern(
        pattern=re.compile(r"quota.*exceeded|rate.?limit|429|too.?many.?requests|limit.*reached", re.IGNORECASE),
        category=ErrorCategory.QUOTA,
        severity=ErrorSeverity.MEDIUM,
        user_message="Google API limits have been reached",
        strategies=(
            _strategy(
                RecoveryAction.WAIT_AND_RETRY,
                "Wait and Retry",
                "Wait for quota reset and try again",
                True,
                "1-24 hours",
                ["Reduce sync frequency", "Use more specific email filters", "Sync smaller date ranges"],
            ),
            _strategy(
                RecoveryAction.ADJUST_PREFERENCES,
                "Reduce Sync Scope",
                "Limit date range or add more email filters",
                False,
                "2-3 minutes",
            ),
        ),
    ),
    ErrorPattern(
        pattern=re.compile(
            r"network.*error|connection.*failed|timeout|502|503|504|dns.*error|ECONNRESET|ETIMEDOUT", re.IGNORECASE
        ),
        category=ErrorCategory.NETWORK,
        severity=ErrorSeverity.MEDIUM,
        user_message="Network connectivity issues prevented sync completion",
        strategies=(
            _strategy(
                RecoveryAction.RETRY,
                "Retry Sync",
                "Try the sync operation again",
                True,
                "1-2 minutes",
                ["Check your internet connection", "Try again during non-peak hours"],
            ),
            _strategy(
                RecoveryAction.WAIT_AND_RETRY,
                "Wait and Retry",
                "Wait a few minutes before trying again",
                True,
                "5-10 minutes",
            ),
        ),
    ),
    ErrorPattern(
        pattern=re.compile(
            r"parse.*error|invalid.*format|malformed.*data|encoding.*error|json.*error|mime.*type", re.IGNORECASE
        ),
        category=ErrorCategory.DATA_FORMAT,
        severity=ErrorSeverity.LOW,
        user_message="Some emails contain data that couldn't be processed",
        strategies=(
            _strategy(
                RecoveryAction.SKIP_ITEM,
                "Skip Problem Items",
                "Continue sync while skipping problematic emails",
                False,
                "Immediate",
                [
                    "Problematic emails will be marked for manual review",
                    "Most of your data will still be imported successfully",
                ],
            ),
            _strategy(
                RecoveryAction.CONTACT_SUPPORT,
                "Report Data Issue",
                "Help us improve handling of unusual email formats",
                False,
                "24-48 hours",
            ),
        ),
    ),
    ErrorPattern(
        pattern=re.compile(
            r"permission.*denied|insufficient.*scope|access.*forbidden|403|scope.*required", re.IGNORECASE
        ),
        category=ErrorCategory.PERMISSION,
        severity=ErrorSeverity.HIGH,
        user_message="Missing required permissions for Google account access",
        strategies=(
            _strategy(
                RecoveryAction.REFRESH_TOKEN,
                "Grant Required Permissions",
                "Reconnect with full permissions enabled",
                False,
                "2-3 minutes",
                ["Grant all requested permissions during OAuth", "Check Google account security settings"],
            ),
            _strategy(
                RecoveryAction.CONTACT_SUPPORT,
                "Permission Help",
                "Get help with Google account permission setup",
                False,
                "24 hours",
            ),
        ),
    ),
    ErrorPattern(
        pattern=re.compile(
            r"normalization.*failed|job.*failed|processing.*error|database.*constraint|validation.*error",
            re.IGNORECASE,
        ),
        category=ErrorCategory.PROCESSING,
        severity=ErrorSeverity.MEDIUM,
        user_message="Data was imported but processing is incomplete",
        strategies=(
            _strategy(
                RecoveryAction.PROCESS_JOBS,
                "Process Pending Data",
                "Manually trigger processing of imported data",
                False,
                "2-5 minutes",
                [
                    "Processing can be triggered manually anytime",
                    "Your data is safely imported and will be processed",
                ],
            ),
            _strategy(
                RecoveryAction.RETRY,
                "Retry Processing",
                "Attempt to process the data again",
                True,
                "1-2 minutes",
            ),
        ),
    ),
    ErrorPattern(
        pattern=re.compile(
            r"configuration.*error|settings.*invalid|preference.*error|query.*invalid", re.IGNORECASE
        ),
        category=ErrorCategory.CONFIGURATION,
        severity=ErrorSeverity.MEDIUM,
        user_message="Sync settings need to be adjusted",
        strategies=(
            _strategy(
                RecoveryAction.ADJUST_PREFERENCES,
                "Review Settings",
                "Check and update your sync preferences",
                False,
                "2-3 minutes",
                ["Use simpler Gmail search queries", "Verify label names are correct", "Check date range settings"],
            ),
            _strategy(
                RecoveryAction.CONTACT_SUPPORT,
                "Configuration Help",
                "Get help optimizing your sync settings",
                False,
                "24 hours",
            ),
        ),
    ),
)

DEFAULT_USER_MESSAGE = "An unexpected error occurred during sync"
DEFAULT_IMPACT = "Some functionality may be limited until resolved"
DEFAULT_STRATEGIES: Tuple[RecoveryStrategy, ...] = (
    _strategy(RecoveryAction.RETRY, "Try Again", "Retry the operation that failed", True, "1-2 minutes"),
    _strategy(RecoveryAction.CONTACT_SUPPORT, "Get Help", "Contact support for assistance", False, "24 hours"),
)

ESTIMATED_IMPACT: Dict[ErrorSeverity, Dict[ErrorCategory, str]] = {
    ErrorSeverity.CRITICAL: {
        ErrorCategory.AUTHENTICATION: "Complete sync blocked until reconnection",
        ErrorCategory.NETWORK: "All sync operations halted",
        ErrorCategory.QUOTA: "Sync completely stopped",
        ErrorCategory.DATA_FORMAT: "Critical data processing failed",
        ErrorCategory.PROCESSING: "Essential functionality unavailable",
        ErrorCategory.PERMISSION: "Core features inaccessible",
        ErrorCategory.CONFIGURATION: "System unusable with current settings",
    },
    ErrorSeverity.HIGH: {
        ErrorCategory.AUTHENTICATION: "Major features unavailable",
        ErrorCategory.NETWORK: "Frequent sync failures expected",
        ErrorCategory.QUOTA: "Limited sync capability",
        ErrorCategory.DATA_FORMAT: "Significant data loss possible",
        ErrorCategory.PROCESSING: "Important features may not work",
        ErrorCategory.PERMISSION: "Key functionality restricted",
        ErrorCategory.CONFIGURATION: "Poor sync performance",
    },
    ErrorSeverity.MEDIUM: {
        ErrorCategory.AUTHENTICATION: "Some sync issues expected",
        ErrorCategory.NETWORK: "Occasional sync delays",
        ErrorCategory.QUOTA: "Reduced sync frequency needed",
        ErrorCategory.DATA_FORMAT: "Some emails may be skipped",
        ErrorCategory.PROCESSING: "Data available but not fully processed",
        ErrorCategory.PERMISSION: "Limited feature access",
        ErrorCategory.CONFIGURATION: "Suboptimal sync behavior",
    },
    ErrorSeverity.LOW: {
        ErrorCategory.AUTHENTICATION: "Minor authentication warnings",
        ErrorCategory.NETWORK: "Rare connectivity issues",
        ErrorCategory.QUOTA: "Slight performance impact",
        ErrorCategory.DATA_FORMAT: "Few items may be skipped",
        ErrorCategory.PROCESSING: "Minor processing delays",
        ErrorCategory.PERMISSION: "Optional features affected",
        ErrorCategory.CONFIGURATION: "Minor efficiency loss",
    },
}

ErrorInput = Union[str, BaseException]


def get_estimated_impact(category: ErrorCategory, severity: ErrorSeverity) -> str:
    return ESTIMATED_IMPACT[severity][category]


def _error_message(error: ErrorInput) -> str:
    if isinstance(error, BaseException):
        return str(error) or type(error).__name__
    return str(error)


def _stack_lines(error: ErrorInput) -> Optional[List[str]]:
    if not isinstance(error, BaseException) or error.__traceback__ is None:
        return None
    lines = "".join(traceback.format_exception(type(error), error, error.__traceback__)).splitlines()
    return lines[:5]


def classify_error(error: ErrorInput, context: Optional[Dict[str, Any]] = None) -> ErrorClassification:
    """
    Classify an error message or exception.

    Args:
        error: Exception or raw error message
        context: Optional context (provider, stage, operation, user id) copied into the debug context

    Returns:
        The classification of the first matching pattern, or the default classification
    """
    message = _error_message(error)
    debug_context: Dict[str, Any] = {
        **(context or {}),
        "original_error": message,
        "stack": _stack_lines(error),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    for rule in ERROR_PATTERNS:
        if rule.pattern.search(message):
            strategies = rule.recovery_strategies()
            debug_context["matched_pattern"] = rule.pattern.pattern
            return ErrorClassification(
                category=rule.category,
                severity=rule.severity,
                user_message=rule.user_message,
                technical_message=message,
                recovery_strategies=strategies,
                retryable=any(strategy.auto_retryable for strategy in strategies),
                estimated_impact=get_estimated_impact(rule.category, rule.severity),
                debug_context=debug_context,
            )

    logger.debug(f"Unclassified error: {message}")
    debug_context["classified"] = False
    return ErrorClassification(
        category=ErrorCategory.PROCESSING,
        severity=ErrorSeverity.MEDIUM,
        user_message=DEFAULT_USER_MESSAGE,
        technical_message=message,
        recovery_strategies=[strategy.model_copy(deep=True) for strategy in DEFAULT_STRATEGIES],
        retryable=True,
        estimated_impact=DEFAULT_IMPACT,
        debug_context=debug_context,
    )


def classify_error_batch(errors: Sequence[Tuple[ErrorInput, Optional[Dict[str, Any]]]]) -> ErrorBatchResult:
    """
    Classify several errors and summarize them.

    Args:
        errors: (error, context) pairs

    Returns:
        Individual classifications plus counts per category and severity,
        the most severe classification and the recovery strategies
        de-duplicated by action (first occurrence wins)
    """
    classifications = [classify_error(error, context) for error, context in errors]

    by_category: Dict[str, int] = {}
    by_severity: Dict[str, int] = {}
    for classification in classifications:
        by_category[classification.category.value] = by_category.get(classification.category.value, 0) + 1
        by_severity[classification.severity.value] = by_severity.get(classification.severity.value, 0) + 1

    most_critical = min(
        classifications,
        key=lambda classification: SEVERITY_ORDER.index(classification.severity),
        default=None,
    )

    suggested: List[RecoveryStrategy] = []
    seen_actions = set()
    for classification in classifications:
        for strategy in classification.recovery_strategies:
            if strategy.action not in seen_actions:
                seen_actions.add(strategy.action)
                suggested.append(strategy)

    return ErrorBatchResult(
        classifications=classifications,
        summary=ErrorBatchSummary(
            total_errors=len(classifications),
            by_category=by_category,
            by_severity=by_severity,
            most_critical=most_critical,
            suggested_actions=suggested,
        ),
    )


def generate_error_report(classification: ErrorClassification) -> ErrorReport:
    """Turn a classification into the title/message/actions block shown to the user."""
    return ErrorReport(
        title=SEVERITY_TITLES[classification.severity],
        message=classification.user_message,
        actions=classification.recovery_strategies,
        severity=classification.severity,
        impact=classification.estimated_impact,
    )
