"""Unit tests for sync error classification."""

import pytest

from omnicrm.core.errors.classification import (
    DEFAULT_USER_MESSAGE,
    ErrorCategory,
    ErrorSeverity,
    RecoveryAction,
    classify_error,
    classify_error_batch,
    generate_error_report,
    get_estimated_impact,
)


class TestClassifyError:
    @pytest.mark.parametrize(
        "message, category, severity",
        [
            ("Google API error 401: Invalid Credentials", ErrorCategory.AUTHENTICATION, ErrorSeverity.CRITICAL),
            ("Quota exceeded for quota metric 'Queries'", ErrorCategory.QUOTA, ErrorSeverity.MEDIUM),
            ("Too many requests", ErrorCategory.QUOTA, ErrorSeverity.MEDIUM),
            ("Request timeout after 30s", ErrorCategory.NETWORK, ErrorSeverity.MEDIUM),
            ("read ECONNRESET", ErrorCategory.NETWORK, ErrorSeverity.MEDIUM),
            ("JSON error at position 4", ErrorCategory.DATA_FORMAT, ErrorSeverity.LOW),
            ("Google API error 403: Forbidden", ErrorCategory.PERMISSION, ErrorSeverity.HIGH),
            ("Insufficient Permission: insufficient scope", ErrorCategory.PERMISSION, ErrorSeverity.HIGH),
            ("database constraint violated", ErrorCategory.PROCESSING, ErrorSeverity.MEDIUM),
            ("Gmail query invalid", ErrorCategory.CONFIGURATION, ErrorSeverity.MEDIUM),
        ],
    )
    def test_patterns(self, message, category, severity):
        classification = classify_error(message)
        assert classification.category == category
        assert classification.severity == severity
        assert classification.technical_message == message
        assert classification.estimated_impact == get_estimated_impact(category, severity)
        assert "matched_pattern" in classification.debug_context

    def test_first_matching_pattern_wins(self):
        # mentions both an auth and a quota marker
        classification = classify_error("401 after rate limit")
        assert classification.category == ErrorCategory.AUTHENTICATION

    def test_authentication_is_not_auto_retryable(self):
        classification = classify_error("unauthorized")
        assert classification.retryable is False
        assert [s.action for s in classification.recovery_strategies] == [
            RecoveryAction.REFRESH_TOKEN,
            RecoveryAction.CONTACT_SUPPORT,
        ]

    def test_unknown_error(self):
        classification = classify_error("the moon is in the wrong phase", {"provider": "gmail"})
        assert classification.category == ErrorCategory.PROCESSING
        assert classification.user_message == DEFAULT_USER_MESSAGE
        assert classification.retryable is True
        assert classification.debug_context["classified"] is False
        assert classification.debug_context["provider"] == "gmail"

    def test_exception_input_keeps_stack(self):
        try:
            raise TimeoutError("connection failed")
        except TimeoutError as e:
            classification = classify_error(e, {"stage": "ingestion"})

        assert classification.category == ErrorCategory.NETWORK
        assert classification.debug_context["stage"] == "ingestion"
        assert classification.debug_context["original_error"] == "connection failed"
        assert classification.debug_context["stack"][0].startswith("Traceback")
        assert len(classification.debug_context["stack"]) <= 5

    def test_exception_without_message_uses_type_name(self):
        classification = classify_error(ValueError())
        assert classification.technical_message == "ValueError"
        assert classification.debug_context["stack"] is None

    def test_strategies_are_copies(self):
        first = classify_error("unauthorized")
        first.recovery_strategies[0].label = "changed"
        assert classify_error("unauthorized").recovery_strategies[0].label == "Reconnect Google Account"


class TestClassifyErrorBatch:
    def test_summary(self):
        result = classify_error_batch(
            [
                ("Request timeout", {"provider": "calendar"}),
                ("Google API error 401: Unauthorized", None),
                ("connection failed", None),
            ]
        )
        summary = result.summary
        assert len(result.classifications) == 3
        assert summary.total_errors == 3
        assert summary.by_category == {"network": 2, "authentication": 1}
        assert summary.by_severity == {"medium": 2, "critical": 1}
        assert summary.most_critical.category == ErrorCategory.AUTHENTICATION
        assert [s.action for s in summary.suggested_actions] == [
            RecoveryAction.RETRY,
            RecoveryAction.WAIT_AND_RETRY,
            RecoveryAction.REFRESH_TOKEN,
            RecoveryAction.CONTACT_SUPPORT,
        ]

    def test_empty_batch(self):
        summary = classify_error_batch([]).summary
        assert summary.total_errors == 0
        assert summary.most_critical is None
        assert summary.suggested_actions == []


class TestErrorReport:
    def test_report(self):
        report = generate_error_report(classify_error("Google API error 403: access forbidden"))
        assert report.title == "High Priority"
        assert report.severity == ErrorSeverity.HIGH
        assert report.impact == "Key functionality restricted"
        assert report.message == "Missing required permissions for Google account access"
        assert len(report.actions) == 2

    def test_critical_report(self):
        report = generate_error_report(classify_error("token is invalid"))
        assert report.title == "Critical Issue"
        assert report.impact == "Complete sync blocked until reconnection"
