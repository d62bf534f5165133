"""Unit tests for the Gmail and Calendar sync helpers."""

from datetime import datetime

import pytest

from omnicrm.core.database.entities.integrations import UserSyncPrefs
from omnicrm.server.services.google import (
    _parse_event_time,
    _size_mb,
    _utc_from_millis,
    attendee_emails,
    event_included,
    gmail_preview_query,
    label_exclusion_query,
    sender_email,
)


def _message(**headers: str) -> dict:
    return {"payload": {"headers": [{"name": name, "value": value} for name, value in headers.items()]}}


class TestGmailQueries:
    def test_preview_query_primary_only(self):
        assert gmail_preview_query(30, import_everything=False) == (
            "newer_than:30d category:primary -in:chats -in:drafts"
        )

    def test_preview_query_everything(self):
        assert gmail_preview_query(365, import_everything=True) == "newer_than:365d"

    def test_label_exclusions(self):
        query = label_exclusion_query(["Promotions", "Social", "Client Receipts", " ", "updates"])
        assert query == "-category:promotions -category:social -label:Client-Receipts -category:updates"

    def test_no_exclusions(self):
        assert label_exclusion_query([]) == ""


class TestMessageHeaders:
    def test_sender_email_is_lowercased(self):
        assert sender_email(_message(From="Jane Doe <JANE@Example.com>")) == "jane@example.com"

    def test_header_name_is_case_insensitive(self):
        message = {"payload": {"headers": [{"name": "from", "value": "bob@example.com"}]}}
        assert sender_email(message) == "bob@example.com"

    def test_missing_sender(self):
        assert sender_email(_message(Subject="hi")) is None
        assert sender_email({}) is None


class TestCalendarEvents:
    def test_attendees_exclude_self(self):
        event = {
            "attendees": [
                {"email": "Me@Example.com", "self": True},
                {"email": "Client@Example.com"},
                {"displayName": "no email"},
            ]
        }
        assert attendee_emails(event) == ["client@example.com"]

    def test_no_attendees(self):
        assert attendee_emails({}) == []

    def test_parse_event_time_with_offset(self):
        assert _parse_event_time({"dateTime": "2026-03-01T10:00:00+02:00"}) == datetime(2026, 3, 1, 8, 0)

    def test_parse_event_time_zulu(self):
        assert _parse_event_time({"dateTime": "2026-03-01T10:00:00Z"}) == datetime(2026, 3, 1, 10, 0)

    def test_parse_all_day_event(self):
        assert _parse_event_time({"date": "2026-03-01"}) == datetime(2026, 3, 1)

    @pytest.mark.parametrize("value", [None, {}, {"timeZone": "Europe/Lisbon"}])
    def test_parse_missing_time(self, value):
        assert _parse_event_time(value) is None

    def test_default_prefs_filter(self):
        prefs = UserSyncPrefs(user_id="u1")
        assert event_included({"status": "confirmed"}, prefs)
        assert not event_included({"status": "cancelled"}, prefs)
        assert not event_included({"visibility": "private"}, prefs)
        assert not event_included({"visibility": "confidential"}, prefs)
        assert event_included({"organizer": {"self": True}}, prefs)

    def test_custom_prefs_filter(self):
        prefs = UserSyncPrefs(user_id="u1", calendar_include_private=True, calendar_include_organizer_self=False)
        assert event_included({"visibility": "private"}, prefs)
        assert not event_included({"organizer": {"self": True}}, prefs)


def test_utc_from_millis():
    assert _utc_from_millis("1767225600000") == datetime(2026, 1, 1)
    assert _utc_from_millis(None) is None
    assert _utc_from_millis("soon") is None


def test_size_mb():
    assert _size_mb(12000, 50) == 585.94
    assert _size_mb(100, 2) == 0.2
