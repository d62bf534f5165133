"""
Google integration service.

OAuth connect/disconnect, sync preferences, import previews and the Gmail and
Calendar sync runs that copy provider items into ``raw_events``.
"""

from __future__ import annotations

import asyncio
from datetime import date, datetime, time, timedelta, timezone
from email.utils import parseaddr
from typing import Any, Dict, List, Optional, Sequence, Tuple
from urllib.parse import urlencode

import httpx

from omnicrm.core.crypto import CredentialEncryptionError, encrypt_string
from omnicrm.core.database.base import new_id, utc_now
from omnicrm.core.database.entities.integrations import GoogleService, UserSyncPrefs
from omnicrm.core.database.entities.sync import RawEvent, SyncSession, SyncSessionStatus
from omnicrm.core.database.repositories.bundle import SqlRepoBundle
from omnicrm.core.logging_config import get_logger, mask_identifier
from omnicrm.core.models.io.google import (
    CalendarPreviewRequest,
    DateRange,
    GmailLabel,
    GmailPreviewRequest,
    GoogleStatus,
    IngestionStats,
    ServiceStatus,
    SyncPrefsUpdate,
    SyncPreview,
    SyncRequest,
    SyncResult,
)
from omnicrm.core.monitoring import log_sync_run
from omnicrm.integrations.google import (
    GoogleApiClient,
    GoogleApiError,
    GoogleOAuthClient,
    GoogleOAuthError,
    create_state,
    verify_state,
)
from omnicrm.server.response import APIError, ApiErrorCode

logger = get_logger(__name__)

SERVICE_LABELS = {GoogleService.GMAIL.value: "Gmail", GoogleService.CALENDAR.value: "Calendar"}

PRIMARY_ONLY_QUERY = "category:primary -in:chats -in:drafts"
GMAIL_CATEGORY_LABELS = {"promotions", "social", "forums", "updates", "primary"}

GMAIL_KB_PER_MESSAGE = 50
CALENDAR_KB_PER_EVENT = 2
LARGE_GMAIL_SYNC_ITEMS = 10000
LARGE_CALENDAR_SYNC_ITEMS = 5000
LARGE_SYNC_MB = 500

MAX_SYNC_ITEMS = 2000
SYNC_BATCH_SIZE = 25
LIST_PAGE_SIZE = 500
CALENDAR_PAGE_SIZE = 250
INGESTION_STAGE = "ingestion"


def _utc_from_millis(value: Any) -> Optional[datetime]:
    try:
        millis = int(value)
    except (TypeError, ValueError):
        return None
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc).replace(tzinfo=None)


def _parse_event_time(value: Optional[Dict[str, Any]]) -> Optional[datetime]:
    """Start/end of a Calendar event as naive UTC; all-day events start at midnight."""
    if not value:
        return None
    if value.get("dateTime"):
        parsed = datetime.fromisoformat(value["dateTime"].replace("Z", "+00:00"))
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
        return parsed
    if value.get("date"):
        return datetime.combine(date.fromisoformat(value["date"]), time.min)
    return None


def _header(message: Dict[str, Any], name: str) -> Optional[str]:
    for header in (message.get("payload") or {}).get("headers") or []:
        if str(header.get("name", "")).lower() == name.lower():
            return header.get("value")
    return None


def sender_email(message: Dict[str, Any]) -> Optional[str]:
    _, address = parseaddr(_header(message, "From") or "")
    return address.lower() or None


def attendee_emails(event: Dict[str, Any]) -> List[str]:
    emails = [
        attendee.get("email", "").lower()
        for attendee in event.get("attendees") or []
        if attendee.get("email") and not attendee.get("self")
    ]
    return [email for email in emails if email]


def gmail_preview_query(time_range_days: int, import_everything: bool) -> str:
    query = f"newer_than:{time_range_days}d"
    return query if import_everything else f"{query} {PRIMARY_ONLY_QUERY}"


def label_exclusion_query(labels: Sequence[str]) -> str:
    parts = []
    for label in labels:
        name = label.strip()
        if not name:
            continue
        if name.lower() in GMAIL_CATEGORY_LABELS:
            parts.append(f"-category:{name.lower()}")
        else:
            parts.append(f"-label:{name.replace(' ', '-')}")
    return " ".join(parts)


def event_included(event: Dict[str, Any], prefs: UserSyncPrefs) -> bool:
    if event.get("status") == "cancelled":
        return False
    if not prefs.calendar_include_private and event.get("visibility") in ("private", "confidential"):
        return False
    if not prefs.calendar_include_organizer_self and (event.get("organizer") or {}).get("self"):
        return False
    return True


def _size_mb(count: int, kb_per_item: int) -> float:
    return round(count * kb_per_item / 1024, 2)


class _SyncCounters:
    def __init__(self) -> None:
        self.processed = 0
        self.inserted = 0
        self.duplicates = 0
        self.errors = 0


class GoogleIntegrationService:
    """Google connection management and sync runs for one practitioner per call."""

    def __init__(
        self,
        repos: SqlRepoBundle,
        oauth: GoogleOAuthClient,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.repos = repos
        self.oauth = oauth
        self.http_client = http_client

    # OAuth

    def start_oauth(self, service: str) -> Tuple[str, str]:
        """
        Begin the consent flow.

        Returns:
            ``(authorization_url, state_cookie_value)``
        """
        try:
            state, cookie_value = create_state(service)
            url = self.oauth.build_authorization_url(service, state)
        except GoogleOAuthError as e:
            raise APIError(ApiErrorCode.INTEGRATION_ERROR, "Google OAuth is not configured") from e
        except CredentialEncryptionError as e:
            raise APIError(ApiErrorCode.INTEGRATION_ERROR, "Encryption key is not configured") from e
        return url, cookie_value

    @staticmethod
    def settings_redirect(**params: str) -> str:
        from omnicrm.server.core.config import settings

        return f"{settings.app_url.rstrip('/')}/settings/sync?{urlencode(params)}"

    async def complete_oauth(
        self,
        user_id: str,
        service: str,
        code: Optional[str],
        state: Optional[str],
        cookie_value: Optional[str],
        error: Optional[str] = None,
    ) -> str:
        """
        Finish the consent flow and store the encrypted tokens.

        Returns:
            The client URL to redirect to, carrying ``connected`` or ``error``
        """
        if error:
            logger.warning(f"Google {service} consent returned error: {error}")
            return self.settings_redirect(error=error)
        if not code:
            return self.settings_redirect(error="missing_code")
        try:
            if not verify_state(service, state, cookie_value):
                logger.warning(f"Invalid OAuth state for {service}, user {mask_identifier(user_id)}")
                return self.settings_redirect(error="invalid_state")

            grant = await self.oauth.exchange_code(service, code)
            await self.repos.integrations.upsert_tokens(
                user_id,
                service,
                access_token=encrypt_string(grant.access_token),
                refresh_token=encrypt_string(grant.refresh_token) if grant.refresh_token else None,
                expiry_date=grant.expiry_date,
                scope=grant.scope,
            )
        except GoogleOAuthError as e:
            logger.warning(f"Google {service} token exchange failed: {e.reason}")
            return self.settings_redirect(error=e.reason)
        except CredentialEncryptionError as e:
            logger.error(f"Cannot store Google {service} credentials: {e}")
            return self.settings_redirect(error="encryption_unavailable")

        logger.info(f"Connected Google {service} for user {mask_identifier(user_id)}")
        return self.settings_redirect(connected=service)

    # Status and preferences

    async def status(self, user_id: str) -> GoogleStatus:
        integrations = {integration.service: integration for integration in await self.repos.integrations.list_for_user(user_id)}
        statuses = {}
        for service in GoogleService:
            integration = integrations.get(service.value)
            latest = await self.repos.raw_events.latest_for_provider(user_id, service.value)
            statuses[service.value] = ServiceStatus(
                service=service.value,
                connected=integration is not None,
                expiry_date=integration.expiry_date if integration else None,
                scope=integration.scope if integration else None,
                last_sync=latest.created_at if latest else None,
            )
        return GoogleStatus(**statuses)

    async def disconnect(self, user_id: str, service: str) -> None:
        if not await self.repos.integrations.delete_for_service(user_id, service):
            raise APIError(ApiErrorCode.NOT_FOUND, f"{SERVICE_LABELS[service]} not connected")
        logger.info(f"Disconnected Google {service} for user {mask_identifier(user_id)}")

    async def get_prefs(self, user_id: str) -> UserSyncPrefs:
        return await self.repos.sync_prefs.get_or_default(user_id)

    async def update_prefs(self, user_id: str, payload: SyncPrefsUpdate) -> UserSyncPrefs:
        stored = await self.repos.sync_prefs.get_by_id(user_id)
        prefs = stored if stored is not None else UserSyncPrefs(user_id=user_id)
        for field, value in payload.model_dump(exclude_unset=True).items():
            if value is None:
                continue
            setattr(prefs, field, list(value) if isinstance(value, list) else value)
        if stored is None:
            return await self.repos.sync_prefs.create(prefs)
        return await self.repos.sync_prefs.update(prefs)

    # API access

    async def _client(self, user_id: str, service: str) -> GoogleApiClient:
        client = await GoogleApiClient.for_user(
            self.repos.integrations, user_id, service, oauth=self.oauth, http_client=self.http_client
        )
        if client is None:
            raise APIError(ApiErrorCode.INTEGRATION_ERROR, f"{SERVICE_LABELS[service]} not connected")
        return client

    @staticmethod
    def _api_error(service: str, error: Exception) -> APIError:
        label = SERVICE_LABELS[service]
        if isinstance(error, GoogleApiError):
            if error.is_invalid_grant:
                return APIError(ApiErrorCode.INTEGRATION_ERROR, f"{label} authorization expired. Please reconnect.")
            if error.is_rate_limited:
                return APIError(ApiErrorCode.INTERNAL_ERROR, "Rate limit exceeded. Please try again later.")
        if isinstance(error, CredentialEncryptionError):
            return APIError(ApiErrorCode.INTEGRATION_ERROR, f"Stored {label} credentials cannot be read. Please reconnect.")
        return APIError(ApiErrorCode.INTEGRATION_ERROR, f"{label} request failed", details={"error": str(error)})

    # Previews

    async def preview_gmail(self, user_id: str, request: GmailPreviewRequest) -> SyncPreview:
        service = GoogleService.GMAIL.value
        query = gmail_preview_query(request.time_range_days, request.import_everything)
        async with await self._client(user_id, service) as client:
            try:
                listing = await client.list_messages(query=query, max_results=1)
            except (GoogleApiError, CredentialEncryptionError) as e:
                logger.warning(f"Gmail preview failed for user {mask_identifier(user_id)}: {e}")
                raise self._api_error(service, e) from e

        count = int(listing.get("resultSizeEstimate") or 0)
        size_mb = _size_mb(count, GMAIL_KB_PER_MESSAGE)
        warnings = []
        if count > LARGE_GMAIL_SYNC_ITEMS:
            warnings.append("Large sync operation detected. This may take several hours to complete.")
        if size_mb > LARGE_SYNC_MB:
            warnings.append("Estimated sync size exceeds 500MB. Consider reducing the time range.")

        now = utc_now()
        return SyncPreview(
            service=service,
            estimated_items=count,
            estimated_size_mb=size_mb,
            date_range=DateRange(start=now - timedelta(days=request.time_range_days), end=now),
            details={"email_count": count, "query": query},
            warnings=warnings,
        )

    async def _list_events(
        self,
        client: GoogleApiClient,
        prefs: UserSyncPrefs,
        start: datetime,
        end: datetime,
        limit: Optional[int] = None,
    ) -> List[Tuple[str, Dict[str, Any]]]:
        """Events of the preferred calendars in ``[start, end]`` as ``(calendar_id, event)`` pairs."""
        events: List[Tuple[str, Dict[str, Any]]] = []
        for calendar_id in prefs.calendar_ids or ["primary"]:
            page_token = None
            while True:
                page = await client.list_events(
                    calendar_id, start, end, page_token=page_token, max_results=CALENDAR_PAGE_SIZE
                )
                for event in page.get("items") or []:
                    if event_included(event, prefs):
                        events.append((calendar_id, event))
                        if limit is not None and len(events) >= limit:
                            return events
                page_token = page.get("nextPageToken")
                if not page_token:
                    break
        return events

    async def preview_calendar(self, user_id: str, request: CalendarPreviewRequest) -> SyncPreview:
        service = GoogleService.CALENDAR.value
        prefs = await self.get_prefs(user_id)
        now = utc_now()
        start = now - timedelta(days=request.time_range_days)
        end = now + timedelta(days=request.future_days)
        async with await self._client(user_id, service) as client:
            try:
                events = await self._list_events(client, prefs, start, end)
            except (GoogleApiError, CredentialEncryptionError) as e:
                logger.warning(f"Calendar preview failed for user {mask_identifier(user_id)}: {e}")
                raise self._api_error(service, e) from e

        count = len(events)
        warnings = []
        if count > LARGE_CALENDAR_SYNC_ITEMS:
            warnings.append("Large calendar sync detected. This may take a while to complete.")
        return SyncPreview(
            service=service,
            estimated_items=count,
            estimated_size_mb=_size_mb(count, CALENDAR_KB_PER_EVENT),
            date_range=DateRange(start=start, end=end),
            details={"event_count": count, "calendar_ids": list(prefs.calendar_ids or ["primary"])},
            warnings=warnings,
        )

    async def gmail_labels(self, user_id: str) -> List[GmailLabel]:
        service = GoogleService.GMAIL.value
        async with await self._client(user_id, service) as client:
            try:
                labels = await client.list_labels()
            except (GoogleApiError, CredentialEncryptionError) as e:
                raise self._api_error(service, e) from e
        return [GmailLabel(id=label["id"], name=label.get("name", label["id"]), type=label.get("type")) for label in labels]

    # Sync runs

    async def _start_session(self, user_id: str, service: str, preferences: Dict[str, Any]) -> SyncSession:
        session = SyncSession(
            user_id=user_id,
            service=service,
            status=SyncSessionStatus.STARTED.value,
            current_step=f"Initializing {SERVICE_LABELS[service]} sync...",
            preferences=preferences,
        )
        return await self.repos.sync_sessions.create(session)

    async def _progress(
        self, session: SyncSession, counters: _SyncCounters, step: str, total_items: Optional[int] = None
    ) -> None:
        await self.repos.sync_sessions.reload(session)
        if total_items is not None:
            session.total_items = total_items
        session.status = SyncSessionStatus.IMPORTING.value
        session.current_step = step
        session.imported_items = counters.inserted
        session.duplicate_items = counters.duplicates
        session.failed_items = counters.errors
        done = counters.processed + counters.duplicates
        session.progress_percentage = min(99, int(done * 100 / session.total_items)) if session.total_items else 0
        await self.repos.sync_sessions.update(session)

    async def _finish(self, session: SyncSession, counters: _SyncCounters, batch_id: str, total_found: int) -> SyncResult:
        await self.repos.sync_sessions.reload(session)
        session.status = SyncSessionStatus.COMPLETED.value
        session.current_step = f"{SERVICE_LABELS[session.service]} sync completed"
        session.progress_percentage = 100
        session.imported_items = counters.inserted
        session.duplicate_items = counters.duplicates
        session.failed_items = counters.errors
        session.completed_at = utc_now()
        await self.repos.sync_sessions.update(session)

        result = SyncResult(
            session_id=session.id,
            batch_id=batch_id,
            total_found=total_found,
            processed=counters.processed,
            inserted=counters.inserted,
            duplicates=counters.duplicates,
            errors=counters.errors,
        )
        log_sync_run(session.service, session.id, result.model_dump(exclude={"session_id"}))
        logger.info(
            f"{SERVICE_LABELS[session.service]} sync {session.id} completed: found={total_found}, "
            f"inserted={counters.inserted}, duplicates={counters.duplicates}, errors={counters.errors}"
        )
        return result

    async def _fail(self, session: SyncSession, error: Exception) -> None:
        await self.repos.sync_sessions.rollback()
        await self.repos.sync_sessions.reload(session)
        session.status = SyncSessionStatus.FAILED.value
        session.current_step = f"{SERVICE_LABELS[session.service]} sync failed"
        session.error_details = {"error": str(error), "type": type(error).__name__}
        session.completed_at = utc_now()
        await self.repos.sync_sessions.update(session)
        logger.error(f"{SERVICE_LABELS[session.service]} sync {session.id} failed: {error}")

    async def _store_events(
        self,
        user_id: str,
        provider: str,
        events: List[RawEvent],
        contact_emails: List[List[str]],
        counters: _SyncCounters,
    ) -> None:
        """Attach contacts by e-mail and insert one batch, falling back to row-by-row inserts."""
        wanted = [email for emails in contact_emails for email in emails]
        contacts = await self.repos.contacts.find_by_emails(user_id, wanted)
        for event, emails in zip(events, contact_emails):
            match = next((contacts[email] for email in emails if email in contacts), None)
            event.contact_id = match.id if match else None

        try:
            counters.inserted += await self.repos.raw_events.add_many(events)
            return
        except Exception as e:
            await self.repos.raw_events.rollback()
            logger.warning(f"Bulk insert of {len(events)} {provider} events failed, retrying one by one: {e}")

        for event in events:
            try:
                await self.repos.raw_events.create(event)
                counters.inserted += 1
            except Exception as e:
                await self.repos.raw_events.rollback()
                counters.errors += 1
                await self.repos.raw_event_errors.record(
                    user_id, provider, INGESTION_STAGE, str(e), context={"source_id": event.source_id}
                )

    async def _gmail_query(self, user_id: str, request: SyncRequest, prefs: UserSyncPrefs) -> str:
        latest = await self.repos.raw_events.latest_for_provider(user_id, GoogleService.GMAIL.value)
        if request.incremental and latest is not None:
            boundary = latest.created_at - timedelta(hours=request.overlap_hours)
            query = f"after:{boundary.strftime('%Y/%m/%d')}"
        else:
            query = f"newer_than:{request.days_back or prefs.gmail_time_range_days}d"
        exclusions = label_exclusion_query(prefs.gmail_label_excludes or [])
        return f"{query} {exclusions}".strip()

    async def _list_message_ids(self, client: GoogleApiClient, query: str) -> List[str]:
        ids: List[str] = []
        page_token = None
        while len(ids) < MAX_SYNC_ITEMS:
            page = await client.list_messages(query=query, page_token=page_token, max_results=LIST_PAGE_SIZE)
            ids.extend(message["id"] for message in page.get("messages") or [] if message.get("id"))
            page_token = page.get("nextPageToken")
            if not page_token:
                break
        return list(dict.fromkeys(ids))[:MAX_SYNC_ITEMS]

    async def sync_gmail(self, user_id: str, request: SyncRequest) -> SyncResult:
        """
        Import Gmail message metadata into ``raw_events``.

        Messages already stored for the user are counted as duplicates; messages
        that cannot be fetched are recorded as ingestion errors and the run continues.
        """
        service = GoogleService.GMAIL.value
        client = await self._client(user_id, service)
        prefs = await self.get_prefs(user_id)
        query = await self._gmail_query(user_id, request, prefs)
        batch_id = new_id()
        session = await self._start_session(user_id, service, {"query": query, **request.model_dump()})
        counters = _SyncCounters()

        try:
            async with client:
                ids = await self._list_message_ids(client, query)
                existing = await self.repos.raw_events.existing_source_ids(user_id, service, ids)
                counters.duplicates = len(existing)
                pending = [message_id for message_id in ids if message_id not in existing]
                await self._progress(session, counters, f"Importing {len(pending)} messages...", total_items=len(ids))

                # refresh up front so concurrent fetches do not all hit an expired token
                await client.access_token()
                for start in range(0, len(pending), SYNC_BATCH_SIZE):
                    chunk = pending[start : start + SYNC_BATCH_SIZE]
                    fetched = await asyncio.gather(
                        *(client.get_message(message_id) for message_id in chunk), return_exceptions=True
                    )
                    events: List[RawEvent] = []
                    emails: List[List[str]] = []
                    for message_id, message in zip(chunk, fetched):
                        counters.processed += 1
                        if isinstance(message, BaseException):
                            counters.errors += 1
                            await self.repos.raw_event_errors.record(
                                user_id,
                                service,
                                INGESTION_STAGE,
                                str(message),
                                context={"message_id": message_id, "batch_id": batch_id},
                            )
                            continue
                        events.append(
                            RawEvent(
                                user_id=user_id,
                                provider=service,
                                payload=message,
                                occurred_at=_utc_from_millis(message.get("internalDate")) or utc_now(),
                                batch_id=batch_id,
                                source_id=message.get("id") or message_id,
                                source_meta={
                                    "label_ids": message.get("labelIds") or [],
                                    "fetched_at": utc_now().isoformat(),
                                    "matched_query": query,
                                    "sync_type": "gmail_sync",
                                },
                            )
                        )
                        sender = sender_email(message)
                        emails.append([sender] if sender else [])
                    if events:
                        await self._store_events(user_id, service, events, emails, counters)
                    await self._progress(session, counters, f"Imported {counters.processed} of {len(pending)} messages")
        except (GoogleApiError, CredentialEncryptionError) as e:
            await self._fail(session, e)
            raise self._api_error(service, e) from e
        except Exception as e:
            await self._fail(session, e)
            raise

        return await self._finish(session, counters, batch_id, total_found=len(ids))

    async def sync_calendar(self, user_id: str, request: SyncRequest) -> SyncResult:
        """Import Calendar events of the preferred calendars into ``raw_events``."""
        service = GoogleService.CALENDAR.value
        client = await self._client(user_id, service)
        prefs = await self.get_prefs(user_id)
        now = utc_now()
        start = now - timedelta(days=request.days_back or prefs.calendar_time_window_days)
        end = now + timedelta(days=prefs.calendar_future_days)
        batch_id = new_id()
        session = await self._start_session(
            user_id,
            service,
            {"calendar_ids": list(prefs.calendar_ids or ["primary"]), "start": start.isoformat(), "end": end.isoformat()},
        )
        counters = _SyncCounters()

        try:
            async with client:
                listed = await self._list_events(client, prefs, start, end, limit=MAX_SYNC_ITEMS)
                source_ids = [event.get("id") for _, event in listed if event.get("id")]
                existing = await self.repos.raw_events.existing_source_ids(user_id, service, source_ids)
                counters.duplicates = sum(1 for _, event in listed if event.get("id") in existing)
                pending = [(calendar_id, event) for calendar_id, event in listed if event.get("id") not in existing]
                await self._progress(session, counters, f"Importing {len(pending)} events...", total_items=len(listed))

                for offset in range(0, len(pending), SYNC_BATCH_SIZE):
                    events: List[RawEvent] = []
                    emails: List[List[str]] = []
                    for calendar_id, event in pending[offset : offset + SYNC_BATCH_SIZE]:
                        counters.processed += 1
                        try:
                            occurred_at = _parse_event_time(event.get("start"))
                            if not event.get("id") or occurred_at is None:
                                raise ValueError("Event is missing an id or start time")
                        except ValueError as e:
                            counters.errors += 1
                            await self.repos.raw_event_errors.record(
                                user_id,
                                service,
                                INGESTION_STAGE,
                                str(e),
                                context={"event_id": event.get("id"), "calendar_id": calendar_id, "batch_id": batch_id},
                            )
                            continue
                        events.append(
                            RawEvent(
                                user_id=user_id,
                                provider=service,
                                payload=event,
                                occurred_at=occurred_at,
                                batch_id=batch_id,
                                source_id=event["id"],
                                source_meta={
                                    "calendar_id": calendar_id,
                                    "fetched_at": utc_now().isoformat(),
                                    "sync_type": "calendar_sync",
                                },
                            )
                        )
                        emails.append(attendee_emails(event))
                    if events:
                        await self._store_events(user_id, service, events, emails, counters)
                    await self._progress(session, counters, f"Imported {counters.processed} of {len(pending)} events")
        except (GoogleApiError, CredentialEncryptionError) as e:
            await self._fail(session, e)
            raise self._api_error(service, e) from e
        except Exception as e:
            await self._fail(session, e)
            raise

        return await self._finish(session, counters, batch_id, total_found=len(listed))

    async def ingestion_stats(self, user_id: str, provider: str) -> IngestionStats:
        total = await self.repos.raw_events.count_for_provider(user_id, provider)
        recent = await self.repos.raw_events.count_for_provider(user_id, provider, since=utc_now() - timedelta(days=7))
        latest = await self.repos.raw_events.latest_for_provider(user_id, provider)
        return IngestionStats(
            provider=provider,
            total_events=total,
            events_last_7_days=recent,
            last_ingested_at=latest.created_at if latest else None,
        )

    async def get_sync_session(self, user_id: str, session_id: str) -> SyncSession:
        session = await self.repos.sync_sessions.get_for_user(user_id, session_id)
        if session is None:
            raise APIError.not_found("Sync session")
        return session
