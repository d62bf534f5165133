"""
Google Integration API Endpoints.

OAuth connect/callback for Gmail and Calendar, connection status, sync
preferences, import previews, sync runs and ingestion statistics.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Request, status
from fastapi.responses import RedirectResponse

from omnicrm.core.database.entities.integrations import GoogleService
from omnicrm.core.models.io.google import (
    CalendarPreviewRequest,
    GmailLabel,
    GmailPreviewRequest,
    GoogleStatus,
    IngestionStats,
    SyncPrefsRead,
    SyncPrefsUpdate,
    SyncPreview,
    SyncRequest,
    SyncResult,
    SyncSessionRead,
)
from omnicrm.integrations.google import state_cookie_name
from omnicrm.integrations.google.oauth import STATE_COOKIE_MAX_AGE
from omnicrm.server.core.config import settings
from omnicrm.server.response import ApiResponse, ok
from omnicrm.server.services.deps import CurrentUserDep, GoogleServiceDep

router = APIRouter()


@router.get(
    "/{service}/connect",
    status_code=status.HTTP_307_TEMPORARY_REDIRECT,
    summary="Connect Google Service",
    description="Start the OAuth consent flow for Gmail or Calendar and redirect to Google.",
    response_description="Redirect to the Google consent screen.",
    responses={
        307: {"description": "Redirect to Google"},
        502: {"description": "Google OAuth is not configured"},
    },
)
async def connect_service(service: GoogleService, user_id: CurrentUserDep, google: GoogleServiceDep) -> RedirectResponse:
    """
    Start the consent flow.

    A signed, short-lived state cookie named `{service}_auth` is set; the
    callback verifies it against the `state` parameter Google sends back.
    """
    url, cookie_value = google.start_oauth(service.value)
    response = RedirectResponse(url, status_code=status.HTTP_307_TEMPORARY_REDIRECT)
    response.set_cookie(
        state_cookie_name(service.value),
        cookie_value,
        max_age=STATE_COOKIE_MAX_AGE,
        httponly=True,
        samesite="lax",
        secure=settings.app_url.startswith("https://"),
        path="/",
    )
    return response


@router.get(
    "/{service}/callback",
    status_code=status.HTTP_307_TEMPORARY_REDIRECT,
    summary="Google OAuth Callback",
    description="Finish the consent flow, store the encrypted tokens and redirect back to the sync settings page.",
    response_description="Redirect to the client with `connected` or `error` set.",
)
async def oauth_callback(
    request: Request,
    service: GoogleService,
    user_id: CurrentUserDep,
    google: GoogleServiceDep,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
) -> RedirectResponse:
    cookie_name = state_cookie_name(service.value)
    target = await google.complete_oauth(
        user_id,
        service.value,
        code=code,
        state=state,
        cookie_value=request.cookies.get(cookie_name),
        error=error,
    )
    response = RedirectResponse(target, status_code=status.HTTP_307_TEMPORARY_REDIRECT)
    response.delete_cookie(cookie_name, path="/")
    return response


@router.get(
    "/status",
    response_model=ApiResponse[GoogleStatus],
    summary="Google Connection Status",
    description="Whether Gmail and Calendar are connected, token expiry, scopes and the last import time.",
    response_description="Status per service.",
)
async def google_status(request: Request, user_id: CurrentUserDep, google: GoogleServiceDep) -> Dict[str, Any]:
    return ok(request, await google.status(user_id))


@router.delete(
    "/{service}",
    response_model=ApiResponse[Dict[str, Any]],
    summary="Disconnect Google Service",
    description="Remove the stored credentials of Gmail or Calendar.",
    response_description="Disconnection confirmation.",
    responses={404: {"description": "Service not connected"}},
)
async def disconnect_service(
    request: Request, service: GoogleService, user_id: CurrentUserDep, google: GoogleServiceDep
) -> Dict[str, Any]:
    await google.disconnect(user_id, service.value)
    return ok(request, {"disconnected": True, "service": service.value})


@router.get(
    "/prefs",
    response_model=ApiResponse[SyncPrefsRead],
    summary="Get Sync Preferences",
    description="The caller's Gmail and Calendar import preferences; defaults when none are stored.",
    response_description="Sync preferences.",
)
async def get_prefs(request: Request, user_id: CurrentUserDep, google: GoogleServiceDep) -> Dict[str, Any]:
    return ok(request, SyncPrefsRead.model_validate(await google.get_prefs(user_id)))


@router.put(
    "/prefs",
    response_model=ApiResponse[SyncPrefsRead],
    summary="Update Sync Preferences",
    description="Change the caller's import preferences. Omitted fields keep their current value.",
    response_description="The stored sync preferences.",
)
async def update_prefs(
    request: Request, payload: SyncPrefsUpdate, user_id: CurrentUserDep, google: GoogleServiceDep
) -> Dict[str, Any]:
    """
    Update sync preferences.

    - **gmail_label_excludes**: Labels or categories left out of Gmail syncs.
    - **gmail_time_range_days**: Days of mail covered by a full sync.
    - **calendar_ids**: Calendars to import; `primary` by default.
    - **calendar_include_private** / **calendar_include_organizer_self**: Event filters.
    - **calendar_time_window_days** / **calendar_future_days**: Past and future event window.
    """
    return ok(request, SyncPrefsRead.model_validate(await google.update_prefs(user_id, payload)))


@router.post(
    "/gmail/preview",
    response_model=ApiResponse[SyncPreview],
    summary="Preview Gmail Import",
    description="Estimate how many messages a Gmail import would bring in and how large it would be.",
    response_description="Estimated item count, size, date range and warnings.",
    responses={502: {"description": "Gmail not connected or authorization expired"}},
)
async def preview_gmail(
    request: Request, payload: GmailPreviewRequest, user_id: CurrentUserDep, google: GoogleServiceDep
) -> Dict[str, Any]:
    """
    Preview a Gmail import.

    - **time_range_days**: Days back, 1 to 365.
    - **import_everything**: Include every category instead of only Primary.
    """
    return ok(request, await google.preview_gmail(user_id, payload))


@router.post(
    "/calendar/preview",
    response_model=ApiResponse[SyncPreview],
    summary="Preview Calendar Import",
    description="Count the events a Calendar import would bring in, using the stored calendar filters.",
    response_description="Estimated item count, size, date range and warnings.",
    responses={502: {"description": "Calendar not connected or authorization expired"}},
)
async def preview_calendar(
    request: Request, payload: CalendarPreviewRequest, user_id: CurrentUserDep, google: GoogleServiceDep
) -> Dict[str, Any]:
    return ok(request, await google.preview_calendar(user_id, payload))


@router.get(
    "/gmail/labels",
    response_model=ApiResponse[List[GmailLabel]],
    summary="List Gmail Labels",
    description="Labels of the connected Gmail account, used to build exclusion preferences.",
    response_description="Gmail labels.",
    responses={502: {"description": "Gmail not connected or authorization expired"}},
)
async def gmail_labels(request: Request, user_id: CurrentUserDep, google: GoogleServiceDep) -> Dict[str, Any]:
    return ok(request, await google.gmail_labels(user_id))


@router.post(
    "/gmail/sync",
    response_model=ApiResponse[SyncResult],
    summary="Sync Gmail",
    description="Import Gmail message metadata into raw events. Already imported messages are counted as duplicates.",
    response_description="Counters of the sync run and its session id.",
    responses={502: {"description": "Gmail not connected or authorization expired"}},
)
async def sync_gmail(
    request: Request, user_id: CurrentUserDep, google: GoogleServiceDep, payload: Optional[SyncRequest] = None
) -> Dict[str, Any]:
    """
    Sync Gmail.

    - **incremental**: Continue from the newest imported message (default true).
    - **overlap_hours**: Hours re-scanned before that message.
    - **days_back**: Days covered by a full sync; defaults to the stored preference.
    """
    return ok(request, await google.sync_gmail(user_id, payload or SyncRequest()))


@router.post(
    "/calendar/sync",
    response_model=ApiResponse[SyncResult],
    summary="Sync Calendar",
    description="Import Calendar events of the preferred calendars into raw events.",
    response_description="Counters of the sync run and its session id.",
    responses={502: {"description": "Calendar not connected or authorization expired"}},
)
async def sync_calendar(
    request: Request, user_id: CurrentUserDep, google: GoogleServiceDep, payload: Optional[SyncRequest] = None
) -> Dict[str, Any]:
    return ok(request, await google.sync_calendar(user_id, payload or SyncRequest()))


@router.get(
    "/{service}/stats",
    response_model=ApiResponse[IngestionStats],
    summary="Ingestion Statistics",
    description="Total imported events, events imported in the last 7 days and the last import time.",
    response_description="Ingestion statistics for the service.",
)
async def ingestion_stats(
    request: Request, service: GoogleService, user_id: CurrentUserDep, google: GoogleServiceDep
) -> Dict[str, Any]:
    return ok(request, await google.ingestion_stats(user_id, service.value))


@router.get(
    "/sync-sessions/{session_id}",
    response_model=ApiResponse[SyncSessionRead],
    summary="Get Sync Session",
    description="Progress and counters of a sync run.",
    response_description="The sync session.",
    responses={404: {"description": "Sync session not found"}},
)
async def get_sync_session(
    request: Request, session_id: str, user_id: CurrentUserDep, google: GoogleServiceDep
) -> Dict[str, Any]:
    return ok(request, SyncSessionRead.model_validate(await google.get_sync_session(user_id, session_id)))
