"""
Onboarding API Endpoints.

``router`` holds the practitioner's token administration; ``public_router``
holds the unauthenticated endpoints used by the client intake form.
"""

from typing import Any, Dict, List

from fastapi import APIRouter, Query, Request, status

from omnicrm.core.models.io.onboarding import (
    OnboardingResult,
    OnboardingSubmission,
    TokenCreate,
    TokenCreated,
    TokenRead,
    TokenValidation,
)
from omnicrm.server.response import ApiResponse, ok
from omnicrm.server.services.deps import CurrentUserDep, OnboardingServiceDep

router = APIRouter()
public_router = APIRouter()


@router.post(
    "/tokens",
    response_model=ApiResponse[TokenCreated],
    status_code=status.HTTP_201_CREATED,
    summary="Create Onboarding Token",
    description="Issue an expiring, usage-limited token and the intake form URL to share with a prospective client.",
    response_description="The token and its onboarding URL.",
    responses={
        201: {"description": "Token created"},
        400: {"description": "Invalid token settings"},
    },
)
async def create_token(
    request: Request, payload: TokenCreate, user_id: CurrentUserDep, service: OnboardingServiceDep
) -> Dict[str, Any]:
    """
    Create an onboarding token.

    - **hours_valid**: Lifetime in hours, 1 to 720 (default 72).
    - **max_uses**: Number of submissions allowed, 1 to 100 (default 1).
    - **label**: Optional note shown in the token list.
    """
    return ok(request, await service.create_token(user_id, payload))


@router.get(
    "/tokens",
    response_model=ApiResponse[List[TokenRead]],
    summary="List Onboarding Tokens",
    description="List the caller's onboarding tokens; by default only usable ones (not disabled, not expired).",
    response_description="Onboarding tokens, newest first.",
)
async def list_tokens(
    request: Request,
    user_id: CurrentUserDep,
    service: OnboardingServiceDep,
    active_only: bool = Query(default=True),
) -> Dict[str, Any]:
    tokens = await service.list_tokens(user_id, active_only=active_only)
    return ok(request, [TokenRead.model_validate(token) for token in tokens])


@router.post(
    "/tokens/{token_id}/disable",
    response_model=ApiResponse[TokenRead],
    summary="Disable Onboarding Token",
    description="Disable a token so it can no longer be used.",
    response_description="The disabled token.",
    responses={404: {"description": "Onboarding token not found"}},
)
async def disable_token(
    request: Request, token_id: str, user_id: CurrentUserDep, service: OnboardingServiceDep
) -> Dict[str, Any]:
    token = await service.disable_token(user_id, token_id)
    return ok(request, TokenRead.model_validate(token))


@router.delete(
    "/tokens/{token_id}",
    response_model=ApiResponse[Dict[str, Any]],
    summary="Delete Onboarding Token",
    description="Delete a token.",
    response_description="Deletion confirmation.",
    responses={404: {"description": "Onboarding token not found"}},
)
async def delete_token(
    request: Request, token_id: str, user_id: CurrentUserDep, service: OnboardingServiceDep
) -> Dict[str, Any]:
    await service.delete_token(user_id, token_id)
    return ok(request, {"deleted": True, "id": token_id})


@public_router.get(
    "/validate/{token}",
    response_model=ApiResponse[TokenValidation],
    summary="Validate Onboarding Token",
    description="Check whether an onboarding token can still be used. Does not require authentication.",
    response_description="Validity and, when invalid, the reason.",
)
async def validate_token(request: Request, token: str, service: OnboardingServiceDep) -> Dict[str, Any]:
    return ok(request, await service.validate_token(token))


@public_router.post(
    "/submit",
    response_model=ApiResponse[OnboardingResult],
    status_code=status.HTTP_201_CREATED,
    summary="Submit Intake Form",
    description="Complete onboarding: creates the client's contact, intake profile and consent record.",
    response_description="The created contact id and a confirmation message.",
    responses={
        201: {"description": "Onboarding completed successfully"},
        400: {"description": "Invalid form data, or invalid or expired token"},
        429: {"description": "Too many submissions from this address"},
    },
)
async def submit_onboarding(
    request: Request, payload: OnboardingSubmission, service: OnboardingServiceDep
) -> Dict[str, Any]:
    """
    Submit the intake form.

    - **token**: The onboarding token from the shared URL.
    - **client**: Name, e-mail, phone, emergency contact, address, health context and preferences.
    - **consent**: Consent type, text version, granted flag and optional signature.
    - **photo_path**: Optional path of an already uploaded photo.

    Submissions are limited per client address; the address and user agent are
    stored with the consent record.
    """
    return ok(request, await service.submit(payload, request.headers))
