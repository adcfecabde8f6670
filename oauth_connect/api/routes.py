"""
FastAPI routes for the OAuth connection flow.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse

from oauth_connect.core.errors import OAuthLifecycleError, StateError, StateMissingError
from oauth_connect.dependencies import (
    get_app_settings,
    get_client_credentials,
    get_lifecycle_service,
    get_state_token_manager,
)
from oauth_connect.schemas import AuthorizationResponse, ConnectionStatus, OAuthCallbackPayload

router = APIRouter()
logger = logging.getLogger(__name__)


def _wants_html(request: Request) -> bool:
    return "text/html" in request.headers.get("accept", "").lower()


def _error_detail(error: OAuthLifecycleError) -> dict:
    """User-facing error body; never carries provider secrets or token values."""
    return {"code": error.code, "message": error.user_message}


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.get("/auth/authorize", status_code=HTTPStatus.OK)
async def start_oauth_flow(
    request: Request,
    service: Annotated[Any, Depends(get_lifecycle_service)],
    credentials: Annotated[Any, Depends(get_client_credentials)],
    user_id: str = Query(..., min_length=1, description="User identifier initiating authentication."),
    redirect: bool = Query(
        default=False,
        description="When true, respond with a redirect to the provider consent screen.",
    ),
) -> Response:
    """Kick off the OAuth flow by generating a state token and authorization URL."""
    authorization_url, state = service.initiate_with_state(user_id, credentials)

    if redirect or _wants_html(request):
        return RedirectResponse(url=authorization_url, status_code=HTTPStatus.TEMPORARY_REDIRECT)

    return JSONResponse(
        content=AuthorizationResponse(
            authorization_url=authorization_url, state=state.value
        ).model_dump()
    )


@router.post("/auth/callback", status_code=HTTPStatus.OK)
async def handle_oauth_callback(
    payload: OAuthCallbackPayload,
    service: Annotated[Any, Depends(get_lifecycle_service)],
    state_manager: Annotated[Any, Depends(get_state_token_manager)],
    credentials: Annotated[Any, Depends(get_client_credentials)],
) -> dict:
    """Complete the OAuth exchange and store the token."""
    user_id = payload.user_id
    if not user_id:
        try:
            user_id = state_manager.owner_of(payload.state)
        except StateError as exc:
            raise HTTPException(
                status_code=HTTPStatus.BAD_REQUEST, detail=_error_detail(exc)
            ) from exc

    result = await service.complete(payload.code, payload.state, user_id, credentials)
    if not result.connected:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST, detail=_error_detail(result.error)
        )

    return {"status": "connected", "user_id": user_id}


@router.get("/auth/callback", status_code=HTTPStatus.OK)
async def handle_oauth_callback_get(
    request: Request,
    service: Annotated[Any, Depends(get_lifecycle_service)],
    state_manager: Annotated[Any, Depends(get_state_token_manager)],
    credentials: Annotated[Any, Depends(get_client_credentials)],
    settings: Annotated[Any, Depends(get_app_settings)],
    state: str | None = Query(default=None, description="OAuth state token."),
    code: str | None = Query(default=None, description="Authorization code returned by the provider."),
    error: str | None = Query(default=None, description="Error reported by the provider."),
    user_id: str | None = Query(default=None),
    redirect: bool = Query(
        default=False,
        description="When true, redirect browser clients instead of returning JSON.",
    ),
) -> Response:
    if error or not code:
        logger.info("Provider returned no authorization code (error=%s)", error)
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail={
                "code": "authorization_denied",
                "message": "Authorization was not granted. Please reconnect.",
            },
        )
    if not state:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail=_error_detail(StateMissingError("Callback carried no state.")),
        )

    payload = OAuthCallbackPayload(state=state, code=code, user_id=user_id)
    result = await handle_oauth_callback(
        payload=payload,
        service=service,
        state_manager=state_manager,
        credentials=credentials,
    )

    redirect_target = settings.frontend_base_url
    if redirect_target and (redirect or _wants_html(request)):
        return RedirectResponse(url=str(redirect_target), status_code=HTTPStatus.TEMPORARY_REDIRECT)

    return JSONResponse(content=result)


@router.get("/auth/status", response_model=ConnectionStatus)
async def get_connection_status(
    service: Annotated[Any, Depends(get_lifecycle_service)],
    user_id: str = Query(..., min_length=1),
) -> ConnectionStatus:
    """Report whether the user holds a usable token or must reconnect."""
    return service.status(user_id)


@router.delete("/auth/connection", status_code=HTTPStatus.OK)
async def disconnect(
    service: Annotated[Any, Depends(get_lifecycle_service)],
    user_id: str = Query(..., min_length=1),
) -> dict:
    service.disconnect(user_id)
    return {"status": "disconnected", "user_id": user_id}
