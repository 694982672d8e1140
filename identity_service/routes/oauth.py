"""
OAuth Routes
Client registration, authorization, claim resolution and connected apps
"""

from typing import Optional
from uuid import UUID
from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, Header, Request, status
import logging

from shared.schemas.oauth import AuthorizeRequestSchema, RevokeRequestSchema, AppContextUpdateSchema
from identity_service.services.client_registry_service import ClientRegistryService
from identity_service.services.authorization_service import AuthorizationService
from identity_service.services.resolution_service import ResolutionService, resolution_error
from identity_service.services.connected_apps_service import ConnectedAppsService
from identity_service.services.assignment_service import AssignmentService
from identity_service.utils.dependencies import CurrentUser
from identity_service.utils.responses import api_error, service_error, success_response

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/apps/{app_name}", response_model=dict)
async def get_app_client(
    app_name: str,
    request: Request,
    origin: Optional[str] = Header(None),
    referer: Optional[str] = Header(None)
):
    """
    Look up or register the OAuth client of an application

    The publisher domain comes from the Origin (or Referer) header, so the
    same app name on two domains yields two distinct clients.
    """
    try:
        domain = ClientRegistryService.extract_domain(origin, referer)
        if not domain:
            raise api_error(
                status.HTTP_400_BAD_REQUEST,
                "MISSING_ORIGIN_HEADER",
                "Origin or Referer header is required for client registration"
            )

        if not ClientRegistryService.validate_domain(domain):
            raise api_error(
                status.HTTP_400_BAD_REQUEST,
                "INVALID_DOMAIN_FORMAT",
                "Invalid domain format in Origin header"
            )

        app_name_error = ClientRegistryService.validate_app_name(app_name)
        if app_name_error:
            raise api_error(
                status.HTTP_400_BAD_REQUEST,
                "VALIDATION_ERROR",
                "Invalid app name format",
                [{"field": "app_name", "message": app_name_error}]
            )

        result = await ClientRegistryService.get_or_create_client(domain, app_name)
        if not result['success']:
            raise service_error(result)

        return success_response({"client": result['client'].to_dict()}, request)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Client registration error: {e}")
        raise api_error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "INTERNAL_ERROR",
            "Failed to process client registration"
        )


@router.post("/authorize", response_model=dict)
async def authorize(body: AuthorizeRequestSchema, current_user: CurrentUser, request: Request):
    """Authorize a client for the chosen context and issue a session token"""
    try:
        result = await AuthorizationService.authorize(
            current_user['id'],
            body.client_id,
            str(body.context_id),
            body.return_url,
            body.state
        )
        if not result['success']:
            raise service_error(result)

        result.pop('success')
        return success_response(result, request)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"OAuth authorization error: {e}")
        raise api_error(status.HTTP_500_INTERNAL_SERVER_ERROR, "AUTHORIZATION_FAILED", "Authorization failed")


@router.post("/resolve", response_model=dict)
async def resolve(request: Request, authorization: Optional[str] = Header(None)):
    """Resolve the OIDC claims behind a bearer session token"""
    session_token = ResolutionService.extract_bearer_token(authorization)
    if not session_token:
        raise api_error(
            status.HTTP_401_UNAUTHORIZED,
            "AUTHENTICATION_REQUIRED",
            "Valid Bearer token required (Authorization: Bearer tnp_xxx)",
            headers={"WWW-Authenticate": "Bearer"}
        )

    try:
        result = await ResolutionService.resolve_claims(session_token)

        if not result['success']:
            code, status_code = resolution_error(result['error'])
            raise api_error(status_code, code, result.get('message') or "Token resolution failed")

        return success_response({
            "claims": result['claims'],
            "resolved_at": datetime.now(timezone.utc).isoformat(),
            "performance": {"response_time_ms": result['response_time_ms']}
        }, request)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"OIDC resolution error: {e}")
        raise api_error(status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR", "OIDC resolution failed")


@router.get("/connected-apps", response_model=dict)
async def list_connected_apps(current_user: CurrentUser, request: Request):
    """Applications the user has authorized"""
    try:
        result = await ConnectedAppsService.list_connected_apps(current_user['id'])
        return success_response({"apps": result['apps'], "total": result['total']}, request)

    except Exception as e:
        logger.error(f"Connected apps error: {e}")
        raise api_error(status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR", "Failed to list connected apps")


@router.put("/assignments/{client_id}", response_model=dict)
async def update_app_assignment(
    client_id: str,
    body: AppContextUpdateSchema,
    current_user: CurrentUser,
    request: Request
):
    """Switch the context an application sees"""
    try:
        result = await ConnectedAppsService.update_app_context(current_user['id'], client_id, str(body.context_id))
        if not result['success']:
            raise service_error(result)

        result.pop('success')
        return success_response(result, request)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"App assignment update error: {e}")
        raise api_error(status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR", "Failed to update assignment")


@router.post("/assignments/{client_id}/default", response_model=dict)
async def reset_app_assignment(client_id: str, current_user: CurrentUser, request: Request):
    """Point an application back at the permanent context"""
    try:
        if not await ClientRegistryService.get_client(client_id):
            raise api_error(status.HTTP_404_NOT_FOUND, "CLIENT_NOT_FOUND", "OAuth client is not registered")

        result = await AssignmentService.assign_default_context_to_app(current_user['id'], client_id)
        if not result['success']:
            raise service_error(result)

        result.pop('success')
        return success_response(result, request)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Default assignment error: {e}")
        raise api_error(status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR", "Failed to assign default context")


@router.post("/revoke", response_model=dict)
async def revoke(body: RevokeRequestSchema, current_user: CurrentUser, request: Request):
    """Revoke an application's sessions and, optionally, its assignment"""
    try:
        result = await ConnectedAppsService.revoke_app(current_user['id'], body.client_id, body.remove_assignment)
        if not result['success']:
            raise service_error(result)

        result.pop('success')
        return success_response(result, request)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"OAuth revoke error: {e}")
        raise api_error(status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR", "Failed to revoke application")


@router.get("/sessions", response_model=dict)
async def list_sessions(current_user: CurrentUser, request: Request):
    """OAuth sessions issued for the user"""
    try:
        result = await ConnectedAppsService.list_sessions(current_user['id'])
        return success_response({"sessions": result['sessions'], "total": result['total']}, request)

    except Exception as e:
        logger.error(f"Session listing error: {e}")
        raise api_error(status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR", "Failed to list sessions")


@router.delete("/sessions/{session_id}", response_model=dict)
async def delete_session(session_id: UUID, current_user: CurrentUser, request: Request):
    """Delete one OAuth session"""
    try:
        result = await ConnectedAppsService.delete_session(current_user['id'], str(session_id))
        if not result['success']:
            raise service_error(result)

        return success_response({"session_id": result['session_id'], "deleted": True}, request)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Session deletion error: {e}")
        raise api_error(status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR", "Failed to delete session")
