"""
Identity Routes
OIDC assignments, context completeness and deletion checks
"""

from uuid import UUID

from fastapi import APIRouter, HTTPException, Request, status
import logging

from shared.schemas.identity import AssignmentCreateSchema, AssignmentDeleteSchema
from identity_service.services.assignment_service import AssignmentService
from identity_service.utils.dependencies import CurrentUser
from identity_service.utils.responses import api_error, service_error, success_response

logger = logging.getLogger(__name__)

router = APIRouter()


def _internal_error(message: str) -> HTTPException:
    return api_error(status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR", message)


@router.get("/assignments/oidc", response_model=dict)
async def list_oidc_assignments(context_id: UUID, current_user: CurrentUser, request: Request):
    """OIDC assignments of one context"""
    try:
        result = await AssignmentService.list_assignments(current_user['id'], str(context_id))
        if not result['success']:
            raise service_error(result)

        return success_response({"context": result['context'], "assignments": result['assignments']}, request)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Assignment listing error: {e}")
        raise _internal_error("Failed to list assignments")


@router.post("/assignments/oidc", response_model=dict)
async def set_oidc_assignment(body: AssignmentCreateSchema, current_user: CurrentUser, request: Request):
    """Create or replace an OIDC assignment"""
    try:
        result = await AssignmentService.set_assignment(
            current_user['id'],
            str(body.context_id),
            str(body.name_id),
            body.oidc_property.value
        )
        if not result['success']:
            raise service_error(result)

        return success_response({"assignment": result['assignment'], "operation": result['operation']}, request)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Assignment update error: {e}")
        raise _internal_error("Failed to save assignment")


@router.delete("/assignments/oidc", response_model=dict)
async def delete_oidc_assignment(body: AssignmentDeleteSchema, current_user: CurrentUser, request: Request):
    """Remove an OIDC assignment"""
    try:
        result = await AssignmentService.remove_assignment(
            current_user['id'],
            str(body.context_id),
            body.oidc_property.value
        )
        if not result['success']:
            raise service_error(result)

        return success_response({
            "context_id": result['context_id'],
            "oidc_property": result['oidc_property'],
            "deleted": True
        }, request)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Assignment removal error: {e}")
        raise _internal_error("Failed to remove assignment")


@router.get("/contexts/{context_id}/completeness", response_model=dict)
async def get_context_completeness(context_id: UUID, current_user: CurrentUser, request: Request):
    try:
        result = await AssignmentService.get_context_completeness(current_user['id'], str(context_id))
        if not result['success']:
            raise service_error(result)

        return success_response(result['completeness'], request)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Completeness check error: {e}")
        raise _internal_error("Failed to check context completeness")


@router.get("/contexts/{context_id}/can-delete", response_model=dict)
async def can_delete_context(context_id: UUID, current_user: CurrentUser, request: Request):
    try:
        result = await AssignmentService.can_delete_context(current_user['id'], str(context_id))
        if not result['success']:
            raise service_error(result)

        result.pop('success')
        return success_response(result, request)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Context deletion check error: {e}")
        raise _internal_error("Failed to check context deletion")


@router.post("/contexts/{context_id}/auto-populate", response_model=dict)
async def auto_populate_context(context_id: UUID, current_user: CurrentUser, request: Request):
    """Copy the permanent context's assignments into an empty context"""
    try:
        result = await AssignmentService.auto_populate_context(current_user['id'], str(context_id))

        if not result['success']:
            status_code = (
                status.HTTP_404_NOT_FOUND if result['error'] == 'context_not_found'
                else status.HTTP_409_CONFLICT
            )
            raise api_error(status_code, result['error'].upper(), result['message'])

        result.pop('success')
        return success_response(result, request)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Auto-populate error: {e}")
        raise _internal_error("Failed to auto-populate context")


@router.get("/names/{name_id}/can-delete", response_model=dict)
async def can_delete_name(name_id: UUID, current_user: CurrentUser, request: Request):
    try:
        result = await AssignmentService.can_delete_name(current_user['id'], str(name_id))
        result['metadata'] = {
            "name_id": str(name_id),
            "user_id": current_user['id']
        }
        return success_response(result, request)

    except Exception as e:
        logger.error(f"Name deletion check error: {e}")
        raise _internal_error("Failed to validate deletion")
