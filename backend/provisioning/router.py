"""
User Provisioning API Router

Endpoints:
- OPTIONS /functions/v1/create-user - CORS pre-flight
- POST /functions/v1/create-user - Provision a user (edge-function compatible)
- POST /api/users/provision - Provision a user into the caller's organisation (admin)

The edge-compatible route answers ``{"message": ...}`` on success and
``{"error": ...}`` with HTTP 400 on any failure, with permissive CORS
headers on every response.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from config import get_settings
from database import get_db
from middleware.auth import require_admin
from sentry_integration import capture_exception
from services.auth import AuthUser
from services.auth_admin import AuthAdminClient, get_auth_admin_client

from .exceptions import ProvisioningError
from .models import CreateUserRequest, UserDetails
from .service import UserProvisioningService

logger = logging.getLogger(__name__)

EDGE_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}

edge_router = APIRouter(prefix="/functions/v1", tags=["Provisioning"])
router = APIRouter(prefix="/users", tags=["Provisioning"])


def get_provisioning_service(
    db: AsyncSession = Depends(get_db),
    auth_admin: AuthAdminClient = Depends(get_auth_admin_client),
) -> UserProvisioningService:
    return UserProvisioningService(
        db=db,
        auth_admin=auth_admin,
        placeholder_password=get_settings().PROVISIONING_PLACEHOLDER_PASSWORD,
    )


def _edge_error(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": message},
        headers=EDGE_CORS_HEADERS,
    )


def _validation_message(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first.get('msg')}" if location else str(first.get("msg"))


# ==================== EDGE-COMPATIBLE ENDPOINT ====================

@edge_router.options("/create-user")
async def create_user_preflight():
    """CORS pre-flight."""
    return PlainTextResponse("ok", headers=EDGE_CORS_HEADERS)


@edge_router.post("/create-user")
async def create_user(
    request: Request,
    caller: AuthUser = Depends(require_admin),
    service: UserProvisioningService = Depends(get_provisioning_service),
):
    """
    Create an identity and its profile.

    **Auth:** admin session. The body's organisation must be the caller's.

    **Body:** CreateUserRequest

    **Returns:** ``{"message": "User created successfully"}``

    **Errors (400):** ``{"error": "Auth error: ..."}``, ``{"error": "Profile error: ..."}``
    or a request validation message.
    """
    try:
        body = await request.json()
    except ValueError:
        return _edge_error("Invalid JSON body")

    try:
        payload = CreateUserRequest.model_validate(body)
        if payload.organisation_id != caller.organisation_id:
            logger.warning(f"User {caller.id} tried to provision into organisation {payload.organisation_id}")
            return _edge_error("organisation_id must match your own organisation")
        logger.info(f"Provisioning request from {caller.id} into organisation {payload.organisation_id}")
        result = await service.create_user(payload)
    except ProvisioningError as e:
        return _edge_error(e.message)
    except ValidationError as e:
        return _edge_error(_validation_message(e))
    except Exception as e:
        logger.error(f"Unexpected provisioning failure: {type(e).__name__}: {e}", exc_info=e)
        capture_exception(e, route="create-user")
        return _edge_error("User creation failed")

    return JSONResponse(content={"message": result.message}, headers=EDGE_CORS_HEADERS)


# ==================== STAFF ENDPOINT ====================

@router.post("/provision", status_code=status.HTTP_201_CREATED)
async def provision_user(
    details: UserDetails,
    admin: AuthUser = Depends(require_admin),
    service: UserProvisioningService = Depends(get_provisioning_service),
):
    """
    Provision a user into the caller's organisation.

    **Auth:** admin session. The organisation is taken from the session.

    **Returns:** ``{"message": ..., "user_id": ...}``
    """
    payload = CreateUserRequest(**details.model_dump(), organisation_id=admin.organisation_id)
    try:
        result = await service.create_user(payload)
    except ProvisioningError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    return result.to_dict()
