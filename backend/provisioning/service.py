"""
User Provisioning - Service Layer

Creates a usable account in two steps:
1. identity in the auth subsystem (email pre-confirmed, placeholder password)
2. profile row in ``user_profiles`` keyed by the identity id

If step 2 fails the identity is deleted again. If that delete fails too the
orphaned identity is reported to Sentry as an operator alert and the call
fails with RollbackError. The caller is responsible for having the new user
reset the placeholder password.
"""

import uuid
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from database.models import UserProfileDB
from sentry_integration import capture_message
from services.auth_admin import AuthAdminClient, AuthAdminError, Identity

from .exceptions import AuthError, ProfileError, RollbackError
from .models import CreateUserRequest, build_profile_row
from .saga import Saga, SagaStep, CompensationError

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = "User created successfully"


class ProvisioningEvent:
    USER_CREATED = "user.created"
    IDENTITY_REJECTED = "user.identity_rejected"
    PROFILE_FAILED = "user.profile_failed"
    ROLLBACK_FAILED = "user.rollback_failed"


def log_provisioning_event(event_type: str, user_id: Optional[str], details: Dict[str, Any], success: bool = True):
    """
    Log a provisioning event for the audit trail.

    Never logs email, personnummer, bank or pay details; email is reduced to its domain.
    """
    pii_fields = ('email', 'personnummer', 'bank_account_number', 'phone_number',
                  'address', 'full_name', 'base_hourly_rate', 'base_monthly_salary')
    safe_details = {k: v for k, v in details.items() if k not in pii_fields}
    if details.get("email"):
        safe_details["email_domain"] = str(details["email"]).split("@")[-1]

    log_entry = {
        "event": event_type,
        "user_id": user_id,
        "details": safe_details,
        "success": success,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if success:
        logger.info(f"Provisioning event: {event_type} for user {user_id}", extra=log_entry)
    else:
        logger.warning(f"Provisioning event FAILED: {event_type} for user {user_id}", extra=log_entry)


@dataclass
class ProvisioningResult:
    user_id: str
    organisation_id: str
    message: str = SUCCESS_MESSAGE

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, "user_id": self.user_id}


class UserProvisioningService:
    """Two-step user creation with a compensating identity delete."""

    def __init__(self, db: AsyncSession, auth_admin: AuthAdminClient, placeholder_password: str):
        self.db = db
        self.auth_admin = auth_admin
        self.placeholder_password = placeholder_password

    async def create_user(self, request: CreateUserRequest) -> ProvisioningResult:
        """
        Provision a new user.

        Raises:
            AuthError: identity could not be created; nothing was written
            ProfileError: profile insert failed; identity was deleted
            RollbackError: profile insert failed and the identity could not be deleted
        """
        saga = Saga("create_user", [
            SagaStep("identity", self._create_identity, self._delete_identity),
            SagaStep("profile", self._insert_profile),
        ])

        context: Dict[str, Any] = {"request": request}
        try:
            await saga.execute(context)
        except AuthError as e:
            log_provisioning_event(
                ProvisioningEvent.IDENTITY_REJECTED, None,
                {"email": request.email, "organisation_id": request.organisation_id, "reason": e.detail},
                success=False,
            )
            raise
        except ProfileError as e:
            log_provisioning_event(
                ProvisioningEvent.PROFILE_FAILED, None,
                {"organisation_id": request.organisation_id, "reason": e.detail, "identity_removed": True},
                success=False,
            )
            raise
        except CompensationError as e:
            raise self._rollback_failed(request, context.get("identity"), e) from e

        identity: Identity = context["identity"]
        log_provisioning_event(
            ProvisioningEvent.USER_CREATED, identity.id,
            {"email": request.email, "organisation_id": request.organisation_id,
             "role": request.role.value, "employment_type": request.employment_type.value},
        )
        return ProvisioningResult(user_id=identity.id, organisation_id=request.organisation_id)

    # ==================== SAGA STEPS ====================

    async def _create_identity(self, context: Dict[str, Any]) -> Identity:
        request: CreateUserRequest = context["request"]
        try:
            return await self.auth_admin.create_user(
                email=request.email,
                password=self.placeholder_password,
                email_confirm=True,
                user_metadata={"full_name": request.full_name},
            )
        except AuthAdminError as e:
            raise AuthError(e.message) from e

    async def _delete_identity(self, context: Dict[str, Any], identity: Identity) -> None:
        await self.auth_admin.delete_user(identity.id)

    async def _insert_profile(self, context: Dict[str, Any]) -> UserProfileDB:
        request: CreateUserRequest = context["request"]
        identity: Identity = context["identity"]

        row = build_profile_row(request, identity.id)
        try:
            row["id"] = uuid.UUID(str(identity.id))
            profile = UserProfileDB(**row)
            self.db.add(profile)
            await self.db.commit()
        except (SQLAlchemyError, ValueError) as e:
            await self.db.rollback()
            detail = str(getattr(e, "orig", None) or e)
            raise ProfileError(detail) from e
        return profile

    # ==================== FAILURES ====================

    def _rollback_failed(self, request: CreateUserRequest, identity: Optional[Identity], error: CompensationError) -> RollbackError:
        original = error.original
        detail = original.detail if isinstance(original, ProfileError) else str(original)
        rollback_detail = "; ".join(str(f.error) for f in error.failures)
        identity_id = identity.id if identity else None

        logger.error(
            f"Identity {identity_id} left without profile: rollback failed ({rollback_detail})"
        )
        capture_message(
            "Orphaned identity after failed provisioning rollback",
            level="error",
            identity_id=identity_id,
            organisation_id=request.organisation_id,
            profile_error=detail,
            rollback_error=rollback_detail,
        )
        log_provisioning_event(
            ProvisioningEvent.ROLLBACK_FAILED, identity_id,
            {"organisation_id": request.organisation_id, "reason": detail, "identity_removed": False},
            success=False,
        )
        return RollbackError(detail, identity_id, rollback_detail)
