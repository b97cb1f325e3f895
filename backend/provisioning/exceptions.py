"""
User Provisioning - Exception Hierarchy

Failure taxonomy for the two-step user creation:
- AuthError: identity creation failed, nothing was created
- ProfileError: profile insert failed after the identity existed, identity removed
- RollbackError: profile insert failed AND removing the identity failed
"""

from typing import Optional


class ProvisioningError(Exception):
    """Base class for provisioning failures. ``message`` is returned to the caller."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class AuthError(ProvisioningError):
    """The auth subsystem refused to create the identity (duplicate, invalid email)."""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Auth error: {detail}")


class ProfileError(ProvisioningError):
    """The profile row could not be inserted."""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Profile error: {detail}")


class RollbackError(ProfileError):
    """
    The profile insert failed and the compensating identity delete failed too.

    The identity is left without a profile; ``identity_id`` names it for the operator.
    """

    def __init__(self, detail: str, identity_id: Optional[str], rollback_detail: str):
        self.identity_id = identity_id
        self.rollback_detail = rollback_detail
        super().__init__(detail)
        self.message = (
            f"{self.message} (rollback failed, identity {identity_id} requires manual cleanup)"
        )
