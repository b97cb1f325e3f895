"""
Team API Router

Endpoints:
- GET /api/teams - List teams (search, specialty, is_active filters)
- GET /api/teams/stats - Team statistics
- GET /api/teams/unassigned-users - Active users without a team
- GET /api/teams/{team_id} - Get team with members
- POST /api/teams - Create team with members
- PUT /api/teams/{team_id} - Update team
- DELETE /api/teams/{team_id} - Delete team
- POST /api/teams/{team_id}/members - Add member
- DELETE /api/teams/{team_id}/members/{user_id} - Remove member

Security:
- Reads require any session; writes require admin
"""

import logging
import uuid
from decimal import Decimal
from typing import Optional, List, Dict

from fastapi import APIRouter, HTTPException, status, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from middleware.auth import require_any_authenticated, require_admin
from services.auth import AuthUser
from services.teams import TeamService, DEFAULT_MEMBER_ROLE

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/teams", tags=["Teams"])


# ==================== REQUEST MODELS ====================

class TeamCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    specialty: str = Field("allmänt", max_length=50)
    team_leader_id: str
    hourly_rate: Optional[Decimal] = Field(None, ge=0)
    cities: List[str] = Field(default_factory=list)
    is_active: bool = True
    member_ids: List[str] = Field(default_factory=list)
    member_roles: Dict[str, str] = Field(default_factory=dict, description="user_id -> role_in_team")


class TeamUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    specialty: Optional[str] = Field(None, max_length=50)
    team_leader_id: Optional[str] = None
    hourly_rate: Optional[Decimal] = Field(None, ge=0)
    cities: Optional[List[str]] = None
    is_active: Optional[bool] = None


class AddMemberRequest(BaseModel):
    user_id: str
    role_in_team: str = DEFAULT_MEMBER_ROLE


# ==================== ENDPOINTS ====================

@router.get("")
async def list_teams(
    search: Optional[str] = Query(None),
    specialty: Optional[str] = Query(None),
    is_active: Optional[bool] = Query(None),
    user: AuthUser = Depends(require_any_authenticated),
    db: AsyncSession = Depends(get_db)
):
    teams = await TeamService(db, user.organisation_id).list_teams(search, specialty, is_active)
    return [t.to_dict() for t in teams]


@router.get("/stats")
async def team_stats(
    user: AuthUser = Depends(require_any_authenticated),
    db: AsyncSession = Depends(get_db)
):
    """**Returns:** ``{total_teams, active_teams, total_members, average_team_size}``"""
    return await TeamService(db, user.organisation_id).team_stats()


@router.get("/unassigned-users")
async def unassigned_users(
    user: AuthUser = Depends(require_any_authenticated),
    db: AsyncSession = Depends(get_db)
):
    users = await TeamService(db, user.organisation_id).list_unassigned_users()
    return [u.to_dict() for u in users]


@router.get("/{team_id}")
async def get_team(
    team_id: uuid.UUID,
    user: AuthUser = Depends(require_any_authenticated),
    db: AsyncSession = Depends(get_db)
):
    team = await TeamService(db, user.organisation_id).get_team(team_id)
    return team.to_dict()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_team(
    request: TeamCreate,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Create a team. The leader is always added as a member with role ``ledare``.
    """
    data = request.model_dump(exclude={"member_ids", "member_roles"})
    try:
        team = await TeamService(db, admin.organisation_id).create_team(
            data, request.member_ids, request.member_roles
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return team.to_dict()


@router.put("/{team_id}")
async def update_team(
    team_id: uuid.UUID,
    request: TeamUpdate,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    try:
        team = await TeamService(db, admin.organisation_id).update_team(
            team_id, request.model_dump(exclude_unset=True)
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return team.to_dict()


@router.delete("/{team_id}")
async def delete_team(
    team_id: uuid.UUID,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    await TeamService(db, admin.organisation_id).delete_team(team_id)
    return {"success": True, "team_id": team_id}


@router.post("/{team_id}/members", status_code=status.HTTP_201_CREATED)
async def add_team_member(
    team_id: uuid.UUID,
    request: AddMemberRequest,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    try:
        member = await TeamService(db, admin.organisation_id).add_team_member(
            team_id, request.user_id, request.role_in_team
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return member.to_dict()


@router.delete("/{team_id}/members/{user_id}")
async def remove_team_member(
    team_id: uuid.UUID,
    user_id: uuid.UUID,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    await TeamService(db, admin.organisation_id).remove_team_member(team_id, user_id)
    return {"success": True, "team_id": team_id, "user_id": user_id}
