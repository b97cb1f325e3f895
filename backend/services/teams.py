"""
Team Service

Teams group workers under a leader, with a specialty and the cities they cover.

Key Features:
- Team CRUD with filtering by name, specialty and active flag
- Membership management (leader is always a member with role "ledare")
- Unassigned user listing and team statistics
"""

import uuid
import logging
from typing import Optional, Dict, Any, List, Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from database.models import TeamDB, TeamMemberDB, UserProfileDB
from services.errors import NotFoundError

logger = logging.getLogger(__name__)

TEAM_SPECIALTIES = ("fönsterputsning", "taktvätt", "fasadtvätt", "allmänt")
LEADER_ROLE = "ledare"
DEFAULT_MEMBER_ROLE = "medarbetare"


def compute_team_stats(teams: Iterable[TeamDB]) -> Dict[str, Any]:
    """Team totals in one pass. Member counts only include active memberships."""
    total_teams = 0
    active_teams = 0
    total_members = 0
    for team in teams:
        total_teams += 1
        if team.is_active:
            active_teams += 1
        total_members += len(team.active_members)

    average = round(total_members / total_teams, 1) if total_teams else 0
    return {
        "total_teams": total_teams,
        "active_teams": active_teams,
        "total_members": total_members,
        "average_team_size": average,
    }


def _uuid(value) -> Optional[uuid.UUID]:
    if value in (None, ""):
        return None
    return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))


class TeamService:
    """Teams and memberships scoped to one organisation."""

    def __init__(self, db: AsyncSession, organisation_id: str):
        self.db = db
        self.organisation_id = organisation_id

    def _scoped(self):
        return (
            select(TeamDB)
            .where(TeamDB.organisation_id == self.organisation_id)
            .options(selectinload(TeamDB.members))
        )

    async def get_team(self, team_id: str) -> TeamDB:
        result = await self.db.execute(self._scoped().where(TeamDB.id == _uuid(team_id)))
        team = result.scalar_one_or_none()
        if team is None:
            raise NotFoundError("Team", team_id)
        return team

    async def list_teams(
        self,
        search: Optional[str] = None,
        specialty: Optional[str] = None,
        is_active: Optional[bool] = None
    ) -> List[TeamDB]:
        query = self._scoped()
        if search and search.strip():
            query = query.where(TeamDB.name.ilike(f"%{search.strip()}%"))
        if specialty and specialty != "all":
            query = query.where(TeamDB.specialty == specialty)
        if is_active is not None:
            query = query.where(TeamDB.is_active == is_active)

        result = await self.db.execute(query.order_by(TeamDB.name))
        return list(result.scalars().all())

    async def create_team(
        self,
        data: Dict[str, Any],
        member_ids: Optional[List[str]] = None,
        member_roles: Optional[Dict[str, str]] = None
    ) -> TeamDB:
        """
        Create a team with its members.

        The leader is always added with role "ledare"; other members get their
        role from ``member_roles`` or "medarbetare".

        Raises:
            ValueError: name or leader missing
        """
        name = (data.get("name") or "").strip()
        leader_id = _uuid(data.get("team_leader_id"))
        if not name or leader_id is None:
            raise ValueError("Team name and team leader are required")

        member_roles = member_roles or {}
        team = TeamDB(
            organisation_id=self.organisation_id,
            name=name,
            description=(data.get("description") or "").strip() or None,
            specialty=data.get("specialty") or "allmänt",
            team_leader_id=leader_id,
            hourly_rate=data.get("hourly_rate") or None,
            cities=data.get("cities") or [],
            is_active=data.get("is_active", True),
        )
        team.members.append(TeamMemberDB(user_id=leader_id, role_in_team=LEADER_ROLE))
        for member_id in member_ids or []:
            user_id = _uuid(member_id)
            if user_id == leader_id:
                continue
            team.members.append(TeamMemberDB(
                user_id=user_id,
                role_in_team=member_roles.get(str(member_id), DEFAULT_MEMBER_ROLE),
            ))

        self.db.add(team)
        await self.db.commit()
        logger.info(f"Team {team.id} created with {len(team.members)} members")
        return await self.get_team(str(team.id))

    async def update_team(self, team_id: str, updates: Dict[str, Any]) -> TeamDB:
        team = await self.get_team(team_id)

        if "name" in updates:
            name = (updates["name"] or "").strip()
            if not name:
                raise ValueError("Team name is required")
            team.name = name
        if "description" in updates:
            team.description = (updates["description"] or "").strip() or None
        if "team_leader_id" in updates:
            team.team_leader_id = _uuid(updates["team_leader_id"])
        if "hourly_rate" in updates:
            team.hourly_rate = updates["hourly_rate"] or None
        for key in ("specialty", "cities", "is_active"):
            if key in updates:
                setattr(team, key, updates[key])

        await self.db.commit()
        logger.info(f"Team {team_id} updated: {sorted(updates.keys())}")
        return await self.get_team(team_id)

    async def delete_team(self, team_id: str) -> None:
        team = await self.get_team(team_id)
        await self.db.delete(team)
        await self.db.commit()
        logger.info(f"Team {team_id} deleted")

    async def add_team_member(self, team_id: str, user_id: str, role_in_team: str = DEFAULT_MEMBER_ROLE) -> TeamMemberDB:
        """
        Add a user to a team, reactivating an earlier membership if one exists.

        Raises:
            ValueError: user is already an active member
        """
        team = await self.get_team(team_id)
        uid = _uuid(user_id)

        existing = next((m for m in team.members if m.user_id == uid), None)
        if existing is not None and existing.is_active:
            raise ValueError("User is already a member of this team")

        if existing is not None:
            existing.is_active = True
            existing.role_in_team = role_in_team
            member = existing
        else:
            member = TeamMemberDB(team_id=team.id, user_id=uid, role_in_team=role_in_team)
            self.db.add(member)

        await self.db.commit()
        logger.info(f"User {user_id} added to team {team_id} as {role_in_team}")
        return member

    async def remove_team_member(self, team_id: str, user_id: str) -> None:
        """Deactivate a membership."""
        team = await self.get_team(team_id)
        uid = _uuid(user_id)
        member = next((m for m in team.active_members if m.user_id == uid), None)
        if member is None:
            raise NotFoundError("Team member", user_id)

        member.is_active = False
        await self.db.commit()
        logger.info(f"User {user_id} removed from team {team_id}")

    async def list_unassigned_users(self) -> List[UserProfileDB]:
        """Active profiles with no active team membership."""
        assigned = (
            select(TeamMemberDB.user_id)
            .join(TeamDB, TeamMemberDB.team_id == TeamDB.id)
            .where(TeamDB.organisation_id == self.organisation_id, TeamMemberDB.is_active.is_(True))
        )
        result = await self.db.execute(
            select(UserProfileDB)
            .where(
                UserProfileDB.organisation_id == self.organisation_id,
                UserProfileDB.is_active.is_(True),
                UserProfileDB.id.not_in(assigned),
            )
            .order_by(UserProfileDB.full_name)
        )
        return list(result.scalars().all())

    async def team_stats(self) -> Dict[str, Any]:
        return compute_team_stats(await self.list_teams())
