"""
Sales Task Service

Tasks assigned to a user, optionally tied to an order. The assignee can
complete a pending task or deny it with a reason; the reason is kept as a
task note.
"""

import uuid
import logging
from datetime import date
from typing import Optional, Dict, Any, List

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from database.models import SalesTaskDB, TaskNoteDB
from services.errors import NotFoundError, PermissionDeniedError

logger = logging.getLogger(__name__)

STATUS_PENDING = "pending"
STATUS_COMPLETED = "completed"
STATUS_DENIED = "denied"
TASK_STATUSES = (STATUS_PENDING, STATUS_COMPLETED, STATUS_DENIED)


def sort_tasks(tasks: List[SalesTaskDB]) -> List[SalesTaskDB]:
    """Open tasks first, then by due date (tasks without a due date last)."""
    return sorted(tasks, key=lambda t: (t.is_completed, t.due_date is None, t.due_date or date.max))


def _uuid(value) -> Optional[uuid.UUID]:
    if value in (None, ""):
        return None
    return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))


class TaskService:
    """Sales tasks scoped to one organisation."""

    def __init__(self, db: AsyncSession, organisation_id: str):
        self.db = db
        self.organisation_id = organisation_id

    async def get_task(self, task_id: str) -> SalesTaskDB:
        result = await self.db.execute(
            select(SalesTaskDB).where(
                SalesTaskDB.organisation_id == self.organisation_id,
                SalesTaskDB.id == _uuid(task_id),
            )
        )
        task = result.scalar_one_or_none()
        if task is None:
            raise NotFoundError("Task", task_id)
        return task

    async def list_tasks_for_user(self, user_id: str, include_created: bool = False) -> List[SalesTaskDB]:
        uid = _uuid(user_id)
        query = select(SalesTaskDB).where(SalesTaskDB.organisation_id == self.organisation_id)
        if include_created:
            query = query.where(or_(SalesTaskDB.user_id == uid, SalesTaskDB.created_by == uid))
        else:
            query = query.where(SalesTaskDB.user_id == uid)

        result = await self.db.execute(query)
        return sort_tasks(list(result.scalars().all()))

    async def create_task(self, data: Dict[str, Any], created_by: Optional[str] = None) -> SalesTaskDB:
        """
        Create a task.

        Raises:
            ValueError: title or assignee missing
        """
        title = (data.get("title") or "").strip()
        assignee = _uuid(data.get("user_id"))
        if not title or assignee is None:
            raise ValueError("Task title and assignee are required")

        task = SalesTaskDB(
            organisation_id=self.organisation_id,
            user_id=assignee,
            created_by=_uuid(created_by),
            order_id=_uuid(data.get("order_id")),
            title=title,
            description=(data.get("description") or "").strip() or None,
            due_date=data.get("due_date") or None,
            status=STATUS_PENDING,
            is_completed=False,
        )
        self.db.add(task)
        await self.db.commit()
        await self.db.refresh(task)
        logger.info(f"Task {task.id} created for user {assignee}")
        return task

    async def toggle_task(self, task_id: str) -> SalesTaskDB:
        """Flip completion; status follows (completed <-> pending)."""
        task = await self.get_task(task_id)
        task.is_completed = not task.is_completed
        task.status = STATUS_COMPLETED if task.is_completed else STATUS_PENDING

        await self.db.commit()
        await self.db.refresh(task)
        logger.info(f"Task {task_id} toggled to {task.status}")
        return task

    async def update_task_status(
        self,
        task_id: str,
        status: str,
        acting_user_id: str,
        note: Optional[str] = None
    ) -> SalesTaskDB:
        """
        Complete or deny a pending task.

        Only the assignee may change a pending task. Denying requires a reason,
        which is stored as a task note.

        Raises:
            ValueError: unknown status, task not pending, or denial without reason
            PermissionDeniedError: caller is not the assignee
        """
        if status not in (STATUS_COMPLETED, STATUS_DENIED):
            raise ValueError(f"Invalid task status: {status}")

        task = await self.get_task(task_id)
        if str(task.user_id) != str(acting_user_id):
            raise PermissionDeniedError("Only the assignee can update this task")
        if task.status != STATUS_PENDING:
            raise ValueError("Task is no longer pending")

        reason = (note or "").strip()
        if status == STATUS_DENIED and not reason:
            raise ValueError("A reason is required to deny a task")

        task.status = status
        task.is_completed = status == STATUS_COMPLETED
        if reason:
            self.db.add(TaskNoteDB(task_id=task.id, user_id=_uuid(acting_user_id), content=reason))

        await self.db.commit()
        await self.db.refresh(task)
        logger.info(f"Task {task_id} marked {status}")
        return task

    async def list_task_notes(self, task_id: str) -> List[TaskNoteDB]:
        task = await self.get_task(task_id)
        result = await self.db.execute(
            select(TaskNoteDB).where(TaskNoteDB.task_id == task.id).order_by(TaskNoteDB.created_at)
        )
        return list(result.scalars().all())

    async def add_task_note(self, task_id: str, content: str, user_id: Optional[str]) -> TaskNoteDB:
        text = (content or "").strip()
        if not text:
            raise ValueError("Note cannot be empty")

        task = await self.get_task(task_id)
        note = TaskNoteDB(task_id=task.id, user_id=_uuid(user_id), content=text)
        self.db.add(note)
        await self.db.commit()
        await self.db.refresh(note)
        return note
