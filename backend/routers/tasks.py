"""
Sales Task API Router

Endpoints:
- GET /api/tasks - Tasks for the caller (or another user)
- POST /api/tasks - Create task
- POST /api/tasks/{task_id}/toggle - Flip completion
- POST /api/tasks/{task_id}/status - Complete or deny (assignee only)
- GET /api/tasks/{task_id}/notes - List notes
- POST /api/tasks/{task_id}/notes - Add note
"""

import logging
import uuid
from datetime import date
from typing import Optional, Literal

from fastapi import APIRouter, HTTPException, status, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from middleware.auth import require_any_authenticated
from services.auth import AuthUser
from services.tasks import TaskService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tasks", tags=["Sales Tasks"])


class TaskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    due_date: Optional[date] = None
    user_id: str = Field(..., description="Assignee")
    order_id: Optional[str] = None


class TaskStatusUpdate(BaseModel):
    status: Literal["completed", "denied"]
    note: Optional[str] = Field(None, description="Required when denying")


class TaskNoteCreate(BaseModel):
    content: str = Field(..., max_length=5000)


@router.get("")
async def list_tasks(
    user_id: Optional[uuid.UUID] = Query(None, description="Defaults to the caller"),
    include_created: bool = Query(False, description="Also include tasks the user created"),
    user: AuthUser = Depends(require_any_authenticated),
    db: AsyncSession = Depends(get_db)
):
    """Open tasks first, then by due date."""
    tasks = await TaskService(db, user.organisation_id).list_tasks_for_user(user_id or user.id, include_created)
    return [t.to_dict() for t in tasks]


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_task(
    request: TaskCreate,
    user: AuthUser = Depends(require_any_authenticated),
    db: AsyncSession = Depends(get_db)
):
    try:
        task = await TaskService(db, user.organisation_id).create_task(request.model_dump(), created_by=user.id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return task.to_dict()


@router.post("/{task_id}/toggle")
async def toggle_task(
    task_id: uuid.UUID,
    user: AuthUser = Depends(require_any_authenticated),
    db: AsyncSession = Depends(get_db)
):
    task = await TaskService(db, user.organisation_id).toggle_task(task_id)
    return task.to_dict()


@router.post("/{task_id}/status")
async def update_task_status(
    task_id: uuid.UUID,
    request: TaskStatusUpdate,
    user: AuthUser = Depends(require_any_authenticated),
    db: AsyncSession = Depends(get_db)
):
    """
    Complete or deny a pending task. A denial reason is stored as a task note.

    **Errors:** 403 if the caller is not the assignee, 400 if the task is not pending.
    """
    try:
        task = await TaskService(db, user.organisation_id).update_task_status(
            task_id, request.status, user.id, request.note
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return task.to_dict()


@router.get("/{task_id}/notes")
async def list_task_notes(
    task_id: uuid.UUID,
    user: AuthUser = Depends(require_any_authenticated),
    db: AsyncSession = Depends(get_db)
):
    notes = await TaskService(db, user.organisation_id).list_task_notes(task_id)
    return [n.to_dict() for n in notes]


@router.post("/{task_id}/notes", status_code=status.HTTP_201_CREATED)
async def add_task_note(
    task_id: uuid.UUID,
    request: TaskNoteCreate,
    user: AuthUser = Depends(require_any_authenticated),
    db: AsyncSession = Depends(get_db)
):
    try:
        note = await TaskService(db, user.organisation_id).add_task_note(task_id, request.content, user.id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return note.to_dict()
