"""Tasks API: CRUD over the caller's own encrypted tasks."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Path
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import CurrentUser, require_access_token
from app.core.errors import StorageFailure, TaskNotFound
from app.db.session import get_db
from app.models.task import Task
from app.schemas.task import TaskCreate, TaskResponse, TaskUpdate
from app.schemas.user import MessageResponse

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/auth/tasks",
    tags=["task"],
    dependencies=[Depends(require_access_token)],
    responses={
        401: {"description": "No token"},
        403: {"description": "Invalid token"},
    },
)

TaskId = Annotated[int, Path(ge=1, description="Task ID")]


def _row_to_response(row: Task) -> TaskResponse:
    return TaskResponse(
        id=row.id,
        username=row.username,
        encrypted_data=row.encrypted_data,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


async def _get_own_task(session: AsyncSession, task_id: int, username: str) -> Task:
    """Load a task owned by ``username``; someone else's task is reported as missing."""
    try:
        r = await session.execute(select(Task).where(Task.id == task_id, Task.username == username))
    except SQLAlchemyError as e:
        raise StorageFailure("Failed to load task") from e
    row = r.scalar_one_or_none()
    if row is None:
        raise TaskNotFound()
    return row


@router.get("", response_model=list[TaskResponse], summary="List own tasks")
async def list_tasks(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[CurrentUser, Depends(require_access_token)],
) -> list[TaskResponse]:
    try:
        r = await session.execute(select(Task).where(Task.username == user.username).order_by(Task.id))
    except SQLAlchemyError as e:
        raise StorageFailure("Failed to fetch tasks") from e
    return [_row_to_response(row) for row in r.scalars().all()]


@router.post("", response_model=TaskResponse, status_code=201, summary="Create a task")
async def create_task(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[CurrentUser, Depends(require_access_token)],
    body: TaskCreate,
) -> TaskResponse:
    row = Task(username=user.username, encrypted_data=body.encrypted_data)
    session.add(row)
    try:
        await session.commit()
    except SQLAlchemyError as e:
        raise StorageFailure("Failed to create task") from e
    return _row_to_response(row)


@router.put(
    "/{task_id}",
    response_model=TaskResponse,
    summary="Update a task",
    responses={404: {"description": "Task not found"}},
)
async def update_task(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[CurrentUser, Depends(require_access_token)],
    task_id: TaskId,
    body: TaskUpdate,
) -> TaskResponse:
    row = await _get_own_task(session, task_id, user.username)
    row.encrypted_data = body.encrypted_data
    try:
        await session.commit()
        await session.refresh(row)
    except SQLAlchemyError as e:
        raise StorageFailure("Failed to update task") from e
    return _row_to_response(row)


@router.delete(
    "/{task_id}",
    response_model=MessageResponse,
    summary="Delete a task",
    responses={404: {"description": "Task not found"}},
)
async def delete_task(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[CurrentUser, Depends(require_access_token)],
    task_id: TaskId,
) -> MessageResponse:
    row = await _get_own_task(session, task_id, user.username)
    await session.delete(row)
    try:
        await session.commit()
    except SQLAlchemyError as e:
        raise StorageFailure("Failed to delete task") from e
    logger.info("User %s deleted task %s", user.username, task_id)
    return MessageResponse(message="Task deleted")
