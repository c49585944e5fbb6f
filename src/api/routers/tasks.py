import logging
import time

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from api.dependencies import get_task_repository
from api.metrics import TASKS_CREATED_TOTAL, record_request
from api.responses import envelope, respond
from mission_control.models import TaskCreate, TaskStats, TaskUpdate
from storage.task_repository import TaskRepository

router = APIRouter()
logger = logging.getLogger(__name__)


class ToggleIn(BaseModel):
    completed: bool


@router.get("/todos")
async def list_todos(repo: TaskRepository = Depends(get_task_repository)):
    """All missions of the current user, newest first."""
    start = time.time()
    result = await repo.list()
    record_request("/todos", "error" if result.error else "ok", start)
    if result.error:
        return respond(result)

    tasks = result.data or []
    return envelope(
        data={
            "tasks": [t.model_dump(mode="json") for t in tasks],
            "stats": TaskStats.from_tasks(tasks).model_dump(),
        }
    )


@router.get("/todos/connection")
async def check_connection(repo: TaskRepository = Depends(get_task_repository)):
    result = await repo.test_connection()
    if result.error:
        logger.error(f"Connection error: {result.error.message}")
    return respond(result, data={"connected": True})


@router.post("/todos")
async def create_todo(
    payload: TaskCreate,
    repo: TaskRepository = Depends(get_task_repository),
):
    start = time.time()
    if payload.title:
        payload = payload.model_copy(update={"title": payload.title.strip()})

    result = await repo.create(payload)
    record_request("/todos/create", "error" if result.error else "ok", start)
    if result.data is not None:
        TASKS_CREATED_TOTAL.inc()
        logger.info(f"Mission deployed: {result.data.id}")
        return respond(result, data=result.data.model_dump(mode="json"), success_status=201)
    return respond(result)


@router.patch("/todos/{todo_id}")
async def update_todo(
    todo_id: str,
    payload: TaskUpdate,
    repo: TaskRepository = Depends(get_task_repository),
):
    result = await repo.update(todo_id, payload)
    data = result.data.model_dump(mode="json") if result.data else None
    return respond(result, data=data)


@router.post("/todos/{todo_id}/toggle")
async def toggle_todo(
    todo_id: str,
    payload: ToggleIn,
    repo: TaskRepository = Depends(get_task_repository),
):
    result = await repo.toggle_complete(todo_id, payload.completed)
    if result.data is not None:
        logger.info(
            f"Mission {todo_id} {'completed' if payload.completed else 'reactivated'}"
        )
    data = result.data.model_dump(mode="json") if result.data else None
    return respond(result, data=data)


@router.delete("/todos/{todo_id}")
async def delete_todo(
    todo_id: str,
    repo: TaskRepository = Depends(get_task_repository),
):
    result = await repo.delete(todo_id)
    if result.ok:
        logger.info(f"Mission {todo_id} terminated")
    return respond(result)
