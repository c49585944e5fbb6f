from __future__ import annotations

import logging
import os
from typing import Optional

from pydantic import ValidationError

from mission_control.models import DEFAULT_PRIORITY, Task, TaskCreate, TaskUpdate
from mission_control.results import ErrorKind, OperationResult
from storage.store_client import StoreClient, StoreError

logger = logging.getLogger(__name__)

TODOS_TABLE = os.getenv("TODOS_TABLE", "todos")

# "relation does not exist" (Postgres) and "table not in schema cache" (PostgREST)
MISSING_TABLE_CODES = {"42P01", "PGRST205"}


def _store_failure(prefix: str, error: StoreError) -> OperationResult:
    return OperationResult.failure(
        ErrorKind.STORE, f"{prefix}: {error.message}", code=error.code
    )


class TaskRepository:
    """CRUD verbs for the todos table, scoped to one authenticated principal.

    Every method returns an OperationResult and never raises.
    """

    def __init__(
        self,
        store: StoreClient,
        owner_id: Optional[str] = None,
        table: str = TODOS_TABLE,
    ):
        self.store = store
        self.owner_id = owner_id
        self.table = table

    async def list(self) -> OperationResult[list[Task]]:
        try:
            rows = await self.store.select(self.table, order="created_at.desc")
            return OperationResult.success([Task(**row) for row in rows])
        except StoreError as e:
            logger.error(f"Failed to fetch todos: {e.message}")
            return _store_failure("Database error", e)
        except (TypeError, ValidationError) as e:
            logger.error(f"Store returned a malformed todo row: {e}")
            return OperationResult.failure(ErrorKind.STORE, f"Error: {e}")

    async def create(self, todo: TaskCreate) -> OperationResult[Task]:
        if not todo.title or not todo.title.strip():
            return OperationResult.failure(ErrorKind.VALIDATION, "Title is required")

        row = todo.model_dump(mode="json", exclude_none=True)
        row["priority"] = todo.priority or DEFAULT_PRIORITY
        row["completed"] = False
        if self.owner_id:
            row["user_id"] = self.owner_id

        try:
            data = await self.store.insert(self.table, row)
        except StoreError as e:
            logger.warning(f"Insert rejected for '{todo.title}': {e.message}")
            return _store_failure("Failed to insert todo", e)

        if not data:
            return OperationResult.failure(
                ErrorKind.STORE, "No data returned after insert"
            )

        try:
            return OperationResult.success(Task(**data))
        except (TypeError, ValidationError) as e:
            return OperationResult.failure(
                ErrorKind.STORE, f"Failed to create todo: Error: {e}"
            )

    async def update(self, todo_id: str, updates: TaskUpdate) -> OperationResult[Task]:
        changes = updates.changes()
        if not changes:
            return OperationResult.failure(ErrorKind.VALIDATION, "No fields to update")
        if "title" in changes:
            title = (changes["title"] or "").strip()
            if not title:
                return OperationResult.failure(ErrorKind.VALIDATION, "Title is required")
            changes["title"] = title
        return await self._apply(todo_id, changes)

    async def toggle_complete(self, todo_id: str, completed: bool) -> OperationResult[Task]:
        return await self._apply(todo_id, {"completed": completed})

    async def _apply(self, todo_id: str, changes: dict) -> OperationResult[Task]:
        try:
            data = await self.store.update(self.table, todo_id, changes)
            return OperationResult.success(Task(**data))
        except StoreError as e:
            logger.warning(f"Update of todo {todo_id} failed: {e.message}")
            return _store_failure("Database error", e)
        except (TypeError, ValidationError) as e:
            return OperationResult.failure(ErrorKind.STORE, f"Error: {e}")

    async def delete(self, todo_id: str) -> OperationResult[None]:
        try:
            await self.store.delete(self.table, todo_id)
            return OperationResult.success(None)
        except StoreError as e:
            logger.warning(f"Delete of todo {todo_id} failed: {e.message}")
            return _store_failure("Database error", e)

    async def test_connection(self) -> OperationResult[bool]:
        """Probe the table, telling a missing table apart from other failures."""
        try:
            await self.store.select(self.table, columns="id", limit=1)
            return OperationResult.success(True)
        except StoreError as e:
            if e.code in MISSING_TABLE_CODES:
                return OperationResult.failure(
                    ErrorKind.STORE,
                    f'Table "{self.table}" does not exist. '
                    "Please run the schema.sql file in your Supabase dashboard.",
                    code=e.code,
                )
            if e.code:
                return OperationResult.failure(
                    ErrorKind.STORE,
                    f"Connection test failed: {e.message} (Code: {e.code})",
                    code=e.code,
                )
            return OperationResult.failure(
                ErrorKind.STORE, f"Connection test failed: {e.message}"
            )
