import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from extraction.task_extractor import TaskExtractor
from llm.image_client import ImageDescriptionClient
from llm.schemas import ImageReference
from mission_control.models import DEFAULT_PRIORITY, Priority, Task, TaskCreate
from mission_control.results import OperationResult
from storage.task_repository import TaskRepository

logger = logging.getLogger(__name__)


@dataclass
class ImportOutcome:
    """Aggregate result of one image import."""
    attempted: int = 0
    created: list[Task] = field(default_factory=list)
    failures: list[tuple[str, str]] = field(default_factory=list)
    description: Optional[str] = None

    @property
    def succeeded(self) -> int:
        return len(self.created)

    @property
    def ok(self) -> bool:
        return self.succeeded > 0

    @property
    def message(self) -> str:
        if self.ok:
            return f"Created {self.succeeded} missions from image analysis"
        return "Failed to create any missions from the image"

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "message": self.message,
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "failed": len(self.failures),
            "description": self.description,
            "tasks": [t.model_dump(mode="json") for t in self.created],
            "failures": [{"title": t, "error": e} for t, e in self.failures],
        }


class BackendAPI:
    """Image-to-missions pipeline: describe, split, insert one by one."""

    def __init__(
        self,
        repository: TaskRepository,
        image_client: ImageDescriptionClient,
        extractor: Optional[TaskExtractor] = None,
    ):
        self.repository = repository
        self.image_client = image_client
        self.extractor = extractor or TaskExtractor()

    async def insert_candidates(self, candidates: list[TaskCreate]) -> ImportOutcome:
        """Insert sequentially. A failed insert is recorded and skipped, never retried."""
        outcome = ImportOutcome(attempted=len(candidates))
        for candidate in candidates:
            result = await self.repository.create(candidate)
            if result.error:
                logger.error(f"Error creating todo '{candidate.title}': {result.error.message}")
                outcome.failures.append((candidate.title or "", result.error.message))
            elif result.data is not None:
                outcome.created.append(result.data)
        return outcome

    async def import_image(
        self,
        image: ImageReference,
        priority: Priority = DEFAULT_PRIORITY,
        due_date: Optional[date] = None,
    ) -> OperationResult[ImportOutcome]:
        # 1. Describe the image
        described = await self.image_client.adescribe(image)
        if described.error:
            return OperationResult(error=described.error)

        # 2. Split the description into candidate missions
        candidates = self.extractor.extract(
            described.data, image.source_label, priority=priority, due_date=due_date
        )
        logger.info(f"Image description yielded {len(candidates)} candidates")

        # 3. Insert them in order
        outcome = await self.insert_candidates(candidates)
        outcome.description = described.data
        logger.info(f"{outcome.message} ({len(outcome.failures)} failed)")
        return OperationResult.success(outcome)
