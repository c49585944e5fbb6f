import re
from datetime import date
from typing import Optional

from mission_control.models import DEFAULT_PRIORITY, Priority, TaskCreate

# Naive sentence split; abbreviations and decimals get cut too.
_SPLIT_RE = re.compile(r"[.,]")


def split_candidates(description: str) -> list[str]:
    """Split a description on '.' and ',' into trimmed, non-empty fragments."""
    if not description:
        return []
    return [part.strip() for part in _SPLIT_RE.split(description) if part.strip()]


class TaskExtractor:

    def extract(
        self,
        description: str,
        source_label: str,
        priority: Priority = DEFAULT_PRIORITY,
        due_date: Optional[date] = None,
    ) -> list[TaskCreate]:
        return [
            TaskCreate(
                title=title,
                priority=priority,
                description=f"Created from image analysis: {source_label}",
                due_date=due_date,
            )
            for title in split_candidates(description)
        ]
