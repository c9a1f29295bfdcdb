"""
Sprint Retrospectives

Retrospective boards per sprint, with items sorted into four columns.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from enum import Enum


class RetroCategory(Enum):
    """Board column."""
    WENT_WELL = "went_well"
    TO_IMPROVE = "to_improve"
    ACTION_ITEMS = "action_items"
    APPRECIATIONS = "appreciations"

    @property
    def title(self) -> str:
        return {
            RetroCategory.WENT_WELL: "What went well?",
            RetroCategory.TO_IMPROVE: "What could be improved?",
            RetroCategory.ACTION_ITEMS: "Action items",
            RetroCategory.APPRECIATIONS: "Appreciations",
        }[self]


@dataclass
class RetrospectiveBoard:
    team_id: int
    sprint_number: str
    title: str = ""
    status: str = "active"
    id: Optional[int] = None
    created_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        if not self.title:
            self.title = f"Sprint {self.sprint_number} Retrospective"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "team_id": self.team_id,
            "sprint_number": self.sprint_number,
            "title": self.title,
            "status": self.status,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class RetrospectiveItem:
    board_id: int
    category: RetroCategory
    content: str
    author_name: str = "Anonymous"
    id: Optional[int] = None
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "board_id": self.board_id,
            "category": self.category.value,
            "content": self.content,
            "author_name": self.author_name,
            "created_at": self.created_at.isoformat(),
        }


def group_items(items: list[RetrospectiveItem]) -> dict[str, dict]:
    """Items per column, every column present even when empty."""
    columns = {c.value: {"title": c.title, "items": []} for c in RetroCategory}
    for item in items:
        columns[item.category.value]["items"].append(item.to_dict())
    return columns
