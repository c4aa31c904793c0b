from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol

from fsrs_scheduler.state import State


class FSRSCard(Protocol):
    """Anything carrying these attributes can be scheduled.

    The scheduler copies the object with ``copy.copy`` and assigns to the
    copy, so plain classes, dataclasses and ORM-free records all work.
    """

    due: datetime
    state: State
    last_review: datetime|None
    stability: float
    difficulty: float
    scheduled_days: int
    step: int
    reps: int
    lapses: int


@dataclass
class Card:
    due: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    state: State = State.NEW
    last_review: datetime|None = None
    stability: float = 0.0
    difficulty: float = 0.0
    scheduled_days: int = 0
    step: int = 0
    reps: int = 0
    lapses: int = 0

    @staticmethod
    def new_card(now: datetime|None = None) -> 'Card':
        if now is None:
            now = datetime.now(timezone.utc)
        return Card(due=now)
