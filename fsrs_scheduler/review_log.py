from dataclasses import dataclass
from datetime import datetime
from typing import Any, NamedTuple

from fsrs_scheduler.rating import Rating
from fsrs_scheduler.state import State


@dataclass(frozen=True)
class ReviewLog:
    """One scheduling decision.

    ``state``, ``due``, ``stability`` and ``difficulty`` describe the card
    before the review; ``scheduled_days`` and ``step`` are the values it was
    given. The ``last_*`` fields keep the remaining pre-review values so the
    review can be rolled back exactly.
    """

    rating: Rating
    state: State
    due: datetime
    stability: float
    difficulty: float
    scheduled_days: int
    step: int
    review: datetime
    last_review: datetime|None = None
    last_scheduled_days: int = 0
    last_step: int = 0


class RecordLogItem(NamedTuple):
    card: Any
    log: ReviewLog
