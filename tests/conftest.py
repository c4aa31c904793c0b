import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from fsrs_scheduler.fsrs import FSRS  # noqa: E402
from fsrs_scheduler.fsrs_card import Card  # noqa: E402
from fsrs_scheduler.fsrs_parameters import PartialParameters  # noqa: E402
from fsrs_scheduler.state import State  # noqa: E402


@pytest.fixture
def now():
    return datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def new_card(now):
    return Card.new_card(now)


@pytest.fixture
def review_card(now):
    return Card(
        due=now,
        state=State.REVIEW,
        last_review=now - timedelta(days=10),
        stability=10.0,
        difficulty=5.0,
        scheduled_days=10,
        step=0,
        reps=5,
        lapses=5,
    )


@pytest.fixture
def learning_card(now):
    return Card(
        due=now,
        state=State.LEARNING,
        last_review=now - timedelta(minutes=10),
        stability=2.3065,
        difficulty=2.11810397,
        scheduled_days=0,
        step=1,
        reps=1,
        lapses=0,
    )


@pytest.fixture
def fsrs():
    return FSRS()


@pytest.fixture
def long_term_fsrs():
    return FSRS(PartialParameters(enable_short_term=False))
