import copy
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, TYPE_CHECKING

from fsrs_scheduler.fsrs_errors import InvalidParameter, ManualGradeNotAllowed
from fsrs_scheduler.fsrs_scheduler import as_utc, whole_days_between
from fsrs_scheduler.rating import Rating
from fsrs_scheduler.review_log import RecordLogItem, ReviewLog
from fsrs_scheduler.state import State

if TYPE_CHECKING:
    from fsrs_scheduler.fsrs import FSRS


def rollback(card, log: ReviewLog, logger: logging.Logger|None = None):
    """Undo the review described by ``log`` and return the earlier card."""
    logger = logger or logging.getLogger(__name__)

    if log.rating == Rating.MANUAL:
        logger.error("Cannot rollback manual rating")
        raise ManualGradeNotAllowed()

    logger.warning("Rolling back card: %s -> %s, rating=%s", card.state, log.state, log.rating)

    if log.state == State.NEW:
        lapses = 0
    elif log.rating == Rating.AGAIN and log.state == State.REVIEW:
        lapses = max(0, card.lapses - 1)
    else:
        lapses = card.lapses

    previous_card = copy.copy(card)
    previous_card.state = log.state
    previous_card.due = log.due
    previous_card.stability = log.stability
    previous_card.difficulty = log.difficulty
    previous_card.last_review = log.last_review
    previous_card.scheduled_days = log.last_scheduled_days
    previous_card.step = log.last_step
    previous_card.reps = max(0, card.reps - 1)
    previous_card.lapses = lapses

    return previous_card


def forget(card, now: datetime, reset_count: bool = False, logger: logging.Logger|None = None) -> RecordLogItem:
    """Send a card back to NEW, keeping its last review date."""
    logger = logger or logging.getLogger(__name__)
    logger.warning("Forgetting card: state=%s, reset_count=%s", card.state, reset_count)

    if card.state == State.NEW:
        scheduled_days = 0
    else:
        scheduled_days = whole_days_between(card.due, now)

    forget_log = ReviewLog(
        rating=Rating.MANUAL,
        state=card.state,
        due=card.due,
        stability=card.stability,
        difficulty=card.difficulty,
        scheduled_days=scheduled_days,
        step=card.step,
        review=now,
        last_review=card.last_review,
        last_scheduled_days=card.scheduled_days,
        last_step=card.step,
    )

    forgotten_card = copy.copy(card)
    forgotten_card.due = now
    forgotten_card.stability = 0.0
    forgotten_card.difficulty = 0.0
    forgotten_card.scheduled_days = 0
    forgotten_card.step = 0
    forgotten_card.state = State.NEW

    if reset_count:
        forgotten_card.reps = 0
        forgotten_card.lapses = 0

    return RecordLogItem(forgotten_card, forget_log)


def reset_card(card):
    """Copy of ``card`` with its memory, counters and history cleared."""
    empty_card = copy.copy(card)
    empty_card.stability = 0.0
    empty_card.difficulty = 0.0
    empty_card.scheduled_days = 0
    empty_card.step = 0
    empty_card.reps = 0
    empty_card.lapses = 0
    empty_card.state = State.NEW
    empty_card.last_review = None
    return empty_card


@dataclass
class ReviewHistory:
    """One entry of a stored review history.

    Graded entries only need ``rating`` and ``review``. Manual entries may
    also carry the state, due date and memory values that were set by hand.
    """

    rating: Rating|None = None
    review: datetime|None = None
    due: datetime|None = None
    state: State|None = None
    stability: float|None = None
    difficulty: float|None = None
    scheduled_days: int|None = None
    step: int|None = None


@dataclass
class RescheduleOptions:
    record_log_handler: Callable[[RecordLogItem], Any]|None = None
    record_log_item_handler: Callable[[RecordLogItem], Any]|None = None
    reviews_order_by: Callable[[ReviewHistory], Any]|None = None
    skip_manual: bool = True
    update_memory_state: bool = False
    now: datetime|None = None
    first_card: Any = None


@dataclass
class RescheduleResult:
    collections: list = field(default_factory=list)
    reschedule_item: Any = None


class Reschedule:
    """Rebuilds a card by replaying its review history."""

    def __init__(self, fsrs: 'FSRS', logger: logging.Logger|None = None):
        self.fsrs = fsrs
        self.logger = logger or logging.getLogger(__name__)

    def replay(self, card, reviewed: datetime, rating: Rating) -> RecordLogItem:
        return self.fsrs.review(card, reviewed, rating)

    def handle_manual_rating(
        self,
        card,
        state: State,
        reviewed: datetime,
        stability: float|None = None,
        difficulty: float|None = None,
        due: datetime|None = None,
    ) -> RecordLogItem:
        self.logger.debug("Manual rating: state=%s", state)

        if state == State.NEW:
            log = ReviewLog(
                rating=Rating.MANUAL,
                state=state,
                due=due if due is not None else reviewed,
                stability=card.stability,
                difficulty=card.difficulty,
                scheduled_days=card.scheduled_days,
                step=card.step,
                review=reviewed,
                last_review=card.last_review,
                last_scheduled_days=card.scheduled_days,
                last_step=card.step,
            )

            next_card = reset_card(card)
            next_card.due = reviewed
            next_card.last_review = reviewed

            return RecordLogItem(next_card, log)

        if due is None:
            raise InvalidParameter("reschedule: due is required for manual rating")

        log = ReviewLog(
            rating=Rating.MANUAL,
            state=card.state,
            due=card.due,
            stability=card.stability,
            difficulty=card.difficulty,
            scheduled_days=card.scheduled_days,
            step=card.step,
            review=reviewed,
            last_review=card.last_review,
            last_scheduled_days=card.scheduled_days,
            last_step=card.step,
        )

        next_card = copy.copy(card)
        next_card.state = state
        next_card.due = due
        next_card.last_review = reviewed
        next_card.stability = stability if stability is not None else card.stability
        next_card.difficulty = difficulty if difficulty is not None else card.difficulty
        next_card.scheduled_days = whole_days_between(reviewed, due)
        next_card.reps += 1

        return RecordLogItem(next_card, log)

    def replay_history(self, card, reviews: list[ReviewHistory]) -> list[RecordLogItem]:
        collections = []
        current_card = card

        for index, review in enumerate(reviews):
            if review.review is None:
                continue

            self.logger.info(
                "Processing review #%d: rating=%s, date=%s", index + 1, review.rating, review.review
            )

            if review.rating == Rating.MANUAL:
                item = self.handle_manual_rating(
                    current_card,
                    state=review.state if review.state is not None else current_card.state,
                    reviewed=review.review,
                    stability=review.stability,
                    difficulty=review.difficulty,
                    due=review.due,
                )
            elif review.rating is not None:
                item = self.replay(current_card, review.review, review.rating)
            else:
                continue

            collections.append(item)
            current_card = item.card

        return collections

    def calculate_manual_record(
        self,
        current_card,
        now: datetime,
        record_log_item: RecordLogItem|None,
        update_memory: bool = False,
    ) -> RecordLogItem|None:
        if record_log_item is None:
            return None

        reschedule_card = record_log_item.card

        if as_utc(current_card.due) == as_utc(reschedule_card.due):
            self.logger.debug("Calculating manual record: no changes needed")
            return None

        updated_card = copy.copy(current_card)
        updated_card.scheduled_days = whole_days_between(current_card.due, reschedule_card.due)

        self.logger.debug(
            "Calculating manual record: scheduled_days=%s, update_memory=%s",
            updated_card.scheduled_days, update_memory,
        )

        return self.handle_manual_rating(
            updated_card,
            state=reschedule_card.state,
            reviewed=now,
            stability=reschedule_card.stability if update_memory else None,
            difficulty=reschedule_card.difficulty if update_memory else None,
            due=reschedule_card.due,
        )

    def reschedule(
        self,
        current_card,
        reviews: list[ReviewHistory],
        options: RescheduleOptions|None = None,
    ) -> RescheduleResult:
        if options is None:
            options = RescheduleOptions()

        self.logger.debug("Rescheduling card with %d reviews", len(reviews))

        filtered_reviews = list(reviews)
        if options.reviews_order_by is not None:
            filtered_reviews.sort(key=options.reviews_order_by)
        if options.skip_manual:
            filtered_reviews = [review for review in filtered_reviews if review.rating != Rating.MANUAL]

        first_card = options.first_card if options.first_card is not None else reset_card(current_card)
        collections = self.replay_history(first_card, filtered_reviews)

        now = options.now if options.now is not None else datetime.now(timezone.utc)
        manual_item = self.calculate_manual_record(
            current_card,
            now,
            collections[-1] if collections else None,
            update_memory=options.update_memory_state,
        )

        if options.record_log_handler is not None:
            collections = [options.record_log_handler(item) for item in collections]
        if options.record_log_item_handler is not None and manual_item is not None:
            manual_item = options.record_log_item_handler(manual_item)

        return RescheduleResult(collections=collections, reschedule_item=manual_item)
