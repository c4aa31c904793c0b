import copy
import logging
from datetime import datetime, timedelta, timezone

from fsrs_scheduler.fsrs_algorithm import (
    forgetting_curve,
    initial_difficulty,
    initial_stability,
    next_difficulty,
    next_stability,
    short_term_stability,
)
from fsrs_scheduler.fsrs_errors import InvalidGrade, ManualGradeNotAllowed
from fsrs_scheduler.fsrs_interval import (
    apply_new_card_constraints,
    apply_review_card_constraints,
    next_interval,
)
from fsrs_scheduler.fsrs_parameters import Parameters
from fsrs_scheduler.memory_state import MemoryState
from fsrs_scheduler.random_source import RandomSource, SeededRandom
from fsrs_scheduler.rating import GRADES, Rating
from fsrs_scheduler.review_log import RecordLogItem, ReviewLog
from fsrs_scheduler.state import State
from fsrs_scheduler.strategies import (
    LearningStepsStrategy,
    SeedStrategy,
    basic_learning_steps_strategy,
    default_seed_strategy,
)

MINUTES_PER_DAY = 24 * 60


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def date_diff_in_days(last: datetime, current: datetime) -> int:
    """Number of calendar days (UTC) between two moments."""
    return (as_utc(current).date() - as_utc(last).date()).days


def whole_days_between(previous: datetime, now: datetime) -> int:
    """Full 24h periods from ``previous`` to ``now``, floored."""
    return (as_utc(now) - as_utc(previous)).days


class BaseScheduler:
    """Schedules one card at one moment.

    A scheduler is built per call and discarded afterwards. ``last`` is the
    caller's card and is never modified; ``current`` is a copy with the
    review counter and last review already updated.

    Subclasses implement ``_new_state``, ``_learning_state`` and
    ``_review_state``.
    """

    def __init__(
        self,
        card,
        now: datetime,
        parameters: Parameters,
        interval_modifier: float,
        random_source: RandomSource|None = None,
        seed_strategy: SeedStrategy|None = None,
        learning_steps_strategy: LearningStepsStrategy|None = None,
        logger: logging.Logger|None = None,
    ):
        self.last = card
        self.now = now
        self.parameters = parameters
        self.interval_modifier = interval_modifier
        self.random_source = random_source
        self.seed_strategy = seed_strategy or default_seed_strategy
        self.learning_steps_strategy = learning_steps_strategy or basic_learning_steps_strategy
        self.logger = logger or logging.getLogger(__name__)

        if card.state != State.NEW and card.last_review is not None:
            self.elapsed_days = max(0, date_diff_in_days(card.last_review, now))
        else:
            self.elapsed_days = 0

        current = copy.copy(card)
        current.reps += 1
        current.last_review = now
        self.current = current

        self._fuzz_factor: float|None = None

        self.logger.debug(
            "Scheduler initialized: type=%s, state=%s, elapsed=%sd",
            type(self).__name__, State(card.state), self.elapsed_days,
        )

    def preview(self) -> dict[Rating, RecordLogItem]:
        return {grade: self.review(grade) for grade in GRADES}

    def review(self, grade: Rating) -> RecordLogItem:
        grade = self._check_grade(grade)

        state = State(self.last.state)
        if state == State.NEW:
            return self._new_state(grade)
        elif state in (State.LEARNING, State.RELEARNING):
            return self._learning_state(grade)
        return self._review_state(grade)

    def build_log(self, grade: Rating, next_card) -> ReviewLog:
        return ReviewLog(
            rating=grade,
            state=self.last.state,
            due=self.last.due,
            stability=self.last.stability,
            difficulty=self.last.difficulty,
            scheduled_days=next_card.scheduled_days,
            step=next_card.step,
            review=self.now,
            last_review=self.last.last_review,
            last_scheduled_days=self.last.scheduled_days,
            last_step=self.last.step,
        )

    def _check_grade(self, grade) -> Rating:
        try:
            grade = Rating(grade)
        except ValueError:
            raise InvalidGrade(f"Invalid grade: {grade!r}") from None

        if grade == Rating.MANUAL:
            self.logger.error("Manual grade not allowed for scheduling")
            raise ManualGradeNotAllowed()

        return grade

    def _new_state(self, grade: Rating) -> RecordLogItem:
        raise NotImplementedError

    def _learning_state(self, grade: Rating) -> RecordLogItem:
        raise NotImplementedError

    def _review_state(self, grade: Rating) -> RecordLogItem:
        raise NotImplementedError

    def _retrievability(self) -> float:
        return forgetting_curve(self.elapsed_days, self.current.stability, self.parameters.w)

    def _next_memory_state(
        self,
        grade: Rating,
        retrievability: float|None = None,
        short_term: bool = False,
    ) -> MemoryState:
        w = self.parameters.w
        memory_state = MemoryState(self.current.stability, self.current.difficulty)

        if memory_state.is_initial:
            return MemoryState(
                stability=initial_stability(grade, w),
                difficulty=initial_difficulty(grade, w),
            )

        difficulty = next_difficulty(memory_state.difficulty, grade, w)

        if short_term:
            stability = short_term_stability(memory_state.stability, grade, w)
        else:
            if retrievability is None:
                retrievability = self._retrievability()
            stability = next_stability(
                difficulty=memory_state.difficulty,
                stability=memory_state.stability,
                retrievability=retrievability,
                rating=grade,
                parameters=w,
            )

        self.logger.debug(
            "State transition: s=%s -> %s, d=%s -> %s, grade=%s",
            memory_state.stability, stability, memory_state.difficulty, difficulty, grade,
        )

        return MemoryState(stability=stability, difficulty=difficulty)

    def _get_fuzz_factor(self) -> float|None:
        if not self.parameters.enable_fuzz:
            return None

        if self._fuzz_factor is None:
            if self.random_source is not None:
                self._fuzz_factor = self.random_source.next()
            else:
                self._fuzz_factor = SeededRandom(self.seed_strategy(self)).next()

        return self._fuzz_factor

    def _next_interval(self, stability: float) -> int:
        return next_interval(
            stability=stability,
            interval_modifier=self.interval_modifier,
            maximum_interval=self.parameters.maximum_interval,
            elapsed_days=self.elapsed_days,
            fuzz_factor=self._get_fuzz_factor(),
        )

    def _with_memory_state(self, memory_state: MemoryState):
        next_card = copy.copy(self.current)
        next_card.stability = memory_state.stability
        next_card.difficulty = memory_state.difficulty
        return next_card

    def _schedule_days(self, card, interval: int):
        card.scheduled_days = interval
        card.due = self.now + timedelta(days=interval)
        card.state = State.REVIEW
        card.step = 0
        return card


class BasicScheduler(BaseScheduler):
    """Keeps new and lapsed cards on sub-day steps before full-day review."""

    def _new_state(self, grade: Rating) -> RecordLogItem:
        next_card = self._with_memory_state(self._next_memory_state(grade))
        self._apply_learning_steps(next_card, grade, State.LEARNING)

        self.logger.debug("New card result: state=%s, step=%s", next_card.state, next_card.step)
        return RecordLogItem(next_card, self.build_log(grade, next_card))

    def _learning_state(self, grade: Rating) -> RecordLogItem:
        memory_state = self._next_memory_state(grade, short_term=self.elapsed_days == 0)
        next_card = self._with_memory_state(memory_state)
        self._apply_learning_steps(next_card, grade, State(self.last.state))

        self.logger.debug("Learning result: state=%s, step=%s", next_card.state, next_card.step)
        return RecordLogItem(next_card, self.build_log(grade, next_card))

    def _review_state(self, grade: Rating) -> RecordLogItem:
        retrievability = self._retrievability()
        self.logger.debug("Review retrievability: %s", retrievability)

        if grade == Rating.AGAIN:
            next_card = self._with_memory_state(
                self._next_memory_state(Rating.AGAIN, retrievability)
            )
            next_card.lapses += 1
            self._apply_learning_steps(next_card, Rating.AGAIN, State.RELEARNING)
            return RecordLogItem(next_card, self.build_log(grade, next_card))

        hard_state = self._next_memory_state(Rating.HARD, retrievability)
        good_state = self._next_memory_state(Rating.GOOD, retrievability)
        easy_state = self._next_memory_state(Rating.EASY, retrievability)

        intervals = apply_review_card_constraints(
            hard=self._next_interval(hard_state.stability),
            good=self._next_interval(good_state.stability),
            easy=self._next_interval(easy_state.stability),
        )

        if grade == Rating.HARD:
            memory_state, interval = hard_state, intervals.hard
        elif grade == Rating.GOOD:
            memory_state, interval = good_state, intervals.good
        elif grade == Rating.EASY:
            memory_state, interval = easy_state, intervals.easy
        else:
            raise InvalidGrade(f"Unexpected grade in review: {grade!r}")

        next_card = self._schedule_days(self._with_memory_state(memory_state), interval)

        self.logger.debug("Review result: scheduled_days=%s", next_card.scheduled_days)
        return RecordLogItem(next_card, self.build_log(grade, next_card))

    def _learning_info(self, grade: Rating) -> tuple[int, int]:
        step = self.current.step
        if self.current.state == State.LEARNING and grade in (Rating.GOOD, Rating.EASY):
            step += 1

        steps = self.learning_steps_strategy(self.parameters, State(self.current.state), step)
        info = steps.get(grade)
        if info is None:
            return 0, 0

        return max(0, info.scheduled_minutes), max(0, info.next_step)

    def _apply_learning_steps(self, card, grade: Rating, target_state: State):
        scheduled_minutes, next_step = self._learning_info(grade)

        if 0 < scheduled_minutes < MINUTES_PER_DAY:
            card.step = next_step
            card.scheduled_days = 0
            card.state = target_state
            card.due = self.now + timedelta(minutes=scheduled_minutes)
            self.logger.debug("Applied learning step: %s minutes", scheduled_minutes)
        elif scheduled_minutes >= MINUTES_PER_DAY:
            card.step = next_step
            card.state = State.REVIEW
            card.due = self.now + timedelta(minutes=scheduled_minutes)
            card.scheduled_days = scheduled_minutes // MINUTES_PER_DAY
            self.logger.debug(
                "Applied long learning step: %s minutes = %s days",
                scheduled_minutes, card.scheduled_days,
            )
        else:
            self._schedule_days(card, self._next_interval(card.stability))
            self.logger.debug("Graduated to review: %s days", card.scheduled_days)

        return card


class LongTermScheduler(BaseScheduler):
    """Schedules every outcome in whole days, skipping sub-day steps."""

    def _new_state(self, grade: Rating) -> RecordLogItem:
        states = {g: self._next_memory_state(g) for g in GRADES}

        intervals = apply_new_card_constraints(
            again=self._next_interval(states[Rating.AGAIN].stability),
            hard=self._next_interval(states[Rating.HARD].stability),
            good=self._next_interval(states[Rating.GOOD].stability),
            easy=self._next_interval(states[Rating.EASY].stability),
        )

        next_card = self._schedule_days(
            self._with_memory_state(states[grade]),
            getattr(intervals, grade.name.lower()),
        )

        self.logger.debug("New card result: scheduled_days=%s", next_card.scheduled_days)
        return RecordLogItem(next_card, self.build_log(grade, next_card))

    def _learning_state(self, grade: Rating) -> RecordLogItem:
        self.logger.debug("Long-term learning: treating as review, grade=%s", grade)
        return self._review_state(grade)

    def _review_state(self, grade: Rating) -> RecordLogItem:
        retrievability = self._retrievability()
        self.logger.debug("Review retrievability: %s", retrievability)

        states = {g: self._next_memory_state(g, retrievability) for g in GRADES}

        again_interval = self._next_interval(states[Rating.AGAIN].stability)
        intervals = apply_review_card_constraints(
            hard=self._next_interval(states[Rating.HARD].stability),
            good=self._next_interval(states[Rating.GOOD].stability),
            easy=self._next_interval(states[Rating.EASY].stability),
        )

        if grade == Rating.AGAIN:
            interval = again_interval
        else:
            interval = getattr(intervals, grade.name.lower())

        next_card = self._schedule_days(self._with_memory_state(states[grade]), interval)
        if grade == Rating.AGAIN:
            next_card.lapses += 1

        self.logger.debug("Review result: scheduled_days=%s", next_card.scheduled_days)
        return RecordLogItem(next_card, self.build_log(grade, next_card))


def make_scheduler(
    card,
    now: datetime,
    parameters: Parameters,
    interval_modifier: float,
    **kwargs,
) -> BaseScheduler:
    if parameters.enable_short_term:
        return BasicScheduler(card, now, parameters, interval_modifier, **kwargs)
    return LongTermScheduler(card, now, parameters, interval_modifier, **kwargs)
