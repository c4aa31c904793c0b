import logging
from datetime import datetime, timezone
from typing import Callable

from fsrs_scheduler.fsrs_algorithm import forgetting_curve
from fsrs_scheduler.fsrs_errors import ManualGradeNotAllowed
from fsrs_scheduler.fsrs_interval import interval_modifier
from fsrs_scheduler.fsrs_parameters import Parameters, PartialParameters, check_weights, generate_parameters
from fsrs_scheduler.fsrs_scheduler import BaseScheduler, make_scheduler, whole_days_between
from fsrs_scheduler.random_source import RandomSource
from fsrs_scheduler.rating import Rating
from fsrs_scheduler.review import (
    Reschedule,
    RescheduleOptions,
    RescheduleResult,
    ReviewHistory,
    forget,
    rollback,
)
from fsrs_scheduler.review_log import RecordLogItem, ReviewLog
from fsrs_scheduler.state import State
from fsrs_scheduler.strategies import LearningStepsStrategy, SeedStrategy

SchedulerFactory = Callable[..., BaseScheduler]


class FSRS:
    """Scheduling session bound to one immutable parameter set."""

    def __init__(
        self,
        parameters: PartialParameters|Parameters|None = None,
        random_source: RandomSource|None = None,
        logger: logging.Logger|None = None,
        seed_strategy: SeedStrategy|None = None,
        learning_steps_strategy: LearningStepsStrategy|None = None,
        scheduler_factory: SchedulerFactory|None = None,
    ):
        if isinstance(parameters, Parameters):
            check_weights(parameters.w)
        else:
            parameters = generate_parameters(parameters)

        self._parameters = parameters
        self._interval_modifier = interval_modifier(parameters.request_retention, parameters.w)
        self.random_source = random_source
        self.logger = logger or logging.getLogger(__name__)
        self.seed_strategy = seed_strategy
        self.learning_steps_strategy = learning_steps_strategy
        self.scheduler_factory = scheduler_factory or make_scheduler

        self.logger.debug(
            "FSRS initialized: request_retention=%s, maximum_interval=%s, enable_fuzz=%s, enable_short_term=%s",
            parameters.request_retention,
            parameters.maximum_interval,
            parameters.enable_fuzz,
            parameters.enable_short_term,
        )

    @property
    def parameters(self) -> Parameters:
        return self._parameters

    @property
    def interval_modifier(self) -> float:
        return self._interval_modifier

    def _scheduler(self, card, now: datetime) -> BaseScheduler:
        return self.scheduler_factory(
            card,
            now,
            self._parameters,
            self._interval_modifier,
            random_source=self.random_source,
            seed_strategy=self.seed_strategy,
            learning_steps_strategy=self.learning_steps_strategy,
            logger=self.logger,
        )

    def preview(self, card, now: datetime) -> dict[Rating, RecordLogItem]:
        """Outcome of every grade, keyed by grade."""
        self.logger.debug("Previewing all ratings: state=%s", card.state)
        return self._scheduler(card, now).preview()

    def review(self, card, now: datetime, grade: Rating) -> RecordLogItem:
        self.logger.debug("Processing review: grade=%s, state=%s", grade, card.state)

        if grade == Rating.MANUAL:
            self.logger.error("Manual grade not allowed for scheduling")
            raise ManualGradeNotAllowed()

        return self._scheduler(card, now).review(grade)

    def forgetting_curve(self, elapsed_days: float, stability: float) -> float:
        """Retrievability after ``elapsed_days``; 0.0 for an unlearned (S=0) card."""
        if stability == 0.0:
            return 0.0
        return forgetting_curve(elapsed_days, stability, self._parameters.w)

    def get_retrievability_value(self, card, now: datetime|None = None) -> float:
        if now is None:
            now = datetime.now(timezone.utc)

        if card.state == State.NEW or card.last_review is None:
            return 0.0

        elapsed_days = max(0, whole_days_between(card.last_review, now))
        return self.forgetting_curve(elapsed_days, card.stability)

    def get_retrievability(self, card, now: datetime|None = None) -> str:
        return "%.2f%%" % (self.get_retrievability_value(card, now) * 100)

    def rollback(self, card, log: ReviewLog):
        return rollback(card, log, logger=self.logger)

    def forget(self, card, now: datetime, reset_count: bool = False) -> RecordLogItem:
        return forget(card, now, reset_count=reset_count, logger=self.logger)

    def reschedule(
        self,
        current_card,
        reviews: list[ReviewHistory],
        options: RescheduleOptions|None = None,
    ) -> RescheduleResult:
        return Reschedule(self, logger=self.logger).reschedule(current_card, reviews, options)
