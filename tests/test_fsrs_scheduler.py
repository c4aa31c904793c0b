import copy
from datetime import datetime, timedelta, timezone

import pytest

from fsrs_scheduler.fsrs import FSRS
from fsrs_scheduler.fsrs_card import Card
from fsrs_scheduler.fsrs_errors import InvalidGrade, InvalidStability, ManualGradeNotAllowed
from fsrs_scheduler.fsrs_parameters import PartialParameters, generate_parameters
from fsrs_scheduler.fsrs_scheduler import (
    BaseScheduler,
    BasicScheduler,
    LongTermScheduler,
    date_diff_in_days,
    make_scheduler,
)
from fsrs_scheduler.random_source import SequenceRandom
from fsrs_scheduler.rating import GRADES, Rating
from fsrs_scheduler.state import State
from fsrs_scheduler.strategies import (
    basic_learning_steps_strategy,
    card_id_seed_strategy,
    default_seed_strategy,
)


class CountingRandom:
    def __init__(self, value: float = 0.5):
        self.value = value
        self.calls = 0

    def next(self) -> float:
        self.calls += 1
        return self.value


class TestNewCard:
    """Scheduling cards that have never been reviewed."""

    @pytest.mark.parametrize("short_term", [True, False])
    def test_easy_graduates_to_review(self, new_card, now, short_term):
        fsrs = FSRS(PartialParameters(enable_short_term=short_term))

        card, log = fsrs.review(new_card, now, Rating.EASY)

        assert card.state == State.REVIEW
        assert card.scheduled_days > 0
        assert card.reps == 1
        assert card.last_review == now
        assert card.due == now + timedelta(days=card.scheduled_days)
        assert log.state == State.NEW
        assert log.rating == Rating.EASY

    @pytest.mark.parametrize("rating, minutes, step", [
        (Rating.AGAIN, 1, 0),
        (Rating.HARD, 6, 0),
        (Rating.GOOD, 10, 1),
    ])
    def test_learning_steps(self, fsrs, new_card, now, rating, minutes, step):
        card, _ = fsrs.review(new_card, now, rating)

        assert card.state == State.LEARNING
        assert card.due == now + timedelta(minutes=minutes)
        assert card.scheduled_days == 0
        assert card.step == step

    def test_initial_memory_state(self, fsrs, new_card, now):
        card, _ = fsrs.review(new_card, now, Rating.GOOD)

        assert card.stability == 2.3065
        assert abs(card.difficulty - 2.11810397) < 1e-6

    def test_long_term_intervals_are_strictly_ordered(self, long_term_fsrs, new_card, now):
        preview = long_term_fsrs.preview(new_card, now)
        intervals = [preview[grade].card.scheduled_days for grade in GRADES]

        assert intervals == sorted(intervals)
        assert len(set(intervals)) == 4
        assert all(item.card.state == State.REVIEW for item in preview.values())
        assert all(item.card.step == 0 for item in preview.values())

    def test_day_long_learning_step_promotes_to_review(self, new_card, now):
        fsrs = FSRS(PartialParameters(learning_steps=["1d"]))

        card, _ = fsrs.review(new_card, now, Rating.AGAIN)

        assert card.state == State.REVIEW
        assert card.scheduled_days == 1
        assert card.due == now + timedelta(days=1)

    def test_no_learning_steps_graduates_immediately(self, new_card, now):
        fsrs = FSRS(PartialParameters(learning_steps=[]))

        card, _ = fsrs.review(new_card, now, Rating.AGAIN)

        assert card.state == State.REVIEW
        assert card.scheduled_days >= 1


class TestLearningCard:
    """Scheduling cards inside their learning or relearning steps."""

    def test_good_on_last_step_graduates(self, fsrs, learning_card, now):
        card, _ = fsrs.review(learning_card, now, Rating.GOOD)

        assert card.state == State.REVIEW
        assert card.step == 0
        assert card.scheduled_days >= 1
        assert card.stability >= learning_card.stability

    def test_again_restarts_steps(self, fsrs, learning_card, now):
        card, _ = fsrs.review(learning_card, now, Rating.AGAIN)

        assert card.state == State.LEARNING
        assert card.step == 0
        assert card.due == now + timedelta(minutes=1)
        assert card.stability < learning_card.stability

    def test_relearning_hard_stays_in_relearning(self, fsrs, learning_card, now):
        relearning_card = copy.copy(learning_card)
        relearning_card.state = State.RELEARNING
        relearning_card.step = 0

        card, _ = fsrs.review(relearning_card, now, Rating.HARD)

        assert card.state == State.RELEARNING
        assert card.due == now + timedelta(minutes=15)

    def test_relearning_good_returns_to_review(self, fsrs, learning_card, now):
        relearning_card = copy.copy(learning_card)
        relearning_card.state = State.RELEARNING
        relearning_card.step = 0

        card, _ = fsrs.review(relearning_card, now, Rating.GOOD)

        assert card.state == State.REVIEW

    def test_long_term_treats_learning_as_review(self, long_term_fsrs, learning_card, now):
        card, _ = long_term_fsrs.review(learning_card, now, Rating.AGAIN)

        assert card.state == State.REVIEW
        assert card.lapses == 1


class TestReviewCard:
    """Scheduling cards in the REVIEW state."""

    def test_again_enters_relearning(self, fsrs, review_card, now):
        card, log = fsrs.review(review_card, now, Rating.AGAIN)

        assert card.state == State.RELEARNING
        assert card.lapses == 6
        assert card.step == 0
        assert card.scheduled_days == 0
        assert card.due == now + timedelta(minutes=10)
        assert log.state == State.REVIEW

    def test_again_long_term_stays_in_review(self, long_term_fsrs, review_card, now):
        card, _ = long_term_fsrs.review(review_card, now, Rating.AGAIN)

        assert card.state == State.REVIEW
        assert card.lapses == 6
        assert card.scheduled_days >= 1

    @pytest.mark.parametrize("short_term", [True, False])
    def test_passing_grades_are_ordered(self, review_card, now, short_term):
        fsrs = FSRS(PartialParameters(enable_short_term=short_term))
        preview = fsrs.preview(review_card, now)

        hard = preview[Rating.HARD].card.scheduled_days
        good = preview[Rating.GOOD].card.scheduled_days
        easy = preview[Rating.EASY].card.scheduled_days

        assert 1 <= hard < good < easy <= fsrs.parameters.maximum_interval
        for rating in (Rating.HARD, Rating.GOOD, Rating.EASY):
            assert preview[rating].card.state == State.REVIEW
            assert preview[rating].card.lapses == review_card.lapses

    def test_memory_state_ranges(self, fsrs, review_card, now):
        for item in fsrs.preview(review_card, now).values():
            assert 0.001 <= item.card.stability <= 36500
            assert 1 <= item.card.difficulty <= 10

    def test_maximum_interval_is_respected(self, review_card, now):
        fsrs = FSRS(PartialParameters(maximum_interval=5))
        preview = fsrs.preview(review_card, now)

        assert preview[Rating.HARD].card.scheduled_days <= 5

    def test_invalid_stability_raises(self, fsrs, review_card, now):
        review_card.stability = 0.0
        review_card.difficulty = 5.0
        with pytest.raises(InvalidStability):
            fsrs.review(review_card, now, Rating.GOOD)


class TestReviewContract:
    """Invariants shared by every scheduling call."""

    def test_caller_card_is_not_modified(self, fsrs, review_card, now):
        original = copy.deepcopy(review_card)

        fsrs.preview(review_card, now)
        fsrs.review(review_card, now, Rating.AGAIN)

        assert review_card == original

    def test_deterministic_without_fuzz(self, fsrs, review_card, now):
        first = fsrs.review(review_card, now, Rating.GOOD)
        second = fsrs.review(review_card, now, Rating.GOOD)

        assert first == second

    def test_manual_grade_is_rejected(self, fsrs, review_card, now):
        with pytest.raises(ManualGradeNotAllowed):
            fsrs.review(review_card, now, Rating.MANUAL)

    @pytest.mark.parametrize("grade", [5, -1, 99])
    def test_unknown_grade_is_rejected(self, fsrs, review_card, now, grade):
        with pytest.raises(InvalidGrade):
            fsrs.review(review_card, now, grade)

    def test_plain_int_grade_is_accepted(self, fsrs, new_card, now):
        card, log = fsrs.review(new_card, now, 4)
        assert log.rating == Rating.EASY
        assert card.state == State.REVIEW

    def test_log_describes_transition(self, fsrs, review_card, now):
        card, log = fsrs.review(review_card, now, Rating.GOOD)

        assert log.due == review_card.due
        assert log.stability == review_card.stability
        assert log.difficulty == review_card.difficulty
        assert log.scheduled_days == card.scheduled_days
        assert log.step == card.step
        assert log.review == now
        assert log.last_review == review_card.last_review

    def test_any_attribute_bearing_object_is_accepted(self, fsrs, now):
        class StoredCard:
            def __init__(self):
                self.due = now
                self.state = State.NEW
                self.last_review = None
                self.stability = 0.0
                self.difficulty = 0.0
                self.scheduled_days = 0
                self.step = 0
                self.reps = 0
                self.lapses = 0

        stored = StoredCard()
        card, _ = fsrs.review(stored, now, Rating.GOOD)

        assert isinstance(card, StoredCard)
        assert card is not stored
        assert stored.reps == 0


class TestElapsedDays:
    """Calendar-day arithmetic used by the scheduler."""

    def test_calendar_days_not_24h_blocks(self):
        last = datetime(2024, 1, 14, 23, 0, tzinfo=timezone.utc)
        now = datetime(2024, 1, 15, 1, 0, tzinfo=timezone.utc)

        assert date_diff_in_days(last, now) == 1

    def test_naive_datetimes_are_utc(self):
        assert date_diff_in_days(datetime(2024, 1, 1, 12), datetime(2024, 1, 3, 1)) == 2

    def test_scheduler_uses_last_review(self, review_card, now):
        scheduler = BasicScheduler(review_card, now, generate_parameters(), 1.0)

        assert scheduler.elapsed_days == 10
        assert scheduler.current.reps == review_card.reps + 1
        assert scheduler.current.last_review == now

    def test_new_card_has_no_elapsed_days(self, new_card, now):
        new_card.last_review = now - timedelta(days=3)
        scheduler = BasicScheduler(new_card, now, generate_parameters(), 1.0)

        assert scheduler.elapsed_days == 0


class TestFuzz:
    """Interval fuzzing during scheduling."""

    def test_at_most_one_draw_per_call(self, review_card, now):
        source = CountingRandom()
        fsrs = FSRS(PartialParameters(enable_fuzz=True), random_source=source)

        fsrs.preview(review_card, now)
        assert source.calls == 1

        fsrs.review(review_card, now, Rating.GOOD)
        assert source.calls == 2

    def test_no_draw_when_disabled(self, review_card, now):
        source = CountingRandom()
        fsrs = FSRS(random_source=source)

        fsrs.preview(review_card, now)
        assert source.calls == 0

    def test_same_draw_gives_same_schedule(self, review_card, now):
        first = FSRS(PartialParameters(enable_fuzz=True), random_source=SequenceRandom([0.3]))
        second = FSRS(PartialParameters(enable_fuzz=True), random_source=SequenceRandom([0.3]))

        assert first.review(review_card, now, Rating.EASY) == second.review(review_card, now, Rating.EASY)

    def test_seeded_default_is_reproducible(self, review_card, now):
        fsrs = FSRS(PartialParameters(enable_fuzz=True))

        first = fsrs.review(review_card, now, Rating.GOOD)
        second = fsrs.review(review_card, now, Rating.GOOD)

        assert first == second

    def test_fuzzed_intervals_stay_in_bounds(self, review_card, now):
        for value in (0.0, 0.25, 0.5, 0.75, 0.999):
            fsrs = FSRS(PartialParameters(enable_fuzz=True), random_source=SequenceRandom([value]))
            for item in fsrs.preview(review_card, now).values():
                assert 0 <= item.card.scheduled_days <= fsrs.parameters.maximum_interval


class TestStrategies:
    """Learning-step and seed strategies."""

    def test_learning_steps_for_new_card(self):
        steps = basic_learning_steps_strategy(generate_parameters(), State.NEW, 0)

        assert steps[Rating.AGAIN] == (1, 0)
        assert steps[Rating.HARD] == (6, 0)
        assert steps[Rating.GOOD] == (10, 1)
        assert Rating.EASY not in steps

    def test_single_step_hard_is_one_and_a_half(self):
        parameters = generate_parameters(PartialParameters(learning_steps=["10m"]))
        steps = basic_learning_steps_strategy(parameters, State.LEARNING, 0)

        assert steps[Rating.HARD] == (15, 0)
        assert Rating.GOOD not in steps

    def test_review_state_only_maps_again(self):
        steps = basic_learning_steps_strategy(generate_parameters(), State.REVIEW, 0)

        assert list(steps) == [Rating.AGAIN]
        assert steps[Rating.AGAIN] == (10, 0)

    def test_exhausted_steps_return_nothing(self):
        assert basic_learning_steps_strategy(generate_parameters(), State.LEARNING, 2) == {}

    def test_custom_learning_steps_strategy(self, new_card, now):
        fsrs = FSRS(learning_steps_strategy=lambda parameters, state, step: {})

        card, _ = fsrs.review(new_card, now, Rating.AGAIN)

        assert card.state == State.REVIEW

    def test_seed_strategies(self, review_card, now):
        scheduler = BasicScheduler(review_card, now, generate_parameters(), 1.0)

        assert default_seed_strategy(scheduler) == f"{now.timestamp()}_6_50.0"
        assert card_id_seed_strategy(scheduler) == f"{int(now.timestamp())}_6"

    def test_make_scheduler_follows_short_term_flag(self, new_card, now):
        short_term = generate_parameters()
        long_term = generate_parameters(PartialParameters(enable_short_term=False))

        assert isinstance(make_scheduler(new_card, now, short_term, 1.0), BasicScheduler)
        assert isinstance(make_scheduler(new_card, now, long_term, 1.0), LongTermScheduler)

    @pytest.mark.parametrize("card_fixture", ["new_card", "learning_card", "review_card"])
    def test_base_scheduler_leaves_state_handlers_to_subclasses(self, card_fixture, now, request):
        card = request.getfixturevalue(card_fixture)
        scheduler = BaseScheduler(card, now, generate_parameters(), 1.0)

        with pytest.raises(NotImplementedError):
            scheduler.review(Rating.GOOD)
