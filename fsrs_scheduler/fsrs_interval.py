import logging
import math
from typing import NamedTuple

from fsrs_scheduler.fsrs_errors import InvalidRequestRetention
from fsrs_scheduler.fsrs_parameters import DEFAULT_MAXIMUM_INTERVAL, DEFAULT_PARAMETERS
from fsrs_scheduler.fsrs_algorithm import compute_decay_factor
from fsrs_scheduler.math_helpers import round_half_up, round_to_fixed

logger = logging.getLogger(__name__)

FUZZ_MINIMUM_INTERVAL = 2.5
FUZZ_RANGES = [
    {
        "start": 2.5,
        "end": 7.0,
        "factor": 0.15,
    },
    {
        "start": 7.0,
        "end": 20.0,
        "factor": 0.1,
    },
    {
        "start": 20.0,
        "end": math.inf,
        "factor": 0.05,
    },
]


class NewCardIntervals(NamedTuple):
    again: int
    hard: int
    good: int
    easy: int


class ReviewCardIntervals(NamedTuple):
    hard: int
    good: int
    easy: int


def interval_modifier(request_retention: float, parameters: list[float] = DEFAULT_PARAMETERS) -> float:
    if not 0 < request_retention <= 1:
        raise InvalidRequestRetention(request_retention)

    decay, factor = compute_decay_factor(parameters)
    return round_to_fixed((request_retention ** (1 / decay) - 1) / factor)


def get_fuzz_range(
    interval: float,
    elapsed_days: float,
    maximum_interval: int = DEFAULT_MAXIMUM_INTERVAL
) -> tuple[int, int]:
    delta = 1.0
    for fuzz_range in FUZZ_RANGES:
        delta += fuzz_range["factor"] * max(
            min(interval, fuzz_range["end"]) - fuzz_range["start"], 0.0
        )

    interval = min(interval, maximum_interval)
    min_ivl = max(2, round_half_up(interval - delta))
    max_ivl = min(round_half_up(interval + delta), maximum_interval)

    if interval > elapsed_days:
        min_ivl = max(min_ivl, int(elapsed_days) + 1)

    min_ivl = min(min_ivl, max_ivl)

    return min_ivl, max_ivl


def next_interval(
    stability: float,
    interval_modifier: float,
    maximum_interval: int = DEFAULT_MAXIMUM_INTERVAL,
    elapsed_days: float = 0,
    fuzz_factor: float|None = None
) -> int:
    """Whole-day interval for ``stability``.

    ``fuzz_factor`` is a uniform draw in [0, 1); when given and the interval is
    long enough it is mapped into the fuzz range. Without it the result is
    fully deterministic.
    """
    interval = min(max(1, round_half_up(stability * interval_modifier)), maximum_interval)

    if fuzz_factor is None or interval < FUZZ_MINIMUM_INTERVAL:
        return interval

    min_ivl, max_ivl = get_fuzz_range(interval, elapsed_days, maximum_interval)
    fuzzed_interval = math.floor(fuzz_factor * (max_ivl - min_ivl + 1) + min_ivl)

    logger.debug(
        "Fuzz applied: %d -> %d (factor=%s, range=[%d, %d])",
        interval, fuzzed_interval, fuzz_factor, min_ivl, max_ivl,
    )

    return fuzzed_interval


def apply_new_card_constraints(again: int, hard: int, good: int, easy: int) -> NewCardIntervals:
    again = min(again, hard)
    hard = max(hard, again + 1)
    good = max(good, hard + 1)
    easy = max(easy, good + 1)

    return NewCardIntervals(again, hard, good, easy)


def apply_review_card_constraints(hard: int, good: int, easy: int) -> ReviewCardIntervals:
    hard = min(hard, good)
    good = max(good, hard + 1)
    easy = max(easy, good + 1)

    return ReviewCardIntervals(hard, good, easy)
