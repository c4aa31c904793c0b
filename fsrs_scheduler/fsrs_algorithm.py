import logging
import math

from fsrs_scheduler.fsrs_parameters import DEFAULT_PARAMETERS, S_MAX, S_MIN
from fsrs_scheduler.math_helpers import clamp, round_to_fixed
from fsrs_scheduler.memory_state import (
    MAX_DIFFICULTY,
    MIN_DIFFICULTY,
    check_difficulty,
    check_elapsed_days,
    check_retrievability,
    check_stability,
)
from fsrs_scheduler.rating import GRADES, Rating
from fsrs_scheduler.fsrs_errors import InvalidGrade

logger = logging.getLogger(__name__)

RETRIEVABILITY_TARGET = 0.9
RETRIEVABILITY_CURVE_DIVISOR = 9.0
GRADE_NEUTRAL_VALUE = 3.0
DIFFICULTY_CENTER_POINT = 11.0
MIN_INITIAL_STABILITY = 0.1


def compute_decay_factor(parameters: list[float] = DEFAULT_PARAMETERS) -> tuple[float, float]:
    decay = -parameters[20]
    factor = math.exp(math.log(RETRIEVABILITY_TARGET) / decay) - 1.0
    return decay, round_to_fixed(factor)


def forgetting_curve(
    elapsed_days: float,
    stability: float,
    parameters: list[float] = DEFAULT_PARAMETERS
) -> float:
    check_elapsed_days(elapsed_days)
    check_stability(stability)

    decay, factor = compute_decay_factor(parameters)
    retrievability = (
        1 + factor * elapsed_days / (RETRIEVABILITY_CURVE_DIVISOR * stability)
    ) ** decay

    return check_retrievability(round_to_fixed(clamp(retrievability, 0.0, 1.0)))


def _check_grade(rating: Rating) -> Rating:
    if rating not in GRADES:
        raise InvalidGrade(f"Grade must be Again(1), Hard(2), Good(3) or Easy(4), got {rating!r}")
    return rating


def initial_stability(rating: Rating, parameters: list[float] = DEFAULT_PARAMETERS) -> float:
    _check_grade(rating)
    stability = check_stability(max(parameters[rating.value - 1], MIN_INITIAL_STABILITY))
    logger.debug("Initial stability for %s: %s", rating, stability)
    return stability


def initial_difficulty(rating: Rating, parameters: list[float] = DEFAULT_PARAMETERS) -> float:
    _check_grade(rating)
    difficulty = parameters[4] - math.exp((rating.value - 1) * parameters[5]) + 1
    difficulty = round_to_fixed(clamp(difficulty, MIN_DIFFICULTY, MAX_DIFFICULTY))
    return check_difficulty(difficulty)


def next_difficulty(
    difficulty: float,
    rating: Rating,
    parameters: list[float] = DEFAULT_PARAMETERS
) -> float:
    def _linear_damping(*, delta_difficulty: float, difficulty: float) -> float:
        return round_to_fixed(delta_difficulty * (MAX_DIFFICULTY - difficulty) / 9.0)

    def _mean_reversion(*, initial: float, current: float) -> float:
        return round_to_fixed(parameters[7] * initial + (1 - parameters[7]) * current)

    _check_grade(rating)
    check_difficulty(difficulty)

    delta_difficulty = -parameters[6] * (rating.value - GRADE_NEUTRAL_VALUE)
    damped = clamp(
        difficulty + _linear_damping(delta_difficulty=delta_difficulty, difficulty=difficulty),
        MIN_DIFFICULTY,
        MAX_DIFFICULTY,
    )

    reverted = _mean_reversion(
        initial=initial_difficulty(Rating.EASY, parameters=parameters),
        current=damped,
    )
    result = check_difficulty(clamp(reverted, MIN_DIFFICULTY, MAX_DIFFICULTY))

    logger.debug("Next difficulty: d=%s -> %s, grade=%s", difficulty, result, rating)

    return result


def next_recall_stability(
    difficulty: float,
    stability: float,
    retrievability: float,
    rating: Rating,
    parameters: list[float] = DEFAULT_PARAMETERS
) -> float:
    _check_grade(rating)
    hard_penalty = parameters[15] if rating == Rating.HARD else 1
    easy_bonus = parameters[16] if rating == Rating.EASY else 1

    next_stability = stability * (
        1
        + math.exp(parameters[8])
        * (DIFFICULTY_CENTER_POINT - difficulty)
        * (stability ** -parameters[9])
        * (math.exp((1 - retrievability) * parameters[10]) - 1)
        * hard_penalty
        * easy_bonus
    )

    return check_stability(clamp(next_stability, S_MIN, S_MAX))


def next_forget_stability(
    difficulty: float,
    stability: float,
    retrievability: float,
    parameters: list[float] = DEFAULT_PARAMETERS
) -> float:
    next_stability = (
        parameters[11]
        * (difficulty ** -parameters[12])
        * (((stability + 1) ** parameters[13]) - 1)
        * math.exp((1 - retrievability) * parameters[14])
    )

    return check_stability(clamp(next_stability, S_MIN, S_MAX))


def short_term_stability(
    stability: float,
    rating: Rating,
    parameters: list[float] = DEFAULT_PARAMETERS
) -> float:
    _check_grade(rating)
    short_term_stability_increase = (
        stability ** -parameters[19]
    ) * math.exp(parameters[17] * (rating.value - GRADE_NEUTRAL_VALUE + parameters[18]))

    if rating.value >= GRADE_NEUTRAL_VALUE:
        short_term_stability_increase = max(short_term_stability_increase, 1.0)

    return check_stability(clamp(stability * short_term_stability_increase, S_MIN, S_MAX))


def next_stability(
    difficulty: float,
    stability: float,
    retrievability: float,
    rating: Rating,
    parameters: list[float] = DEFAULT_PARAMETERS
) -> float:
    if rating == Rating.AGAIN:
        return next_forget_stability(
            difficulty=difficulty,
            stability=stability,
            retrievability=retrievability,
            parameters=parameters
        )

    return next_recall_stability(
        difficulty=difficulty,
        stability=stability,
        retrievability=retrievability,
        rating=rating,
        parameters=parameters
    )
