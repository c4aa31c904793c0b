from typing import Callable, NamedTuple, TYPE_CHECKING

from fsrs_scheduler.fsrs_parameters import Parameters
from fsrs_scheduler.math_helpers import round_half_up
from fsrs_scheduler.rating import Rating
from fsrs_scheduler.state import State

if TYPE_CHECKING:
    from fsrs_scheduler.fsrs_scheduler import BaseScheduler


class StepInfo(NamedTuple):
    scheduled_minutes: int
    next_step: int


LearningStepsStrategy = Callable[[Parameters, State, int], dict[Rating, StepInfo]]
SeedStrategy = Callable[['BaseScheduler'], str]


def basic_learning_steps_strategy(
    parameters: Parameters,
    state: State,
    cur_step: int
) -> dict[Rating, StepInfo]:
    """Map each grade to the sub-day step it leads to from ``cur_step``.

    Relearning steps apply to RELEARNING and REVIEW cards, learning steps to
    the rest. Grades missing from the result graduate to a full-day interval.
    """
    if state in (State.RELEARNING, State.REVIEW):
        steps = parameters.relearning_steps
    else:
        steps = parameters.learning_steps

    if len(steps) == 0 or cur_step >= len(steps):
        return {}

    cur_step = max(0, cur_step)
    first_step = steps[0].scheduled_minutes

    if state == State.REVIEW:
        return {
            Rating.AGAIN: StepInfo(steps[cur_step].scheduled_minutes, 0),
        }

    if len(steps) == 1:
        hard_minutes = round_half_up(first_step * 1.5)
    else:
        hard_minutes = round_half_up((first_step + steps[1].scheduled_minutes) / 2.0)

    result = {
        Rating.AGAIN: StepInfo(first_step, 0),
        Rating.HARD: StepInfo(hard_minutes, cur_step),
    }

    if cur_step + 1 < len(steps):
        result[Rating.GOOD] = StepInfo(steps[cur_step + 1].scheduled_minutes, cur_step + 1)

    return result


def default_seed_strategy(scheduler: 'BaseScheduler') -> str:
    card = scheduler.current
    return f"{scheduler.now.timestamp()}_{card.reps}_{card.difficulty * card.stability}"


def card_id_seed_strategy(scheduler: 'BaseScheduler') -> str:
    return f"{int(scheduler.now.timestamp())}_{scheduler.current.reps}"
