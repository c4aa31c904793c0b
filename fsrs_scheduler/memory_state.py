from dataclasses import dataclass
import math

from fsrs_scheduler.fsrs_errors import (
    InvalidDifficulty,
    InvalidElapsedDays,
    InvalidRetrievability,
    InvalidStability,
)
from fsrs_scheduler.fsrs_parameters import S_MAX, S_MIN

MIN_DIFFICULTY = 1.0
MAX_DIFFICULTY = 10.0


def check_stability(stability: float) -> float:
    if not math.isfinite(stability) or not S_MIN <= stability <= S_MAX:
        raise InvalidStability(f"Stability must be between {S_MIN} and {S_MAX}, got {stability}")
    return stability


def check_difficulty(difficulty: float) -> float:
    if not math.isfinite(difficulty) or not MIN_DIFFICULTY <= difficulty <= MAX_DIFFICULTY:
        raise InvalidDifficulty(
            f"Difficulty must be between {MIN_DIFFICULTY} and {MAX_DIFFICULTY}, got {difficulty}"
        )
    return difficulty


def check_retrievability(retrievability: float) -> float:
    if not math.isfinite(retrievability) or not 0.0 <= retrievability <= 1.0:
        raise InvalidRetrievability(f"Retrievability must be between 0 and 1, got {retrievability}")
    return retrievability


def check_elapsed_days(elapsed_days: float) -> float:
    if not math.isfinite(elapsed_days) or elapsed_days < 0:
        raise InvalidElapsedDays(f"Elapsed days must be non-negative, got {elapsed_days}")
    return elapsed_days


@dataclass(frozen=True)
class MemoryState:
    stability: float
    difficulty: float

    def __post_init__(self):
        if self.is_initial:
            return
        check_stability(self.stability)
        check_difficulty(self.difficulty)

    @classmethod
    def initial(cls) -> 'MemoryState':
        """Placeholder state of a card that has never been reviewed."""
        return cls(stability=0.0, difficulty=0.0)

    @property
    def is_initial(self) -> bool:
        return self.stability == 0.0 and self.difficulty == 0.0
