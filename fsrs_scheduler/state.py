from enum import IntEnum


class State(IntEnum):
    NEW = 0
    LEARNING = 1
    REVIEW = 2
    RELEARNING = 3

    def __str__(self) -> str:
        return self.name.capitalize()
