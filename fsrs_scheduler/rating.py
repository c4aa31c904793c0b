from enum import IntEnum


class Rating(IntEnum):
    MANUAL = 0
    AGAIN = 1
    HARD = 2
    GOOD = 3
    EASY = 4

    def __str__(self) -> str:
        return self.name.capitalize()


GRADES = (Rating.AGAIN, Rating.HARD, Rating.GOOD, Rating.EASY)
