class FSRSError(ValueError):
    pass


class InvalidParameter(FSRSError):
    pass


class InvalidRequestRetention(InvalidParameter):
    def __init__(self, value: float):
        self.value = value
        super().__init__(f"Invalid request retention: {value}. Must be between 0 and 1.")


class InvalidGrade(FSRSError):
    pass


class ManualGradeNotAllowed(InvalidGrade):
    def __init__(self, message: str = "Manual rating cannot be used for scheduling operations"):
        super().__init__(message)


class InvalidMemoryState(FSRSError):
    pass


class InvalidStability(InvalidMemoryState):
    pass


class InvalidDifficulty(InvalidMemoryState):
    pass


class InvalidRetrievability(InvalidMemoryState):
    pass


class InvalidElapsedDays(InvalidMemoryState):
    pass
