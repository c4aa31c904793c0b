import logging
import math
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from fsrs_scheduler.fsrs_errors import InvalidParameter, InvalidRequestRetention
from fsrs_scheduler.math_helpers import clamp, round_to_fixed

logger = logging.getLogger(__name__)

S_MIN = 0.001
S_MAX = 36500.0
INIT_S_MAX = 100.0

FSRS5_DEFAULT_DECAY = 0.5
FSRS6_DEFAULT_DECAY = 0.1542
W17_W18_CEILING = 2.0

DEFAULT_REQUEST_RETENTION = 0.9
DEFAULT_MAXIMUM_INTERVAL = 36500
DEFAULT_ENABLE_FUZZ = False
DEFAULT_ENABLE_SHORT_TERM = True

DEFAULT_PARAMETERS = (
    0.212,
    1.2931,
    2.3065,
    8.2956,
    6.4133,
    0.8334,
    3.0194,
    0.001,
    1.8722,
    0.1666,
    0.796,
    1.4835,
    0.0614,
    0.2629,
    1.6483,
    0.6014,
    1.8729,
    0.5425,
    0.0912,
    0.0658,
    FSRS6_DEFAULT_DECAY,
)

SUPPORTED_LENGTHS = (17, 19, 21)


class TimeUnit(str, Enum):
    MINUTES = "m"
    HOURS = "h"
    DAYS = "d"


MINUTES_PER_UNIT = {
    TimeUnit.MINUTES: 1,
    TimeUnit.HOURS: 60,
    TimeUnit.DAYS: 24 * 60,
}


class StepUnit(BaseModel):
    """A learning or relearning step such as ``10m``, ``2h`` or ``1d``."""

    model_config = ConfigDict(frozen=True)

    value: int = Field(gt=0)
    unit: TimeUnit = TimeUnit.MINUTES

    @classmethod
    def parse(cls, text: str) -> 'StepUnit':
        if not text or text[-1] not in {unit.value for unit in TimeUnit}:
            raise InvalidParameter(f"Invalid step format: {text!r}")
        try:
            value = int(text[:-1])
        except ValueError:
            raise InvalidParameter(f"Invalid step format: {text!r}") from None
        try:
            return cls(value=value, unit=TimeUnit(text[-1]))
        except ValidationError:
            raise InvalidParameter(f"Step must be positive: {text!r}") from None

    @property
    def scheduled_minutes(self) -> int:
        return self.value * MINUTES_PER_UNIT[self.unit]

    def __str__(self) -> str:
        return f"{self.value}{self.unit.value}"


DEFAULT_LEARNING_STEPS = (
    StepUnit(value=1, unit=TimeUnit.MINUTES),
    StepUnit(value=10, unit=TimeUnit.MINUTES),
)
DEFAULT_RELEARNING_STEPS = (
    StepUnit(value=10, unit=TimeUnit.MINUTES),
)


def _coerce_steps(steps):
    if steps is None:
        return None
    return tuple(StepUnit.parse(step) if isinstance(step, str) else step for step in steps)


class Parameters(BaseModel):
    """Complete, validated parameter set held by one scheduling session."""

    model_config = ConfigDict(frozen=True)

    request_retention: float = Field(default=DEFAULT_REQUEST_RETENTION, gt=0, le=1)
    maximum_interval: int = Field(default=DEFAULT_MAXIMUM_INTERVAL, gt=0)
    w: tuple[float, ...] = DEFAULT_PARAMETERS
    enable_fuzz: bool = DEFAULT_ENABLE_FUZZ
    enable_short_term: bool = DEFAULT_ENABLE_SHORT_TERM
    learning_steps: tuple[StepUnit, ...] = DEFAULT_LEARNING_STEPS
    relearning_steps: tuple[StepUnit, ...] = DEFAULT_RELEARNING_STEPS

    @field_validator("w")
    @classmethod
    def _check_weights(cls, w: tuple[float, ...]) -> tuple[float, ...]:
        return check_weights(w)

    @field_validator("learning_steps", "relearning_steps", mode="before")
    @classmethod
    def _parse_steps(cls, steps):
        return _coerce_steps(steps)


class PartialParameters(BaseModel):
    """Overrides merged over the defaults by :func:`generate_parameters`."""

    request_retention: float|None = None
    maximum_interval: int|None = None
    w: list[float]|None = None
    enable_fuzz: bool|None = None
    enable_short_term: bool|None = None
    learning_steps: tuple[StepUnit, ...]|None = None
    relearning_steps: tuple[StepUnit, ...]|None = None

    @field_validator("learning_steps", "relearning_steps", mode="before")
    @classmethod
    def _parse_steps(cls, steps):
        return _coerce_steps(steps)


def clamp_bounds(
    w17_w18_ceiling: float = W17_W18_CEILING,
    enable_short_term: bool = DEFAULT_ENABLE_SHORT_TERM,
) -> list[tuple[float, float]]:
    return [
        (S_MIN, INIT_S_MAX),
        (S_MIN, INIT_S_MAX),
        (S_MIN, INIT_S_MAX),
        (S_MIN, INIT_S_MAX),
        (1.0, 10.0),
        (0.001, 4.0),
        (0.001, 4.0),
        (0.001, 0.75),
        (0.0, 4.5),
        (0.0, 0.8),
        (0.001, 3.5),
        (0.001, 5.0),
        (0.001, 0.25),
        (0.001, 0.9),
        (0.0, 4.0),
        (0.0, 1.0),
        (1.0, 6.0),
        (0.0, w17_w18_ceiling),
        (0.0, w17_w18_ceiling),
        (0.01 if enable_short_term else 0.0, 0.8),
        (0.1, 0.8),
    ]


def validate_parameters(parameters: list[float]) -> list[float]:
    for value in parameters:
        if not math.isfinite(value):
            raise InvalidParameter(f"Non-finite or NaN value in parameters: {value}")

    if len(parameters) not in SUPPORTED_LENGTHS:
        raise InvalidParameter(
            f"Invalid parameter length: {len(parameters)}. "
            "Must be 17, 19 or 21 for FSRSv4, 5 and 6 respectively."
        )

    return parameters


def check_weights(w: tuple[float, ...]) -> tuple[float, ...]:
    """Reject a 21-weight vector the memory formulas cannot evaluate.

    Every weight must be finite and at least its lower clamp bound, and the
    decay ``w[20]`` must lie inside its clamp range. Upper bounds other than
    the decay are not enforced, since FSRS-4.5 migration may exceed them.
    """
    if len(w) != len(DEFAULT_PARAMETERS):
        raise InvalidParameter(f"Expected {len(DEFAULT_PARAMETERS)} weights, got {len(w)}")
    validate_parameters(w)

    bounds = clamp_bounds(enable_short_term=False)
    for index, (value, (lower, _)) in enumerate(zip(w, bounds)):
        if value < lower:
            raise InvalidParameter(f"Weight w[{index}]={value} is below {lower}")

    decay_lower, decay_upper = bounds[20]
    if not decay_lower <= w[20] <= decay_upper:
        raise InvalidParameter(f"Decay w[20]={w[20]} is outside [{decay_lower}, {decay_upper}]")

    return w


def _w17_w18_ceiling(parameters: list[float], num_relearning_steps: int) -> float:
    if max(0, num_relearning_steps) <= 1:
        return W17_W18_CEILING

    bounds = clamp_bounds()
    w11 = clamp(parameters[11], *bounds[11])
    w13 = clamp(parameters[13], *bounds[13])
    w14 = clamp(parameters[14], *bounds[14])

    value = -(math.log(w11) + math.log(2.0 ** w13 - 1.0) + w14 * 0.3) / num_relearning_steps

    return clamp(value, 0.01, 2.0)


def clip_parameters(
    parameters: list[float],
    num_relearning_steps: int,
    enable_short_term: bool = DEFAULT_ENABLE_SHORT_TERM,
) -> list[float]:
    bounds = clamp_bounds(
        w17_w18_ceiling=_w17_w18_ceiling(parameters, num_relearning_steps),
        enable_short_term=enable_short_term,
    )

    return [
        clamp(value, *bounds[index]) if index < len(bounds) else value
        for index, value in enumerate(parameters)
    ]


def migrate_parameters(
    parameters: list[float]|None = None,
    num_relearning_steps: int = 0,
    enable_short_term: bool = DEFAULT_ENABLE_SHORT_TERM,
) -> list[float]:
    if parameters is None:
        return list(DEFAULT_PARAMETERS)

    if len(parameters) == 21:
        return clip_parameters(list(parameters), num_relearning_steps, enable_short_term)

    if len(parameters) == 19:
        logger.info("auto fill weights from 19 to 21 length")
        weights = clip_parameters(list(parameters), num_relearning_steps, enable_short_term)
        weights.extend([0.0, FSRS5_DEFAULT_DECAY])
        return weights

    if len(parameters) == 17:
        logger.info("auto fill weights from 17 to 21 length")
        weights = clip_parameters(list(parameters), num_relearning_steps, enable_short_term)
        weights[4] = round_to_fixed(weights[5] * 2.0 + weights[4])
        weights[5] = round_to_fixed(math.log(weights[5] * 3.0 + 1.0) / 3.0)
        weights[6] = round_to_fixed(weights[6] + 0.5)
        weights.extend([0.0, 0.0, 0.0, FSRS5_DEFAULT_DECAY])
        return weights

    logger.warning("Invalid parameters length %d, using default parameters", len(parameters))
    return list(DEFAULT_PARAMETERS)


def generate_parameters(partial: PartialParameters|None = None) -> Parameters:
    if partial is None:
        partial = PartialParameters()

    request_retention = (
        partial.request_retention if partial.request_retention is not None else DEFAULT_REQUEST_RETENTION
    )
    if not 0 < request_retention <= 1:
        raise InvalidRequestRetention(request_retention)

    maximum_interval = (
        partial.maximum_interval if partial.maximum_interval is not None else DEFAULT_MAXIMUM_INTERVAL
    )
    if maximum_interval <= 0:
        raise InvalidParameter(f"Maximum interval must be positive, got {maximum_interval}")

    if partial.w is not None:
        for value in partial.w:
            if not math.isfinite(value):
                raise InvalidParameter(f"Non-finite or NaN value in parameters: {value}")

    learning_steps = (
        partial.learning_steps if partial.learning_steps is not None else DEFAULT_LEARNING_STEPS
    )
    relearning_steps = (
        partial.relearning_steps if partial.relearning_steps is not None else DEFAULT_RELEARNING_STEPS
    )
    enable_short_term = (
        partial.enable_short_term if partial.enable_short_term is not None else DEFAULT_ENABLE_SHORT_TERM
    )

    weights = migrate_parameters(
        partial.w,
        num_relearning_steps=len(relearning_steps),
        enable_short_term=enable_short_term,
    )

    try:
        return Parameters(
            request_retention=request_retention,
            maximum_interval=maximum_interval,
            w=tuple(weights),
            enable_fuzz=partial.enable_fuzz if partial.enable_fuzz is not None else DEFAULT_ENABLE_FUZZ,
            enable_short_term=enable_short_term,
            learning_steps=learning_steps,
            relearning_steps=relearning_steps,
        )
    except ValidationError as exc:
        raise InvalidParameter(str(exc)) from exc
