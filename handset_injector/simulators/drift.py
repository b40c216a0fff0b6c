"""Bounded drift values shared by every numeric metric."""

import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

Number = Union[int, float]


class DriftMode(str, Enum):
    """How a value evolves between samples."""

    STABLE = "STABLE"
    INCREASING = "INCREASING"
    DECREASING = "DECREASING"
    RANDOM = "RANDOM"

    @classmethod
    def _missing_(cls, value):
        # Definition files may spell modes in any case, e.g. "Increasing"
        if isinstance(value, str):
            return cls.__members__.get(value.upper())
        return None


@dataclass(frozen=True)
class DriftLimits:
    """Bounds a metric may drift within.

    Monotonic modes use ``lower``/``upper``; random mode uses the narrower
    ``random_lower``/``random_upper`` window when one is given.
    """

    lower: Number
    upper: Number
    random_lower: Optional[Number] = None
    random_upper: Optional[Number] = None

    def bounds_for(self, mode: DriftMode) -> tuple[Number, Number]:
        if mode == DriftMode.RANDOM and self.random_lower is not None:
            return self.random_lower, self.random_upper
        return self.lower, self.upper


@dataclass
class DriftValue:
    """A numeric value that drifts within ``[lower_bound, upper_bound]``.

    - STABLE: never changes; the bounds collapse onto the value.
    - INCREASING: moves up by ``step`` per sample, clamped at the upper bound.
    - DECREASING: moves down by ``step`` per sample, clamped at the lower bound.
    - RANDOM: redrawn uniformly from the bounds (inclusive) on every sample.

    Values whose bounds, step and current value are all integers stay
    integers.
    """

    mode: DriftMode
    lower_bound: Number
    upper_bound: Number
    step: Number
    current: Number
    _random: random.Random = field(
        default_factory=random.Random, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        self.mode = DriftMode(self.mode)
        if self.step < 0:
            raise ValueError(f"step must be non-negative, got {self.step}")

        if self.mode == DriftMode.STABLE:
            self.lower_bound = self.current
            self.upper_bound = self.current
            return

        if self.lower_bound > self.upper_bound:
            raise ValueError(
                f"lower_bound {self.lower_bound} is above upper_bound {self.upper_bound}"
            )
        self.current = max(self.lower_bound, min(self.upper_bound, self.current))

    @classmethod
    def from_limits(
        cls,
        current: Number,
        mode: Union[DriftMode, str],
        step: Number,
        limits: DriftLimits,
        rng: Optional[random.Random] = None,
    ) -> "DriftValue":
        """Create a drift value using the bounds a limits table gives for ``mode``."""
        mode = DriftMode(mode)
        lower, upper = limits.bounds_for(mode)
        return cls(
            mode=mode,
            lower_bound=lower,
            upper_bound=upper,
            step=step,
            current=current,
            _random=rng or random.Random(),
        )

    @property
    def is_integral(self) -> bool:
        return all(
            isinstance(v, int)
            for v in (self.lower_bound, self.upper_bound, self.step, self.current)
        )

    def sample(self) -> Number:
        """Advance the value one step and return it."""
        if self.mode == DriftMode.INCREASING:
            self.current = min(self.current + self.step, self.upper_bound)
        elif self.mode == DriftMode.DECREASING:
            self.current = max(self.current - self.step, self.lower_bound)
        elif self.mode == DriftMode.RANDOM:
            if self.is_integral:
                self.current = self._random.randint(self.lower_bound, self.upper_bound)
            else:
                self.current = self._random.uniform(self.lower_bound, self.upper_bound)
        return self.current
