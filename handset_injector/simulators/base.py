"""Base simulator class with common functionality."""

import inspect
import logging
import random
from typing import Any, Optional, Union

from handset_injector.models import now_ms
from .drift import DriftLimits, DriftMode, DriftValue, Number

logger = logging.getLogger(__name__)

# Constructor arguments supplied by the caller, never by a definition record
_INJECTED_ARGS = {"self", "seed", "reference_data"}


class BaseSimulator:
    """Common base for simulated entities."""

    def __init__(self, seed: Optional[int] = None):
        """
        Initialize the simulator.

        Args:
            seed: Random seed for reproducibility. If None, results will vary.
        """
        self._random = random.Random(seed)

    def _drift(
        self,
        current: Number,
        mode: Union[DriftMode, str],
        step: Number,
        limits: DriftLimits,
    ) -> DriftValue:
        """Create a drift value that shares this simulator's random source."""
        return DriftValue.from_limits(current, mode, step, limits, rng=self._random)

    @staticmethod
    def _timestamp(timestamp: Optional[int]) -> int:
        return now_ms() if timestamp is None else timestamp

    @classmethod
    def _filter_settings(cls, settings: dict[str, Any]) -> dict[str, Any]:
        """
        Keep only the settings this simulator's constructor accepts.

        Unknown keys are logged and dropped so one bad key does not discard
        the rest of a definition.
        """
        accepted = set(inspect.signature(cls.__init__).parameters) - _INJECTED_ARGS
        kwargs = {}
        for key, value in settings.items():
            if key in accepted:
                kwargs[key] = value
            else:
                logger.error("Invalid key sent to %s: %s", cls.__name__, key)
        return kwargs
