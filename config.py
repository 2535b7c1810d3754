# config.py

from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Tuple

from engine import SimulationDriver
from errors import ConfigurationError
from registry import available_policies, normalize_policy_id

# Slider bounds used by the UI
MIN_CAPACITY = 2
MAX_CAPACITY = 16
MIN_SPEED_MS = 100
MAX_SPEED_MS = 3000

DEFAULT_CAPACITY = 4
DEFAULT_SPEED_MS = 1000


@dataclass
class SimulationConfig:
    """
    User-selected simulation settings.

    Attributes:
        policies (Tuple[str, ...]): Policy identifiers, in display order
        capacity (int): Cache capacity shared by every policy
        speed_ms (int): Autoplay interval in milliseconds
    """
    policies: Tuple[str, ...] = field(default_factory=lambda: tuple(available_policies()))
    capacity: int = DEFAULT_CAPACITY
    speed_ms: int = DEFAULT_SPEED_MS

    def validate(self) -> "SimulationConfig":
        """
        Check the settings and canonicalize policy identifiers.

        Raises:
            ConfigurationError: empty or unknown policy set, non-positive
                capacity or speed.
        """
        if isinstance(self.policies, str):
            self.policies = (self.policies,)
        ids = []
        for identifier in self.policies:
            key = normalize_policy_id(identifier)
            if key not in ids:
                ids.append(key)
        if not ids:
            raise ConfigurationError("At least one cache policy must be selected")
        self.policies = tuple(ids)

        for name in ("capacity", "speed_ms"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")
        return self

    def build_driver(self, trace: Optional[Iterable[Any]] = None):
        """Return a SimulationDriver initialized with these settings."""
        self.validate()
        driver = SimulationDriver()
        driver.initialize(self.policies, self.capacity)
        if trace is not None:
            driver.load_trace(trace)
        return driver
