# errors.py


class SimulatorError(Exception):
    """Base class for every error raised by the cache simulator."""


class ConfigurationError(SimulatorError, ValueError):
    """Unknown policy, non-positive capacity or speed, or an empty policy set."""


class UnknownPolicyError(ConfigurationError, KeyError):
    """The policy identifier is not present in the registry."""

    def __init__(self, identifier, available=()):
        self.identifier = identifier
        self.available = tuple(available)
        message = f"Unknown cache policy: {identifier!r}"
        if self.available:
            message += f". Available: {', '.join(self.available)}"
        super().__init__(message)

    def __str__(self):
        # KeyError would otherwise repr() the message
        return self.args[0]


class SequenceError(SimulatorError, IndexError):
    """Navigation to a step outside the loaded trace."""


class StateError(SimulatorError, RuntimeError):
    """Operation not allowed in the driver's current state."""


class TraceError(SimulatorError, ValueError):
    """The memory trace is empty or malformed."""
