"""
Error types raised by the simulator.

Heuristic dead-ends inside a game (no fetch target, nothing affordable) are
not errors; they are recorded in the turn log and the game carries on.
"""


class ManasimError(Exception):
    """Base class for all simulator errors."""


class ConfigurationError(ManasimError):
    """Invalid simulation input, detected before the Monte Carlo loop starts."""


class BoundaryError(ManasimError):
    """A payload could not be serialized across the worker boundary."""
