"""
Error taxonomy for the routing simulator.

Every core operation either succeeds or raises one of these. None of them is
fatal: the command shell catches :class:`RoutingError` and keeps going.
"""


class RoutingError(Exception):
    """Base class for all recoverable simulator failures."""


class AlreadyExistsError(RoutingError):
    """A node or link with the same identity is already present."""


class NotFoundError(RoutingError, LookupError):
    """A referenced node or link does not exist."""


class InvalidWeightError(RoutingError, ValueError):
    """Link weight is not a finite positive number."""


class UnreachableError(RoutingError):
    """Both endpoints exist but no path connects them."""


class BusyError(RoutingError):
    """A structural mutation was attempted while a convergence run is in progress."""
