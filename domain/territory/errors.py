"""Territory Bounded Context - Error Hierarchy.

Custom exceptions for territory claims.

Boolean geometry failures are not raised out of the refiner: they are
captured as DegenerateGeometryError inside a GeometryResult and resolved by
falling back to the previous geometry.
"""

from __future__ import annotations


class TerritoryError(Exception):
    """Base error for territory operations."""


class DegenerateGeometryError(TerritoryError):
    """A boolean polygon operation failed on malformed input.

    Attributes:
        operation: Name of the failed operation (union, intersection, ...)
    """

    def __init__(self, operation: str, reason: str) -> None:
        self.operation = operation
        self.reason = reason
        super().__init__(f"{operation} failed: {reason}")


class SweepCancelledError(TerritoryError):
    """The bearing sweep was cancelled at a yield point.

    Attributes:
        completed: Number of rays finished before cancellation
        total: Number of rays in the full sweep
    """

    def __init__(self, completed: int, total: int) -> None:
        self.completed = completed
        self.total = total
        super().__init__(f"Sweep cancelled after {completed}/{total} rays")


class InvalidGeometryInputError(TerritoryError):
    """Geometry input is not a shapely geometry or a sequence of them."""
