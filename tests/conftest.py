"""Root pytest configuration for all tests.

Domain tests build speed fields and geometries directly (no I/O).
Import paths (`domain.*`, `infrastructure.*`) come from
`[tool.pytest.ini_options] pythonpath` in pyproject.toml.
"""

from __future__ import annotations

from collections.abc import Callable

import pytest

Coordinate = tuple[float, float]


class FunctionSpeedField:
    """SpeedField backed by a plain function, counting lookups."""

    def __init__(self, fn: Callable[[Coordinate], float]) -> None:
        self._fn = fn
        self.calls = 0

    def speed_at(self, coordinate: Coordinate) -> float:
        self.calls += 1
        return self._fn(coordinate)


@pytest.fixture
def make_field() -> Callable[[Callable[[Coordinate], float]], FunctionSpeedField]:
    """Factory fixture: make_field(lambda c: ...) -> SpeedField."""
    return FunctionSpeedField


@pytest.fixture
def uniform_field() -> Callable[[float], FunctionSpeedField]:
    """Factory fixture: uniform_field(speed) -> constant SpeedField."""

    def build(speed: float) -> FunctionSpeedField:
        return FunctionSpeedField(lambda _c: speed)

    return build
