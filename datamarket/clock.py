from typing import Protocol


class Clock(Protocol):
    def now(self) -> int:
        ...


class LogicalClock:
    """Block-height style counter; never moves backwards."""

    def __init__(self, start: int = 0) -> None:
        if start < 0:
            raise ValueError("clock cannot start below zero")
        self._height = start

    def now(self) -> int:
        return self._height

    def advance(self, steps: int = 1) -> int:
        if steps < 0:
            raise ValueError("clock cannot move backwards")
        self._height += steps
        return self._height
