"""Shared test fixtures for the roll engine."""

from __future__ import annotations

import pytest

from chatons.config import Settings


class SequenceRng:
    """Stand-in for ``random`` that hands out preset die faces in order."""

    def __init__(self, faces: list[int]):
        self.faces = list(faces)
        self.calls: list[tuple[int, int]] = []

    def randint(self, low: int, high: int) -> int:
        self.calls.append((low, high))
        return self.faces.pop(0)


@pytest.fixture
def rng():
    """Factory: ``rng(2, 5, 4)`` rolls a 2, then a 5, then a 4."""
    return lambda *faces: SequenceRng(list(faces))


@pytest.fixture
def strict_settings() -> Settings:
    """Settings that leave missing ``@`` references unresolved."""
    return Settings(missing_data_default=None)
