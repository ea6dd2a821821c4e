# tests/conftest.py

import itertools

import matplotlib

matplotlib.use("Agg")

import pytest


class CountingUniform:
    """Callable uniform source that replays *values* and counts draws."""

    def __init__(self, values):
        self._it = iter(values)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        return next(self._it)


@pytest.fixture
def constant_uniform():
    def make(value=0.5):
        return CountingUniform(itertools.repeat(value))
    return make


@pytest.fixture
def sequence_uniform():
    def make(values):
        return CountingUniform(values)
    return make
