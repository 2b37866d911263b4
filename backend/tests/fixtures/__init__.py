"""Test fixtures package."""

from tests.fixtures.garden_fixtures import T0, ScriptedRandom

__all__ = [
    "T0",
    "ScriptedRandom",
]
