"""Pytest configuration and fixtures."""

import sys

import pytest

from watchrun.commands import CommandSpec


def python_spec(code: str) -> CommandSpec:
    """A CommandSpec running ``code`` with the current interpreter."""
    return CommandSpec(sys.executable, ("-c", code))


@pytest.fixture
def python_command():
    return python_spec
