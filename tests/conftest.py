"""Shared fixtures for inoctl tests."""

from unittest.mock import MagicMock

import pytest

from inoctl.runner import Runner


@pytest.fixture
def fake_runner():
    """A Runner whose captured output is looked up by subcommand in ``outputs``."""
    runner = MagicMock(spec=Runner)
    runner.outputs = {}

    def run_captured(command):
        return runner.outputs[command]

    runner.run_captured.side_effect = run_captured
    return runner
