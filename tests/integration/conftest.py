"""Integration test fixtures.

The sample index fixtures come from tests/conftest.py (sample_purls,
index_path).
"""

from __future__ import annotations

import os

import pytest
from click.testing import CliRunner


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def subprocess_env() -> dict[str, str]:
    """Environment for child processes without inherited purl-validator settings."""
    return {k: v for k, v in os.environ.items() if not k.startswith("PURL_VALIDATOR__")}
