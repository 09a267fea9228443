"""
PL/0 SDK Test Configuration
===========================

Shared pytest fixtures for the PL/0 front end tests.
"""

import io

import pytest

from pl0_sdk.pl0.diagnostics import DiagnosticCollector


@pytest.fixture
def output() -> io.StringIO:
    """Fixture: in-memory stream standing in for stdout."""
    return io.StringIO()


@pytest.fixture
def collector(output) -> DiagnosticCollector:
    """Fixture: collector writing to the in-memory output stream."""
    return DiagnosticCollector(output=output)
