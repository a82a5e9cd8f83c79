"""Fixtures for quote engine tests."""

from unittest.mock import MagicMock

import pytest

from quotewatch.market import scheduler
from quotewatch.market.board import QuoteBoard
from quotewatch.market.http import HttpClient


@pytest.fixture(autouse=True)
def _reset_schedule_registry():
    """Each test starts and ends with an empty job registry."""
    scheduler._managers.clear()
    yield
    scheduler._managers.clear()


@pytest.fixture
def board() -> QuoteBoard:
    return QuoteBoard()


@pytest.fixture
def http() -> MagicMock:
    """HttpClient stand-in; set ``http.get.return_value`` to the upstream body."""
    return MagicMock(spec=HttpClient)
