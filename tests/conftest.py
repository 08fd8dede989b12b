"""Shared test fixtures."""

from datetime import UTC, datetime
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from fakes import FakeClock

from lumina.config import Settings
from lumina.llm.governor import RequestGovernor
from lumina.store.records import RecordStore
from lumina.tools.base import ToolContext

# Wednesday, 17:30 in Asia/Kolkata.
FIXED_NOW = datetime(2026, 10, 14, 12, 0, tzinfo=UTC)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings isolated from the environment, pointing at a temp database."""
    return Settings(anthropic_api_key="test-key", database_path=tmp_path / "lumina.db")


@pytest.fixture
async def store(tmp_path: Path) -> RecordStore:
    """An initialised RecordStore backed by a temp database."""
    s = RecordStore(db_path=tmp_path / "test.db")
    await s.init()
    return s


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def governor(clock: FakeClock) -> RequestGovernor:
    """A governor running on the fake clock with the production spacing."""
    return RequestGovernor(
        min_interval=3.0,
        quote_ttl=3600.0,
        search_ttl=1800.0,
        clock=clock,
        sleep=clock.sleep,
    )


@pytest.fixture
def content() -> MagicMock:
    """A ContentService stand-in with canned quote and search answers."""
    mock = MagicMock()
    mock.daily_quote = AsyncMock(return_value="Keep going.")
    mock.search = AsyncMock(return_value="Sensex closed higher today.")
    return mock


@pytest.fixture
def ctx(store: RecordStore, content: MagicMock, settings: Settings) -> ToolContext:
    """Tool context pinned to FIXED_NOW."""
    return ToolContext(store=store, content=content, settings=settings, now=lambda: FIXED_NOW)
