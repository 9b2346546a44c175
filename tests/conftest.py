"""Shared fixtures."""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest
from fakes import FakeExecutor, FakeObserver

from wingman.logging import JSONLLogger
from wingman.models import AnalysisResult
from wingman.store import BucketStore


@pytest.fixture
def event_log(tmp_path: Path) -> JSONLLogger:
    return JSONLLogger(log_dir=tmp_path / "logs")


@pytest.fixture
def store(tmp_path: Path) -> BucketStore:
    """Create a BucketStore with a temporary database."""
    store = BucketStore(tmp_path / "state.db")
    store.init_db()
    yield store
    store.close()


@pytest.fixture
def inference() -> AsyncMock:
    """Inference backend mock with harmless defaults."""
    mock = AsyncMock()
    mock.analyze_entity.return_value = AnalysisResult(bio={"interests": ["hiking"]})
    mock.analyze_preferences.return_value = {"traits": ["kind"], "type": "Outdoorsy"}
    mock.analyze_style.return_value = {"tone": "witty", "emoji_usage": "minimal"}
    mock.generate_message.return_value = "Hey there!"
    mock.decide.return_value = {"decision": "right", "confidence": 80, "reasons": ["hiking"]}
    return mock


@pytest.fixture
def observer() -> FakeObserver:
    return FakeObserver()


@pytest.fixture
def executor() -> FakeExecutor:
    return FakeExecutor()
