from datetime import datetime, timezone

import pytest

from cadence.application.config import AppConfig
from cadence.application.factory import build_engine
from cadence.domain.progress.models import Card
from cadence.infrastructure.adapters.catalog import InMemoryCardCatalog
from cadence.infrastructure.adapters.memory_store import InMemoryProgressStore

NOW = datetime(2024, 3, 10, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def cards():
    """Two decks: 1 has three cards, 2 has one."""
    return [
        Card(id=10, deck_id=1, front="hola", back="hello"),
        Card(id=11, deck_id=1, front="adiós", back="goodbye"),
        Card(id=12, deck_id=1, front="gracias", back="thank you"),
        Card(id=20, deck_id=2, front="Hund", back="dog"),
    ]


@pytest.fixture
def catalog(cards):
    return InMemoryCardCatalog(cards, deck_titles={1: "Spanish", 2: "German"})


@pytest.fixture
def store():
    return InMemoryProgressStore()


@pytest.fixture
def config(tmp_path):
    return AppConfig.model_construct(
        store="memory",
        database_path=tmp_path / "progress.db",
        store_timeout=1.0,
        catalog_path=None,
        relearn_minutes=None,
        max_interval_days=36500,
        default_queue_limit=None,
        history_days=30,
        recent_days=5,
        host="127.0.0.1",
        port=8777,
    )


@pytest.fixture
def engine(config, store, catalog):
    return build_engine(config, store=store, catalog=catalog)


@pytest.fixture
def mock_home(tmp_path, monkeypatch):
    """Mocks Path.home() to point to a temp dir."""
    home = tmp_path / "home"
    home.mkdir()

    # Mocking HOME to a temp directory to isolate config files
    monkeypatch.setenv("HOME", str(home))
    return home
