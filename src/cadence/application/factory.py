"""
Engine Factory
Centralizes the logic for selecting adapters and wiring the services.
"""

import logging
from dataclasses import dataclass

from cadence.application.config import AppConfig
from cadence.application.due_selector import DueCardSelector
from cadence.application.review_service import ReviewService
from cadence.application.stats.calculator import StatsCalculator
from cadence.application.stats.service import ProgressAggregator
from cadence.domain.progress.ports import CardCatalog, ProgressStore
from cadence.infrastructure.adapters.catalog import InMemoryCardCatalog
from cadence.infrastructure.adapters.memory_store import InMemoryProgressStore
from cadence.infrastructure.adapters.sqlite_store import SqliteProgressStore

logger = logging.getLogger(__name__)


@dataclass
class Engine:
    """The wired services, sharing one store and one catalog."""

    store: ProgressStore
    catalog: CardCatalog
    reviews: ReviewService
    selector: DueCardSelector
    aggregator: ProgressAggregator


def get_progress_store(config: AppConfig) -> ProgressStore:
    """
    Returns the ProgressStore implementation selected by config.
    """
    if config.store == "memory":
        return InMemoryProgressStore()
    return SqliteProgressStore(config.database_path, timeout=config.store_timeout)


def get_card_catalog(config: AppConfig) -> CardCatalog:
    """
    Returns the card catalog. Without a catalog file the catalog is empty.
    """
    if config.catalog_path is None:
        logger.warning("No catalog_path configured; the card catalog is empty")
        return InMemoryCardCatalog()
    return InMemoryCardCatalog.from_yaml(config.catalog_path)


def build_engine(
    config: AppConfig,
    store: ProgressStore | None = None,
    catalog: CardCatalog | None = None,
) -> Engine:
    store = store or get_progress_store(config)
    catalog = catalog or get_card_catalog(config)
    return Engine(
        store=store,
        catalog=catalog,
        reviews=ReviewService(store, catalog, policy=config.scheduling_policy()),
        selector=DueCardSelector(store, catalog, default_limit=config.default_queue_limit),
        aggregator=ProgressAggregator(
            store,
            catalog,
            calculator=StatsCalculator(history_days=config.history_days),
            recent_days=config.recent_days,
        ),
    )
