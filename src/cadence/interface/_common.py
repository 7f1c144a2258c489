"""Helpers shared by the CLI and the HTTP server."""

from dataclasses import asdict
from datetime import date, datetime
from typing import Any

from cadence.application.config import AppConfig, resolve_config
from cadence.application.session import SessionSummary
from cadence.domain.progress.models import Card, ProgressRecord
from cadence.domain.stats.models import AccountStats, DeckStats


def _resolve_with_overrides(**overrides: Any) -> AppConfig:
    """Resolve config, letting non-None CLI/request values win."""
    return resolve_config({k: v for k, v in overrides.items() if v is not None})


def _jsonable(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def card_to_dict(card: Card) -> dict[str, Any]:
    return asdict(card)


def record_to_dict(record: ProgressRecord) -> dict[str, Any]:
    return _jsonable(asdict(record))


def deck_stats_to_dict(stats: DeckStats) -> dict[str, Any]:
    data = asdict(stats)
    data["mastery_percentage"] = round(stats.mastery_percentage, 2)
    data["due_percentage"] = round(stats.due_percentage, 2)
    for day, raw in zip(stats.study_history, data["study_history"]):
        raw["success_rate"] = round(day.success_rate, 4)
    return _jsonable(data)


def account_stats_to_dict(stats: AccountStats) -> dict[str, Any]:
    data = asdict(stats)
    data["mastery_percentage"] = round(stats.mastery_percentage, 2)
    for day, raw in zip(stats.recent_history, data["recent_history"]):
        raw["success_rate"] = round(day.success_rate, 4)
    return _jsonable(data)


def summary_to_dict(summary: SessionSummary) -> dict[str, Any]:
    data = asdict(summary)
    data["duration_seconds"] = summary.duration_seconds
    data["accuracy"] = round(summary.accuracy, 4)
    return _jsonable(data)
