"""Tests for CLI commands: review, reset, due, study, progress, config and serve."""

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from cadence.interface.cli import app

runner = CliRunner()

DECKS_YAML = """
decks:
  - id: 1
    title: Spanish
    cards:
      - {id: 10, front: hola, back: hello}
      - {id: 11, front: adiós, back: goodbye}
      - {id: 12, front: gracias, back: thank you}
  - id: 2
    title: German
    cards:
      - {id: 20, front: Hund, back: dog}
"""


@pytest.fixture
def backend(tmp_path, mock_home):
    """SQLite store and YAML catalog shared across invocations."""
    catalog = tmp_path / "decks.yaml"
    catalog.write_text(DECKS_YAML, encoding="utf-8")
    return ["--store", "sqlite", "--db", str(tmp_path / "progress.db"), "--catalog", str(catalog)]


def invoke(*args, input=None):
    return runner.invoke(app, [str(a) for a in args], input=input)


# --- Help ---


def test_cli_help():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "spaced-repetition progress engine" in result.stdout
    assert "review" in result.stdout
    assert "progress" in result.stdout


# --- Review ---


def test_review_command(backend):
    result = invoke("review", 10, 5, "--user", 1, *backend)

    assert result.exit_code == 0
    assert "Card 10: next review in 1 day(s)" in result.stdout
    assert "ease 2.80" in result.stdout


def test_review_accepts_button_names(backend):
    invoke("review", 10, "easy", "-u", 1, *backend)
    result = invoke("review", 10, "good", "-u", 1, "--json", *backend)

    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["interval"] == 6
    assert data["last_grade"] == 4
    assert data["review_count"] == 2


def test_review_invalid_grade(backend):
    result = invoke("review", 10, 9, "-u", 1, *backend)
    assert result.exit_code == 2

    result = invoke("review", 10, "meh", "-u", 1, *backend)
    assert result.exit_code == 2


def test_review_unknown_card(backend):
    result = invoke("review", 404, 4, "-u", 1, *backend)
    assert result.exit_code == 1


def test_review_bad_catalog(tmp_path, mock_home):
    catalog = tmp_path / "broken.yaml"
    catalog.write_text("decks: nope\n")

    result = invoke("review", 10, 4, "-u", 1, "--store", "memory", "--catalog", catalog)

    assert result.exit_code == 1


# --- Reset ---


def test_reset_command(backend):
    invoke("review", 10, 5, "-u", 1, *backend)

    result = invoke("reset", 10, "-u", 1, *backend)

    assert result.exit_code == 0
    assert "Card 10 reset" in result.stdout


def test_reset_without_progress(backend):
    result = invoke("reset", 11, "-u", 1, *backend)
    assert result.exit_code == 0
    assert "nothing to reset" in result.stdout


# --- Due ---


def test_due_command(backend):
    invoke("review", 10, 5, "-u", 1, *backend)

    result = invoke("due", 1, "-u", 1, *backend)

    assert result.exit_code == 0
    assert "Due cards: 2" in result.stdout
    assert "[11] adiós" in result.stdout
    assert "[10]" not in result.stdout


def test_due_json_with_limit(backend):
    result = invoke("due", 1, "-u", 1, "--limit", 1, "--json", *backend)
    assert [c["id"] for c in json.loads(result.stdout)] == [10]


def test_due_nothing(backend):
    invoke("review", 20, 4, "-u", 1, *backend)
    result = invoke("due", 2, "-u", 1, *backend)
    assert "No cards due." in result.stdout


# --- Study ---


def test_study_session(backend):
    result = invoke("study", 1, "-u", 1, *backend, input="\n5\n\nmaybe\n4\n\nagain\n")

    assert result.exit_code == 0
    assert "hello" in result.stdout
    assert "Session complete" in result.stdout
    assert "Reviewed 3 card(s)" in result.stdout
    assert "longest streak 2" in result.stdout
    assert "Easy 1  Good 1  Hard 0  Again 1" in result.stdout

    due = invoke("due", 1, "-u", 1, *backend)
    assert "No cards due." in due.stdout


def test_study_quit_early(backend):
    result = invoke("study", 1, "-u", 1, "--json", *backend, input="\n4\n\nq\n")

    assert result.exit_code == 0
    summary = json.loads(result.stdout[result.stdout.index("{") :])
    assert summary["cards_reviewed"] == 1
    assert summary["grade_tally"]["good"] == 1


def test_study_nothing_due(backend):
    invoke("review", 20, 5, "-u", 1, *backend)
    result = invoke("study", 2, "-u", 1, *backend)
    assert "Nothing to study right now." in result.stdout


# --- Progress ---


def test_progress_deck(backend):
    invoke("review", 10, 5, "-u", 1, *backend)
    invoke("review", 11, 2, "-u", 1, *backend)

    result = invoke("progress", "deck", 1, "-u", 1, "--json", *backend)

    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["mastered_cards"] == 1
    assert data["due_cards"] == 1
    assert data["new_cards"] == 1
    assert data["review_queue_size"] == 1


def test_progress_deck_text(backend):
    invoke("review", 10, 5, "-u", 1, *backend)
    result = invoke("progress", "deck", 1, "-u", 1, *backend)
    assert "Deck 1: 3 cards" in result.stdout
    assert "Mastered 1 (33%)" in result.stdout


def test_progress_account(backend):
    invoke("review", 10, 5, "-u", 1, *backend)
    invoke("review", 20, 1, "-u", 1, *backend)

    result = invoke("progress", "account", "-u", 1, *backend)

    assert result.exit_code == 0
    assert "Cards studied: 2" in result.stdout
    assert "Decks: 2" in result.stdout


def test_progress_decks(backend):
    assert "No progress yet." in invoke("progress", "decks", "-u", 1, *backend).stdout

    invoke("review", 20, 4, "-u", 1, *backend)
    result = invoke("progress", "decks", "-u", 1, *backend)
    assert "Deck 2 (German): 1/1 mastered, 0 due" in result.stdout

    data = json.loads(invoke("progress", "decks", "-u", 1, "--json", *backend).stdout)
    assert [(d["deck_id"], d["title"]) for d in data] == [(2, "German")]


# --- Config ---


@patch("cadence.interface.cli.resolve_config")
def test_config_show_command(mock_resolve_config):
    mock_config = MagicMock()
    mock_config.model_dump.return_value = {
        "database_path": Path("/tmp/progress.db"),
        "store": "sqlite",
        "port": 8777,
    }
    mock_resolve_config.return_value = mock_config

    result = runner.invoke(app, ["config", "show"])

    assert result.exit_code == 0
    output_data = json.loads(result.stdout)
    assert output_data["database_path"] == str(Path("/tmp/progress.db"))
    assert output_data["store"] == "sqlite"


# --- Server ---


@patch("uvicorn.run")
def test_serve_command(mock_run, mock_home):
    result = runner.invoke(app, ["serve", "--port", "9000"])
    assert result.exit_code == 0
    mock_run.assert_called_with("cadence.server:app", host="127.0.0.1", port=9000, reload=False)
