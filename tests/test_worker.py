"""
Tests for the background worker and its JSON message boundary.
"""

import json

import pytest
from conftest import forest, spell

from manasim.deck import ParsedDeck
from manasim.errors import BoundaryError
from manasim.types import SimulationConfig
from manasim.worker import (
    MessageKind,
    SimulationWorker,
    WorkerMessage,
    deserialize_config,
    run_comparison,
    serialize_config,
)

TIMEOUT = 30


@pytest.fixture
def worker():
    worker = SimulationWorker()
    worker.start()
    yield worker
    worker.stop(timeout=TIMEOUT)


@pytest.fixture
def small_config():
    return SimulationConfig(iterations=10, turns=3, seed=42)


class TestSerialization:
    def test_sets_become_sorted_lists(self):
        config = SimulationConfig(
            selected_key_cards=frozenset({"Sol Ring", "Arcane Signet"}),
            disabled_rituals=frozenset({"Dark Ritual"}),
        )
        data = serialize_config(config)
        assert data["selected_key_cards"] == ["Arcane Signet", "Sol Ring"]
        assert data["disabled_rituals"] == ["Dark Ritual"]
        json.dumps(data)

    def test_config_survives_the_boundary(self):
        config = SimulationConfig(
            selected_key_cards=frozenset({"Sol Ring"}),
            commander_mode=True,
            mana_overrides={"sol ring": {"mode": "fixed", "fixed": 3}},
        )
        restored = deserialize_config(json.loads(json.dumps(serialize_config(config))))
        assert restored == config

    def test_message_json(self):
        message = WorkerMessage(MessageKind.PROGRESS, "deck-a", {"completed": 1, "total": 2})
        raw = message.to_json()
        assert json.loads(raw) == {
            "type": "PROGRESS",
            "deck_id": "deck-a",
            "completed": 1,
            "total": 2,
        }
        assert WorkerMessage.from_json(raw) == message

    @pytest.mark.parametrize(
        "raw", ["not json", '{"type": "RUN"}', '{"type": "NOPE", "deck_id": "x"}']
    )
    def test_malformed_message(self, raw):
        with pytest.raises(BoundaryError):
            WorkerMessage.from_json(raw)

    def test_unserializable_payload(self):
        message = WorkerMessage(MessageKind.RESULT, "x", {"results": object()})
        with pytest.raises(BoundaryError):
            message.to_json()


class TestSimulationWorker:
    def test_run_produces_progress_then_result(self, worker, small_config):
        deck = ParsedDeck([forest(quantity=40)])
        worker.submit("deck-a", deck, small_config)
        result = worker.wait_for("deck-a", timeout=TIMEOUT)

        assert result.kind is MessageKind.RESULT
        assert result.payload["results"]["iterations"] == 10
        assert result.payload["results"]["lands_per_turn"] == [1.0, 2.0, 3.0]

    def test_listener_sees_every_message(self, small_config):
        seen = []
        worker = SimulationWorker(listener=seen.append)
        worker.start()
        try:
            worker.submit("deck-a", ParsedDeck([forest(quantity=40)]), small_config)
            worker.wait_for("deck-a", timeout=TIMEOUT)
        finally:
            worker.stop(timeout=TIMEOUT)
        kinds = [m.kind for m in seen]
        assert kinds == [MessageKind.PROGRESS, MessageKind.RESULT]
        assert seen[0].payload == {"completed": 10, "total": 10}

    def test_empty_deck_reports_error(self, worker, small_config):
        worker.submit("empty", ParsedDeck(), small_config)
        message = worker.wait_for("empty", timeout=TIMEOUT)
        assert message.kind is MessageKind.ERROR
        assert message.payload["error_type"] == "ConfigurationError"

    def test_bad_card_data_reports_error(self, worker, small_config):
        worker.submit("bad", {"lands": [{"quantity": 3}]}, small_config)
        message = worker.wait_for("bad", timeout=TIMEOUT)
        assert message.kind is MessageKind.ERROR
        assert "without a name" in message.payload["error"]

    def test_worker_keeps_running_after_error(self, worker, small_config):
        worker.submit("empty", ParsedDeck(), small_config)
        worker.submit("good", ParsedDeck([forest(quantity=40)]), small_config)
        assert worker.wait_for("empty", timeout=TIMEOUT).kind is MessageKind.ERROR
        assert worker.wait_for("good", timeout=TIMEOUT).kind is MessageKind.RESULT

    def test_stop(self, small_config):
        worker = SimulationWorker()
        worker.start()
        assert worker.running
        worker.stop(timeout=TIMEOUT)
        assert not worker.running


class TestComparison:
    def test_progress_spans_both_decks(self):
        calls = []
        config = SimulationConfig(iterations=300, turns=2, seed=1)
        deck_a = ParsedDeck([forest(quantity=40)])
        deck_b = ParsedDeck([forest(quantity=20), spell(quantity=20)])
        results_a, results_b = run_comparison(
            deck_a, deck_b, config, progress=lambda c, t: calls.append((c, t))
        )
        assert calls == [(250, 600), (300, 600), (550, 600), (600, 600)]
        assert results_a.lands_per_turn == [1.0, 2.0]
        assert results_b.lands_per_turn[1] <= 2.0
