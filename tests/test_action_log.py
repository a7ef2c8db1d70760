"""Tests for ActionLog."""

import pytest
from sqlalchemy import text

from errors import ConflictError, DecodeError
from payloads import DivineResult, KillResult, VoteResult


class TestActionLog:
    def test_create_and_find(self, store, game, players):
        fox = players["Fox"]
        a = store.actions.create(game.id, fox.token, "divine", 1, "night", "Wolf",
                                 DivineResult(target="Wolf", result="werewolf"))
        found = store.actions.find_by_id(a.id)

        assert found.action_type == "divine"
        assert found.target_player == "Wolf"
        assert found.success is True
        assert found.result == DivineResult(target="Wolf", result="werewolf")
        assert store.actions.find_by_id(999) is None

    def test_result_accepts_dict(self, store, game, players):
        a = store.actions.create(game.id, players["Wolf"].token, "kill", 1, "night", "Rabbit",
                                 {"action": "kill", "target": "Rabbit"})
        assert isinstance(store.actions.find_by_id(a.id).result, KillResult)

    def test_result_with_unknown_tag_rejected(self, store, game, players):
        with pytest.raises(DecodeError):
            store.actions.create(game.id, players["Wolf"].token, "kill", 1, "night", "Rabbit",
                                 {"action": "explode", "target": "Rabbit"})

    def test_kill_target(self, store, game, players):
        """Five players, one successful werewolf kill on Rabbit during night 1."""
        wolf = players["Wolf"]
        store.actions.create(game.id, wolf.token, "kill", 1, "night", "Rabbit", KillResult(target="Rabbit"))

        assert store.actions.has_player_acted(game.id, wolf.token, "kill", 1, "night")
        assert store.actions.get_kill_target(game.id, 1) == "Rabbit"
        assert store.actions.get_kill_target(game.id, 2) is None

    def test_second_successful_action_conflicts(self, store, game, players):
        wolf = players["Wolf"]
        store.actions.create(game.id, wolf.token, "kill", 1, "night", "Rabbit")
        with pytest.raises(ConflictError):
            store.actions.create(game.id, wolf.token, "kill", 1, "night", "Bear")

        assert len(store.actions.find_kill_actions(game.id, 1)) == 1
        assert store.actions.get_kill_target(game.id, 1) == "Rabbit"

    def test_failed_attempts_are_kept_but_not_counted(self, store, game, players):
        wolf = players["Wolf"]
        store.actions.create(game.id, wolf.token, "kill", 1, "night", "Fox", success=False)
        assert store.actions.has_player_acted(game.id, wolf.token, "kill", 1, "night") is False
        assert store.actions.get_kill_target(game.id, 1) is None

        store.actions.create(game.id, wolf.token, "kill", 1, "night", "Rabbit")
        store.actions.create(game.id, wolf.token, "kill", 1, "night", "Bear", success=False)
        assert store.actions.get_kill_target(game.id, 1) == "Rabbit"
        assert store.actions.count_actions(game.id, "kill", 1) == 3

    def test_record_is_idempotent(self, store, game, players):
        wolf = players["Wolf"]
        first = store.actions.record(game.id, wolf.token, "kill", 1, "night", "Rabbit")
        again = store.actions.record(game.id, wolf.token, "kill", 1, "night", "Bear")

        assert first is not None and again is None
        assert [a.target_player for a in store.actions.find_by_game_and_player(game.id, wolf.token)] == ["Rabbit"]
        # 新的一天可以再次行动
        assert store.actions.record(game.id, wolf.token, "kill", 2, "night", "Bear") is not None

    def test_speak_is_not_unique(self, store, game, players):
        bear = players["Bear"]
        for _ in range(3):
            store.actions.create(game.id, bear.token, "speak", 1, "day")
        assert len(store.actions.find_speak_actions(game.id, bear.token, 1)) == 3
        assert len(store.actions.find_speak_actions(game.id)) == 3

    def test_vote_results(self, store, game, players):
        for voter, target in (("Bear", "Wolf"), ("Fox", "Wolf"), ("Rabbit", "Eagle"), ("Wolf", "Fox")):
            store.actions.create(game.id, players[voter].token, "vote", 1, "day", target, VoteResult(target=target))
        store.actions.create(game.id, players["Eagle"].token, "vote", 1, "day", "Bear", success=False)

        results = store.actions.get_vote_results(game.id, 1)
        assert results == {
            "Wolf": [players["Bear"].token, players["Fox"].token],
            "Eagle": [players["Rabbit"].token],
            "Fox": [players["Wolf"].token],
        }
        assert store.actions.get_vote_counts(game.id, 1) == {"Wolf": 2, "Eagle": 1, "Fox": 1}
        assert list(store.actions.get_vote_counts(game.id, 1))[0] == "Wolf"
        assert store.actions.get_vote_results(game.id, 2) == {}

    def test_filters(self, store, game, players):
        fox, wolf = players["Fox"], players["Wolf"]
        store.actions.create(game.id, fox.token, "divine", 1, "night", "Wolf")
        store.actions.create(game.id, wolf.token, "kill", 1, "night", "Rabbit")
        store.actions.create(game.id, fox.token, "vote", 2, "day", "Wolf")
        store.actions.create(game.id, fox.token, "divine", 2, "night", "Bear")

        assert len(store.actions.find_by_game_id(game.id)) == 4
        assert len(store.actions.find_by_player_token(fox.token)) == 3
        assert len(store.actions.find_by_action_type(game.id, "divine")) == 2
        assert len(store.actions.find_by_action_type(game.id, "divine", 2)) == 1
        assert len(store.actions.find_by_phase(game.id, "night")) == 3
        assert len(store.actions.find_by_phase(game.id, "night", 1)) == 2
        assert len(store.actions.find_by_day(game.id, 2)) == 2
        assert [a.target_player for a in store.actions.find_divine_actions(game.id, fox.token)] == ["Wolf", "Bear"]
        assert len(store.actions.find_divine_actions(game.id, day=1)) == 1
        assert len(store.actions.get_divine_results(game.id, fox.token)) == 2
        assert len(store.actions.find_vote_actions(game.id)) == 1

    def test_stats(self, store, game, players):
        store.actions.create(game.id, players["Fox"].token, "divine", 1, "night", "Wolf")
        store.actions.create(game.id, players["Wolf"].token, "kill", 1, "night", "Rabbit")
        store.actions.create(game.id, players["Bear"].token, "vote", 2, "day", "Wolf")

        stats = store.actions.get_action_stats(game.id)
        assert stats["total"] == 3
        assert stats["by_type"] == {"divine": 1, "kill": 1, "vote": 1, "speak": 0}
        assert stats["by_phase"] == {"day": 1, "night": 2}
        assert stats["by_day"] == {1: 2, 2: 1}

    def test_malformed_stored_result_raises_decode_error(self, store, game, players):
        a = store.actions.create(game.id, players["Wolf"].token, "kill", 1, "night", "Rabbit")
        with store.db.engine.begin() as conn:
            conn.execute(text("UPDATE actions SET result = :r WHERE id = :id"), {"r": "{not json", "id": a.id})
        with pytest.raises(DecodeError):
            store.actions.find_by_id(a.id)

    def test_delete(self, store, game, players):
        a = store.actions.create(game.id, players["Wolf"].token, "kill", 1, "night", "Rabbit")
        store.actions.create(game.id, players["Bear"].token, "vote", 1, "day", "Wolf")
        assert store.actions.delete(a.id)
        assert store.actions.delete(a.id) is False
        assert store.actions.delete_by_game_id(game.id) == 1
