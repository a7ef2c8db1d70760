"""Tests for MessageLog."""

from datetime import timedelta, timezone

import pytest


def texts(messages):
    return [m.message for m in messages]


@pytest.fixture
def chat(store, game):
    log = store.messages
    log.create(game.id, "Bear", "good morning", "day", 1, phase_detail="discussion")
    log.create(game.id, "Fox", "anyone suspicious?", "day", 1, phase_detail="discussion")
    log.create(game.id, "Wolf", "who tonight?", "night", 1, target="werewolf", phase_detail="consultation")
    log.create(game.id, "Bear", "I vote Wolf", "day", 2, phase_detail="discussion")
    return log


class TestMessageLog:
    def test_create(self, store, game):
        m = store.messages.create(game.id, "Bear", "hello", "day", 1)
        assert m.id is not None
        assert m.target == "all" and m.phase_detail is None
        assert store.messages.find_by_id(m.id).message == "hello"
        assert store.messages.find_by_id(999) is None

    def test_find_by_game_chronological(self, chat, game):
        assert texts(chat.find_by_game_id(game.id)) == [
            "good morning", "anyone suspicious?", "who tonight?", "I vote Wolf"]

    def test_find_by_phase_and_day(self, chat, game):
        assert len(chat.find_by_game_id_and_phase(game.id, "day")) == 3
        assert texts(chat.find_by_game_id_and_phase(game.id, "day", 2)) == ["I vote Wolf"]

    def test_find_by_target(self, chat, game):
        assert texts(chat.find_by_game_id_and_target(game.id, "werewolf")) == ["who tonight?"]
        assert len(chat.find_by_game_id_and_target(game.id, "all", "day", 1)) == 2
        assert chat.find_by_game_id_and_target(game.id, "werewolf", "day") == []

    def test_public_and_werewolf_views(self, chat, game):
        assert len(chat.find_public_messages(game.id)) == 3
        assert texts(chat.find_public_messages(game.id, 2)) == ["I vote Wolf"]
        assert texts(chat.find_werewolf_messages(game.id, 1)) == ["who tonight?"]

    def test_find_by_player_and_day(self, chat, game):
        assert texts(chat.find_by_player(game.id, "Bear")) == ["good morning", "I vote Wolf"]
        assert len(chat.find_by_day(game.id, 1)) == 3

    def test_find_since_is_strict(self, chat, game):
        everything = chat.find_by_game_id(game.id)
        cursor = everything[1].created_at
        assert texts(chat.find_since(game.id, cursor)) == ["who tonight?", "I vote Wolf"]
        assert chat.find_since(game.id, everything[-1].created_at) == []

    def test_find_since_with_aware_cursor(self, chat, game):
        everything = chat.find_by_game_id(game.id)
        cursor = everything[1].created_at.replace(tzinfo=timezone.utc).astimezone(timezone(timedelta(hours=9)))
        assert texts(chat.find_since(game.id, cursor)) == ["who tonight?", "I vote Wolf"]

    def test_find_recent_in_chronological_order(self, chat, game):
        assert texts(chat.find_recent(game.id, 2)) == ["who tonight?", "I vote Wolf"]
        assert len(chat.find_recent(game.id)) == 4

    def test_count_player_messages(self, chat, game):
        assert chat.count_player_messages_in_phase(game.id, "Bear", "day", 1) == 1
        assert chat.count_player_messages_in_phase(game.id, "Wolf", "night", 1, "werewolf") == 1
        assert chat.count_player_messages_in_phase(game.id, "Wolf", "night", 1, "all") == 0
        assert chat.get_werewolf_consultation_count(game.id, 1) == 1
        assert chat.get_werewolf_consultation_count(game.id, 2) == 0

    def test_stats(self, chat, game):
        stats = chat.get_message_stats(game.id)
        assert stats["total"] == 4
        assert stats["by_phase"] == {"day": 3, "night": 1}
        assert stats["by_target"] == {"all": 3, "werewolf": 1}
        assert stats["by_player"] == {"Bear": 2, "Fox": 1, "Wolf": 1}

    def test_stats_empty(self, store, game):
        assert store.messages.get_message_stats(game.id) == {
            "total": 0, "by_phase": {"day": 0, "night": 0}, "by_target": {"all": 0, "werewolf": 0}, "by_player": {}}

    def test_delete(self, chat, game):
        first = chat.find_by_game_id(game.id)[0]
        assert chat.delete(first.id)
        assert chat.delete(first.id) is False
        assert chat.delete_by_game_id(game.id) == 3
