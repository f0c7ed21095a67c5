"""
Unit tests for the leaderboard record shapes.

Tests canonical encoding, strict decoding and snapshot invariants.
"""

import json

import pytest

from seasonboard.core.exceptions import DecodeError, EncodeError, MalformedRecord
from seasonboard.domain.models.leaderboard import (
    LeaderboardData,
    LeaderboardResponse,
    PlayerAttribute,
    PlayerEntry,
    SeasonData,
)
from tests.conftest import make_snapshot

pytestmark = pytest.mark.unit


class TestEncoding:
    """Encoding is canonical and round-trips."""

    def test_season_round_trip_keeps_extra(self):
        season = SeasonData(id="s-20", extra={"releaseDate": "2026-10-01"})

        assert SeasonData.from_json(season.to_json()) == season

    def test_snapshot_round_trip(self):
        snapshot = make_snapshot([("p1", 1, 80, 20), ("p2", 2, 70, 15)])

        assert LeaderboardResponse.from_json(snapshot.to_json()) == snapshot

    def test_encoding_is_deterministic(self):
        a = PlayerAttribute(rank=1, games_played=5, wins=2, extra={"b": 1, "a": 2})
        b = PlayerAttribute(rank=1, games_played=5, wins=2, extra={"a": 2, "b": 1})

        assert a.to_json() == b.to_json()

    def test_wire_names_follow_upstream(self):
        payload = json.loads(PlayerAttribute(rank=3, games_played=9, wins=1).to_json())

        assert payload["gamesPlayed"] == 9
        assert "games_played" not in payload

    def test_unserializable_extra_raises_encode_error(self):
        stats = PlayerAttribute(rank=1, games_played=1, wins=0, extra={"ratio": float("nan")})

        with pytest.raises(EncodeError):
            stats.to_json()

    def test_bytes_input_is_accepted(self):
        season = SeasonData(id="s-1")

        assert SeasonData.from_json(season.to_json().encode("utf-8")) == season


class TestStrictDecoding:
    """Anything that is not exactly the schema is rejected."""

    def test_invalid_json(self):
        with pytest.raises(MalformedRecord):
            SeasonData.from_json("{not json")

    def test_missing_field(self):
        with pytest.raises(MalformedRecord, match="missing"):
            PlayerAttribute.from_json('{"rank": 1, "wins": 0}')

    def test_unknown_field(self):
        with pytest.raises(MalformedRecord, match="unknown"):
            PlayerAttribute.from_json('{"rank": 1, "gamesPlayed": 1, "wins": 0, "kills": 4}')

    def test_wrong_type_tag(self):
        raw = json.dumps(
            {"type": "player", "id": "s", "isCurrentSeason": True, "isOffseason": False}
        )
        with pytest.raises(MalformedRecord, match="type"):
            SeasonData.from_json(raw)

    def test_boolean_is_not_a_count(self):
        with pytest.raises(MalformedRecord):
            PlayerAttribute.from_json('{"rank": 1, "gamesPlayed": true, "wins": 0}')

    def test_rank_must_be_positive(self):
        with pytest.raises(MalformedRecord):
            PlayerAttribute(rank=0, games_played=1, wins=0)

    def test_negative_wins_rejected(self):
        with pytest.raises(MalformedRecord):
            PlayerAttribute(rank=1, games_played=1, wins=-1)

    def test_included_must_be_array(self):
        header = LeaderboardData(id="lb", shard_id="pc-na", game_mode="solo", season_id="s")
        raw = json.dumps({"data": header.to_dict(), "included": {}})

        with pytest.raises(MalformedRecord):
            LeaderboardResponse.from_json(raw)

    def test_malformed_record_is_a_decode_error(self):
        assert issubclass(MalformedRecord, DecodeError)


class TestSnapshot:
    """Snapshot invariants and lookups."""

    def test_duplicate_player_ids_rejected(self):
        with pytest.raises(MalformedRecord, match="duplicate"):
            make_snapshot([("p1", 1, 1, 0), ("p1", 2, 1, 0)])

    def test_included_is_stored_as_tuple(self):
        header = LeaderboardData(id="lb", shard_id="pc-na", game_mode="solo", season_id="s")
        entry = PlayerEntry(id="p1", attributes=PlayerAttribute(rank=1, games_played=1, wins=1))

        snapshot = LeaderboardResponse(data=header, included=[entry])

        assert snapshot.included == (entry,)

    def test_find_player(self):
        snapshot = make_snapshot([("p1", 1, 80, 20), ("p2", 2, 70, 15)])

        assert snapshot.find_player("p2").wins == 15
        assert snapshot.find_player("ghost") is None

    def test_empty_leaderboard_is_valid(self):
        snapshot = make_snapshot([])

        assert snapshot.player_ids == ()
        assert LeaderboardResponse.from_json(snapshot.to_json()) == snapshot
