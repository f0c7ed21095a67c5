"""
Leaderboard record shapes.

Purpose
-------
Define the three records the cache stores and backs up (`SeasonData`,
`LeaderboardResponse`, `PlayerAttribute`) and their JSON text encoding.

Serialization Contract
----------------------
- Encoding is deterministic: keys sorted, compact separators, UTF-8.
- Decoding is strict: missing fields, unknown fields, wrong types, wrong
  `type` tags and duplicate player ids raise `MalformedRecord`. A payload
  is either decoded completely or rejected.
- `decode(encode(x)) == x` for every valid record.
- Field names on the wire follow the upstream JSON:API naming
  (`gamesPlayed`, `isCurrentSeason`, `shardId`, ...).
- Upstream fields the service does not interpret travel in an explicit
  `extra` object, so they survive caching and backups unchanged.

Usage Example
-------------
>>> stats = PlayerAttribute(rank=1, games_played=80, wins=20)
>>> PlayerAttribute.from_json(stats.to_json()) == stats
True
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Type, TypeVar, Union

from seasonboard.core.exceptions import EncodeError, MalformedRecord

R = TypeVar("R", bound="JsonRecord")


# ============================================================================
# FIELD VALIDATION HELPERS
# ============================================================================


def _require_mapping(record: str, value: Any, where: str = "payload") -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise MalformedRecord(record, f"{where} must be an object, got {type(value).__name__}")
    return value


def _check_keys(
    record: str,
    payload: Mapping[str, Any],
    required: Iterable[str],
    optional: Iterable[str] = (),
) -> None:
    required = set(required)
    allowed = required | set(optional)

    missing = sorted(required - payload.keys())
    if missing:
        raise MalformedRecord(record, f"missing field(s) {', '.join(missing)}")

    unknown = sorted(set(payload.keys()) - allowed)
    if unknown:
        raise MalformedRecord(record, f"unknown field(s) {', '.join(unknown)}")


def _require_str(record: str, name: str, value: Any, allow_empty: bool = False) -> str:
    if not isinstance(value, str):
        raise MalformedRecord(record, f"'{name}' must be a string")
    if not allow_empty and not value:
        raise MalformedRecord(record, f"'{name}' must not be empty")
    return value


def _require_int(record: str, name: str, value: Any, minimum: Optional[int] = 0) -> int:
    # bool is a subclass of int; JSON true/false is never a count
    if isinstance(value, bool) or not isinstance(value, int):
        raise MalformedRecord(record, f"'{name}' must be an integer")
    if minimum is not None and value < minimum:
        raise MalformedRecord(record, f"'{name}' must be >= {minimum}")
    return value


def _require_bool(record: str, name: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise MalformedRecord(record, f"'{name}' must be a boolean")
    return value


def _require_tag(record: str, value: Any, expected: str) -> str:
    if value != expected:
        raise MalformedRecord(record, f"'type' must be '{expected}', got {value!r}")
    return value


def _require_extra(record: str, value: Any) -> Dict[str, Any]:
    extra = _require_mapping(record, value, "'extra'")
    for key in extra:
        if not isinstance(key, str):
            raise MalformedRecord(record, "'extra' keys must be strings")
    return dict(extra)


# ============================================================================
# BASE RECORD
# ============================================================================


class JsonRecord:
    """Mixin giving a record its JSON text encoding on top of to_dict/from_dict."""

    RECORD_NAME = "record"

    def to_dict(self) -> Dict[str, Any]:
        raise NotImplementedError

    @classmethod
    def from_dict(cls: Type[R], payload: Any) -> R:
        raise NotImplementedError

    def to_json(self) -> str:
        """
        Encode the record as canonical JSON text.

        Raises
        ------
        EncodeError
            If a value (typically inside `extra`) is not JSON-serializable.
        """
        try:
            return json.dumps(
                self.to_dict(),
                sort_keys=True,
                separators=(",", ":"),
                ensure_ascii=False,
                allow_nan=False,
            )
        except (TypeError, ValueError) as exc:
            raise EncodeError(
                f"Cannot encode {self.RECORD_NAME}: {exc}",
                details={"record": self.RECORD_NAME, "error": str(exc)},
            ) from exc

    @classmethod
    def from_json(cls: Type[R], raw: Union[str, bytes]) -> R:
        """
        Decode a record from JSON text.

        Raises
        ------
        MalformedRecord
            If the text is not JSON or does not match the record schema.
        """
        try:
            payload = json.loads(raw)
        except (TypeError, ValueError) as exc:
            raise MalformedRecord(cls.RECORD_NAME, f"invalid JSON ({exc})") from exc
        return cls.from_dict(payload)


# ============================================================================
# SEASON
# ============================================================================


@dataclass(frozen=True)
class SeasonData(JsonRecord):
    """The currently active competitive season."""

    RECORD_NAME = "SeasonData"
    TYPE_TAG = "season"

    id: str
    is_current_season: bool = True
    is_offseason: bool = False
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        _require_str(self.RECORD_NAME, "id", self.id)
        _require_bool(self.RECORD_NAME, "isCurrentSeason", self.is_current_season)
        _require_bool(self.RECORD_NAME, "isOffseason", self.is_offseason)
        _require_extra(self.RECORD_NAME, self.extra)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.TYPE_TAG,
            "id": self.id,
            "isCurrentSeason": self.is_current_season,
            "isOffseason": self.is_offseason,
            "extra": dict(self.extra),
        }

    @classmethod
    def from_dict(cls, payload: Any) -> "SeasonData":
        payload = _require_mapping(cls.RECORD_NAME, payload)
        _check_keys(
            cls.RECORD_NAME,
            payload,
            required=("type", "id", "isCurrentSeason", "isOffseason"),
            optional=("extra",),
        )
        _require_tag(cls.RECORD_NAME, payload["type"], cls.TYPE_TAG)
        return cls(
            id=payload["id"],
            is_current_season=payload["isCurrentSeason"],
            is_offseason=payload["isOffseason"],
            extra=_require_extra(cls.RECORD_NAME, payload.get("extra", {})),
        )


# ============================================================================
# PLAYERS
# ============================================================================


@dataclass(frozen=True)
class PlayerAttribute(JsonRecord):
    """Per-player leaderboard stats; the value behind `player_stats:<id>`."""

    RECORD_NAME = "PlayerAttribute"

    rank: int
    games_played: int
    wins: int
    name: str = ""
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        _require_int(self.RECORD_NAME, "rank", self.rank, minimum=1)
        _require_int(self.RECORD_NAME, "gamesPlayed", self.games_played)
        _require_int(self.RECORD_NAME, "wins", self.wins)
        _require_str(self.RECORD_NAME, "name", self.name, allow_empty=True)
        _require_extra(self.RECORD_NAME, self.extra)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "rank": self.rank,
            "gamesPlayed": self.games_played,
            "wins": self.wins,
            "extra": dict(self.extra),
        }

    @classmethod
    def from_dict(cls, payload: Any) -> "PlayerAttribute":
        payload = _require_mapping(cls.RECORD_NAME, payload)
        _check_keys(
            cls.RECORD_NAME,
            payload,
            required=("rank", "gamesPlayed", "wins"),
            optional=("name", "extra"),
        )
        return cls(
            rank=payload["rank"],
            games_played=payload["gamesPlayed"],
            wins=payload["wins"],
            name=payload.get("name", ""),
            extra=_require_extra(cls.RECORD_NAME, payload.get("extra", {})),
        )


@dataclass(frozen=True)
class PlayerEntry(JsonRecord):
    """One row of the leaderboard: a player id and its attributes."""

    RECORD_NAME = "PlayerEntry"
    TYPE_TAG = "player"

    id: str
    attributes: PlayerAttribute

    def __post_init__(self) -> None:
        _require_str(self.RECORD_NAME, "id", self.id)
        if not isinstance(self.attributes, PlayerAttribute):
            raise MalformedRecord(self.RECORD_NAME, "'attributes' must be a PlayerAttribute")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.TYPE_TAG,
            "id": self.id,
            "attributes": self.attributes.to_dict(),
        }

    @classmethod
    def from_dict(cls, payload: Any) -> "PlayerEntry":
        payload = _require_mapping(cls.RECORD_NAME, payload)
        _check_keys(cls.RECORD_NAME, payload, required=("type", "id", "attributes"))
        _require_tag(cls.RECORD_NAME, payload["type"], cls.TYPE_TAG)
        return cls(
            id=payload["id"],
            attributes=PlayerAttribute.from_dict(payload["attributes"]),
        )


# ============================================================================
# LEADERBOARD
# ============================================================================


@dataclass(frozen=True)
class LeaderboardData(JsonRecord):
    """Leaderboard header: which shard, mode and season the rows belong to."""

    RECORD_NAME = "LeaderboardData"
    TYPE_TAG = "leaderboard"

    id: str
    shard_id: str
    game_mode: str
    season_id: str

    def __post_init__(self) -> None:
        _require_str(self.RECORD_NAME, "id", self.id)
        _require_str(self.RECORD_NAME, "shardId", self.shard_id)
        _require_str(self.RECORD_NAME, "gameMode", self.game_mode)
        _require_str(self.RECORD_NAME, "seasonId", self.season_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.TYPE_TAG,
            "id": self.id,
            "shardId": self.shard_id,
            "gameMode": self.game_mode,
            "seasonId": self.season_id,
        }

    @classmethod
    def from_dict(cls, payload: Any) -> "LeaderboardData":
        payload = _require_mapping(cls.RECORD_NAME, payload)
        _check_keys(
            cls.RECORD_NAME,
            payload,
            required=("type", "id", "shardId", "gameMode", "seasonId"),
        )
        _require_tag(cls.RECORD_NAME, payload["type"], cls.TYPE_TAG)
        return cls(
            id=payload["id"],
            shard_id=payload["shardId"],
            game_mode=payload["gameMode"],
            season_id=payload["seasonId"],
        )


@dataclass(frozen=True)
class LeaderboardResponse(JsonRecord):
    """
    A full leaderboard snapshot.

    `included` is kept in upstream order. Player ids are unique within a
    snapshot; constructing or decoding one with duplicates raises
    `MalformedRecord`.
    """

    RECORD_NAME = "LeaderboardResponse"

    data: LeaderboardData
    included: Tuple[PlayerEntry, ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.data, LeaderboardData):
            raise MalformedRecord(self.RECORD_NAME, "'data' must be a LeaderboardData")

        # Accept any iterable of entries but store an immutable tuple
        object.__setattr__(self, "included", tuple(self.included))

        seen = set()
        for entry in self.included:
            if not isinstance(entry, PlayerEntry):
                raise MalformedRecord(self.RECORD_NAME, "'included' must contain PlayerEntry rows")
            if entry.id in seen:
                raise MalformedRecord(self.RECORD_NAME, f"duplicate player id '{entry.id}'")
            seen.add(entry.id)

    @property
    def player_ids(self) -> Tuple[str, ...]:
        return tuple(entry.id for entry in self.included)

    def find_player(self, player_id: str) -> Optional[PlayerAttribute]:
        """Return the attributes for `player_id`, or None if absent."""
        for entry in self.included:
            if entry.id == player_id:
                return entry.attributes
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "data": self.data.to_dict(),
            "included": [entry.to_dict() for entry in self.included],
        }

    @classmethod
    def from_dict(cls, payload: Any) -> "LeaderboardResponse":
        payload = _require_mapping(cls.RECORD_NAME, payload)
        _check_keys(cls.RECORD_NAME, payload, required=("data", "included"))

        rows = payload["included"]
        if not isinstance(rows, list):
            raise MalformedRecord(cls.RECORD_NAME, "'included' must be an array")

        return cls(
            data=LeaderboardData.from_dict(payload["data"]),
            included=tuple(PlayerEntry.from_dict(row) for row in rows),
        )


__all__ = [
    "JsonRecord",
    "SeasonData",
    "PlayerAttribute",
    "PlayerEntry",
    "LeaderboardData",
    "LeaderboardResponse",
]
