"""
Outbound client actions, encoded as ``{"type": <kind>, "payload": {...}}``.
"""
import json
from dataclasses import dataclass
from typing import Any, Dict, Union

from figgie_client.errors import ActionValidationError
from figgie_client.models import Side, Suit

U8_MAX = 2 ** 8 - 1
U32_MAX = 2 ** 32 - 1


def check_uint(value: Any, name: str, upper: int) -> int:
    """Return value if it fits the protocol's unsigned integer type."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ActionValidationError(f"{name} must be an integer, got {value!r}")
    if not 0 <= value <= upper:
        raise ActionValidationError(f"{name} {value} is outside 0..{upper}")
    return value


@dataclass(frozen=True)
class PlaceQuote:
    player_id: str
    suit: Suit
    side: Side
    price: int

    def to_message(self) -> Dict[str, Any]:
        return {"type": "PlaceQuote", "payload": _quote_payload(self)}


@dataclass(frozen=True)
class CancelQuote:
    player_id: str
    suit: Suit
    side: Side
    price: int

    def to_message(self) -> Dict[str, Any]:
        return {"type": "CancelQuote", "payload": _quote_payload(self)}


@dataclass(frozen=True)
class StartRound:
    round_id: int
    room_id: str

    def to_message(self) -> Dict[str, Any]:
        return {"type": "StartRound", "payload": {"round_id": self.round_id, "room_id": self.room_id}}


@dataclass(frozen=True)
class EndRound:
    round_id: int
    room_id: str

    def to_message(self) -> Dict[str, Any]:
        return {"type": "EndRound", "payload": {"round_id": self.round_id, "room_id": self.room_id}}


@dataclass(frozen=True)
class EndGame:
    room_id: str
    round_id: int
    player_id: str

    def to_message(self) -> Dict[str, Any]:
        return {
            "type": "EndGame",
            "payload": {
                "room_id": self.room_id,
                "round_id": self.round_id,
                "player_id": self.player_id,
            },
        }


Action = Union[PlaceQuote, CancelQuote, StartRound, EndRound, EndGame]


def _quote_payload(q: Union[PlaceQuote, CancelQuote]) -> Dict[str, Any]:
    return {
        "player_id": q.player_id,
        "suit": q.suit.value,
        "side": q.side.value,
        "price": q.price,
    }


def encode_action(action: Action) -> str:
    return json.dumps(action.to_message())
