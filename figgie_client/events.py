"""
Inbound server events and their wire parsing.

Every message is a JSON object ``{"type": <kind>, "payload": {...}}``.
"""
import json
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Union

from figgie_client.errors import EventParseError
from figgie_client.models import Hand, Player, PlayerInfo, Side, Suit, SUITS


@dataclass(frozen=True)
class TradeExecuted:
    buyer: str
    seller: str
    suit: Suit
    price: int


@dataclass(frozen=True)
class QuotePlaced:
    player_id: str
    suit: Suit
    side: Side
    price: int


@dataclass(frozen=True)
class QuoteCanceled:
    player_id: str
    suit: Suit
    side: Side
    price: int


@dataclass(frozen=True)
class RoundStarted:
    round_id: int
    server_time: int
    player: Player


@dataclass(frozen=True)
class RoundEnded:
    round_id: int
    server_time: int
    goal_suit: Suit
    players: List[Player]


@dataclass(frozen=True)
class GameEnded:
    players: List[Player]


Event = Union[TradeExecuted, QuotePlaced, QuoteCanceled, RoundStarted, RoundEnded, GameEnded]


def _require(payload: Dict[str, Any], key: str) -> Any:
    if key not in payload or payload[key] is None:
        raise EventParseError(f"missing field '{key}'")
    return payload[key]


def _int(value: Any, name: str) -> int:
    # bool is an int subclass but never a valid count or price
    if isinstance(value, bool) or not isinstance(value, int):
        raise EventParseError(f"'{name}' must be an integer, got {value!r}")
    return value


def _suit(value: Any) -> Suit:
    try:
        return Suit.parse(value)
    except ValueError:
        raise EventParseError(f"unknown suit {value!r}")


def _side(value: Any) -> Side:
    try:
        return Side.parse(value)
    except ValueError:
        raise EventParseError(f"unknown side {value!r}")


def parse_hand(raw: Any) -> Hand:
    if not isinstance(raw, dict):
        raise EventParseError("hand must be an object")
    hand = {s: 0 for s in SUITS}
    for key, count in raw.items():
        count = _int(count, f"hand.{key}")
        if count < 0:
            raise EventParseError(f"negative card count for {key}")
        hand[_suit(key)] = count
    return hand


def parse_player(raw: Any) -> Player:
    if not isinstance(raw, dict):
        raise EventParseError("player must be an object")
    info = _require(raw, "info")
    if not isinstance(info, dict):
        raise EventParseError("player.info must be an object")
    return Player(
        info=PlayerInfo(id=str(_require(info, "id")), name=str(info.get("name", ""))),
        cash=_int(_require(raw, "cash"), "cash"),
        hand=parse_hand(raw.get("hand") or {}),
    )


def _parse_players(payload: Dict[str, Any]) -> List[Player]:
    players = _require(payload, "players")
    if not isinstance(players, list):
        raise EventParseError("players must be a list")
    return [parse_player(p) for p in players]


def _quote_fields(payload: Dict[str, Any]) -> Dict[str, Any]:
    quote = _require(payload, "quote")
    if not isinstance(quote, dict):
        raise EventParseError("quote must be an object")
    # owner travels inside the quote or next to it, depending on server version
    owner = quote.get("player_id") or payload.get("player_id") or payload.get("player")
    if not owner:
        raise EventParseError("quote has no owner")
    return {
        "player_id": str(owner),
        "suit": _suit(_require(quote, "suit")),
        "side": _side(_require(quote, "side")),
        "price": _int(_require(quote, "price"), "price"),
    }


def _trade_executed(payload: Dict[str, Any]) -> TradeExecuted:
    return TradeExecuted(
        buyer=str(_require(payload, "buyer")),
        seller=str(_require(payload, "seller")),
        suit=_suit(_require(payload, "suit")),
        price=_int(_require(payload, "price"), "price"),
    )


def _round_started(payload: Dict[str, Any]) -> RoundStarted:
    return RoundStarted(
        round_id=_int(_require(payload, "round_id"), "round_id"),
        server_time=_int(_require(payload, "server_time"), "server_time"),
        player=parse_player(_require(payload, "player")),
    )


def _round_ended(payload: Dict[str, Any]) -> RoundEnded:
    return RoundEnded(
        round_id=_int(_require(payload, "round_id"), "round_id"),
        server_time=_int(_require(payload, "server_time"), "server_time"),
        goal_suit=_suit(_require(payload, "goal_suit")),
        players=_parse_players(payload),
    )


_PARSERS: Dict[str, Callable[[Dict[str, Any]], Event]] = {
    "TradeExecuted": _trade_executed,
    "QuotePlaced": lambda p: QuotePlaced(**_quote_fields(p)),
    "QuoteCanceled": lambda p: QuoteCanceled(**_quote_fields(p)),
    "RoundStarted": _round_started,
    "RoundEnded": _round_ended,
    "GameEnded": lambda p: GameEnded(players=_parse_players(p)),
}


def parse_event(message: Union[str, bytes, Dict[str, Any]]) -> Event:
    """
    Parse one inbound message into an Event.
    Raises EventParseError for anything that is not a well-formed event.
    """
    if isinstance(message, (str, bytes, bytearray)):
        try:
            data = json.loads(message)
        except ValueError as exc:
            raise EventParseError(f"invalid JSON: {exc}") from exc
    else:
        data = message
    if not isinstance(data, dict):
        raise EventParseError("event must be a JSON object")
    kind = data.get("type")
    parser = _PARSERS.get(kind)
    if parser is None:
        raise EventParseError(f"unknown event type {kind!r}")
    payload = data.get("payload")
    if not isinstance(payload, dict):
        raise EventParseError(f"{kind} payload must be an object")
    return parser(payload)
