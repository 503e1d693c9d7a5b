from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple


class Suit(str, Enum):
    SPADE = "Spade"
    CLUB = "Club"
    DIAMOND = "Diamond"
    HEART = "Heart"

    @property
    def index(self) -> int:
        return SUITS.index(self)

    @property
    def symbol(self) -> str:
        return SUIT_SYMBOLS[self]

    @property
    def color(self) -> str:
        return SUIT_COLORS[self]

    @classmethod
    def parse(cls, value) -> "Suit":
        if isinstance(value, cls):
            return value
        return cls(value)


class Side(str, Enum):
    BID = "Bid"
    OFFER = "Offer"

    @classmethod
    def parse(cls, value) -> "Side":
        if isinstance(value, cls):
            return value
        return cls(value)


# fixed order; indexes suit delta arrays
SUITS: Tuple[Suit, ...] = (Suit.SPADE, Suit.CLUB, Suit.DIAMOND, Suit.HEART)
SIDES: Tuple[Side, ...] = (Side.BID, Side.OFFER)

SUIT_SYMBOLS = {
    Suit.SPADE: "♠",
    Suit.CLUB: "♣",
    Suit.DIAMOND: "♦",
    Suit.HEART: "♥",
}
SUIT_COLORS = {
    Suit.SPADE: "black",
    Suit.CLUB: "black",
    Suit.DIAMOND: "red",
    Suit.HEART: "red",
}

# presentation tags handed out in roster order
PLAYER_COLORS = ["#386be6", "#33b282", "#ea4866", "#f5a623", "#8e5ad6"]

Hand = Dict[Suit, int]


def empty_hand() -> Hand:
    return {s: 0 for s in SUITS}


def zero_deltas() -> List[int]:
    return [0] * len(SUITS)


@dataclass(frozen=True)
class PlayerInfo:
    id: str
    name: str

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "name": self.name}


@dataclass
class Player:
    """
    A server-reported player snapshot: identity, cash and full hand.
    """
    info: PlayerInfo
    cash: int
    hand: Hand = field(default_factory=empty_hand)


@dataclass
class PlayerState:
    """
    Client-local, round-scoped view of one player.

    `suit_deltas` is the change since round start in SUITS order, not the
    absolute hand.
    """
    info: PlayerInfo
    cash: int = 0
    total_cards: int = 0
    suit_deltas: List[int] = field(default_factory=zero_deltas)
    color: str = ""

    def copy(self) -> "PlayerState":
        return PlayerState(
            info=self.info,
            cash=self.cash,
            total_cards=self.total_cards,
            suit_deltas=list(self.suit_deltas),
            color=self.color,
        )

    def delta(self, suit: Suit) -> int:
        return self.suit_deltas[suit.index]


@dataclass(frozen=True)
class Quote:
    player_id: str
    suit: Suit
    side: Side
    price: int


@dataclass(frozen=True)
class Trade:
    buyer: PlayerInfo
    seller: PlayerInfo
    suit: Suit
    price: int

    def describe(self) -> str:
        return f"{self.buyer.name} bought {self.suit.symbol} from {self.seller.name} at {self.price}"


@dataclass(frozen=True)
class Standing:
    """
    One row of a round-end or game-end ranking.
    """
    info: PlayerInfo
    cash: int
    hand: Hand
    suit_deltas: Tuple[int, ...]
    color: str
    goal_count: Optional[int] = None
    bonus: Optional[int] = None

    @property
    def total_cards(self) -> int:
        return sum(self.hand.values())
