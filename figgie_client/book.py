from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from figgie_client.models import Side, Suit, SUITS


@dataclass(frozen=True)
class BookEntry:
    player_id: str
    price: int


@dataclass(frozen=True)
class SuitMarket:
    """
    Display row for one suit: best bidder/bid and best seller/ask.
    """
    suit: Suit
    bidder: Optional[str] = None
    bid: Optional[int] = None
    seller: Optional[str] = None
    ask: Optional[int] = None


class QuoteBook:
    """
    Top-of-book mirror: at most one entry per (suit, side).

    The book never matches or ranks quotes itself; it records whatever the
    server last reported as the current best.
    """

    def __init__(self, entries: Optional[Dict[Tuple[Suit, Side], BookEntry]] = None) -> None:
        self._entries: Dict[Tuple[Suit, Side], BookEntry] = dict(entries or {})

    def copy(self) -> "QuoteBook":
        return QuoteBook(self._entries)

    def get(self, suit: Suit, side: Side) -> Optional[BookEntry]:
        return self._entries.get((suit, side))

    def best_bid(self, suit: Suit) -> Optional[BookEntry]:
        return self.get(suit, Side.BID)

    def best_ask(self, suit: Suit) -> Optional[BookEntry]:
        return self.get(suit, Side.OFFER)

    def place(self, player_id: str, suit: Suit, side: Side, price: int) -> None:
        self._entries[(suit, side)] = BookEntry(player_id=player_id, price=price)

    def cancel(self, player_id: str, suit: Suit, side: Side) -> bool:
        """Drop the entry only if player_id still owns it."""
        current = self._entries.get((suit, side))
        if current is None or current.player_id != player_id:
            return False
        del self._entries[(suit, side)]
        return True

    def clear(self) -> None:
        self._entries.clear()

    def is_empty(self) -> bool:
        return not self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def snapshot(self, name_of: Callable[[str], str] = str) -> Dict[Suit, SuitMarket]:
        rows = {}
        for suit in SUITS:
            bid = self.best_bid(suit)
            ask = self.best_ask(suit)
            rows[suit] = SuitMarket(
                suit=suit,
                bidder=name_of(bid.player_id) if bid else None,
                bid=bid.price if bid else None,
                seller=name_of(ask.player_id) if ask else None,
                ask=ask.price if ask else None,
            )
        return rows
