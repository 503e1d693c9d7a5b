from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from figgie_client.models import PlayerInfo, PlayerState, PLAYER_COLORS, Suit, Trade, zero_deltas


class PlayerLedger:
    """
    Per-player cash, card totals and suit deltas, keyed by player id.

    Roster order is preserved; the set of ids is fixed once built.
    """

    def __init__(self, players: Optional[Dict[str, PlayerState]] = None) -> None:
        self._players: Dict[str, PlayerState] = dict(players or {})

    @classmethod
    def from_roster(cls, roster: Iterable[PlayerInfo], cash: int = 0, total_cards: int = 0) -> "PlayerLedger":
        players = {}
        for idx, info in enumerate(roster):
            if info.id in players:
                raise ValueError(f"Duplicate player id in roster: {info.id}")
            players[info.id] = PlayerState(
                info=info,
                cash=cash,
                total_cards=total_cards,
                color=PLAYER_COLORS[idx % len(PLAYER_COLORS)],
            )
        return cls(players)

    def copy(self) -> "PlayerLedger":
        return PlayerLedger({pid: p.copy() for pid, p in self._players.items()})

    def get(self, player_id: str) -> Optional[PlayerState]:
        return self._players.get(player_id)

    def __getitem__(self, player_id: str) -> PlayerState:
        return self._players[player_id]

    def __contains__(self, player_id: object) -> bool:
        return player_id in self._players

    def __iter__(self) -> Iterator[PlayerState]:
        return iter(self._players.values())

    def __len__(self) -> int:
        return len(self._players)

    @property
    def ids(self) -> List[str]:
        return list(self._players)

    def info_of(self, player_id: str) -> PlayerInfo:
        """Identity for player_id; unknown ids display as themselves."""
        p = self._players.get(player_id)
        return p.info if p else PlayerInfo(id=player_id, name=player_id)

    def name_of(self, player_id: str) -> str:
        return self.info_of(player_id).name

    def apply_trade(self, buyer: str, seller: str, suit: Suit, price: int) -> List[str]:
        """
        Move one card of suit from seller to buyer against price.
        Returns the ids that are not in the roster (left untouched).
        """
        unknown = []
        b = self._players.get(buyer)
        if b is None:
            unknown.append(buyer)
        else:
            b.suit_deltas[suit.index] += 1
            b.total_cards += 1
            b.cash -= price
        s = self._players.get(seller)
        if s is None:
            unknown.append(seller)
        else:
            s.suit_deltas[suit.index] -= 1
            s.total_cards -= 1
            s.cash += price
        return unknown

    def reset_round(self, total_cards: int) -> None:
        for p in self._players.values():
            p.suit_deltas = zero_deltas()
            p.total_cards = total_cards

    def set_cash(self, player_id: str, cash: int) -> None:
        if player_id in self._players:
            self._players[player_id].cash = cash

    def set_total_cards(self, player_id: str, total_cards: int) -> None:
        if player_id in self._players:
            self._players[player_id].total_cards = total_cards


class TradeLog:
    """Executed trades of the current round, in arrival order."""

    def __init__(self, trades: Iterable[Trade] = ()) -> None:
        self._trades: List[Trade] = list(trades)

    def copy(self) -> "TradeLog":
        return TradeLog(self._trades)

    def append(self, trade: Trade) -> None:
        self._trades.append(trade)

    def reset(self) -> None:
        self._trades = []

    @property
    def entries(self) -> Tuple[Trade, ...]:
        return tuple(self._trades)

    @property
    def last(self) -> Optional[Trade]:
        return self._trades[-1] if self._trades else None

    def __len__(self) -> int:
        return len(self._trades)

    def __iter__(self) -> Iterator[Trade]:
        return iter(self._trades)
