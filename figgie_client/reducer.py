"""
Event reducer: ``reduce(state, event) -> new_state``.

The reducer never mutates the state it is given. Each handler copies the
aggregate, applies the event to the copy and returns it, so a caller holding
the previous state keeps a consistent snapshot.
"""
import logging
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, Iterable, List, Optional, Type

from figgie_client.book import QuoteBook, SuitMarket
from figgie_client.config import CARD_VALUE_PER_GOAL_SUIT, DECK_SIZE, ROUND_DURATION
from figgie_client.events import (
    Event, GameEnded, QuoteCanceled, QuotePlaced, RoundEnded, RoundStarted, TradeExecuted,
)
from figgie_client.ledger import PlayerLedger, TradeLog
from figgie_client.lifecycle import Phase, RoundLifecycle, begin_round
from figgie_client.models import (
    Hand, Player, PlayerInfo, PlayerState, Standing, Suit, SUITS, Trade, empty_hand, zero_deltas,
)

logger = logging.getLogger(__name__)


@dataclass
class SessionState:
    """
    Everything one session knows: book, ledger, trade log and round lifecycle.
    """
    room_id: str
    self_id: str
    players: PlayerLedger
    book: QuoteBook = field(default_factory=QuoteBook)
    trades: TradeLog = field(default_factory=TradeLog)
    lifecycle: Optional[RoundLifecycle] = None
    # own hand as dealt at round start
    hand: Hand = field(default_factory=empty_hand)
    goal_suit: Optional[Suit] = None
    round_results: List[Standing] = field(default_factory=list)
    final_standings: List[Standing] = field(default_factory=list)
    game_over: bool = False
    round_duration: int = ROUND_DURATION

    @classmethod
    def initial(cls, room_id: str, self_id: str, roster: Iterable[PlayerInfo],
                round_duration: int = ROUND_DURATION) -> "SessionState":
        players = PlayerLedger.from_roster(roster)
        if self_id not in players:
            raise ValueError(f"Player {self_id} is not in the roster")
        return cls(room_id=room_id, self_id=self_id, players=players, round_duration=round_duration)

    def copy(self) -> "SessionState":
        return replace(
            self,
            players=self.players.copy(),
            book=self.book.copy(),
            trades=self.trades.copy(),
            hand=dict(self.hand),
            round_results=list(self.round_results),
            final_standings=list(self.final_standings),
        )

    @property
    def me(self) -> PlayerState:
        return self.players[self.self_id]

    @property
    def phase(self) -> Optional[Phase]:
        return self.lifecycle.phase if self.lifecycle else None

    @property
    def round_id(self) -> Optional[int]:
        return self.lifecycle.round_id if self.lifecycle else None

    def current_hand(self) -> Hand:
        """Own hand now: the dealt hand moved by own trades this round."""
        me = self.me
        return {s: self.hand.get(s, 0) + me.delta(s) for s in SUITS}

    def market_view(self) -> Dict[Suit, SuitMarket]:
        return self.book.snapshot(self.players.name_of)


def deal_size(num_players: int) -> int:
    return DECK_SIZE // num_players if num_players else 0


def rank_by_cash(standings: Iterable[Standing]) -> List[Standing]:
    # sorted() keeps input order among equal keys even with reverse=True
    return sorted(standings, key=lambda s: s.cash, reverse=True)


def _standings(state: SessionState, players: List[Player], goal: Optional[Suit]) -> List[Standing]:
    rows = []
    for p in players:
        local = state.players.get(p.info.id)
        if local is None:
            logger.warning(f"Snapshot has player {p.info.id} who is not in the roster")
        goal_count = p.hand.get(goal, 0) if goal else None
        rows.append(Standing(
            info=local.info if local else p.info,
            cash=p.cash,
            hand=dict(p.hand),
            suit_deltas=tuple(local.suit_deltas if local else zero_deltas()),
            color=local.color if local else "",
            goal_count=goal_count,
            bonus=goal_count * CARD_VALUE_PER_GOAL_SUIT if goal else None,
        ))
        state.players.set_cash(p.info.id, p.cash)
        state.players.set_total_cards(p.info.id, sum(p.hand.values()))
    return rank_by_cash(rows)


def _trade_executed(state: SessionState, event: TradeExecuted) -> SessionState:
    new = state.copy()
    # any trade invalidates every cached quote, whatever the suit
    new.book.clear()
    unknown = new.players.apply_trade(event.buyer, event.seller, event.suit, event.price)
    if unknown:
        logger.warning(f"Trade references unknown players {unknown}")
    new.trades.append(Trade(
        buyer=new.players.info_of(event.buyer),
        seller=new.players.info_of(event.seller),
        suit=event.suit,
        price=event.price,
    ))
    return new


def _quote_placed(state: SessionState, event: QuotePlaced) -> SessionState:
    new = state.copy()
    new.book.place(event.player_id, event.suit, event.side, event.price)
    return new


def _quote_canceled(state: SessionState, event: QuoteCanceled) -> SessionState:
    new = state.copy()
    if not new.book.cancel(event.player_id, event.suit, event.side):
        logger.debug(f"Ignoring stale cancel from {event.player_id} on {event.suit.value} {event.side.value}")
    return new


def _round_started(state: SessionState, event: RoundStarted) -> SessionState:
    if event.player.info.id != state.self_id:
        logger.debug(f"Dropping RoundStarted addressed to {event.player.info.id}")
        return state
    if state.lifecycle is not None and event.round_id < state.lifecycle.round_id:
        logger.warning(f"Round id went backwards: {event.round_id} after {state.lifecycle.round_id}")
    new = state.copy()
    first_round = state.lifecycle is None
    new.hand = dict(event.player.hand)
    new.lifecycle = begin_round(event.round_id, event.server_time, duration=state.round_duration)
    new.trades.reset()
    new.book.clear()
    new.goal_suit = None
    new.round_results = []
    new.players.reset_round(deal_size(len(new.players)))
    new.players.set_total_cards(state.self_id, sum(event.player.hand.values()))
    if first_round:
        # everyone starts a game with the same cash
        for p in new.players:
            p.cash = event.player.cash
    else:
        new.players.set_cash(state.self_id, event.player.cash)
    logger.info(f"Round {event.round_id} started at {event.server_time}")
    return new


def _round_ended(state: SessionState, event: RoundEnded) -> SessionState:
    new = state.copy()
    lc = new.lifecycle
    if lc is None:
        logger.warning(f"RoundEnded for round {event.round_id} before any RoundStarted")
        lc = RoundLifecycle(round_id=event.round_id, start_timestamp=event.server_time,
                            duration=state.round_duration)
    elif lc.round_id != event.round_id:
        logger.warning(f"RoundEnded for round {event.round_id} while tracking round {lc.round_id}")
    new.lifecycle = replace(lc.end(), round_id=event.round_id, provisional=False)
    new.goal_suit = event.goal_suit
    new.round_results = _standings(new, event.players, event.goal_suit)
    logger.info(f"Round {event.round_id} ended, goal suit {event.goal_suit.value}")
    return new


def _game_ended(state: SessionState, event: GameEnded) -> SessionState:
    new = state.copy()
    if new.lifecycle is not None:
        new.lifecycle = new.lifecycle.end()
    new.final_standings = _standings(new, event.players, None)
    new.game_over = True
    logger.info("Game ended")
    return new


_REDUCERS: Dict[Type, Callable[[SessionState, Event], SessionState]] = {
    TradeExecuted: _trade_executed,
    QuotePlaced: _quote_placed,
    QuoteCanceled: _quote_canceled,
    RoundStarted: _round_started,
    RoundEnded: _round_ended,
    GameEnded: _game_ended,
}


def reduce(state: SessionState, event: Event) -> SessionState:
    if state.game_over:
        logger.debug(f"Game is over, ignoring {type(event).__name__}")
        return state
    handler = _REDUCERS.get(type(event))
    if handler is None:
        logger.warning(f"No reducer for {type(event).__name__}")
        return state
    return handler(state, event)


def start_provisional_round(state: SessionState, round_id: int, now: float) -> SessionState:
    """
    Local round start after a manual StartRound, before the server confirms.
    The next RoundStarted overwrites all of it.
    """
    new = state.copy()
    new.lifecycle = begin_round(round_id, now, duration=state.round_duration, provisional=True)
    new.hand = empty_hand()
    new.trades.reset()
    new.book.clear()
    new.goal_suit = None
    new.round_results = []
    new.players.reset_round(deal_size(len(new.players)))
    return new
