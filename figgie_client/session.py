"""
A live game session for one (room, player) pair.

The session owns the aggregate state and the two things feeding it: the
channel's event stream and the once-per-second countdown. Both run as tasks
on one asyncio loop, so state changes never interleave inside a step.
"""
import asyncio
import logging
import time
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional, Set, Tuple, Union

import websockets

from figgie_client.actions import U8_MAX, check_uint
from figgie_client.bootstrap import SessionBootstrap
from figgie_client.channel import Channel, channel_url
from figgie_client.config import ROUND_DURATION, TICK_INTERVAL
from figgie_client.dispatcher import ActionDispatcher
from figgie_client.errors import MissingSessionError, SessionAlreadyActiveError
from figgie_client.events import Event, GameEnded, RoundEnded, RoundStarted, TradeExecuted
from figgie_client.lifecycle import Countdown, Phase, RoundLifecycle
from figgie_client.models import Side, Standing, Suit, Trade
from figgie_client.reducer import SessionState, reduce, start_provisional_round

logger = logging.getLogger(__name__)

# (room_id, player_id) pairs with an open session in this process
_active_sessions: Set[Tuple[str, str]] = set()

# Type aliases for handlers
HandlerEvent = Callable[[Event, SessionState], None]
HandlerTick = Callable[[int], None]
HandlerTrade = Callable[[Trade], None]
HandlerRoundStart = Callable[[RoundLifecycle], None]
HandlerRoundEnd = Callable[[List[Standing], Suit], None]
HandlerGameEnd = Callable[[List[Standing]], None]


class GameSession:
    def __init__(
        self,
        bootstrap: Optional[SessionBootstrap],
        url: Optional[str] = None,
        connect: Callable = websockets.connect,
        clock: Callable[[], float] = time.time,
        tick_interval: float = TICK_INTERVAL,
        round_duration: int = ROUND_DURATION,
    ) -> None:
        """
        Args:
            bootstrap: Room and roster from room creation. Required.
            url: Channel URL; built from the configured template if omitted.
            connect: WebSocket connect coroutine, replaceable in tests.
            clock: Returns unix seconds; the countdown reads it every tick.
            tick_interval: Seconds between countdown ticks.
            round_duration: Round length in seconds.
        """
        if bootstrap is None:
            raise MissingSessionError("Cannot enter a game without a room payload")
        self.bootstrap = bootstrap
        self.room_id = bootstrap.room_id
        self.player_id = bootstrap.self_player_id
        self.state = SessionState.initial(self.room_id, self.player_id, bootstrap.players,
                                          round_duration=round_duration)
        self.channel = Channel(url or channel_url(self.room_id, self.player_id), connect=connect)
        self.dispatcher = ActionDispatcher(self.channel, self.room_id, self.player_id)
        self.countdown = Countdown(clock)
        self._clock = clock
        self._tick_interval = tick_interval
        self._ticker: Optional[asyncio.Task] = None
        self._registered = False

        self._handlers: Dict[str, List[Callable[..., None]]] = {
            "event": [],       # HandlerEvent
            "tick": [],        # HandlerTick
            "trade": [],       # HandlerTrade
            "round_start": [], # HandlerRoundStart
            "round_end": [],   # HandlerRoundEnd
            "game_end": [],    # HandlerGameEnd
        }

    @property
    def key(self) -> Tuple[str, str]:
        return (self.room_id, self.player_id)

    @property
    def is_open(self) -> bool:
        return self._registered

    @property
    def remaining(self) -> Optional[int]:
        lc = self.state.lifecycle
        if lc is None:
            return None
        return lc.remaining(self._clock()) if lc.phase is Phase.ACTIVE else 0

    async def __aenter__(self) -> "GameSession":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def open(self) -> None:
        if self._registered:
            return
        if self.key in _active_sessions:
            raise SessionAlreadyActiveError(f"Session for {self.player_id} in room {self.room_id} is already open")
        _active_sessions.add(self.key)
        self._registered = True
        try:
            await self.channel.open()
        except BaseException:
            _active_sessions.discard(self.key)
            self._registered = False
            raise
        self._ticker = asyncio.create_task(self._tick_loop())
        logger.info(f"Session opened for {self.player_id} in room {self.room_id}")

    async def close(self) -> None:
        """Stop the countdown and close the channel. Safe to call repeatedly."""
        ticker, self._ticker = self._ticker, None
        if ticker is not None:
            ticker.cancel()
        try:
            await self.channel.close()
        finally:
            if self._registered:
                _active_sessions.discard(self.key)
                self._registered = False
                logger.info(f"Session closed for {self.player_id} in room {self.room_id}")

    async def run(self) -> SessionState:
        """
        Consume events until the game ends or the channel closes, then tear
        the session down. Returns the final state.
        """
        try:
            async for event in self.channel.events():
                self.apply(event)
                if self.state.game_over:
                    break
        finally:
            await self.close()
        return self.state

    def apply(self, event: Event) -> SessionState:
        previous = self.state
        self.state = reduce(previous, event)
        if self.state is previous:
            return self.state
        self._fire("event", event, self.state)
        if isinstance(event, TradeExecuted):
            self._fire("trade", self.state.trades.last)
        elif isinstance(event, RoundStarted):
            self._fire("round_start", self.state.lifecycle)
        elif isinstance(event, RoundEnded):
            self._fire("round_end", self.state.round_results, self.state.goal_suit)
        elif isinstance(event, GameEnded):
            self._fire("game_end", self.state.final_standings)
        return self.state

    async def tick(self) -> Optional[int]:
        """
        One countdown step. On the tick that sees the round expire the
        lifecycle moves to Ending before EndRound is sent, so a RoundEnded
        arriving during the send still lands on a consistent phase.
        """
        remaining, expired = self.countdown.tick(self.state.lifecycle)
        if expired is not None:
            self.state = replace(self.state, lifecycle=expired)
            await self.dispatcher.end_round(expired.round_id)
        if remaining is not None:
            self._fire("tick", remaining)
        return remaining

    async def _tick_loop(self) -> None:
        while True:
            try:
                await self.tick()
            except Exception:
                logger.exception("Countdown tick failed")
            await asyncio.sleep(self._tick_interval)

    # User actions
    async def place_quote(self, suit: Union[Suit, str], side: Union[Side, str], price: int) -> bool:
        return await self.dispatcher.place_quote(suit, side, price)

    async def cancel_quote(self, suit: Union[Suit, str], side: Union[Side, str], price: int) -> bool:
        return await self.dispatcher.cancel_quote(suit, side, price)

    async def end_round(self) -> bool:
        lc = self.state.lifecycle
        if lc is None:
            logger.warning("No round to end")
            return False
        if lc.phase is Phase.ACTIVE:
            # same transition the countdown makes, so it will not fire again
            self.state = replace(self.state, lifecycle=replace(lc, phase=Phase.ENDING, expiry_fired=True))
        return await self.dispatcher.end_round(lc.round_id)

    async def start_next_round(self) -> bool:
        """
        From Ended, ask for the next round and show it as started right away.
        The server's RoundStarted later replaces the provisional state.
        """
        lc = self.state.lifecycle
        if lc is None or lc.phase is not Phase.ENDED:
            logger.warning(f"Cannot start a new round in phase {lc.phase.value if lc else 'none'}")
            return False
        round_id = check_uint(lc.round_id + 1, "round_id", U8_MAX)
        previous = self.state
        provisional = start_provisional_round(previous, round_id, self._clock())
        self.state = provisional
        sent = await self.dispatcher.start_round(round_id)
        if self.state is not provisional:
            # the confirmed RoundStarted landed during the send
            return sent
        if not sent:
            self.state = previous
            return False
        self._fire("round_start", provisional.lifecycle)
        return True

    async def end_game(self) -> bool:
        """Send EndGame and leave without waiting for GameEnded."""
        lc = self.state.lifecycle
        try:
            sent = await self.dispatcher.end_game(lc.round_id if lc else 0)
        finally:
            await self.close()
        return sent

    # Event registration methods
    def on_event(self, fn: HandlerEvent) -> HandlerEvent:
        self._handlers["event"].append(fn)
        return fn

    def on_tick(self, fn: HandlerTick) -> HandlerTick:
        self._handlers["tick"].append(fn)
        return fn

    def on_trade(self, fn: HandlerTrade) -> HandlerTrade:
        self._handlers["trade"].append(fn)
        return fn

    def on_round_start(self, fn: HandlerRoundStart) -> HandlerRoundStart:
        self._handlers["round_start"].append(fn)
        return fn

    def on_round_end(self, fn: HandlerRoundEnd) -> HandlerRoundEnd:
        self._handlers["round_end"].append(fn)
        return fn

    def on_game_end(self, fn: HandlerGameEnd) -> HandlerGameEnd:
        self._handlers["game_end"].append(fn)
        return fn

    def _fire(self, kind: str, *args: Any) -> None:
        for fn in list(self._handlers[kind]):
            try:
                fn(*args)
            except Exception:
                logger.exception(f"on_{kind} error")
