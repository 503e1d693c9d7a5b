import logging
from typing import Optional, Union

from figgie_client.actions import (
    Action, CancelQuote, EndGame, EndRound, PlaceQuote, StartRound, U32_MAX, U8_MAX, check_uint,
)
from figgie_client.channel import Channel
from figgie_client.errors import ChannelClosedError
from figgie_client.models import Side, Suit

logger = logging.getLogger(__name__)


class ActionDispatcher:
    """
    Turns intents into Actions and sends them once.

    Only checks that numbers fit the wire types; the server decides whether
    an action is legal. A send on a closed channel is dropped, logged and
    reported by returning False.
    """

    def __init__(self, channel: Channel, room_id: str, player_id: str) -> None:
        self.channel = channel
        self.room_id = room_id
        self.player_id = player_id
        self.last_error: Optional[ChannelClosedError] = None

    async def _send(self, action: Action) -> bool:
        try:
            await self.channel.send(action)
        except ChannelClosedError as exc:
            self.last_error = exc
            logger.warning(f"Dropped {type(action).__name__}: {exc}")
            return False
        self.last_error = None
        return True

    async def place_quote(self, suit: Union[Suit, str], side: Union[Side, str], price: int) -> bool:
        return await self._send(PlaceQuote(
            player_id=self.player_id,
            suit=Suit.parse(suit),
            side=Side.parse(side),
            price=check_uint(price, "price", U32_MAX),
        ))

    async def cancel_quote(self, suit: Union[Suit, str], side: Union[Side, str], price: int) -> bool:
        return await self._send(CancelQuote(
            player_id=self.player_id,
            suit=Suit.parse(suit),
            side=Side.parse(side),
            price=check_uint(price, "price", U32_MAX),
        ))

    async def start_round(self, round_id: int) -> bool:
        return await self._send(StartRound(round_id=check_uint(round_id, "round_id", U8_MAX),
                                           room_id=self.room_id))

    async def end_round(self, round_id: int) -> bool:
        return await self._send(EndRound(round_id=check_uint(round_id, "round_id", U8_MAX),
                                         room_id=self.room_id))

    async def end_game(self, round_id: int) -> bool:
        return await self._send(EndGame(
            room_id=self.room_id,
            round_id=check_uint(round_id, "round_id", U8_MAX),
            player_id=self.player_id,
        ))
