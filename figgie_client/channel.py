"""
WebSocket channel to the game server, one per (room, player).
"""
import logging
from typing import AsyncIterator, Callable

import websockets
import websockets.exceptions

from figgie_client.actions import Action, encode_action
from figgie_client.config import WS_URL_TEMPLATE
from figgie_client.errors import ChannelClosedError, EventParseError
from figgie_client.events import Event, parse_event

logger = logging.getLogger(__name__)


def channel_url(room_id: str, player_id: str, template: str = WS_URL_TEMPLATE) -> str:
    return template.format(room_id=room_id, player_id=player_id)


class Channel:
    """
    Inbound messages come out of `events()` as parsed Events; outbound
    Actions go in through `send()`. There is no reconnect: once the socket
    closes the channel stays closed.
    """

    def __init__(self, url: str, connect: Callable = websockets.connect) -> None:
        self.url = url
        self._connect = connect
        self._ws = None
        self.parse_errors = 0

    @property
    def is_open(self) -> bool:
        return self._ws is not None

    async def open(self) -> None:
        if self._ws is not None:
            return
        logger.info(f"Connecting to {self.url}")
        self._ws = await self._connect(self.url)
        logger.info(f"Connected to {self.url}")

    async def send(self, action: Action) -> None:
        if self._ws is None:
            raise ChannelClosedError(f"Channel to {self.url} is closed")
        message = encode_action(action)
        try:
            await self._ws.send(message)
        except (websockets.exceptions.ConnectionClosed, OSError) as exc:
            self._ws = None
            raise ChannelClosedError(f"Channel to {self.url} closed during send: {exc}") from exc
        logger.debug(f"Sent {message}")

    async def events(self) -> AsyncIterator[Event]:
        """
        Yield events in arrival order until the socket closes.
        Malformed messages are logged and skipped.
        """
        ws = self._ws
        if ws is None:
            return
        try:
            async for message in ws:
                try:
                    event = parse_event(message)
                except EventParseError as exc:
                    self.parse_errors += 1
                    logger.warning(f"Dropping malformed message: {exc}")
                    continue
                yield event
        except websockets.exceptions.ConnectionClosed as exc:
            logger.warning(f"Connection to {self.url} closed: {exc}")
        finally:
            if self._ws is ws:
                self._ws = None

    async def close(self) -> None:
        ws, self._ws = self._ws, None
        if ws is not None:
            await ws.close()
            logger.info(f"Closed channel to {self.url}")
