import asyncio
import json

import websockets.exceptions

from figgie_client.bootstrap import SessionBootstrap
from figgie_client.models import PlayerInfo

ROOM_ID = "R123-456-ABCD"
ME = "player_001"

ROSTER = [
    PlayerInfo(id=ME, name="Alex"),
    PlayerInfo(id="robot_1", name="Robot 1"),
    PlayerInfo(id="robot_2", name="Robot 2"),
    PlayerInfo(id="robot_3", name="Robot 3"),
]

_CLOSE = object()


class FakeWebSocket:
    """
    In-memory stand-in for a websockets connection.
    Queued messages are yielded in order until close() or finish().
    """

    def __init__(self, messages=()):
        self.sent = []
        self.closed = False
        self.url = None
        self._queue = asyncio.Queue()
        for m in messages:
            self.push(m)

    def push(self, message):
        if not isinstance(message, (str, bytes)):
            message = json.dumps(message)
        self._queue.put_nowait(message)

    def finish(self):
        """Server side hangs up after the queued messages."""
        self._queue.put_nowait(_CLOSE)

    @property
    def sent_json(self):
        return [json.loads(m) for m in self.sent]

    async def send(self, message):
        if self.closed:
            raise websockets.exceptions.ConnectionClosedOK(None, None)
        self.sent.append(message)

    async def close(self):
        if not self.closed:
            self.closed = True
            self._queue.put_nowait(_CLOSE)

    def __aiter__(self):
        return self

    async def __anext__(self):
        message = await self._queue.get()
        if message is _CLOSE:
            raise StopAsyncIteration
        return message


def connector(ws):
    async def connect(url):
        ws.url = url
        return ws
    return connect


def bootstrap(roster=None):
    return SessionBootstrap(room_id=ROOM_ID, room_name="Alex's room", self_player_id=ME,
                            players=list(roster or ROSTER))


def hand(spade=0, club=0, diamond=0, heart=0):
    return {"Spade": spade, "Club": club, "Diamond": diamond, "Heart": heart}


def player(pid, name, cash, player_hand=None):
    return {"info": {"id": pid, "name": name}, "cash": cash, "hand": player_hand or hand()}


def trade_msg(buyer, seller, suit, price):
    return {"type": "TradeExecuted", "payload": {"buyer": buyer, "seller": seller, "suit": suit, "price": price}}


def quote_msg(kind, player_id, suit, side, price):
    return {"type": kind, "payload": {"quote": {"player_id": player_id, "suit": suit, "side": side, "price": price}}}


def round_started_msg(round_id, server_time, pid=ME, cash=300, player_hand=None):
    return {
        "type": "RoundStarted",
        "payload": {
            "round_id": round_id,
            "server_time": server_time,
            "player": player(pid, "Alex", cash, player_hand or hand(3, 2, 4, 1)),
        },
    }


def round_ended_msg(round_id, server_time, goal_suit, players):
    return {
        "type": "RoundEnded",
        "payload": {"round_id": round_id, "server_time": server_time, "goal_suit": goal_suit, "players": players},
    }


def game_ended_msg(players):
    return {"type": "GameEnded", "payload": {"players": players}}
