import logging
import random
import string
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests

from figgie_client.config import MIN_ROBOTS, REQUEST_TIMEOUT, SERVER_URL, VALID_PLAYER_COUNTS
from figgie_client.errors import BootstrapError, MissingSessionError
from figgie_client.models import PlayerInfo

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionBootstrap:
    """
    What a session needs before it can connect: the room, its roster and
    which roster entry is this client.
    """
    room_id: str
    room_name: str
    self_player_id: str
    players: List[PlayerInfo] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: Optional[Dict[str, Any]], self_player_id: Optional[str]) -> "SessionBootstrap":
        """
        Build from a room-creation payload.
        Raises MissingSessionError if anything needed to enter the room is absent.
        """
        if not payload or not isinstance(payload, dict):
            raise MissingSessionError("No room payload")
        room_id = payload.get("room_id")
        if not room_id:
            raise MissingSessionError("Room payload has no room_id")
        raw_players = payload.get("players")
        if not isinstance(raw_players, list) or not raw_players:
            raise MissingSessionError("Room payload has no players")
        players = []
        for p in raw_players:
            if not isinstance(p, dict) or not p.get("id"):
                raise MissingSessionError(f"Malformed player entry: {p!r}")
            players.append(PlayerInfo(id=str(p["id"]), name=str(p.get("name") or p["id"])))
        if not self_player_id or all(p.id != self_player_id for p in players):
            raise MissingSessionError(f"Player {self_player_id!r} is not seated in room {room_id}")
        return cls(
            room_id=str(room_id),
            room_name=str(payload.get("room_name") or room_id),
            self_player_id=self_player_id,
            players=players,
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "room_name": self.room_name,
            "room_id": self.room_id,
            "players": [p.to_dict() for p in self.players],
        }

    @property
    def me(self) -> PlayerInfo:
        return next(p for p in self.players if p.id == self.self_player_id)


def robot_players(count: int) -> List[PlayerInfo]:
    return [PlayerInfo(id=f"robot_{i + 1}", name=f"Robot {i + 1}") for i in range(count)]


def new_room_id(rng: Optional[random.Random] = None) -> str:
    """Random id shaped like R123-456-ABCD."""
    rng = rng or random.Random()
    digits = "".join(rng.choice(string.digits) for _ in range(6))
    letters = "".join(rng.choice(string.ascii_uppercase) for _ in range(4))
    return f"R{digits[:3]}-{digits[3:]}-{letters}"


def create_room(
    me: PlayerInfo,
    robots: List[PlayerInfo],
    room_name: Optional[str] = None,
    room_id: Optional[str] = None,
    server_url: str = SERVER_URL,
    timeout: float = REQUEST_TIMEOUT,
) -> SessionBootstrap:
    """
    Seat this player with robots and ask the server to start the game.
    """
    num_players = len(robots) + 1
    if num_players not in VALID_PLAYER_COUNTS or len(robots) < MIN_ROBOTS:
        raise BootstrapError(f"Number of players must be 4 or 5, got {num_players}")
    room_id = room_id or new_room_id()
    bootstrap = SessionBootstrap(
        room_id=room_id,
        room_name=room_name or f"{me.name}'s room",
        self_player_id=me.id,
        players=[me, *robots],
    )
    url = f"{server_url.rstrip('/')}/start"
    logger.info(f"Starting room {room_id} with {num_players} players")
    try:
        response = requests.post(url, json=bootstrap.to_payload(), timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as exc:
        raise BootstrapError(f"Failed to start room at {url}: {exc}") from exc
    return bootstrap
