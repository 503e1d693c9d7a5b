"""
This package contains the client side of the Figgie trading game: the
locally mirrored market and player state, the event reducer that keeps it in
sync with the server, and the round countdown.
"""

from .bootstrap import SessionBootstrap, create_room, robot_players
from .models import PlayerInfo, Side, Suit, SUITS
from .reducer import SessionState, reduce
from .session import GameSession

__all__ = [
    "GameSession",
    "PlayerInfo",
    "SessionBootstrap",
    "SessionState",
    "Side",
    "Suit",
    "SUITS",
    "create_room",
    "reduce",
    "robot_players",
]
