import os
import logging

SERVER_URL = os.getenv("FIGGIE_SERVER_URL", "http://localhost:8080").rstrip("/")
WS_URL_TEMPLATE = os.getenv("FIGGIE_WS_URL", "ws://localhost:8080/ws/{room_id}/{player_id}")

ROUND_DURATION = int(os.getenv("FIGGIE_ROUND_DURATION", str(4 * 60)))  # seconds
if ROUND_DURATION <= 0:
    raise RuntimeError("FIGGIE_ROUND_DURATION must be a positive number of seconds")
TICK_INTERVAL = float(os.getenv("FIGGIE_TICK_INTERVAL", "1.0"))  # seconds
if TICK_INTERVAL <= 0:
    raise RuntimeError("FIGGIE_TICK_INTERVAL must be positive")
REQUEST_TIMEOUT = float(os.getenv("FIGGIE_REQUEST_TIMEOUT", "5"))
LOG_LEVEL = os.getenv("FIGGIE_LOG_LEVEL", "INFO").upper()

# Game constants
DECK_SIZE = 40
VALID_PLAYER_COUNTS = (4, 5)
MIN_ROBOTS = 3
CARD_VALUE_PER_GOAL_SUIT = 10

LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s %(message)s'


def configure_logging(level: str = LOG_LEVEL) -> None:
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)
