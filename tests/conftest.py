import sys
from pathlib import Path

import pytest

# Ensure project root and this directory are importable for test modules
PROJECT_ROOT = Path(__file__).parent.parent
for path in (PROJECT_ROOT, Path(__file__).parent):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from figgie_client.models import PlayerInfo


@pytest.fixture
def roster():
    return [
        PlayerInfo(id="player_001", name="Alex"),
        PlayerInfo(id="robot_1", name="Robot 1"),
        PlayerInfo(id="robot_2", name="Robot 2"),
        PlayerInfo(id="robot_3", name="Robot 3"),
    ]


@pytest.fixture(autouse=True)
def clear_active_sessions():
    """
    Forget sessions a failing test left registered.
    """
    from figgie_client import session
    yield
    session._active_sessions.clear()
