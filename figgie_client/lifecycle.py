"""
Round lifecycle: Active -> Ending -> Ended.

Two producers can end a round: the local countdown (Active -> Ending, which
also emits an EndRound action) and the server's RoundEnded event (any phase
-> Ended). Both transitions are compare-and-set on the phase, so applying
either one twice, or both in either order, converges to the same state.
"""
import logging
import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from figgie_client.config import ROUND_DURATION

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    ACTIVE = "active"
    ENDING = "ending"
    ENDED = "ended"


@dataclass(frozen=True)
class RoundLifecycle:
    round_id: int
    start_timestamp: float
    phase: Phase = Phase.ACTIVE
    duration: int = ROUND_DURATION
    expiry_fired: bool = False
    # set when the round was started locally and RoundStarted has not confirmed it
    provisional: bool = False

    @property
    def deadline(self) -> float:
        return self.start_timestamp + self.duration

    def remaining(self, now: float) -> int:
        """Whole seconds left, recomputed from the start anchor and clamped at zero."""
        return max(0, math.ceil(self.duration - (now - self.start_timestamp)))

    def expire(self, now: float) -> Optional["RoundLifecycle"]:
        """
        Countdown step. Returns the Ending lifecycle when this call is the one
        that observes expiry, otherwise None.
        """
        if self.phase is not Phase.ACTIVE or self.expiry_fired:
            return None
        if self.remaining(now) > 0:
            return None
        logger.info(f"Round {self.round_id} countdown expired")
        return replace(self, phase=Phase.ENDING, expiry_fired=True)

    def end(self) -> "RoundLifecycle":
        """Server-confirmed end; a no-op on an already ended round."""
        if self.phase is Phase.ENDED:
            return self
        return replace(self, phase=Phase.ENDED)


def begin_round(round_id: int, start_timestamp: float, duration: int = ROUND_DURATION,
                provisional: bool = False) -> RoundLifecycle:
    return RoundLifecycle(
        round_id=round_id,
        start_timestamp=start_timestamp,
        phase=Phase.ACTIVE,
        duration=duration,
        provisional=provisional,
    )


class Countdown:
    """
    Drives a lifecycle from clock readings.

    Holds no round state of its own: every tick reads the current lifecycle,
    so a new round (or a reload) simply re-anchors to the new start time.
    """

    def __init__(self, clock) -> None:
        self._clock = clock

    def tick(self, lifecycle: Optional[RoundLifecycle]):
        """
        Returns (remaining, expired_lifecycle). remaining is None before the
        first round; expired_lifecycle is set only on the expiring tick.
        """
        if lifecycle is None:
            return None, None
        now = self._clock()
        remaining = lifecycle.remaining(now) if lifecycle.phase is Phase.ACTIVE else 0
        return remaining, lifecycle.expire(now)
