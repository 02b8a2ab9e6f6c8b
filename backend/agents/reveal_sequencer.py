"""
Reveal Sequencer — timed presentation phases around an already-scored answer.

  hit:          idle → lock_in → buildup → reveal → idle
  miss:         idle → lock_in → idle
  between rounds: idle → interstitial → idle

Only one timer is pending at a time. Starting any sequence (or reset) cancels
it first, and every scheduled callback carries a generation token, so a
superseded timer is a no-op even if its handle could not be cancelled.
The sequencer never changes the result it presents.
"""
import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Dict, Optional, Protocol

from models.game import SubmitAnswerResponse

logger = logging.getLogger(__name__)


class RevealPhase(str, Enum):
    IDLE = "idle"
    LOCK_IN = "lock_in"
    BUILDUP = "buildup"
    REVEAL = "reveal"
    INTERSTITIAL = "interstitial"


# Seconds. The last four are display-only timings the client animates with.
TIMING: Dict[str, float] = {
    "LOCK_IN": 0.2,
    "BUILDUP": 1.5,
    "RESULT_FLASH": 0.3,
    "INTERSTITIAL": 1.8,
    "MISS_SHAKE": 0.4,
    "SCORE_COUNT": 0.8,
    "RANK_REVEAL_DELAY": 0.4,
    "SCORE_TICK": 0.016,
}


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> Any:
        """Run callback after delay seconds; return a handle with cancel()."""
        ...


class AsyncioScheduler:
    """Default scheduler on the running event loop."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return asyncio.get_running_loop().call_later(delay, callback)


class RevealSequencer:
    def __init__(
        self,
        scheduler: Optional[Scheduler] = None,
        on_phase_change: Optional[Callable[[RevealPhase], None]] = None,
        timing: Optional[Dict[str, float]] = None,
    ):
        self.scheduler = scheduler or AsyncioScheduler()
        self.on_phase_change = on_phase_change
        self.timing = {**TIMING, **(timing or {})}
        self._phase = RevealPhase.IDLE
        self._handle = None
        self._generation = 0

    @property
    def phase(self) -> RevealPhase:
        return self._phase

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def _set_phase(self, phase: RevealPhase) -> None:
        if phase == self._phase:
            return
        self._phase = phase
        if self.on_phase_change:
            self.on_phase_change(phase)

    def _cancel(self) -> None:
        self._generation += 1
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _schedule(self, key: str, step: Callable[[], None]) -> None:
        self._cancel()
        token = self._generation

        def fire() -> None:
            if token != self._generation:
                return
            self._handle = None
            step()

        self._handle = self.scheduler.call_later(self.timing[key], fire)

    # ── Sequences ─────────────────────────────────────────────────────────────

    def start_hit_reveal(self, on_reveal: Optional[Callable[[], None]] = None) -> None:
        def to_buildup() -> None:
            self._set_phase(RevealPhase.BUILDUP)
            self._schedule("BUILDUP", to_reveal)

        def to_reveal() -> None:
            self._set_phase(RevealPhase.REVEAL)
            self._schedule("RESULT_FLASH", lambda: self._set_phase(RevealPhase.IDLE))
            if on_reveal:
                on_reveal()

        self._cancel()
        self._set_phase(RevealPhase.LOCK_IN)
        self._schedule("LOCK_IN", to_buildup)

    def start_miss_reveal(self, on_miss: Optional[Callable[[], None]] = None) -> None:
        def to_idle() -> None:
            self._set_phase(RevealPhase.IDLE)
            if on_miss:
                on_miss()

        self._cancel()
        self._set_phase(RevealPhase.LOCK_IN)
        self._schedule("LOCK_IN", to_idle)

    def show_interstitial(self, on_done: Optional[Callable[[], None]] = None) -> None:
        def to_idle() -> None:
            self._set_phase(RevealPhase.IDLE)
            if on_done:
                on_done()

        self._cancel()
        self._set_phase(RevealPhase.INTERSTITIAL)
        self._schedule("INTERSTITIAL", to_idle)

    def reset(self) -> None:
        """Cancel any pending timer and return to idle. Safe to call repeatedly."""
        self._cancel()
        self._set_phase(RevealPhase.IDLE)

    def present(
        self,
        result: SubmitAnswerResponse,
        on_reveal: Optional[Callable[[SubmitAnswerResponse], None]] = None,
        on_miss: Optional[Callable[[SubmitAnswerResponse], None]] = None,
    ) -> None:
        """Run the hit or miss sequence for an authoritative submission result."""
        if result.on_list:
            self.start_hit_reveal((lambda: on_reveal(result)) if on_reveal else None)
        else:
            self.start_miss_reveal((lambda: on_miss(result)) if on_miss else None)
