"""Generic record-and-playback of a step-driven model.

The component owns the simulation clock, the Live/Record/Playback mode and
a bounded, time-ordered history of opaque snapshots.  It knows nothing
about what a snapshot contains: the embedding model supplies callbacks to
advance itself, to take a snapshot and to restore one.

    Live      advance the model, keep no history
    Record    advance the model and append a snapshot per step
    Playback  do not advance; move the time cursor and restore the
              snapshot nearest to it
"""

from __future__ import annotations

import bisect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

S = TypeVar("S")


class PlaybackMode(str, Enum):
    LIVE = "live"
    RECORD = "record"
    PLAYBACK = "playback"


@dataclass(frozen=True)
class DataPoint(Generic[S]):
    time: float
    state: S


class RecordAndPlayback(Generic[S]):
    """Mode, time cursor and history for a model that produces snapshots of type S."""

    def __init__(
        self,
        advance: Callable[[float], None],
        snapshot: Callable[[], S],
        restore: Callable[[S], None],
        max_record_points: int,
        resume_from_playback: Optional[Callable[[], None]] = None,
    ) -> None:
        if max_record_points < 1:
            raise ValueError("max_record_points must be at least 1")
        self._advance = advance
        self._snapshot = snapshot
        self._restore = restore
        self._resume_from_playback = resume_from_playback
        self.max_record_points = max_record_points
        self._history: list[DataPoint[S]] = []
        self._times: list[float] = []
        self.mode = PlaybackMode.RECORD
        self.playback_speed = 1.0
        self.paused = False
        self.time = 0.0
        self.moving_backward = False

    # ------------------------------------------------------------------
    # Mode queries
    # ------------------------------------------------------------------
    @property
    def is_live(self) -> bool:
        return self.mode is PlaybackMode.LIVE

    @property
    def is_record(self) -> bool:
        return self.mode is PlaybackMode.RECORD

    @property
    def is_playback(self) -> bool:
        return self.mode is PlaybackMode.PLAYBACK

    @property
    def history(self) -> tuple[DataPoint[S], ...]:
        return tuple(self._history)

    @property
    def num_recorded_points(self) -> int:
        return len(self._history)

    def is_recording_full(self) -> bool:
        return len(self._history) >= self.max_record_points

    @property
    def min_recorded_time(self) -> float:
        return self._times[0] if self._times else 0.0

    @property
    def max_recorded_time(self) -> float:
        return self._times[-1] if self._times else 0.0

    @property
    def recorded_time_range(self) -> float:
        return self.max_recorded_time - self.min_recorded_time

    @property
    def playback_dt(self) -> float:
        """Average spacing of recorded points, used as the playback increment."""
        if not self._history:
            return 0.0
        if len(self._history) == 1:
            return self._times[0]
        return (self._times[-1] - self._times[0]) / len(self._times)

    # ------------------------------------------------------------------
    # Stepping
    # ------------------------------------------------------------------
    def step(self, dt: float) -> None:
        """Advance the active mode by one clock tick unless paused."""
        if not self.paused:
            self.step_mode(dt)

    def step_mode(self, dt: float) -> None:
        if self.mode is PlaybackMode.LIVE:
            self.set_time(self.time + dt)
            self._advance(dt)
        elif self.mode is PlaybackMode.RECORD:
            self.set_time(self.time + dt)
            self._advance(dt)
            self.add_recorded_point(DataPoint(self.time, self._snapshot()))
        else:
            self._step_playback(dt)

    def _step_playback(self, dt: float) -> None:
        # A negative tick plays in the opposite direction of the set speed.
        direction = -self.playback_speed if dt < 0 else self.playback_speed
        increment = abs(self.playback_speed) * self.playback_dt
        if direction > 0:
            if self.time < self.max_recorded_time:
                self.set_time(min(self.time + increment, self.max_recorded_time))
            else:
                self.paused = True
        elif direction < 0:
            if self.time > self.min_recorded_time:
                self.set_time(max(self.time - increment, self.min_recorded_time))
            else:
                self.paused = True

    # ------------------------------------------------------------------
    # Time cursor and history
    # ------------------------------------------------------------------
    def set_time(self, time: float) -> None:
        """Move the cursor; in playback this restores the nearest snapshot."""
        self.moving_backward = time < self.time
        self.time = time
        if self.is_playback and self._history:
            self._restore(self.get_playback_state().state)

    def get_playback_state(self) -> DataPoint[S]:
        """The recorded point closest in time to the cursor (earlier wins ties)."""
        if not self._history:
            raise LookupError("No recorded history")
        index = bisect.bisect_left(self._times, self.time)
        if index == 0:
            return self._history[0]
        if index == len(self._times):
            return self._history[-1]
        before = self._times[index - 1]
        after = self._times[index]
        if abs(self.time - before) <= abs(after - self.time):
            return self._history[index - 1]
        return self._history[index]

    def add_recorded_point(self, point: DataPoint[S]) -> None:
        if self._history and point.time < self._times[0]:
            raise ValueError(
                f"Recorded point at t={point.time} precedes first point at t={self._times[0]}"
            )
        self._history.append(point)
        self._times.append(point.time)
        while len(self._history) > self.max_record_points:
            del self._history[0]
            del self._times[0]

    def clear_history_remainder(self) -> None:
        """Drop every point at or after the cursor."""
        keep = bisect.bisect_left(self._times, self.time)
        del self._history[keep:]
        del self._times[keep:]

    def clear_history(self) -> None:
        self._history.clear()
        self._times.clear()
        self.set_time(0.0)
        logger.info("Recording history cleared")

    # ------------------------------------------------------------------
    # Mode switching
    # ------------------------------------------------------------------
    def set_playback(self, speed: float) -> None:
        self.playback_speed = speed
        self._set_mode(PlaybackMode.PLAYBACK)
        self.paused = False

    def set_record(self, record: bool) -> None:
        """Switch to Record (or Live when `record` is False); always resumes playing."""
        target = PlaybackMode.RECORD if record else PlaybackMode.LIVE
        if record and self.is_playback:
            # Recording from a scrubbed point invalidates the future.
            self.clear_history_remainder()
        self._set_mode(target)
        self.paused = False

    def set_live(self) -> None:
        self.set_record(False)

    def _set_mode(self, mode: PlaybackMode) -> None:
        if mode is self.mode:
            return
        leaving_playback = self.is_playback
        logger.debug("Switching %s -> %s at t=%.6f", self.mode.value, mode.value, self.time)
        self.mode = mode
        if leaving_playback and self._resume_from_playback is not None:
            self._resume_from_playback()

    def rewind(self) -> None:
        self.set_time(self.min_recorded_time)

    def reset_all(self) -> None:
        self.playback_speed = 1.0
        self.clear_history()
        self.mode = PlaybackMode.RECORD
        self.paused = False
        self.moving_backward = False
