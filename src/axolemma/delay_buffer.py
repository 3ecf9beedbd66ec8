"""Fixed-capacity ring of (value, step duration) pairs.

Answers "what was this value roughly `delay` seconds ago" for quantities that
are sampled once per clock tick with a possibly varying tick length.  No
interpolation is done; the nearest recorded sample is returned.
"""

from __future__ import annotations

import math

import numpy as np

# Step durations closer than this are treated as equal.
DIFFERENCE_RESOLUTION = 1e-15


class DelayBuffer:
    """Circular buffer sized for `max_delay` at the smallest expected step."""

    def __init__(self, max_delay: float, min_time_step: float) -> None:
        if max_delay <= 0 or min_time_step <= 0:
            raise ValueError("max_delay and min_time_step must be positive")
        self.num_entries = int(math.ceil(max_delay / min_time_step))
        self._values = np.zeros(self.num_entries, dtype=float)
        self._durations = np.zeros(self.num_entries, dtype=float)
        self.clear()

    @property
    def filling(self) -> bool:
        """True until the ring has wrapped for the first time."""
        return self._filling

    @property
    def all_durations_equal(self) -> bool:
        return self._all_durations_equal

    def __len__(self) -> int:
        if self._filling:
            return self._head - self._tail
        return self.num_entries - 1

    def add_value(self, value: float, time_step: float) -> None:
        """Append a sample, overwriting the oldest one once the ring is full."""
        self._values[self._head] = value
        self._durations[self._head] = time_step
        self._head = (self._head + 1) % self.num_entries
        if self._head == self._tail:
            # The tail was just overwritten; once full the ring stays full.
            self._tail = (self._tail + 1) % self.num_entries
            self._filling = False

        if self._previous_time_step < 0:
            self._previous_time_step = time_step
            self._count_at_this_time_step = 1
            return

        if abs(time_step - self._previous_time_step) > DIFFERENCE_RESOLUTION:
            self._all_durations_equal = False
            self._count_at_this_time_step = 1
        elif not self._all_durations_equal:
            # Equal again once every slot holds the current step duration.
            self._count_at_this_time_step += 1
            if self._count_at_this_time_step >= self.num_entries:
                self._all_durations_equal = True
        self._previous_time_step = time_step

    def get_delayed_value(self, delay: float) -> float:
        """Return the value recorded approximately `delay` seconds ago.

        Returns 0 when nothing has been recorded since the last clear, and
        the oldest available value when the request reaches past the data.
        """
        if self._previous_time_step <= 0:
            return 0.0

        if self._all_durations_equal:
            # This buffer holds no undelayed value, so the offset is at least 1.
            offset = max(int(round(delay / self._previous_time_step)), 1)
            if offset > len(self):
                return float(self._values[self._tail])
            index = (self._head - offset) % self.num_entries
            return float(self._values[index])

        index = (self._head - 1) % self.num_entries
        accumulated = 0.0
        while True:
            accumulated += self._durations[index]
            if accumulated >= delay or index == self._tail:
                break
            index = (index - 1) % self.num_entries
        return float(self._values[index])

    def clear(self) -> None:
        self._head = 0
        self._tail = 0
        self._previous_time_step = -1.0
        self._count_at_this_time_step = 0
        self._all_durations_equal = True
        self._filling = True

    def copy(self) -> DelayBuffer:
        clone = DelayBuffer.__new__(DelayBuffer)
        clone.num_entries = self.num_entries
        clone._values = self._values.copy()
        clone._durations = self._durations.copy()
        clone._head = self._head
        clone._tail = self._tail
        clone._previous_time_step = self._previous_time_step
        clone._count_at_this_time_step = self._count_at_this_time_step
        clone._all_durations_equal = self._all_durations_equal
        clone._filling = self._filling
        return clone
