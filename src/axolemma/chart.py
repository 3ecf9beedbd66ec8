"""Membrane-potential time series collected after each stimulus."""

from __future__ import annotations

import logging
from typing import Callable

import numpy as np

from .constants import TIME_SPAN

logger = logging.getLogger(__name__)


class MembranePotentialSeries:
    """Ordered (ms, mV) points covering one stimulus response.

    Times are milliseconds since the stimulus; the series reports itself
    full once the last point lies past `time_span` ms.
    """

    def __init__(self, time_span: float = TIME_SPAN) -> None:
        self.time_span = time_span
        self._times: list[float] = []
        self._potentials: list[float] = []
        self._clear_listeners: list[Callable[[], None]] = []

    def __len__(self) -> int:
        return len(self._times)

    def add_point(self, time_ms: float, potential_mv: float) -> None:
        if self._times and time_ms < self._times[0]:
            raise ValueError(
                f"Chart point at {time_ms} ms precedes first point at {self._times[0]} ms"
            )
        self._times.append(time_ms)
        self._potentials.append(potential_mv)

    def x(self, index: int) -> float:
        if index >= len(self._times):
            raise IndexError(f"No chart point at index {index}")
        return self._times[index]

    def y(self, index: int) -> float:
        if index >= len(self._potentials):
            raise IndexError(f"No chart point at index {index}")
        return self._potentials[index]

    @property
    def is_full(self) -> bool:
        return bool(self._times) and self._times[-1] > self.time_span

    def add_clear_listener(self, listener: Callable[[], None]) -> None:
        self._clear_listeners.append(listener)

    def clear(self) -> None:
        self._times.clear()
        self._potentials.clear()
        for listener in self._clear_listeners:
            listener()

    def to_array(self) -> np.ndarray:
        """Points as an (n, 2) float array of [ms, mV] rows."""
        if not self._times:
            return np.empty((0, 2), dtype=np.float64)
        return np.column_stack(
            (np.asarray(self._times, dtype=np.float64), np.asarray(self._potentials, dtype=np.float64))
        )

    def points(self) -> list[tuple[float, float]]:
        return list(zip(self._times, self._potentials))
