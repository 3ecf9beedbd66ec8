"""Constant-dt clock that drives a model from a frame loop.

A driver registers `NeuronModel.step` as a step listener and calls `tick`
once per frame; the CLI `run` command works this way.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from .constants import CLOCK_FRAME_RATE, DEFAULT_ACTION_POTENTIAL_CLOCK_DT

logger = logging.getLogger(__name__)

StepListener = Callable[[float], Any]


class NeuronClock:
    """Advances simulation time by a fixed `dt` per tick, regardless of wall time.

    Listeners receive the simulation time change of each step; single steps
    while paused may go backward, which in playback scrubs the timeline.
    """

    def __init__(
        self,
        frame_rate: int = CLOCK_FRAME_RATE,
        dt: float = DEFAULT_ACTION_POTENTIAL_CLOCK_DT,
    ) -> None:
        if frame_rate < 1:
            raise ValueError("frame_rate must be at least 1")
        if dt <= 0:
            raise ValueError("dt must be positive")
        self.frame_rate = frame_rate
        self.dt = dt
        self.paused = False
        self.simulation_time = 0.0
        self.wall_time = 0.0
        self._listeners: list[StepListener] = []

    def add_step_listener(self, listener: StepListener) -> None:
        self._listeners.append(listener)

    def remove_step_listener(self, listener: StepListener) -> None:
        self._listeners.remove(listener)

    @property
    def wall_dt(self) -> float:
        return 1.0 / self.frame_rate

    def tick(self) -> None:
        """One frame of the driver loop; no-op while paused."""
        if not self.paused:
            self._step(self.dt)

    def step_forward(self) -> None:
        if self.paused:
            self._step(self.dt)

    def step_back(self) -> None:
        if self.paused:
            self._step(-self.dt)

    def set_paused(self, paused: bool) -> None:
        self.paused = paused

    def _step(self, dt: float) -> None:
        self.simulation_time += dt
        self.wall_time += self.wall_dt if dt > 0 else -self.wall_dt
        for listener in list(self._listeners):
            listener(dt)

    def reset(self) -> None:
        self.simulation_time = 0.0
        self.wall_time = 0.0
        self.paused = False
        logger.debug("Clock reset")
