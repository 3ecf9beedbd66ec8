"""Membrane channels: gated and leak pores in the axon membrane.

Each channel keeps its own geometry, openness, inactivation and capture
timer.  While open, a channel periodically asks its owner (anything
implementing `ParticleCapture`) for an ion to pass through it.  The gated
channels derive their openness from delayed, per-instance staggered readings
of the Hodgkin-Huxley model; the leak channels are always open and modulate
their capture rate instead.

`step_in_time` returns True when openness or inactivation changed, which is
the only signal a view needs to decide whether to redraw a channel.
"""

from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Optional, Protocol, Union

from .capture_zone import NullCaptureZone, PieSliceCaptureZone
from .constants import DEFAULT_MAX_VELOCITY, MEMBRANE_THICKNESS, MIN_ACTION_POTENTIAL_CLOCK_DT
from .hodgkin_huxley import ModifiedHodgkinHuxleyModel
from .models import MembraneChannelType, MembraneCrossingDirection, ParticleType
from .motion import DualGateChannelTraversalMotionStrategy, TraverseChannelAndFadeMotionStrategy
from .particles import Particle

logger = logging.getLogger(__name__)

CHANNEL_HEIGHT = MEMBRANE_THICKNESS * 1.2   # nm, length along the channel axis
CHANNEL_WIDTH = MEMBRANE_THICKNESS * 0.5    # nm
SIDE_HEIGHT_TO_CHANNEL_HEIGHT_RATIO = 1.3
CAPTURE_ZONE_RADIUS = CHANNEL_WIDTH * 5

OPENNESS_OPEN_THRESHOLD = 0.2
INACTIVATION_OPEN_LIMIT = 0.7

CaptureZone = Union[PieSliceCaptureZone, NullCaptureZone]


class ParticleCapture(Protocol):
    """Owner that supplies particles to channels on request."""

    def request_particle_through_channel(
        self,
        particle_type: ParticleType,
        channel: MembraneChannel,
        max_velocity: float,
        direction: MembraneCrossingDirection,
    ) -> None:
        ...


# ======================================================================
# Snapshots
# ======================================================================
@dataclass(frozen=True)
class MembraneChannelState:
    openness: float
    inactivation_amount: float


class GateState(str, Enum):
    IDLE = "idle"
    OPENING = "opening"
    BECOMING_INACTIVE = "becoming_inactive"
    INACTIVATED = "inactivated"
    RESETTING = "resetting"


@dataclass(frozen=True)
class DualGatedChannelState(MembraneChannelState):
    gate_state: GateState
    state_transition_timer: float
    previous_normalized_conductance: float


# ======================================================================
# Base channel
# ======================================================================
class MembraneChannel:
    """Shared geometry, open test and capture-timer behaviour."""

    channel_type: ClassVar[MembraneChannelType]
    has_inactivation_gate: ClassVar[bool] = False
    particle_velocity: ClassVar[float] = DEFAULT_MAX_VELOCITY
    # (fixed rotational offset, angle of extent) of each capture zone, or None.
    interior_zone_shape: ClassVar[Optional[tuple[float, float]]] = None
    exterior_zone_shape: ClassVar[Optional[tuple[float, float]]] = None

    def __init__(
        self,
        particle_capture: ParticleCapture,
        hodgkin_huxley_model: ModifiedHodgkinHuxleyModel,
        rng: Optional[random.Random] = None,
        channel_width: float = CHANNEL_WIDTH,
        channel_height: float = CHANNEL_HEIGHT,
    ) -> None:
        self._particle_capture = particle_capture
        self.hodgkin_huxley_model = hodgkin_huxley_model
        self._rng = rng or random.Random()
        self.channel_width = channel_width
        self.channel_height = channel_height
        self.center = (0.0, 0.0)
        self.rotational_angle = 0.0     # radians, pointing toward the exterior
        self.openness = 0.0
        self.inactivation_amount = 0.0
        self.capture_countdown_timer = math.inf
        self.min_inter_capture_time = math.inf
        self.max_inter_capture_time = math.inf

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(center=({self.center[0]:.1f}, {self.center[1]:.1f}), "
            f"openness={self.openness:.2f}, inactivation={self.inactivation_amount:.2f})"
        )

    # ------------------------------------------------------------------
    # Geometry
    # ------------------------------------------------------------------
    @property
    def overall_size(self) -> tuple[float, float]:
        return (self.channel_width * 2.1, self.channel_height * SIDE_HEIGHT_TO_CHANNEL_HEIGHT_RATIO)

    def set_center_location(self, x: float, y: float) -> None:
        self.center = (x, y)

    def set_rotational_angle(self, angle: float) -> None:
        self.rotational_angle = angle

    def _zone(self, shape: Optional[tuple[float, float]]) -> CaptureZone:
        if shape is None:
            return NullCaptureZone()
        offset, extent = shape
        return PieSliceCaptureZone(
            self.center[0], self.center[1], CAPTURE_ZONE_RADIUS, offset, extent, self.rotational_angle
        )

    def interior_capture_zone(self) -> CaptureZone:
        return self._zone(self.interior_zone_shape)

    def exterior_capture_zone(self) -> CaptureZone:
        return self._zone(self.exterior_zone_shape)

    def is_point_in_channel(self, x: float, y: float) -> bool:
        """True if (x, y) lies in the channel body, taking rotation into account."""
        dx = x - self.center[0]
        dy = y - self.center[1]
        cos_a = math.cos(-self.rotational_angle)
        sin_a = math.sin(-self.rotational_angle)
        along = dx * cos_a - dy * sin_a
        across = dx * sin_a + dy * cos_a
        return abs(along) <= self.channel_height / 2 and abs(across) <= self.channel_width / 2

    # ------------------------------------------------------------------
    # Behaviour
    # ------------------------------------------------------------------
    def is_open(self) -> bool:
        return self.openness > OPENNESS_OPEN_THRESHOLD and self.inactivation_amount < INACTIVATION_OPEN_LIMIT

    def get_particle_type_to_capture(self) -> ParticleType:
        raise NotImplementedError(f"{type(self).__name__} does not capture particles")

    def choose_crossing_direction(self) -> MembraneCrossingDirection:
        raise NotImplementedError(f"{type(self).__name__} has no crossing direction")

    def step_in_time(self, dt: float) -> bool:
        """Advance timers and gating; return True if openness or inactivation changed."""
        before = (self.openness, self.inactivation_amount)
        self._step_capture_timer(dt)
        self._update_gating(dt)
        return (self.openness, self.inactivation_amount) != before

    def _step_capture_timer(self, dt: float) -> None:
        if not self.is_open():
            self.capture_countdown_timer = math.inf
            return
        if self.capture_countdown_timer == math.inf:
            return
        self.capture_countdown_timer -= dt
        if self.capture_countdown_timer <= 0:
            self._request_capture()
            self.restart_capture_countdown_timer(False)

    def _update_gating(self, dt: float) -> None:
        pass

    def _request_capture(self) -> None:
        self._particle_capture.request_particle_through_channel(
            self.get_particle_type_to_capture(),
            self,
            self.particle_velocity,
            self.choose_crossing_direction(),
        )

    def restart_capture_countdown_timer(self, capture_now: bool) -> None:
        """Resample the capture timer, optionally capturing immediately too."""
        if self.min_inter_capture_time < math.inf and self.max_inter_capture_time < math.inf:
            self.capture_countdown_timer = self.min_inter_capture_time + self._rng.random() * (
                self.max_inter_capture_time - self.min_inter_capture_time
            )
        else:
            self.capture_countdown_timer = math.inf
        if capture_now:
            self._request_capture()

    def child_rng(self) -> random.Random:
        """Independent generator for a particle handed to this channel."""
        return random.Random(self._rng.getrandbits(64))

    def move_particle_through_neuron_membrane(self, particle: Particle, max_velocity: float) -> None:
        particle.motion_strategy = TraverseChannelAndFadeMotionStrategy(
            self, particle.x, particle.y, max_velocity, self.child_rng()
        )

    def reset(self) -> None:
        self.openness = 0.0
        self.inactivation_amount = 0.0
        self.capture_countdown_timer = math.inf

    # ------------------------------------------------------------------
    # Playback
    # ------------------------------------------------------------------
    def get_state(self) -> MembraneChannelState:
        return MembraneChannelState(self.openness, self.inactivation_amount)

    def set_state(self, state: MembraneChannelState) -> None:
        self.openness = state.openness
        self.inactivation_amount = state.inactivation_amount


# ======================================================================
# Gated channels
# ======================================================================
class SodiumDualGatedChannel(MembraneChannel):
    """Sodium channel with an activation gate and an inactivation gate.

    Cycles IDLE -> OPENING -> BECOMING_INACTIVE -> INACTIVATED -> RESETTING
    -> IDLE, driven by the normalized, staggered, delayed m3h value.
    """

    channel_type = MembraneChannelType.SODIUM_GATED_CHANNEL
    has_inactivation_gate = True
    exterior_zone_shape = (0.0, math.pi * 0.7)

    M3H_WHEN_FULLY_OPEN = 0.25
    ACTIVATION_DECISION_THRESHOLD = 0.002
    FULLY_INACTIVE_DECISION_THRESHOLD = 0.98
    INACTIVE_TO_RESETTING_TIME = 0.001  # s
    RESETTING_TO_IDLE_TIME = 0.001      # s
    MIN_INTER_CAPTURE_TIME = 0.00002    # s
    MAX_INTER_CAPTURE_TIME = 0.00010    # s
    MAX_STAGGER_DELAY = MIN_ACTION_POTENTIAL_CLOCK_DT * 5

    def __init__(
        self,
        particle_capture: ParticleCapture,
        hodgkin_huxley_model: ModifiedHodgkinHuxleyModel,
        rng: Optional[random.Random] = None,
    ) -> None:
        super().__init__(particle_capture, hodgkin_huxley_model, rng)
        self.stagger_delay = 0.0
        self.reset()

    def _update_stagger_delay(self) -> None:
        self.stagger_delay = self._rng.random() * self.MAX_STAGGER_DELAY

    def calculate_normalized_conductance(self) -> float:
        m3h = self.hodgkin_huxley_model.get_delayed_m3h(self.stagger_delay)
        return min(abs(m3h) / self.M3H_WHEN_FULLY_OPEN, 1.0)

    @staticmethod
    def map_openness_to_normalized_conductance(normalized_conductance: float) -> float:
        # Non-linear so the channel looks fully open early in the potential.
        return 1 - (normalized_conductance - 1) ** 20

    def _update_gating(self, dt: float) -> None:
        # Trim digits to suppress tiny changes.
        nc = round(self.calculate_normalized_conductance(), 4)

        if self.gate_state is GateState.IDLE:
            if nc > self.ACTIVATION_DECISION_THRESHOLD:
                self.openness = self.map_openness_to_normalized_conductance(nc)
                self.gate_state = GateState.OPENING

        elif self.gate_state is GateState.OPENING:
            if self.is_open() and self.capture_countdown_timer == math.inf:
                self.restart_capture_countdown_timer(True)
            if self.previous_normalized_conductance > nc:
                # Conductance has peaked; the channel should be fully open now.
                self.gate_state = GateState.BECOMING_INACTIVE
                self.openness = 1.0
            else:
                self.openness = self.map_openness_to_normalized_conductance(nc)

        elif self.gate_state is GateState.BECOMING_INACTIVE:
            if self.inactivation_amount < self.FULLY_INACTIVE_DECISION_THRESHOLD:
                self.inactivation_amount = 1 - nc ** 7
            else:
                self.inactivation_amount = 1.0
                self.gate_state = GateState.INACTIVATED
                self.state_transition_timer = self.INACTIVE_TO_RESETTING_TIME

        elif self.gate_state is GateState.INACTIVATED:
            self.state_transition_timer -= dt
            if self.state_transition_timer < 0:
                self.gate_state = GateState.RESETTING
                self.state_transition_timer = self.RESETTING_TO_IDLE_TIME

        elif self.gate_state is GateState.RESETTING:
            self.state_transition_timer -= dt
            if self.state_transition_timer >= 0:
                # The inactivation ball stays in until the gate has nearly closed.
                fraction = self.state_transition_timer / self.RESETTING_TO_IDLE_TIME - 1
                self.openness = 1 - fraction ** 10
                self.inactivation_amount = 1 - fraction ** 20
            else:
                self.openness = 0.0
                self.inactivation_amount = 0.0
                self._update_stagger_delay()
                self.gate_state = GateState.IDLE
                logger.debug("%r back to idle, stagger %.2e s", self, self.stagger_delay)

        self.previous_normalized_conductance = nc

    def get_particle_type_to_capture(self) -> ParticleType:
        return ParticleType.SODIUM_ION

    def choose_crossing_direction(self) -> MembraneCrossingDirection:
        return MembraneCrossingDirection.OUT_TO_IN

    def move_particle_through_neuron_membrane(self, particle: Particle, max_velocity: float) -> None:
        particle.motion_strategy = DualGateChannelTraversalMotionStrategy(
            self, particle.x, particle.y, max_velocity, self.child_rng()
        )

    def reset(self) -> None:
        super().reset()
        self.min_inter_capture_time = self.MIN_INTER_CAPTURE_TIME
        self.max_inter_capture_time = self.MAX_INTER_CAPTURE_TIME
        self._update_stagger_delay()
        self.gate_state = GateState.IDLE
        self.state_transition_timer = 0.0
        self.previous_normalized_conductance = self.calculate_normalized_conductance()

    def get_state(self) -> DualGatedChannelState:
        return DualGatedChannelState(
            openness=self.openness,
            inactivation_amount=self.inactivation_amount,
            gate_state=self.gate_state,
            state_transition_timer=self.state_transition_timer,
            previous_normalized_conductance=self.previous_normalized_conductance,
        )

    def set_state(self, state: MembraneChannelState) -> None:
        super().set_state(state)
        if isinstance(state, DualGatedChannelState):
            self.gate_state = state.gate_state
            self.state_transition_timer = state.state_transition_timer
            self.previous_normalized_conductance = state.previous_normalized_conductance


class PotassiumGatedChannel(MembraneChannel):
    """Potassium channel whose openness tracks the delayed n4 value."""

    channel_type = MembraneChannelType.POTASSIUM_GATED_CHANNEL
    interior_zone_shape = (math.pi, math.pi * 0.5)

    N4_WHEN_FULLY_OPEN = 0.35
    MIN_INTER_CAPTURE_TIME = 0.00005    # s
    MAX_INTER_CAPTURE_TIME = 0.00020    # s
    MAX_STAGGER_DELAY = MIN_ACTION_POTENTIAL_CLOCK_DT * 10

    def __init__(
        self,
        particle_capture: ParticleCapture,
        hodgkin_huxley_model: ModifiedHodgkinHuxleyModel,
        rng: Optional[random.Random] = None,
    ) -> None:
        super().__init__(particle_capture, hodgkin_huxley_model, rng)
        self.stagger_delay = self._rng.random() * self.MAX_STAGGER_DELAY
        self.reset()

    def calculate_normalized_conductance(self) -> float:
        n4 = self.hodgkin_huxley_model.get_delayed_n4(self.stagger_delay)
        return min(abs(n4) / self.N4_WHEN_FULLY_OPEN, 1.0)

    def _update_gating(self, dt: float) -> None:
        openness = 1 - (self.calculate_normalized_conductance() - 1) ** 2
        if 0 < openness < 1:
            openness = round(openness, 2)
        if openness != self.openness:
            self.openness = openness
            if self.is_open() and self.capture_countdown_timer == math.inf:
                self.restart_capture_countdown_timer(True)

    def get_particle_type_to_capture(self) -> ParticleType:
        return ParticleType.POTASSIUM_ION

    def choose_crossing_direction(self) -> MembraneCrossingDirection:
        return MembraneCrossingDirection.IN_TO_OUT

    def reset(self) -> None:
        super().reset()
        self.min_inter_capture_time = self.MIN_INTER_CAPTURE_TIME
        self.max_inter_capture_time = self.MAX_INTER_CAPTURE_TIME


# ======================================================================
# Leak channels
# ======================================================================
class AbstractLeakChannel(MembraneChannel):
    """Always-open channel; only the capture rate varies.

    Subclasses set their capture window before calling `reset`, which
    restarts the capture timer since leak channels capture all the time.
    """

    def reset(self) -> None:
        super().reset()
        self.openness = 1.0
        self.inactivation_amount = 0.0
        self.restart_capture_countdown_timer(False)


class SodiumLeakageChannel(AbstractLeakChannel):
    channel_type = MembraneChannelType.SODIUM_LEAKAGE_CHANNEL
    particle_velocity = 7000.0
    exterior_zone_shape = (0.0, math.pi * 0.6)
    interior_zone_shape = (math.pi, math.pi * 0.8)

    NOMINAL_LEAK_LEVEL = 0.005
    PEAK_NEGATIVE_CURRENT = 3.44
    REVERSE_CROSSING_PROBABILITY = 0.2

    def __init__(
        self,
        particle_capture: ParticleCapture,
        hodgkin_huxley_model: ModifiedHodgkinHuxleyModel,
        rng: Optional[random.Random] = None,
    ) -> None:
        super().__init__(particle_capture, hodgkin_huxley_model, rng)
        self.reset()

    def reset(self) -> None:
        self.previous_normalized_leak_current = 0.0
        self._set_capture_window(self.NOMINAL_LEAK_LEVEL)
        super().reset()

    def _update_gating(self, dt: float) -> None:
        # Only negative leak current matters; it maps to sodium flowing back in.
        normalized = round(self.hodgkin_huxley_model.l_current / self.PEAK_NEGATIVE_CURRENT, 2)
        if normalized <= 0.01:
            normalized = max(normalized, -1.0)
            if normalized != self.previous_normalized_leak_current:
                self.previous_normalized_leak_current = normalized
                self.update_particle_capture_rate(max(abs(normalized), self.NOMINAL_LEAK_LEVEL))

    def _set_capture_window(self, normalized_rate: float) -> None:
        if normalized_rate <= 0.001:
            self.min_inter_capture_time = math.inf
            self.max_inter_capture_time = math.inf
            return
        absolute_min = 0.0002
        variable_min = 0.002
        capture_time_range = 0.005
        self.min_inter_capture_time = absolute_min + (1 - normalized_rate) * variable_min
        self.max_inter_capture_time = self.min_inter_capture_time + (1 - normalized_rate) * capture_time_range

    def update_particle_capture_rate(self, normalized_rate: float) -> None:
        """Map a rate in [0, 1] onto the inter-capture window; 0 stops captures."""
        self._set_capture_window(normalized_rate)
        if normalized_rate <= 0.001 or self.capture_countdown_timer > self.max_inter_capture_time:
            self.restart_capture_countdown_timer(False)

    def get_particle_type_to_capture(self) -> ParticleType:
        return ParticleType.SODIUM_ION

    def choose_crossing_direction(self) -> MembraneCrossingDirection:
        # At rest a sodium ion occasionally leaks the other way.
        if self.previous_normalized_leak_current == 0 and self._rng.random() < self.REVERSE_CROSSING_PROBABILITY:
            return MembraneCrossingDirection.IN_TO_OUT
        return MembraneCrossingDirection.OUT_TO_IN


class PotassiumLeakageChannel(AbstractLeakChannel):
    channel_type = MembraneChannelType.POTASSIUM_LEAKAGE_CHANNEL
    particle_velocity = 5000.0
    interior_zone_shape = (math.pi, math.pi * 0.5)
    exterior_zone_shape = (0.0, math.pi * 0.5)

    MIN_INTER_CAPTURE_TIME = 0.002      # s
    MAX_INTER_CAPTURE_TIME = 0.004      # s
    REVERSE_CROSSING_PROBABILITY = 0.2

    def __init__(
        self,
        particle_capture: ParticleCapture,
        hodgkin_huxley_model: ModifiedHodgkinHuxleyModel,
        rng: Optional[random.Random] = None,
    ) -> None:
        super().__init__(particle_capture, hodgkin_huxley_model, rng)
        self.reset()

    def reset(self) -> None:
        self.min_inter_capture_time = self.MIN_INTER_CAPTURE_TIME
        self.max_inter_capture_time = self.MAX_INTER_CAPTURE_TIME
        super().reset()

    def get_particle_type_to_capture(self) -> ParticleType:
        return ParticleType.POTASSIUM_ION

    def choose_crossing_direction(self) -> MembraneCrossingDirection:
        if self._rng.random() < self.REVERSE_CROSSING_PROBABILITY:
            return MembraneCrossingDirection.OUT_TO_IN
        return MembraneCrossingDirection.IN_TO_OUT


_CHANNEL_CLASSES: dict[MembraneChannelType, type[MembraneChannel]] = {
    MembraneChannelType.SODIUM_GATED_CHANNEL: SodiumDualGatedChannel,
    MembraneChannelType.POTASSIUM_GATED_CHANNEL: PotassiumGatedChannel,
    MembraneChannelType.SODIUM_LEAKAGE_CHANNEL: SodiumLeakageChannel,
    MembraneChannelType.POTASSIUM_LEAKAGE_CHANNEL: PotassiumLeakageChannel,
}


def create_membrane_channel(
    channel_type: MembraneChannelType,
    particle_capture: ParticleCapture,
    hodgkin_huxley_model: ModifiedHodgkinHuxleyModel,
    rng: Optional[random.Random] = None,
) -> MembraneChannel:
    """Create a membrane channel of the requested type."""
    try:
        cls = _CHANNEL_CLASSES[MembraneChannelType(channel_type)]
    except (KeyError, ValueError) as exc:
        raise ValueError(f"Unrecognized channel type: {channel_type!r}") from exc
    return cls(particle_capture, hodgkin_huxley_model, rng)
