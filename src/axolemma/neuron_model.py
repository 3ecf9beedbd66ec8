"""The neuron model: membrane, integrator, channels and ions on one clock.

NeuronModel owns every simulated entity and advances them in a fixed
order each tick:

    axon membrane -> Hodgkin-Huxley integrator -> membrane potential ->
    stimulus lockout -> channels -> particles -> concentrations -> chart

Time travel is delegated to a composed RecordAndPlayback component, which
calls back into the model to advance, to snapshot (NeuronModelState) and to
restore.  During playback the live particles are hidden and a separate
playback population is rebuilt from recorded mementos.
"""

from __future__ import annotations

import dataclasses
import logging
import math
import random
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterator, Optional

from .axon_membrane import AxonMembrane, TravelingActionPotential, TravelingActionPotentialState
from .capture_zone import CaptureZoneScanResult, NullCaptureZone, PieSliceCaptureZone
from .channels import MembraneChannel, MembraneChannelState, create_membrane_channel
from .chart import MembranePotentialSeries
from .config import Settings, get_settings
from .constants import CROSS_SECTION_RADIUS, MEMBRANE_THICKNESS
from .fade import TimedFadeAwayStrategy, TimedFadeInStrategy
from .hodgkin_huxley import HodgkinHuxleyState, ModifiedHodgkinHuxleyModel
from .models import (
    ChannelReadout,
    ConcentrationReadout,
    MembraneChannelType,
    MembraneCrossingDirection,
    NeuronReadout,
    ParticleCounts,
    ParticleType,
)
from .motion import SlowBrownianMotionStrategy
from .particles import (
    DEFAULT_PARTICLE_RADIUS,
    Particle,
    ParticlePlaybackMemento,
    PlaybackParticle,
    create_particle,
)
from .record_playback import PlaybackMode, RecordAndPlayback

logger = logging.getLogger(__name__)

# Membrane potential changes smaller than this (V) are not published.
POTENTIAL_CHANGE_THRESHOLD = 0.005

# Currents above these mean an action potential is still under way.
K_CURRENT_LOCKOUT_THRESHOLD = 0.001
NA_CURRENT_LOCKOUT_THRESHOLD = 0.001

# Concentrations, mM.
NOMINAL_SODIUM_EXTERIOR = 145.0
NOMINAL_SODIUM_INTERIOR = 10.0
NOMINAL_POTASSIUM_EXTERIOR = 4.0
NOMINAL_POTASSIUM_INTERIOR = 140.0
CONCENTRATION_READOUT_DELAY = 0.001     # s
POTASSIUM_EXTERIOR_CHANGE_RATE = 0.05
POTASSIUM_INTERIOR_CHANGE_RATE = 2.0
SODIUM_INTERIOR_CHANGE_RATE = 0.4
SODIUM_EXTERIOR_CHANGE_RATE = 7.0
CONCENTRATION_RESTORATION_FACTOR = 1000
CONCENTRATION_CHANGE_THRESHOLD = 1e-5

# Background ion populations.
NUM_SODIUM_IONS_OUTSIDE_CELL = 600
NUM_SODIUM_IONS_INSIDE_CELL = 8
NUM_POTASSIUM_IONS_OUTSIDE_CELL = 60
NUM_POTASSIUM_IONS_INSIDE_CELL = 200
MAX_EXTERIOR_RADIUS_FACTOR = 2.2

# Channels around the membrane.
NUM_GATED_SODIUM_CHANNELS = 20
NUM_GATED_POTASSIUM_CHANNELS = 20
NUM_SODIUM_LEAK_CHANNELS = 3
NUM_POTASSIUM_LEAK_CHANNELS = 7
LEAK_CHANNEL_SLOT_INTERVAL = 5

PARTICLE_FADE_IN_TIME = 0.0005          # s
PLAYBACK_HANDOVER_FADE_TIME = 0.002     # s


class ModelEvent(str, Enum):
    PARTICLES_MOVED = "particles_moved"
    CHANNEL_REPRESENTATION_CHANGED = "channel_representation_changed"
    STIMULUS_PULSE_INITIATED = "stimulus_pulse_initiated"


class StimulusLockoutError(RuntimeError):
    """Raised when a locked-out model is asked to change its ion population."""


class ParticleCapacityError(RuntimeError):
    """Raised when creating a particle would exceed the configured cap."""


@dataclass
class IonConcentrations:
    sodium_exterior: float = NOMINAL_SODIUM_EXTERIOR
    sodium_interior: float = NOMINAL_SODIUM_INTERIOR
    potassium_exterior: float = NOMINAL_POTASSIUM_EXTERIOR
    potassium_interior: float = NOMINAL_POTASSIUM_INTERIOR

    def to_readout(self) -> ConcentrationReadout:
        return ConcentrationReadout(**dataclasses.asdict(self))


@dataclass(frozen=True)
class NeuronModelState:
    """Everything needed to redraw the model as it was at one instant."""

    axon_membrane_state: Optional[TravelingActionPotentialState]
    hodgkin_huxley_state: HodgkinHuxleyState
    channel_states: tuple[MembraneChannelState, ...]
    particle_mementos: tuple[ParticlePlaybackMemento, ...]
    membrane_potential: float
    concentrations: IonConcentrations
    action_potential_in_progress: bool


class NeuronModel:
    """Orchestrates one simulated axon cross-section."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()
        self._rng = random.Random(self.settings.seed)

        self.hodgkin_huxley_model = ModifiedHodgkinHuxleyModel()
        self.axon_membrane = AxonMembrane()
        self.membrane_channels: list[MembraneChannel] = []

        self.background_particles: list[Particle] = []
        self.transient_particles: list[Particle] = []
        self.playback_particles: list[PlaybackParticle] = []

        self.concentrations = IonConcentrations()
        self.membrane_potential = self.hodgkin_huxley_model.membrane_voltage
        self.action_potential_in_progress = False
        self.stimulus_lockout = False

        # View toggles
        self.potential_chart_visible = False
        self.charges_shown = False
        self.concentration_readout_visible = False
        self.all_ions_simulated = self.settings.all_ions_simulated

        self.chart = MembranePotentialSeries()
        self._stimulus_time: Optional[float] = None

        self._listeners: dict[ModelEvent, list[Callable[[], None]]] = {e: [] for e in ModelEvent}
        self._pending_events: set[ModelEvent] = set()

        self.recorder: RecordAndPlayback[NeuronModelState] = RecordAndPlayback(
            advance=self._advance,
            snapshot=self.get_state,
            restore=self.set_state,
            max_record_points=self.settings.max_record_points,
            resume_from_playback=self._resume_from_playback,
        )

        self._add_membrane_channels()
        self.reset()

    def __repr__(self) -> str:
        return (
            f"NeuronModel(mode={self.mode.value}, t={self.time:.6f}, "
            f"potential={self.membrane_potential * 1000:.1f} mV, particles={self.particle_counts().total})"
        )

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------
    def _child_rng(self) -> random.Random:
        return random.Random(self._rng.getrandbits(64))

    def _add_membrane_channels(self) -> None:
        """Space the channels evenly around the membrane midline."""
        num_leak = NUM_SODIUM_LEAK_CHANNELS + NUM_POTASSIUM_LEAK_CHANNELS
        num_slots = NUM_GATED_SODIUM_CHANNELS + NUM_GATED_POTASSIUM_CHANNELS + num_leak

        leak_types = []
        sodium_leaks = NUM_SODIUM_LEAK_CHANNELS
        for i in range(num_leak):
            if i % 3 == 0 and sodium_leaks > 0:
                leak_types.append(MembraneChannelType.SODIUM_LEAKAGE_CHANNEL)
                sodium_leaks -= 1
            else:
                leak_types.append(MembraneChannelType.POTASSIUM_LEAKAGE_CHANNEL)

        radius = CROSS_SECTION_RADIUS + MEMBRANE_THICKNESS / 2
        angle_increment = 2 * math.pi / num_slots
        angle = self._rng.random() * angle_increment
        gated_index = 0
        for slot in range(num_slots):
            if slot % LEAK_CHANNEL_SLOT_INTERVAL == 0 and leak_types:
                channel_type = leak_types.pop(0)
            else:
                channel_type = (
                    MembraneChannelType.SODIUM_GATED_CHANNEL
                    if gated_index % 2 == 0
                    else MembraneChannelType.POTASSIUM_GATED_CHANNEL
                )
                gated_index += 1
            channel = create_membrane_channel(
                channel_type, self, self.hodgkin_huxley_model, self._child_rng()
            )
            channel.set_center_location(radius * math.cos(angle), radius * math.sin(angle))
            channel.set_rotational_angle(angle)
            self.membrane_channels.append(channel)
            angle += angle_increment

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------
    def add_listener(self, event: ModelEvent, callback: Callable[[], None]) -> None:
        self._listeners[event].append(callback)

    def _notify(self, event: ModelEvent) -> None:
        self._pending_events.add(event)
        for callback in self._listeners[event]:
            callback()

    # ------------------------------------------------------------------
    # Driver API
    # ------------------------------------------------------------------
    @property
    def mode(self) -> PlaybackMode:
        return self.recorder.mode

    @property
    def time(self) -> float:
        return self.recorder.time

    @property
    def paused(self) -> bool:
        return self.recorder.paused

    def set_paused(self, paused: bool) -> None:
        self.recorder.paused = paused

    def step(self, dt: float) -> frozenset[ModelEvent]:
        """Advance one clock tick and return the notifications it produced."""
        if dt < 0 and not self.recorder.is_playback:
            raise ValueError("Negative time steps are only allowed during playback")
        self._pending_events = set()
        self.recorder.step(dt)
        return frozenset(self._pending_events)

    def set_time(self, time: float) -> None:
        self.recorder.set_time(time)
        self._update_stimulus_lockout()

    def set_mode_live(self) -> None:
        self.recorder.set_live()
        self._update_stimulus_lockout()

    def set_mode_record(self) -> None:
        self.recorder.set_record(True)
        self._update_stimulus_lockout()

    def set_mode_playback(self, speed: float = 1.0) -> None:
        self.recorder.set_playback(speed)
        # Show the recorded state at the cursor straight away.
        self.recorder.set_time(self.recorder.time)
        self._update_stimulus_lockout()

    def rewind(self) -> None:
        self.recorder.rewind()
        self._update_stimulus_lockout()

    def clear_history(self) -> None:
        self.recorder.clear_history()

    def reset(self) -> None:
        """Return everything to the resting state and start a fresh recording."""
        self.recorder.reset_all()
        self.hodgkin_huxley_model.reset()
        self.axon_membrane.reset()
        for channel in self.membrane_channels:
            channel.reset()

        self.transient_particles.clear()
        self.playback_particles.clear()
        self.background_particles.clear()
        if self.all_ions_simulated:
            self._add_initial_bulk_particles()

        self.concentrations = IonConcentrations()
        self.membrane_potential = self.hodgkin_huxley_model.membrane_voltage
        self.action_potential_in_progress = False
        self.stimulus_lockout = False
        self.chart.clear()
        self._stimulus_time = None
        logger.info("Neuron model reset (%d background ions)", len(self.background_particles))

    def initiate_stimulus_pulse(self) -> bool:
        """Start an action potential; a no-op returning False while locked out."""
        if self.stimulus_lockout:
            logger.warning("Stimulus ignored, action potential still in progress")
            return False
        if self.recorder.is_playback:
            self.set_mode_record()
        self.axon_membrane.initiate_traveling_action_potential()
        self._stimulus_time = self.time
        self.chart.clear()
        self._update_stimulus_lockout()
        logger.debug("Stimulus pulse initiated at t=%.6f", self.time)
        self._notify(ModelEvent.STIMULUS_PULSE_INITIATED)
        return True

    def set_all_ions_simulated(self, simulated: bool) -> None:
        if self.stimulus_lockout:
            raise StimulusLockoutError("Cannot change the ion population while locked out")
        if simulated == self.all_ions_simulated:
            return
        self.all_ions_simulated = simulated
        if simulated:
            self._add_initial_bulk_particles()
        else:
            self.background_particles.clear()
        self._notify(ModelEvent.PARTICLES_MOVED)

    # ------------------------------------------------------------------
    # Stepping
    # ------------------------------------------------------------------
    def _advance(self, dt: float) -> None:
        if self.axon_membrane.step_in_time(dt):
            self.hodgkin_huxley_model.stimulate()
        self.hodgkin_huxley_model.step_in_time(dt)

        potential = self.hodgkin_huxley_model.membrane_voltage
        if abs(potential - self.membrane_potential) > POTENTIAL_CHANGE_THRESHOLD:
            self.membrane_potential = potential

        self.action_potential_in_progress = self._action_potential_in_progress()
        self._update_stimulus_lockout()

        channels_changed = False
        for channel in self.membrane_channels:
            if channel.step_in_time(dt):
                channels_changed = True

        self.transient_particles = self._step_particles(self.transient_particles, dt)
        self.background_particles = self._step_particles(self.background_particles, dt)

        self._update_concentrations(dt)

        if self.potential_chart_visible and self._stimulus_time is not None and not self.chart.is_full:
            self.chart.add_point(
                (self.time - self._stimulus_time) * 1000, self.hodgkin_huxley_model.get_v()
            )

        self._notify(ModelEvent.PARTICLES_MOVED)
        if channels_changed:
            self._notify(ModelEvent.CHANNEL_REPRESENTATION_CHANGED)

    @staticmethod
    def _step_particles(particles: list[Particle], dt: float) -> list[Particle]:
        for particle in particles:
            particle.step_in_time(dt)
        return [p for p in particles if p.continue_existing]

    def _action_potential_in_progress(self) -> bool:
        hh = self.hodgkin_huxley_model
        return (
            self.axon_membrane.traveling_action_potential is not None
            or abs(hh.k_current) > K_CURRENT_LOCKOUT_THRESHOLD
            or abs(hh.na_current) > NA_CURRENT_LOCKOUT_THRESHOLD
        )

    def _update_stimulus_lockout(self) -> None:
        self.stimulus_lockout = self.action_potential_in_progress or (
            self.recorder.is_playback and self.recorder.moving_backward
        )

    def _update_concentrations(self, dt: float) -> None:
        c = self.concentrations
        hh = self.hodgkin_huxley_model

        n4 = hh.get_delayed_n4(CONCENTRATION_READOUT_DELAY)
        if n4 != 0:
            c.potassium_exterior += n4 * dt * POTASSIUM_EXTERIOR_CHANGE_RATE
            c.potassium_interior -= n4 * dt * POTASSIUM_INTERIOR_CHANGE_RATE
        else:
            c.potassium_exterior = _restore(c.potassium_exterior, NOMINAL_POTASSIUM_EXTERIOR, dt)
            c.potassium_interior = _restore(c.potassium_interior, NOMINAL_POTASSIUM_INTERIOR, dt)

        m3h = hh.get_delayed_m3h(CONCENTRATION_READOUT_DELAY)
        if m3h != 0:
            c.sodium_interior += m3h * dt * SODIUM_INTERIOR_CHANGE_RATE
            c.sodium_exterior -= m3h * dt * SODIUM_EXTERIOR_CHANGE_RATE
        else:
            c.sodium_exterior = _restore(c.sodium_exterior, NOMINAL_SODIUM_EXTERIOR, dt)
            c.sodium_interior = _restore(c.sodium_interior, NOMINAL_SODIUM_INTERIOR, dt)

    # ------------------------------------------------------------------
    # Particles
    # ------------------------------------------------------------------
    def _create_particle(self, particle_type: ParticleType, x: float, y: float) -> Particle:
        live = len(self.background_particles) + len(self.transient_particles)
        if live >= self.settings.max_particles:
            raise ParticleCapacityError(
                f"Particle cap of {self.settings.max_particles} reached; raise AXOLEMMA_MAX_PARTICLES"
            )
        return create_particle(particle_type, x, y)

    def request_particle_through_channel(
        self,
        particle_type: ParticleType,
        channel: MembraneChannel,
        max_velocity: float,
        direction: MembraneCrossingDirection,
    ) -> None:
        """Spawn a fresh ion in the channel's capture zone and send it through."""
        if direction is MembraneCrossingDirection.IN_TO_OUT:
            zone = channel.interior_capture_zone()
        else:
            zone = channel.exterior_capture_zone()
        x, y = zone.suggest_particle_location(self._rng)
        particle = self._create_particle(particle_type, x, y)
        particle.opacity = 0.0
        particle.fade_strategy = TimedFadeInStrategy(PARTICLE_FADE_IN_TIME)
        self.transient_particles.append(particle)
        channel.move_particle_through_neuron_membrane(particle, max_velocity)

    def scan_capture_zone(
        self,
        particle_type: ParticleType,
        zone: PieSliceCaptureZone | NullCaptureZone,
    ) -> CaptureZoneScanResult:
        """Count matching ions in `zone` and find the free one nearest its origin."""
        result = CaptureZoneScanResult()
        closest_distance = math.inf
        for particle in self._live_particles():
            if particle.particle_type is not particle_type or not zone.contains(particle.x, particle.y):
                continue
            result.num_particles_in_zone += 1
            if particle.is_available_for_capture():
                distance = math.hypot(particle.x - zone.origin_x, particle.y - zone.origin_y)
                if distance < closest_distance:
                    closest_distance = distance
                    result.closest_free_particle = particle
        return result

    def _live_particles(self) -> Iterator[Particle]:
        yield from self.background_particles
        yield from self.transient_particles

    def visible_particles(self) -> list[Particle]:
        """The population a view should draw in the current mode."""
        if self.recorder.is_playback:
            return list(self.playback_particles)
        return list(self._live_particles())

    def particle_counts(self) -> ParticleCounts:
        return ParticleCounts(
            background=len(self.background_particles),
            transient=len(self.transient_particles),
            playback=len(self.playback_particles),
        )

    def _add_initial_bulk_particles(self) -> None:
        inside = CROSS_SECTION_RADIUS - DEFAULT_PARTICLE_RADIUS
        outside_min = CROSS_SECTION_RADIUS + MEMBRANE_THICKNESS + DEFAULT_PARTICLE_RADIUS
        outside_max = CROSS_SECTION_RADIUS * MAX_EXTERIOR_RADIUS_FACTOR

        self._add_background_particles(ParticleType.SODIUM_ION, NUM_SODIUM_IONS_OUTSIDE_CELL, outside_min, outside_max)
        self._add_background_particles(ParticleType.SODIUM_ION, NUM_SODIUM_IONS_INSIDE_CELL, 0.0, inside)
        self._add_background_particles(ParticleType.POTASSIUM_ION, NUM_POTASSIUM_IONS_OUTSIDE_CELL, outside_min, outside_max)
        self._add_background_particles(ParticleType.POTASSIUM_ION, NUM_POTASSIUM_IONS_INSIDE_CELL, 0.0, inside)

        # Make sure every gated channel has something nearby to capture.
        for channel in self.membrane_channels:
            if channel.channel_type is MembraneChannelType.SODIUM_GATED_CHANNEL:
                zone = channel.exterior_capture_zone()
            elif channel.channel_type is MembraneChannelType.POTASSIUM_GATED_CHANNEL:
                zone = channel.interior_capture_zone()
            else:
                continue
            particle_type = channel.get_particle_type_to_capture()
            if self.scan_capture_zone(particle_type, zone).num_particles_in_zone == 0:
                for _ in range(self._rng.randint(1, 2)):
                    x, y = zone.suggest_particle_location(self._rng)
                    particle = self._add_background_particle(particle_type, x, y)
                    particle.opacity = 0.0
                    particle.fade_strategy = TimedFadeInStrategy(PARTICLE_FADE_IN_TIME)

    def _add_background_particles(
        self, particle_type: ParticleType, count: int, min_radius: float, max_radius: float
    ) -> None:
        for _ in range(count):
            angle = self._rng.random() * 2 * math.pi
            # Uniform over the annulus area.
            r = math.sqrt(min_radius ** 2 + self._rng.random() * (max_radius ** 2 - min_radius ** 2))
            self._add_background_particle(particle_type, r * math.cos(angle), r * math.sin(angle))

    def _add_background_particle(self, particle_type: ParticleType, x: float, y: float) -> Particle:
        particle = self._create_particle(particle_type, x, y)
        particle.motion_strategy = SlowBrownianMotionStrategy(x, y, self._child_rng())
        self.background_particles.append(particle)
        return particle

    # ------------------------------------------------------------------
    # Snapshot / restore
    # ------------------------------------------------------------------
    def get_state(self) -> NeuronModelState:
        return NeuronModelState(
            axon_membrane_state=self.axon_membrane.get_state(),
            hodgkin_huxley_state=self.hodgkin_huxley_model.get_state(),
            channel_states=tuple(c.get_state() for c in self.membrane_channels),
            particle_mementos=tuple(p.get_playback_memento() for p in self._live_particles()),
            membrane_potential=self.membrane_potential,
            concentrations=dataclasses.replace(self.concentrations),
            action_potential_in_progress=self.action_potential_in_progress,
        )

    def set_state(self, state: NeuronModelState) -> None:
        self.axon_membrane.set_state(state.axon_membrane_state)
        self.hodgkin_huxley_model.set_state(state.hodgkin_huxley_state)
        for channel, channel_state in zip(self.membrane_channels, state.channel_states):
            channel.set_state(channel_state)

        mementos = state.particle_mementos
        del self.playback_particles[len(mementos):]
        while len(self.playback_particles) < len(mementos):
            self.playback_particles.append(PlaybackParticle(ParticleType.SODIUM_ION))
        for particle, memento in zip(self.playback_particles, mementos):
            particle.restore_from_memento(memento)

        self.membrane_potential = state.membrane_potential
        self.concentrations = dataclasses.replace(state.concentrations)
        self.action_potential_in_progress = state.action_potential_in_progress
        self._update_stimulus_lockout()
        logger.debug("Restored state with %d particles", len(mementos))
        self._notify(ModelEvent.PARTICLES_MOVED)
        self._notify(ModelEvent.CHANNEL_REPRESENTATION_CHANGED)

    def _resume_from_playback(self) -> None:
        """Turn the playback population into live ions."""
        self.background_particles.clear()
        self.transient_particles.clear()
        for playback_particle in self.playback_particles:
            x, y = playback_particle.position
            if playback_particle.opacity == 1 and self.all_ions_simulated:
                particle = self._add_background_particle(playback_particle.particle_type, x, y)
            else:
                particle = self._create_particle(playback_particle.particle_type, x, y)
                particle.fade_strategy = TimedFadeAwayStrategy(PLAYBACK_HANDOVER_FADE_TIME)
                self.transient_particles.append(particle)
            particle.opacity = playback_particle.opacity
        self.playback_particles.clear()
        logger.debug(
            "Resumed from playback with %d background and %d transient ions",
            len(self.background_particles), len(self.transient_particles),
        )

    # ------------------------------------------------------------------
    # Read-outs
    # ------------------------------------------------------------------
    @property
    def traveling_action_potential(self) -> Optional[TravelingActionPotential]:
        return self.axon_membrane.traveling_action_potential

    def channel_readouts(self) -> list[ChannelReadout]:
        readouts = []
        for channel_type in MembraneChannelType:
            channels = [c for c in self.membrane_channels if c.channel_type is channel_type]
            if not channels:
                continue
            readouts.append(
                ChannelReadout(
                    channel_type=channel_type,
                    count=len(channels),
                    open_count=sum(1 for c in channels if c.is_open()),
                    mean_openness=sum(c.openness for c in channels) / len(channels),
                    mean_inactivation=sum(c.inactivation_amount for c in channels) / len(channels),
                )
            )
        return readouts

    def readout(self, note: Optional[str] = None) -> NeuronReadout:
        return NeuronReadout(
            time=self.time,
            mode=self.mode.value,
            membrane_potential=self.membrane_potential,
            stimulus_lockout=self.stimulus_lockout,
            action_potential_traveling=self.traveling_action_potential is not None,
            concentrations=self.concentrations.to_readout(),
            particles=self.particle_counts(),
            channels=self.channel_readouts(),
            recorded_points=self.recorder.num_recorded_points,
            note=note,
        )


def _restore(value: float, nominal: float, dt: float) -> float:
    """Relax `value` toward `nominal`, snapping once close enough."""
    difference = nominal - value
    if abs(difference) <= CONCENTRATION_CHANGE_THRESHOLD:
        return nominal
    return value + difference * min(CONCENTRATION_RESTORATION_FACTOR * dt, 1.0)
