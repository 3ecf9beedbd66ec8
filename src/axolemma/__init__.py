"""Axolemma: simulation core for an axon membrane cross-section.

Hodgkin-Huxley driven channel gating, ions crossing the membrane through
gated and leak channels, and record/playback of the whole simulation.

Modules:
    delay_buffer      Ring buffer answering "what was this value t seconds ago"
    hodgkin_huxley    Modified Hodgkin-Huxley integrator
    capture_zone      Wedge-shaped zones at channel mouths
    fade              Particle opacity strategies
    motion            Particle motion strategies, including channel traversal
    particles         Ions and playback stand-ins
    channels          Gated and leak membrane channels
    axon_membrane     Membrane geometry and the traveling action potential
    record_playback   Generic Live/Record/Playback component
    chart             Membrane-potential time series
    clock             Constant-dt clock adapter
    neuron_model      The orchestrating model
"""

from .axon_membrane import ActionPotentialInFlightError, AxonMembrane, TravelingActionPotential
from .channels import (
    MembraneChannel,
    PotassiumGatedChannel,
    PotassiumLeakageChannel,
    SodiumDualGatedChannel,
    SodiumLeakageChannel,
    create_membrane_channel,
)
from .chart import MembranePotentialSeries
from .clock import NeuronClock
from .config import Settings, get_settings
from .delay_buffer import DelayBuffer
from .hodgkin_huxley import HodgkinHuxleyState, ModifiedHodgkinHuxleyModel
from .models import MembraneChannelType, MembraneCrossingDirection, NeuronReadout, ParticleType
from .neuron_model import (
    ModelEvent,
    NeuronModel,
    NeuronModelState,
    ParticleCapacityError,
    StimulusLockoutError,
)
from .particles import Particle, PlaybackParticle, create_particle
from .record_playback import DataPoint, PlaybackMode, RecordAndPlayback

__all__ = [
    "ActionPotentialInFlightError",
    "AxonMembrane",
    "DataPoint",
    "DelayBuffer",
    "HodgkinHuxleyState",
    "MembraneChannel",
    "MembraneChannelType",
    "MembraneCrossingDirection",
    "MembranePotentialSeries",
    "ModelEvent",
    "ModifiedHodgkinHuxleyModel",
    "NeuronClock",
    "NeuronModel",
    "NeuronModelState",
    "NeuronReadout",
    "Particle",
    "ParticleCapacityError",
    "ParticleType",
    "PlaybackMode",
    "PlaybackParticle",
    "PotassiumGatedChannel",
    "PotassiumLeakageChannel",
    "RecordAndPlayback",
    "Settings",
    "SodiumDualGatedChannel",
    "SodiumLeakageChannel",
    "StimulusLockoutError",
    "TravelingActionPotential",
    "create_membrane_channel",
    "create_particle",
    "get_settings",
]
