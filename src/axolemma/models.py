"""Core enumerations and read-out models shared across the package."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


# ======================================================================
# Enumerations
# ======================================================================
class ParticleType(str, Enum):
    SODIUM_ION = "sodium_ion"
    POTASSIUM_ION = "potassium_ion"


class MembraneChannelType(str, Enum):
    SODIUM_GATED_CHANNEL = "sodium_gated_channel"
    POTASSIUM_GATED_CHANNEL = "potassium_gated_channel"
    SODIUM_LEAKAGE_CHANNEL = "sodium_leakage_channel"
    POTASSIUM_LEAKAGE_CHANNEL = "potassium_leakage_channel"


class MembraneCrossingDirection(str, Enum):
    OUT_TO_IN = "out_to_in"
    IN_TO_OUT = "in_to_out"


# ======================================================================
# Read-out models
# ======================================================================
class ConcentrationReadout(BaseModel):
    """Ion concentrations in millimolar."""

    sodium_exterior: float
    sodium_interior: float
    potassium_exterior: float
    potassium_interior: float


class ParticleCounts(BaseModel):
    background: int = 0
    transient: int = 0
    playback: int = 0

    @property
    def total(self) -> int:
        return self.background + self.transient + self.playback


class ChannelReadout(BaseModel):
    """Aggregate view of every channel of one type."""

    channel_type: MembraneChannelType
    count: int = 0
    open_count: int = 0
    mean_openness: float = 0.0
    mean_inactivation: float = 0.0


class NeuronReadout(BaseModel):
    """Everything a view layer polls from the model once per frame."""

    time: float = Field(description="Simulation time in seconds")
    mode: str
    membrane_potential: float = Field(description="Membrane potential in volts")
    stimulus_lockout: bool = False
    action_potential_traveling: bool = False
    concentrations: ConcentrationReadout
    particles: ParticleCounts = Field(default_factory=ParticleCounts)
    channels: list[ChannelReadout] = Field(default_factory=list)
    recorded_points: int = 0
    note: Optional[str] = None
