"""Ions that move around the axon cross-section."""

from __future__ import annotations

from dataclasses import dataclass

from .fade import FadeStrategy, NullFadeStrategy
from .models import ParticleType
from .motion import MembraneTraversalMotionStrategy, MotionStrategy, StillnessMotionStrategy

DEFAULT_PARTICLE_RADIUS = 0.75          # nm


@dataclass(frozen=True)
class ParticlePlaybackMemento:
    """Just enough of a particle to redraw it during playback."""

    x: float
    y: float
    opacity: float
    particle_type: ParticleType
    radius: float = DEFAULT_PARTICLE_RADIUS


class Particle:
    """An ion with a position, an opacity and pluggable motion/fade behaviour.

    A particle owns its strategies exclusively; they are replaced wholesale,
    never shared.  Clearing `continue_existing` asks the owner to remove it.
    """

    def __init__(self, particle_type: ParticleType, x: float = 0.0, y: float = 0.0) -> None:
        self.particle_type = particle_type
        self.x = x
        self.y = y
        self.opacity = 1.0
        self.continue_existing = True
        self.radius = DEFAULT_PARTICLE_RADIUS
        self.motion_strategy: MotionStrategy = StillnessMotionStrategy.instance()
        self.fade_strategy: FadeStrategy = NullFadeStrategy.instance()

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}({self.particle_type.value}, "
            f"x={self.x:.2f}, y={self.y:.2f}, opacity={self.opacity:.2f})"
        )

    @property
    def position(self) -> tuple[float, float]:
        return (self.x, self.y)

    def set_position(self, x: float, y: float) -> None:
        self.x = x
        self.y = y

    def step_in_time(self, dt: float) -> None:
        self.motion_strategy.move(self, dt)
        self.fade_strategy.update_opacity(self, dt)
        if not self.fade_strategy.should_continue_existing(self):
            self.continue_existing = False

    def is_available_for_capture(self) -> bool:
        return not isinstance(self.motion_strategy, MembraneTraversalMotionStrategy)

    def get_playback_memento(self) -> ParticlePlaybackMemento:
        return ParticlePlaybackMemento(
            x=self.x,
            y=self.y,
            opacity=self.opacity,
            particle_type=self.particle_type,
            radius=self.radius,
        )


class PlaybackParticle(Particle):
    """Stand-in particle whose whole state comes from recorded mementos."""

    def restore_from_memento(self, memento: ParticlePlaybackMemento) -> None:
        self.particle_type = memento.particle_type
        self.x = memento.x
        self.y = memento.y
        self.opacity = memento.opacity
        self.radius = memento.radius


def create_particle(particle_type: ParticleType, x: float = 0.0, y: float = 0.0) -> Particle:
    """Create a particle of the requested ion type."""
    if not isinstance(particle_type, ParticleType):
        raise ValueError(f"Unrecognized particle type: {particle_type!r}")
    return Particle(particle_type, x, y)
