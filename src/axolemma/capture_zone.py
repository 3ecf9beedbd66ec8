"""Capture zones: wedge-shaped regions at the mouth of a membrane channel.

A zone is used to spawn particles that are about to cross a channel and, at
seeding time, to check whether any free particles sit near a channel mouth.
Zones are immutable values; a channel builds fresh ones from its current
position and rotation whenever they are needed.
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .particles import Particle

# Fraction of the radius at which new particles are placed.
PLACEMENT_RADIUS_FRACTION = 0.9


@dataclass(frozen=True)
class PieSliceCaptureZone:
    """Wedge of `radius` centred on `rotation + fixed_offset`, `extent` wide."""

    origin_x: float
    origin_y: float
    radius: float
    fixed_rotational_offset: float
    angle_of_extent: float
    rotational_angle: float = 0.0

    @property
    def center_angle(self) -> float:
        return self.rotational_angle + self.fixed_rotational_offset

    def contains(self, x: float, y: float) -> bool:
        dx = x - self.origin_x
        dy = y - self.origin_y
        if math.hypot(dx, dy) > self.radius:
            return False
        if dx == 0 and dy == 0:
            return True
        # Signed angular distance from the wedge's bisector, in (-pi, pi].
        delta = math.atan2(dy, dx) - self.center_angle
        delta = (delta + math.pi) % (2 * math.pi) - math.pi
        return abs(delta) <= self.angle_of_extent / 2

    def suggest_particle_location(self, rng: random.Random) -> tuple[float, float]:
        angle = self.center_angle + (rng.random() - 0.5) * self.angle_of_extent
        distance = self.radius * PLACEMENT_RADIUS_FRACTION
        return (
            self.origin_x + distance * math.cos(angle),
            self.origin_y + distance * math.sin(angle),
        )


class NullCaptureZone:
    """Zone that contains nothing; spawns at its origin."""

    origin_x = 0.0
    origin_y = 0.0

    def contains(self, x: float, y: float) -> bool:
        return False

    def suggest_particle_location(self, rng: random.Random) -> tuple[float, float]:
        return (self.origin_x, self.origin_y)


@dataclass
class CaptureZoneScanResult:
    closest_free_particle: Optional[Particle] = None
    num_particles_in_zone: int = 0
