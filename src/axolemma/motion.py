"""Motion strategies: how a particle's position evolves over one time step.

A strategy may replace itself on the particle with a different strategy,
e.g. a particle that finds its channel closed switches to wandering away.
Strategies only read channel state; they never mutate a channel.

Negative dt is supported for playback-style rewinding.  The waypoint
traversals retrace their path in reverse and remove the particle once it is
back at its spawn point; the linear strategies retrace their line.
"""

from __future__ import annotations

import math
import random
from typing import TYPE_CHECKING, Optional

from .constants import DEFAULT_ACTION_POTENTIAL_CLOCK_DT, DEFAULT_MAX_VELOCITY
from .fade import TimedFadeAwayStrategy

if TYPE_CHECKING:
    from .channels import MembraneChannel
    from .particles import Particle


def _rotate(vx: float, vy: float, angle: float) -> tuple[float, float]:
    c = math.cos(angle)
    s = math.sin(angle)
    return vx * c - vy * s, vx * s + vy * c


def _course(from_x: float, from_y: float, to_x: float, to_y: float, speed: float) -> tuple[float, float]:
    dx = to_x - from_x
    dy = to_y - from_y
    length = math.hypot(dx, dy)
    if length == 0:
        return 0.0, 0.0
    return dx * speed / length, dy * speed / length


class MotionStrategy:
    def move(self, particle: Particle, dt: float) -> None:
        raise NotImplementedError


# ----------------------------------------------------------------------
# Ambient motion
# ----------------------------------------------------------------------
class StillnessMotionStrategy(MotionStrategy):
    _instance: Optional[StillnessMotionStrategy] = None

    @classmethod
    def instance(cls) -> StillnessMotionStrategy:
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def move(self, particle: Particle, dt: float) -> None:
        pass


class SlowBrownianMotionStrategy(MotionStrategy):
    """Occasional tiny jump away from a home location, then back again."""

    MIN_JUMP_DISTANCE = 0.1             # nm
    MAX_JUMP_DISTANCE = 1.0             # nm
    MIN_TIME_TO_NEXT_JUMP = 0.0009      # s of sim time
    MAX_TIME_TO_NEXT_JUMP = 0.0015      # s of sim time

    def __init__(self, initial_x: float, initial_y: float, rng: random.Random) -> None:
        self.initial_x = initial_x
        self.initial_y = initial_y
        self._rng = rng
        self.time_until_next_jump = self._new_jump_time()

    def _new_jump_time(self) -> float:
        return self.MIN_TIME_TO_NEXT_JUMP + self._rng.random() * (
            self.MAX_TIME_TO_NEXT_JUMP - self.MIN_TIME_TO_NEXT_JUMP
        )

    def move(self, particle: Particle, dt: float) -> None:
        self.time_until_next_jump -= dt
        if self.time_until_next_jump > 0:
            return
        if particle.x == self.initial_x and particle.y == self.initial_y:
            angle = self._rng.random() * math.pi * 2
            distance = self.MIN_JUMP_DISTANCE + self._rng.random() * (
                self.MAX_JUMP_DISTANCE - self.MIN_JUMP_DISTANCE
            )
            particle.set_position(
                particle.x + distance * math.cos(angle),
                particle.y + distance * math.sin(angle),
            )
        else:
            particle.set_position(self.initial_x, self.initial_y)
        self.time_until_next_jump = self._new_jump_time()


class LinearMotionStrategy(MotionStrategy):
    def __init__(self, vx: float, vy: float) -> None:
        self.vx = vx                    # nm/s
        self.vy = vy

    def move(self, particle: Particle, dt: float) -> None:
        particle.set_position(particle.x + self.vx * dt, particle.y + self.vy * dt)


class SpeedChangeLinearMotionStrategy(MotionStrategy):
    """Straight-line motion that changes speed once, after `time_at_first_speed`."""

    def __init__(self, vx: float, vy: float, speed_scale_factor: float, time_at_first_speed: float) -> None:
        self.vx = vx
        self.vy = vy
        self.speed_scale_factor = speed_scale_factor
        self.time_at_first_speed = time_at_first_speed
        self._elapsed = 0.0

    def move(self, particle: Particle, dt: float) -> None:
        # Split dt at the speed change so that rewinding retraces exactly.
        start = self._elapsed
        end = max(start + dt, 0.0)
        switch = self.time_at_first_speed
        first = min(end, switch) - min(start, switch)
        second = max(end, switch) - max(start, switch)
        effective = first + second * self.speed_scale_factor
        particle.set_position(particle.x + self.vx * effective, particle.y + self.vy * effective)
        self._elapsed = end

    @property
    def current_velocity(self) -> tuple[float, float]:
        scale = 1.0 if self._elapsed < self.time_at_first_speed else self.speed_scale_factor
        return self.vx * scale, self.vy * scale


class WanderAwayThenFadeMotionStrategy(MotionStrategy):
    """Random walk biased away from `away_point`, followed by a timed fade."""

    CLOCK_TICKS_BEFORE_MOTION_UPDATE = 5
    CLOCK_TICKS_BEFORE_VELOCITY_UPDATE = CLOCK_TICKS_BEFORE_MOTION_UPDATE * 10
    MOTION_UPDATE_PERIOD = DEFAULT_ACTION_POTENTIAL_CLOCK_DT * CLOCK_TICKS_BEFORE_MOTION_UPDATE
    VELOCITY_UPDATE_PERIOD = DEFAULT_ACTION_POTENTIAL_CLOCK_DT * CLOCK_TICKS_BEFORE_VELOCITY_UPDATE
    MIN_VELOCITY = 500.0                # nm/s
    MAX_VELOCITY = 5000.0               # nm/s

    def __init__(
        self,
        away_x: float,
        away_y: float,
        current_x: float,
        current_y: float,
        pre_fade_time: float,
        fade_out_duration: float,
        rng: random.Random,
    ) -> None:
        self.away_x = away_x
        self.away_y = away_y
        self.pre_fade_countdown_timer = pre_fade_time
        self.fade_out_duration = fade_out_duration
        self._rng = rng
        # Random phase so that particles released together do not move in lockstep.
        self.motion_update_countdown_timer = (
            rng.randrange(self.CLOCK_TICKS_BEFORE_MOTION_UPDATE) * DEFAULT_ACTION_POTENTIAL_CLOCK_DT
        )
        self.velocity_update_countdown_timer = (
            rng.randrange(self.CLOCK_TICKS_BEFORE_VELOCITY_UPDATE) * DEFAULT_ACTION_POTENTIAL_CLOCK_DT
        )
        self.vx = 0.0
        self.vy = 0.0
        self._update_velocity(current_x, current_y)

    def _update_velocity(self, x: float, y: float) -> None:
        away_angle = math.atan2(y - self.away_y, x - self.away_x) + (self._rng.random() - 0.5) * math.pi
        speed = self.MIN_VELOCITY + self._rng.random() * (self.MAX_VELOCITY - self.MIN_VELOCITY)
        self.vx = speed * math.cos(away_angle)
        self.vy = speed * math.sin(away_angle)

    def move(self, particle: Particle, dt: float) -> None:
        self.motion_update_countdown_timer -= dt
        if self.motion_update_countdown_timer <= 0:
            particle.set_position(
                particle.x + self.vx * self.MOTION_UPDATE_PERIOD,
                particle.y + self.vy * self.MOTION_UPDATE_PERIOD,
            )
            self.motion_update_countdown_timer = self.MOTION_UPDATE_PERIOD

        self.velocity_update_countdown_timer -= dt
        if self.velocity_update_countdown_timer <= 0:
            self._update_velocity(particle.x, particle.y)
            self.velocity_update_countdown_timer = self.VELOCITY_UPDATE_PERIOD

        if self.pre_fade_countdown_timer >= 0:
            self.pre_fade_countdown_timer -= dt
            if self.pre_fade_countdown_timer <= 0:
                particle.fade_strategy = TimedFadeAwayStrategy(self.fade_out_duration)


# ----------------------------------------------------------------------
# Channel traversal
# ----------------------------------------------------------------------
class MembraneTraversalMotionStrategy(MotionStrategy):
    """Waypoint-guided passage through a channel.

    Subclasses build the waypoint list; this base keeps track of the spawn
    point and implements the reverse traversal used when dt is negative.
    The strategy stays installed after the particle leaves the channel, so a
    rewind can undo the drift and carry the particle back through.
    """

    def __init__(
        self,
        channel: MembraneChannel,
        start_x: float,
        start_y: float,
        max_velocity: float,
        rng: random.Random,
    ) -> None:
        self.channel = channel
        self.max_velocity = max_velocity
        self._rng = rng
        self.spawn_point = (start_x, start_y)
        self.traversal_points = self._create_traversal_points(start_x, start_y)
        self.current_destination_index = 0
        self.vx, self.vy = _course(start_x, start_y, *self.traversal_points[0], max_velocity)
        self._time_since_exit = 0.0

    def _create_traversal_points(self, start_x: float, start_y: float) -> list[tuple[float, float]]:
        raise NotImplementedError

    def _mouths(self, distance: float) -> tuple[tuple[float, float], tuple[float, float]]:
        """Points `distance` outside and inside the channel centre, along its axis."""
        cx, cy = self.channel.center
        angle = self.channel.rotational_angle
        outer = (cx + math.cos(angle) * distance, cy + math.sin(angle) * distance)
        inner = (cx - math.cos(angle) * distance, cy - math.sin(angle) * distance)
        return outer, inner

    @property
    def speed(self) -> float:
        return math.hypot(self.vx, self.vy)

    def _advance(self, particle: Particle, dt: float) -> None:
        particle.set_position(particle.x + self.vx * dt, particle.y + self.vy * dt)

    def _arrive(self, particle: Particle, dt: float) -> bool:
        """Snap to the current waypoint if it is within one step's travel."""
        tx, ty = self.traversal_points[self.current_destination_index]
        if math.hypot(tx - particle.x, ty - particle.y) < self.speed * dt:
            particle.set_position(tx, ty)
            self.current_destination_index += 1
            return True
        return False

    def _drift(self, particle: Particle, dt: float) -> None:
        """Motion after leaving the channel."""
        self._advance(particle, dt)

    def _drift_after_exit(self, particle: Particle, dt: float) -> None:
        self._drift(particle, dt)
        self._time_since_exit += dt

    def _move_backward(self, particle: Particle, dt: float) -> None:
        if self._time_since_exit > 0:
            # Undo the post-exit drift first.
            back = min(-dt, self._time_since_exit)
            self._drift(particle, -back)
            self._time_since_exit -= back
            dt += back
            if dt >= 0:
                return
            particle.set_position(*self.traversal_points[-1])
            self.current_destination_index = len(self.traversal_points) - 1
        elif self.current_destination_index >= len(self.traversal_points):
            self.current_destination_index = len(self.traversal_points) - 1
        self._retrace(particle, dt)

    def _retrace(self, particle: Particle, dt: float) -> None:
        """Walk back through the waypoints toward the spawn point."""
        remaining = self.max_velocity * -dt
        index = min(self.current_destination_index, len(self.traversal_points))
        while remaining > 0:
            target = self.spawn_point if index == 0 else self.traversal_points[index - 1]
            gap = math.hypot(target[0] - particle.x, target[1] - particle.y)
            if gap > remaining:
                particle.set_position(
                    particle.x + (target[0] - particle.x) * remaining / gap,
                    particle.y + (target[1] - particle.y) * remaining / gap,
                )
                break
            particle.set_position(*target)
            remaining -= gap
            if index == 0:
                particle.continue_existing = False
                break
            index -= 1
        self.current_destination_index = index
        if index < len(self.traversal_points):
            self.vx, self.vy = _course(
                particle.x, particle.y, *self.traversal_points[index], self.max_velocity
            )

    def _wander_away(self, particle: Particle) -> None:
        cx, cy = self.channel.center
        particle.motion_strategy = WanderAwayThenFadeMotionStrategy(
            cx, cy, particle.x, particle.y, 0.0, 0.002, self._rng
        )


class TraverseChannelAndFadeMotionStrategy(MembraneTraversalMotionStrategy):
    """Two-point traversal used by single-gated and leak channels."""

    def __init__(
        self,
        channel: MembraneChannel,
        start_x: float,
        start_y: float,
        max_velocity: float = DEFAULT_MAX_VELOCITY,
        rng: Optional[random.Random] = None,
    ) -> None:
        super().__init__(channel, start_x, start_y, max_velocity, rng or random.Random())
        self.channel_has_been_entered = False

    def _create_traversal_points(self, start_x: float, start_y: float) -> list[tuple[float, float]]:
        # Slightly outside the channel on either side, nearest mouth first.
        outer, inner = self._mouths(self.channel.channel_height * 0.65)
        if math.dist((start_x, start_y), inner) < math.dist((start_x, start_y), outer):
            return [inner, outer]
        return [outer, inner]

    def move(self, particle: Particle, dt: float) -> None:
        if dt < 0:
            self._move_backward(particle, dt)
            return

        if not self.channel_has_been_entered:
            self.channel_has_been_entered = self.channel.is_point_in_channel(particle.x, particle.y)

        if not (self.channel.is_open() or self.channel_has_been_entered):
            self._wander_away(particle)
            return

        if self.current_destination_index >= len(self.traversal_points):
            self._drift_after_exit(particle, dt)
            return

        if not self._arrive(particle, dt):
            self._advance(particle, dt)
            return

        if self.current_destination_index < len(self.traversal_points):
            self.vx, self.vy = _course(
                particle.x, particle.y,
                *self.traversal_points[self.current_destination_index],
                self.max_velocity,
            )
            return

        # Through the channel: veer off, slow down if fast, and fade out.
        self.vx, self.vy = _rotate(self.vx, self.vy, (self._rng.random() - 0.5) * math.pi * 0.9)
        particle.fade_strategy = TimedFadeAwayStrategy(0.002)
        if self.max_velocity / DEFAULT_MAX_VELOCITY >= 0.5:
            self.vx *= 0.2
            self.vy *= 0.2


class DualGateChannelTraversalMotionStrategy(MembraneTraversalMotionStrategy):
    """Three-point traversal through a channel with an inactivation gate.

    The middle waypoint sits just above the inactivation gate.  If the gate
    closes while the particle is headed there, the particle bounces back out
    the way it came.
    """

    INACTIVATION_BOUNCE_THRESHOLD = 0.5

    def __init__(
        self,
        channel: MembraneChannel,
        start_x: float,
        start_y: float,
        max_velocity: float = DEFAULT_MAX_VELOCITY,
        rng: Optional[random.Random] = None,
    ) -> None:
        super().__init__(channel, start_x, start_y, max_velocity, rng or random.Random())
        self.bouncing = False
        # Linear motion taken over once the particle is out of the channel.
        self.exit_motion: Optional[MotionStrategy] = None

    def _create_traversal_points(self, start_x: float, start_y: float) -> list[tuple[float, float]]:
        outer, inner = self._mouths(self.channel.channel_height * 0.5)
        cx, cy = self.channel.center
        angle = self.channel.rotational_angle
        r = self.channel.channel_height * 0.5
        above_gate = (cx - math.cos(angle) * r * 0.5, cy - math.sin(angle) * r * 0.5)
        if math.dist((start_x, start_y), inner) < math.dist((start_x, start_y), outer):
            return [inner, above_gate, outer]
        return [outer, above_gate, inner]

    def move(self, particle: Particle, dt: float) -> None:
        if dt < 0:
            self._move_backward(particle, dt)
            return

        index = self.current_destination_index
        if index >= len(self.traversal_points):
            self._drift_after_exit(particle, dt)
            return

        if index == 0:
            if not self.channel.is_open():
                self._wander_away(particle)
                self.current_destination_index = len(self.traversal_points)
            elif self._arrive(particle, dt):
                self._set_course_for_next_point(particle)
            else:
                self._advance(particle, dt)

        elif index == 1:
            if self.channel.inactivation_amount > self.INACTIVATION_BOUNCE_THRESHOLD and not self.bouncing:
                self.traversal_points[2] = self.traversal_points[0]
                self.bouncing = True
            if self._arrive(particle, dt):
                self._set_course_for_next_point(particle)
                if self.bouncing:
                    self.vx *= 0.5
                    self.vy *= 0.5
            else:
                self._advance(particle, dt)

        elif self._arrive(particle, dt):
            self._exit_channel(particle)
        else:
            self._advance(particle, dt)

    def _set_course_for_next_point(self, particle: Particle) -> None:
        self.vx, self.vy = _course(
            particle.x, particle.y,
            *self.traversal_points[self.current_destination_index],
            self.max_velocity,
        )

    def _drift(self, particle: Particle, dt: float) -> None:
        if self.exit_motion is None:
            self._advance(particle, dt)
        else:
            self.exit_motion.move(particle, dt)

    def _exit_channel(self, particle: Particle) -> None:
        rng = self._rng
        if self.bouncing:
            vx, vy = _rotate(self.vx, self.vy, (rng.random() - 0.5) * math.pi)
            scale = 0.3 + rng.random() * 0.2
            self.exit_motion = LinearMotionStrategy(vx * scale, vy * scale)
        else:
            scale = 0.5 + rng.random() * 0.3
            # Keep clear of the inactivation gate, which hangs to one side.
            inactivation = self.channel.inactivation_amount
            if rng.random() > 0.3:
                max_rotation = math.pi * 0.4
                angular_range = (1 - inactivation) * math.pi * 0.3
            else:
                max_rotation = -math.pi * 0.4
                angular_range = (1 - inactivation) * -math.pi * 0.1
            min_rotation = max_rotation - angular_range
            angle = min_rotation + rng.random() * (max_rotation - min_rotation)
            vx, vy = _rotate(self.vx * scale, self.vy * scale, angle)
            self.exit_motion = SpeedChangeLinearMotionStrategy(vx, vy, 0.2, 0.0002)
        particle.fade_strategy = TimedFadeAwayStrategy(0.003)
