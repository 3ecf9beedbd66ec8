"""Axon membrane geometry and the traveling action potential.

The membrane is drawn as a cross-section (a circle at the origin) with the
body of the axon receding toward a vanishing point.  Two cubic curves run
from the vanishing point to opposite edges of the cross-section; an action
potential is a curve that slides along both of them until it reaches the
cross-section, where it lingers briefly as a pulsing circle.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional, Union

from .constants import DEFAULT_DIAMETER, MEMBRANE_THICKNESS

logger = logging.getLogger(__name__)

BODY_LENGTH = DEFAULT_DIAMETER * 1.5    # nm, to the vanishing point
BODY_TILT_ANGLE = math.pi / 4

TRAVELING_TIME = 0.0020                 # s, from stimulus site to cross-section
LINGER_AT_CROSS_SECTION_TIME = 0.0005   # s

Point = tuple[float, float]


class ActionPotentialInFlightError(RuntimeError):
    """Raised when a traveling action potential is started while one exists."""


# ======================================================================
# Shapes
# ======================================================================
@dataclass(frozen=True)
class CubicCurve:
    start: Point
    control1: Point
    control2: Point
    end: Point


@dataclass(frozen=True)
class Circle:
    center: Point
    radius: float


ActionPotentialShape = Union[CubicCurve, Circle]


def evaluate_curve(curve: CubicCurve, t: float) -> Point:
    """Point at proportion `t` along a cubic Bezier curve."""
    if t < 0 or t > 1:
        raise ValueError(f"Proportion out of range: {t}")
    # De Casteljau reduction.
    points = [curve.start, curve.control1, curve.control2, curve.end]
    while len(points) > 1:
        points = [
            (a[0] + (b[0] - a[0]) * t, a[1] + (b[1] - a[1]) * t)
            for a, b in zip(points, points[1:])
        ]
    return points[0]


# ======================================================================
# Traveling action potential
# ======================================================================
@dataclass(frozen=True)
class TravelingActionPotentialState:
    travel_time_countdown_timer: float
    linger_countdown_timer: float


@dataclass(frozen=True)
class ActionPotentialEvents:
    """What happened to a traveling action potential during one step."""

    cross_section_reached: bool = False
    lingering_completed: bool = False


class TravelingActionPotential:
    """Impulse traveling along the axon body toward the cross-section."""

    def __init__(self, axon_membrane: AxonMembrane) -> None:
        self.axon_membrane = axon_membrane
        self.travel_time_countdown_timer = TRAVELING_TIME
        self.linger_countdown_timer = 0.0
        self.shape: Optional[ActionPotentialShape] = None
        self._update_shape()

    @property
    def is_lingering(self) -> bool:
        return self.travel_time_countdown_timer <= 0 and self.linger_countdown_timer > 0

    def step_in_time(self, dt: float) -> ActionPotentialEvents:
        if self.travel_time_countdown_timer > 0:
            self.travel_time_countdown_timer -= dt
            self._update_shape()
            if self.travel_time_countdown_timer <= 0:
                self.linger_countdown_timer = LINGER_AT_CROSS_SECTION_TIME
                return ActionPotentialEvents(cross_section_reached=True)
        elif self.linger_countdown_timer > 0:
            self.linger_countdown_timer -= dt
            if self.linger_countdown_timer <= 0:
                self.shape = None
                return ActionPotentialEvents(lingering_completed=True)
            self._update_shape()
        return ActionPotentialEvents()

    def _update_shape(self) -> None:
        if self.travel_time_countdown_timer > 0:
            self.shape = self._traveling_shape()
        else:
            growth = (1 - abs(self.linger_countdown_timer / LINGER_AT_CROSS_SECTION_TIME - 0.5) * 2) * 0.04 + 1
            self.shape = Circle((0.0, 0.0), self.axon_membrane.cross_section_diameter * growth / 2)

    def _traveling_shape(self) -> CubicCurve:
        travel = 1 - self.travel_time_countdown_timer / TRAVELING_TIME
        start = evaluate_curve(self.axon_membrane.curve_a, travel)
        end = evaluate_curve(self.axon_membrane.curve_b, travel)
        mid = ((start[0] + end[0]) / 2, (start[1] + end[1]) / 2)
        span = math.dist(start, end)
        ctrl1_distance = span * 0.7 * travel ** 1.8
        ctrl2_distance = span * 0.7 * travel ** 0.8
        perpendicular = math.atan2(end[1] - start[1], end[0] - start[0]) + math.pi / 2
        ctrl1 = (
            mid[0] + ctrl1_distance * math.cos(perpendicular + math.pi / 6),
            mid[1] + ctrl1_distance * math.sin(perpendicular + math.pi / 6),
        )
        ctrl2 = (
            mid[0] + ctrl2_distance * math.cos(perpendicular - math.pi / 6),
            mid[1] + ctrl2_distance * math.sin(perpendicular - math.pi / 6),
        )
        return CubicCurve(start, ctrl1, ctrl2, end)

    def get_state(self) -> TravelingActionPotentialState:
        return TravelingActionPotentialState(self.travel_time_countdown_timer, self.linger_countdown_timer)

    def set_state(self, state: TravelingActionPotentialState) -> None:
        self.travel_time_countdown_timer = state.travel_time_countdown_timer
        self.linger_countdown_timer = state.linger_countdown_timer
        self._update_shape()


# ======================================================================
# Axon membrane
# ======================================================================
class AxonMembrane:
    """Fixed membrane geometry plus at most one traveling action potential."""

    def __init__(self) -> None:
        self.membrane_thickness = MEMBRANE_THICKNESS
        self.cross_section_diameter = DEFAULT_DIAMETER
        self.traveling_action_potential: Optional[TravelingActionPotential] = None

        self.vanishing_point = (
            BODY_LENGTH * math.cos(BODY_TILT_ANGLE),
            BODY_LENGTH * math.sin(BODY_TILT_ANGLE),
        )
        r = self.cross_section_diameter / 2 + self.membrane_thickness / 2
        theta = BODY_TILT_ANGLE + math.pi * 0.45
        self.intersection_point_a = (r * math.cos(theta), r * math.sin(theta))
        theta += math.pi
        self.intersection_point_b = (r * math.cos(theta), r * math.sin(theta))

        vp = self.vanishing_point
        a = self.intersection_point_a
        b = self.intersection_point_b

        angle_to_vp = math.atan2(vp[1] - a[1], vp[0] - a[0])
        dist_a = math.dist(a, vp)
        ctrl_a1 = _offset(a, dist_a * 0.33, angle_to_vp + 0.15)
        ctrl_a2 = _offset(a, dist_a * 0.67, angle_to_vp - 0.5)

        angle_to_b = math.atan2(b[1] - vp[1], b[0] - vp[0])
        dist_b = math.dist(b, vp)
        ctrl_b1 = _offset(vp, dist_b * 0.33, angle_to_b + 0.1)
        ctrl_b2 = _offset(vp, dist_b * 0.67, angle_to_b - 0.25)

        self.curve_a = CubicCurve(vp, ctrl_a2, ctrl_a1, a)
        self.curve_b = CubicCurve(vp, ctrl_b1, ctrl_b2, b)

    def initiate_traveling_action_potential(self) -> TravelingActionPotential:
        if self.traveling_action_potential is not None:
            raise ActionPotentialInFlightError("An action potential is already traveling")
        self.traveling_action_potential = TravelingActionPotential(self)
        logger.debug("Traveling action potential initiated")
        return self.traveling_action_potential

    def remove_traveling_action_potential(self) -> None:
        self.traveling_action_potential = None

    def step_in_time(self, dt: float) -> bool:
        """Advance the traveling potential; True when it reached the cross-section."""
        tap = self.traveling_action_potential
        if tap is None:
            return False
        events = tap.step_in_time(dt)
        if events.cross_section_reached:
            logger.debug("Action potential reached the cross-section")
        if events.lingering_completed:
            self.remove_traveling_action_potential()
        return events.cross_section_reached

    def reset(self) -> None:
        self.remove_traveling_action_potential()

    def get_state(self) -> Optional[TravelingActionPotentialState]:
        if self.traveling_action_potential is None:
            return None
        return self.traveling_action_potential.get_state()

    def set_state(self, state: Optional[TravelingActionPotentialState]) -> None:
        if state is None:
            self.remove_traveling_action_potential()
            return
        if self.traveling_action_potential is None:
            self.traveling_action_potential = TravelingActionPotential(self)
        self.traveling_action_potential.set_state(state)


def _offset(origin: Point, distance: float, angle: float) -> Point:
    return (origin[0] + distance * math.cos(angle), origin[1] + distance * math.sin(angle))
