"""Shared clock and geometry constants for the axon membrane model.

Units: distances in nanometers, simulation time in seconds unless a name
says otherwise.
"""

from __future__ import annotations

CLOCK_FRAME_RATE = 15                   # frames per second (wall time)

MIN_ACTION_POTENTIAL_CLOCK_DT = (1 / CLOCK_FRAME_RATE) / 3000
MAX_ACTION_POTENTIAL_CLOCK_DT = (1 / CLOCK_FRAME_RATE) / 1000
DEFAULT_ACTION_POTENTIAL_CLOCK_DT = (
    MIN_ACTION_POTENTIAL_CLOCK_DT + MAX_ACTION_POTENTIAL_CLOCK_DT
) * 0.55

MEMBRANE_THICKNESS = 4.0                # nm
DEFAULT_DIAMETER = 150.0                # nm, axon cross-section
CROSS_SECTION_RADIUS = DEFAULT_DIAMETER / 2

DEFAULT_MAX_VELOCITY = 40000.0          # nm per second of sim time

TIME_SPAN = 25                          # seconds of wall time kept by recording, ms shown by the chart
