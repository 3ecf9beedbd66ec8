"""Modified Hodgkin-Huxley conductance model.

The gating variables m, h, n are integrated the textbook way, but the
activation products that drive the membrane channels (m3h, n4) are replaced
by empirically fit Gaussian pulses centred on the time since the last
stimulus.  The pulses were tuned so that the visual channel behaviour looks
right; they make no claim to biophysical accuracy.

Sign convention: internally `v` is the negated displacement from rest in mV,
so a resting membrane has v == 0.  Everything exposed publicly uses the
modern convention (resting potential -65 mV).

Units: the integrator runs in milliseconds; `step_in_time` takes seconds.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from .constants import MIN_ACTION_POTENTIAL_CLOCK_DT
from .delay_buffer import DelayBuffer

logger = logging.getLogger(__name__)

INTERNAL_TIME_STEP = 0.005              # ms, fixed sub-step
MAX_DELAY = 0.001                       # s, longest delayed read supported
ACTIVATION_SNAP_THRESHOLD = 1e-5        # m3h / n4 below this read as exactly 0
STIMULUS_DEPOLARIZATION = 15.0          # mV added by stimulate()

# Remainders this close to a full sub-step count as one.
_LEAP_TOLERANCE = 1e-9


@dataclass
class HodgkinHuxleyState:
    """Snapshot of the integrator used for playback.

    The delay buffers are held by reference.  The model never writes into a
    buffer that has been handed out in a snapshot; it copies first.
    """

    m: float
    h: float
    n: float
    v: float
    time_since_action_potential: float
    m3h_delay_buffer: DelayBuffer
    n4_delay_buffer: DelayBuffer


class ModifiedHodgkinHuxleyModel:
    """Fixed-step integrator for membrane voltage and gating variables."""

    def __init__(self) -> None:
        self.resting_v = 65.0            # mV, internal convention
        self._per_na_channels = 100.0
        self._per_k_channels = 100.0
        self.elapsed_time = 0.0          # ms
        self.time_since_action_potential = math.inf  # ms

        self._m3h_delay_buffer = DelayBuffer(MAX_DELAY, MIN_ACTION_POTENTIAL_CLOCK_DT)
        self._n4_delay_buffer = DelayBuffer(MAX_DELAY, MIN_ACTION_POTENTIAL_CLOCK_DT)
        self._buffers_shared = False

        self._time_remainder = 0.0

        self.v_clamp_on = False
        self._v_clamp_value = self.convert_v(0.0)
        self.reset()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def reset(self) -> None:
        """Restore the resting steady state."""
        self._fresh_buffers()
        self._m3h_delay_buffer.clear()
        self._n4_delay_buffer.clear()

        self.cm = 1.0                    # membrane capacitance
        self.v = 0.0
        self.vna = -115.0
        self.vk = 12.0
        self.vl = 0.0
        self.gna = self._per_na_channels * 120 / 100
        self.gk = self._per_k_channels * 36 / 100
        self.gl = 0.3

        self._update_rate_constants()
        self.n = self.an / (self.an + self.bn)
        self.m = self.am / (self.am + self.bm)
        self.h = self.ah / (self.ah + self.bh)
        self.time_since_action_potential = math.inf
        self.m3h = 0.0
        self.n4 = 0.0
        self._na_current = 0.0
        self._k_current = 0.0
        self._l_current = 0.0

    def step_in_time(self, dt: float) -> None:
        """Advance by `dt` seconds of simulation time in fixed sub-steps.

        The fraction of a sub-step that does not fit into `dt` is carried to
        the next call and one extra sub-step is taken once it adds up.
        """
        dt_ms = dt * 1000
        iterations = math.floor(dt_ms / INTERNAL_TIME_STEP)
        self._time_remainder += dt_ms - iterations * INTERNAL_TIME_STEP
        if self._time_remainder >= INTERNAL_TIME_STEP - _LEAP_TOLERANCE:
            iterations += 1
            self._time_remainder -= INTERNAL_TIME_STEP

        for _ in range(max(iterations, 0)):
            self._sub_step()

        self._fresh_buffers()
        self._m3h_delay_buffer.add_value(self.m3h, dt)
        self._n4_delay_buffer.add_value(self.n4, dt)

        if self.v_clamp_on:
            self.v = self._v_clamp_value

    def _sub_step(self) -> None:
        step = INTERNAL_TIME_STEP
        self._update_rate_constants()
        dh = (self.ah * (1 - self.h) - self.bh * self.h) * step
        dm = (self.am * (1 - self.m) - self.bm * self.m) * step
        dn = (self.an * (1 - self.n) - self.bn * self.n) * step

        tsap = self.time_since_action_potential
        self.n4 = 0.55 * math.exp(-1 / 0.55 * (tsap - 1.75) ** 2)
        self.m3h = 0.3 * math.exp(-1 / 0.2 * (tsap - 1.0) ** 2)
        if self.n4 < ACTIVATION_SNAP_THRESHOLD:
            self.n4 = 0.0
        if self.m3h < ACTIVATION_SNAP_THRESHOLD:
            self.m3h = 0.0

        self._na_current = self.gna * self.m3h * (self.v - self.vna)
        self._k_current = self.gk * self.n4 * (self.v - self.vk)
        self._l_current = self.gl * (self.v - self.vl)
        dv = -step * (self._k_current + self._na_current + self._l_current) / self.cm

        self.v += dv
        self.h += dh
        self.m += dm
        self.n += dn
        self.elapsed_time += step
        if self.time_since_action_potential < math.inf:
            self.time_since_action_potential += step

    def _update_rate_constants(self) -> None:
        v = self.v
        self.bh = 1 / (math.exp((v + 30) / 10) + 1)
        self.ah = 0.07 * math.exp(v / 20)
        self.bm = 4 * math.exp(v / 18)
        self.am = 0.1 * (v + 25) / (math.exp((v + 25) / 10) - 1)
        self.bn = 0.125 * math.exp(v / 80)
        self.an = 0.01 * (v + 10) / (math.exp((v + 10) / 10) - 1)

    def _fresh_buffers(self) -> None:
        # Copy-on-write for buffers referenced by a snapshot.
        if self._buffers_shared:
            self._m3h_delay_buffer = self._m3h_delay_buffer.copy()
            self._n4_delay_buffer = self._n4_delay_buffer.copy()
            self._buffers_shared = False

    def stimulate(self) -> None:
        """Depolarize the membrane and start the action potential clock."""
        self.set_v(self.get_v() + STIMULUS_DEPOLARIZATION)
        self.time_since_action_potential = 0.0
        logger.debug("Membrane stimulated, v=%.2f mV", self.get_v())

    # ------------------------------------------------------------------
    # Playback state
    # ------------------------------------------------------------------
    def get_state(self) -> HodgkinHuxleyState:
        self._buffers_shared = True
        return HodgkinHuxleyState(
            m=self.m,
            h=self.h,
            n=self.n,
            v=self.v,
            time_since_action_potential=self.time_since_action_potential,
            m3h_delay_buffer=self._m3h_delay_buffer,
            n4_delay_buffer=self._n4_delay_buffer,
        )

    def set_state(self, state: HodgkinHuxleyState) -> None:
        self.m = state.m
        self.h = state.h
        self.n = state.n
        self.v = state.v
        self.time_since_action_potential = state.time_since_action_potential
        self._m3h_delay_buffer = state.m3h_delay_buffer
        self._n4_delay_buffer = state.n4_delay_buffer
        self._buffers_shared = True

    # ------------------------------------------------------------------
    # Activation products
    # ------------------------------------------------------------------
    def get_delayed_m3h(self, delay: float) -> float:
        """m3h as it was `delay` seconds ago; the current value if delay <= 0."""
        if delay <= 0:
            return self.m3h
        return self._m3h_delay_buffer.get_delayed_value(delay)

    def get_delayed_n4(self, delay: float) -> float:
        """n4 as it was `delay` seconds ago; the current value if delay <= 0."""
        if delay <= 0:
            return self.n4
        return self._n4_delay_buffer.get_delayed_value(delay)

    # ------------------------------------------------------------------
    # Currents, external sign convention
    # ------------------------------------------------------------------
    @property
    def na_current(self) -> float:
        return -self._na_current

    @property
    def k_current(self) -> float:
        return -self._k_current

    @property
    def l_current(self) -> float:
        return -self._l_current

    # ------------------------------------------------------------------
    # Channel availability
    # ------------------------------------------------------------------
    @property
    def per_na_channels(self) -> float:
        """Percentage of sodium channels available."""
        return self._per_na_channels

    @per_na_channels.setter
    def per_na_channels(self, value: float) -> None:
        value = max(value, 0.0)
        self._per_na_channels = value
        self.gna = 120 * value / 100

    @property
    def per_k_channels(self) -> float:
        """Percentage of potassium channels available."""
        return self._per_k_channels

    @per_k_channels.setter
    def per_k_channels(self, value: float) -> None:
        value = max(value, 0.0)
        self._per_k_channels = value
        self.gk = 36 * value / 100

    # ------------------------------------------------------------------
    # Voltages, external sign convention (mV unless noted)
    # ------------------------------------------------------------------
    def convert_v(self, voltage: float) -> float:
        """Convert a modern-convention voltage to the internal convention."""
        return -voltage - self.resting_v

    def get_v(self) -> float:
        return -(self.v + self.resting_v)

    def set_v(self, voltage: float) -> None:
        self.v = self.convert_v(voltage)

    @property
    def resting_potential(self) -> float:
        return -self.resting_v

    @property
    def membrane_voltage(self) -> float:
        """Membrane potential in volts."""
        return self.get_v() / 1000

    @property
    def ena(self) -> float:
        return -(self.vna + self.resting_v)

    @ena.setter
    def ena(self, value: float) -> None:
        self.vna = self.convert_v(value)

    @property
    def ek(self) -> float:
        return -(self.vk + self.resting_v)

    @ek.setter
    def ek(self, value: float) -> None:
        self.vk = self.convert_v(value)

    @property
    def v_clamp_value(self) -> float:
        return -(self._v_clamp_value + self.resting_v)

    @v_clamp_value.setter
    def v_clamp_value(self, value: float) -> None:
        self._v_clamp_value = self.convert_v(value)

    def reset_elapsed_time(self) -> None:
        self.elapsed_time = 0.0
