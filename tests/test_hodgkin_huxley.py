"""Tests for the modified Hodgkin-Huxley integrator."""

import math

import pytest

from axolemma.constants import DEFAULT_ACTION_POTENTIAL_CLOCK_DT
from axolemma.hodgkin_huxley import INTERNAL_TIME_STEP, ModifiedHodgkinHuxleyModel


def _trajectory(model: ModifiedHodgkinHuxleyModel):
    return (model.v, model.m, model.h, model.n, model.elapsed_time)


class TestRest:
    def test_resting_potential(self):
        hh = ModifiedHodgkinHuxleyModel()
        assert hh.get_v() == pytest.approx(-65.0)
        assert hh.resting_potential == pytest.approx(-65.0)
        assert hh.membrane_voltage == pytest.approx(-0.065)

    def test_stays_at_rest_without_stimulus(self):
        hh = ModifiedHodgkinHuxleyModel()
        for _ in range(100):
            hh.step_in_time(DEFAULT_ACTION_POTENTIAL_CLOCK_DT)
        assert hh.get_v() == pytest.approx(-65.0)
        assert hh.m3h == 0.0
        assert hh.n4 == 0.0

    def test_gating_variables_in_range(self):
        hh = ModifiedHodgkinHuxleyModel()
        for value in (hh.m, hh.h, hh.n):
            assert 0.0 <= value <= 1.0

    def test_reversal_potentials(self):
        hh = ModifiedHodgkinHuxleyModel()
        assert hh.ena == pytest.approx(50.0)
        assert hh.ek == pytest.approx(-77.0)
        hh.ena = 40.0
        assert hh.ena == pytest.approx(40.0)


class TestStimulus:
    def test_stimulate_depolarizes(self):
        hh = ModifiedHodgkinHuxleyModel()
        hh.stimulate()
        assert hh.get_v() == pytest.approx(-50.0)
        assert hh.time_since_action_potential == 0.0

    def test_action_potential_rises_and_decays(self):
        hh = ModifiedHodgkinHuxleyModel()
        hh.stimulate()

        previous_time = hh.time_since_action_potential
        peak_m3h = peak_n4 = 0.0
        while hh.elapsed_time / INTERNAL_TIME_STEP < 20000:
            hh.step_in_time(DEFAULT_ACTION_POTENTIAL_CLOCK_DT)
            assert hh.time_since_action_potential > previous_time
            previous_time = hh.time_since_action_potential
            peak_m3h = max(peak_m3h, hh.m3h)
            peak_n4 = max(peak_n4, hh.n4)
            if peak_n4 > 0 and hh.m3h == 0.0 and hh.n4 == 0.0:
                break

        assert peak_m3h > 0.1
        assert peak_n4 > 0.1
        assert hh.m3h == 0.0
        assert hh.n4 == 0.0
        assert hh.elapsed_time / INTERNAL_TIME_STEP < 20000

    def test_currents_flow_during_action_potential(self):
        hh = ModifiedHodgkinHuxleyModel()
        hh.stimulate()
        for _ in range(25):
            hh.step_in_time(DEFAULT_ACTION_POTENTIAL_CLOCK_DT)
        assert abs(hh.na_current) > 0.001
        assert hh.get_v() > -65.0


class TestChunking:
    def _run(self, chunks):
        hh = ModifiedHodgkinHuxleyModel()
        hh.stimulate()
        for dt in chunks:
            hh.step_in_time(dt)
        return _trajectory(hh)

    def test_equal_chunks(self):
        coarse = self._run([4e-5] * 50)
        fine = self._run([2e-5] * 100)
        assert fine == pytest.approx(coarse, rel=1e-9, abs=1e-12)

    def test_remainders_carry_over(self):
        # 1.2e-5 and 2.8e-5 are 2.4 and 5.6 sub-steps; the fractions add up.
        uneven = self._run([1.2e-5, 2.8e-5] * 50)
        even = self._run([4e-5] * 50)
        assert uneven == pytest.approx(even, rel=1e-9, abs=1e-12)

    def test_short_steps_accumulate(self):
        hh = ModifiedHodgkinHuxleyModel()
        for _ in range(4):
            hh.step_in_time(1.25e-6)
        assert hh.elapsed_time == pytest.approx(INTERNAL_TIME_STEP)


class TestDelayedValues:
    def test_non_positive_delay_is_instantaneous(self):
        hh = ModifiedHodgkinHuxleyModel()
        hh.stimulate()
        for _ in range(10):
            hh.step_in_time(DEFAULT_ACTION_POTENTIAL_CLOCK_DT)
        assert hh.get_delayed_m3h(0) == hh.m3h
        assert hh.get_delayed_n4(-1) == hh.n4

    def test_delayed_value_lags(self):
        hh = ModifiedHodgkinHuxleyModel()
        hh.stimulate()
        dt = DEFAULT_ACTION_POTENTIAL_CLOCK_DT
        history = []
        for _ in range(10):
            hh.step_in_time(dt)
            history.append(hh.m3h)
        # m3h is still rising, so older readings are smaller.
        assert hh.get_delayed_m3h(3 * dt) == pytest.approx(history[-3])
        assert hh.get_delayed_m3h(3 * dt) < hh.m3h


class TestState:
    def test_round_trip(self):
        hh = ModifiedHodgkinHuxleyModel()
        hh.stimulate()
        for _ in range(5):
            hh.step_in_time(DEFAULT_ACTION_POTENTIAL_CLOCK_DT)
        state = hh.get_state()
        delayed = hh.get_delayed_m3h(0.0002)
        for _ in range(20):
            hh.step_in_time(DEFAULT_ACTION_POTENTIAL_CLOCK_DT)
        hh.set_state(state)
        assert (hh.m, hh.h, hh.n, hh.v) == (state.m, state.h, state.n, state.v)
        assert hh.time_since_action_potential == state.time_since_action_potential
        assert hh.get_delayed_m3h(0.0002) == delayed

    def test_snapshot_buffers_not_mutated(self):
        hh = ModifiedHodgkinHuxleyModel()
        hh.step_in_time(DEFAULT_ACTION_POTENTIAL_CLOCK_DT)
        state = hh.get_state()
        recorded = len(state.m3h_delay_buffer)
        for _ in range(5):
            hh.step_in_time(DEFAULT_ACTION_POTENTIAL_CLOCK_DT)
        assert len(state.m3h_delay_buffer) == recorded
        assert len(state.n4_delay_buffer) == recorded


class TestControls:
    def test_channel_percentages(self):
        hh = ModifiedHodgkinHuxleyModel()
        hh.per_na_channels = 50
        assert hh.gna == pytest.approx(60.0)
        hh.per_k_channels = -10
        assert hh.per_k_channels == 0.0
        assert hh.gk == 0.0

    def test_voltage_clamp(self):
        hh = ModifiedHodgkinHuxleyModel()
        hh.v_clamp_on = True
        hh.v_clamp_value = -40.0
        hh.step_in_time(DEFAULT_ACTION_POTENTIAL_CLOCK_DT)
        assert hh.get_v() == pytest.approx(-40.0)

    def test_convert_v(self):
        hh = ModifiedHodgkinHuxleyModel()
        assert hh.convert_v(-65.0) == pytest.approx(0.0)
        hh.set_v(-30.0)
        assert hh.get_v() == pytest.approx(-30.0)

    def test_reset_elapsed_time(self):
        hh = ModifiedHodgkinHuxleyModel()
        hh.step_in_time(DEFAULT_ACTION_POTENTIAL_CLOCK_DT)
        assert hh.elapsed_time > 0
        hh.reset_elapsed_time()
        assert hh.elapsed_time == 0.0
        assert math.isinf(ModifiedHodgkinHuxleyModel().time_since_action_potential)
