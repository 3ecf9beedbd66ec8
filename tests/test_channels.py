"""Tests for membrane channels."""

import math
import random

import pytest

from axolemma.capture_zone import NullCaptureZone, PieSliceCaptureZone
from axolemma.channels import (
    DualGatedChannelState,
    GateState,
    MembraneChannel,
    PotassiumGatedChannel,
    PotassiumLeakageChannel,
    SodiumDualGatedChannel,
    SodiumLeakageChannel,
    create_membrane_channel,
)
from axolemma.hodgkin_huxley import ModifiedHodgkinHuxleyModel
from axolemma.models import MembraneChannelType, MembraneCrossingDirection, ParticleType

DT = 1e-5


class RecordingCapture:
    def __init__(self):
        self.requests = []

    def request_particle_through_channel(self, particle_type, channel, max_velocity, direction):
        self.requests.append((particle_type, channel, max_velocity, direction))


class FixedHodgkinHuxley:
    """Integrator stand-in whose delayed readings are set by the test."""

    def __init__(self, m3h=0.0, n4=0.0, l_current=0.0):
        self.m3h = m3h
        self.n4 = n4
        self.l_current = l_current

    def get_delayed_m3h(self, delay):
        return self.m3h

    def get_delayed_n4(self, delay):
        return self.n4


class TestBaseChannel:
    @pytest.mark.parametrize("openness", [0.0, 0.2, 0.21, 0.5, 1.0])
    @pytest.mark.parametrize("inactivation", [0.0, 0.5, 0.69, 0.7, 1.0])
    def test_is_open_iff_thresholds(self, openness, inactivation):
        channel = PotassiumGatedChannel(RecordingCapture(), FixedHodgkinHuxley(), random.Random(0))
        channel.openness = openness
        channel.inactivation_amount = inactivation
        assert channel.is_open() == (openness > 0.2 and inactivation < 0.7)

    def test_abstract_capture_queries(self):
        channel = MembraneChannel(RecordingCapture(), FixedHodgkinHuxley())
        with pytest.raises(NotImplementedError):
            channel.get_particle_type_to_capture()
        with pytest.raises(NotImplementedError):
            channel.choose_crossing_direction()

    def test_point_in_channel_respects_rotation(self):
        channel = PotassiumGatedChannel(RecordingCapture(), FixedHodgkinHuxley(), random.Random(0))
        channel.set_center_location(10.0, 0.0)
        assert channel.is_point_in_channel(10.0, 0.0)
        assert channel.is_point_in_channel(12.0, 0.0)
        assert not channel.is_point_in_channel(10.0, 1.5)
        channel.set_rotational_angle(math.pi / 2)
        assert channel.is_point_in_channel(10.0, 2.0)
        assert not channel.is_point_in_channel(12.0, 0.0)

    def test_capture_zones_follow_channel(self):
        channel = PotassiumGatedChannel(RecordingCapture(), FixedHodgkinHuxley(), random.Random(0))
        channel.set_center_location(0.0, 50.0)
        channel.set_rotational_angle(math.pi / 2)
        interior = channel.interior_capture_zone()
        assert isinstance(interior, PieSliceCaptureZone)
        assert (interior.origin_x, interior.origin_y) == (0.0, 50.0)
        assert interior.contains(0.0, 45.0)
        assert isinstance(channel.exterior_capture_zone(), NullCaptureZone)


class TestPotassiumGated:
    def test_fully_conducting(self):
        capture = RecordingCapture()
        channel = PotassiumGatedChannel(capture, FixedHodgkinHuxley(n4=0.35), random.Random(0))
        assert channel.step_in_time(DT)
        assert channel.openness == 1.0
        assert channel.is_open()
        # Crossing the open threshold captures straight away.
        assert capture.requests
        particle_type, captured_by, _, direction = capture.requests[0]
        assert particle_type is ParticleType.POTASSIUM_ION
        assert captured_by is channel
        assert direction is MembraneCrossingDirection.IN_TO_OUT

    def test_not_conducting(self):
        capture = RecordingCapture()
        channel = PotassiumGatedChannel(capture, FixedHodgkinHuxley(n4=0.0), random.Random(0))
        assert not channel.step_in_time(DT)
        assert channel.openness == 0.0
        assert not channel.is_open()
        assert channel.capture_countdown_timer == math.inf
        assert capture.requests == []

    def test_closing_disables_capture_timer(self):
        hh = FixedHodgkinHuxley(n4=0.35)
        channel = PotassiumGatedChannel(RecordingCapture(), hh, random.Random(0))
        channel.step_in_time(DT)
        assert channel.capture_countdown_timer < math.inf
        hh.n4 = 0.0
        channel.step_in_time(DT)
        channel.step_in_time(DT)
        assert channel.capture_countdown_timer == math.inf

    def test_captures_repeatedly_while_open(self):
        capture = RecordingCapture()
        channel = PotassiumGatedChannel(capture, FixedHodgkinHuxley(n4=0.35), random.Random(0))
        for _ in range(200):
            channel.step_in_time(DT)
        # 2 ms at one capture every 0.05 to 0.2 ms.
        assert 10 <= len(capture.requests) <= 42


class TestSodiumDualGated:
    def _drive(self, channel, hh, m3h_values):
        states = [channel.gate_state]
        for value in m3h_values:
            hh.m3h = value
            channel.step_in_time(DT)
            if channel.gate_state is not states[-1]:
                states.append(channel.gate_state)
        return states

    def test_full_cycle_in_order(self):
        hh = FixedHodgkinHuxley()
        channel = SodiumDualGatedChannel(RecordingCapture(), hh, random.Random(1))
        rise = [0.3 * i / 20 for i in range(21)]
        fall = [0.3 * (20 - i) / 20 for i in range(21)]
        states = self._drive(channel, hh, rise + fall + [0.0] * 400)
        assert states == [
            GateState.IDLE,
            GateState.OPENING,
            GateState.BECOMING_INACTIVE,
            GateState.INACTIVATED,
            GateState.RESETTING,
            GateState.IDLE,
        ]
        assert channel.openness == 0.0
        assert channel.inactivation_amount == 0.0

    def test_fully_open_at_peak(self):
        hh = FixedHodgkinHuxley()
        channel = SodiumDualGatedChannel(RecordingCapture(), hh, random.Random(1))
        self._drive(channel, hh, [0.1, 0.2, 0.25, 0.2])
        assert channel.gate_state is GateState.BECOMING_INACTIVE
        assert channel.openness == 1.0

    def test_captures_sodium_inward(self):
        capture = RecordingCapture()
        hh = FixedHodgkinHuxley()
        channel = SodiumDualGatedChannel(capture, hh, random.Random(1))
        self._drive(channel, hh, [0.1, 0.2])
        assert channel.is_open()
        assert capture.requests
        assert capture.requests[0][0] is ParticleType.SODIUM_ION
        assert capture.requests[0][3] is MembraneCrossingDirection.OUT_TO_IN

    def test_stagger_rerolled_on_return_to_idle(self):
        hh = FixedHodgkinHuxley()
        channel = SodiumDualGatedChannel(RecordingCapture(), hh, random.Random(1))
        first = channel.stagger_delay
        rise = [0.3 * i / 20 for i in range(21)]
        fall = [0.3 * (20 - i) / 20 for i in range(21)]
        self._drive(channel, hh, rise + fall + [0.0] * 400)
        assert channel.stagger_delay != first
        assert 0 <= channel.stagger_delay <= SodiumDualGatedChannel.MAX_STAGGER_DELAY

    def test_state_round_trip(self):
        hh = FixedHodgkinHuxley()
        channel = SodiumDualGatedChannel(RecordingCapture(), hh, random.Random(1))
        self._drive(channel, hh, [0.1, 0.2, 0.25, 0.2, 0.1])
        state = channel.get_state()
        assert isinstance(state, DualGatedChannelState)
        channel.reset()
        assert channel.gate_state is GateState.IDLE
        channel.set_state(state)
        assert channel.get_state() == state


class TestLeakChannels:
    def test_sodium_leak_always_open_and_capturing(self):
        capture = RecordingCapture()
        channel = SodiumLeakageChannel(capture, FixedHodgkinHuxley(), random.Random(2))
        assert channel.is_open()
        for _ in range(2000):
            assert not channel.step_in_time(DT)
        assert len(capture.requests) >= 2
        assert all(r[0] is ParticleType.SODIUM_ION for r in capture.requests)
        assert all(r[2] == SodiumLeakageChannel.particle_velocity for r in capture.requests)

    def test_reset_restarts_capture_timer(self):
        channel = PotassiumLeakageChannel(RecordingCapture(), FixedHodgkinHuxley(), random.Random(2))
        channel.reset()
        assert 0.002 <= channel.capture_countdown_timer <= 0.004

    def test_potassium_leak_sometimes_reversed(self):
        channel = PotassiumLeakageChannel(RecordingCapture(), FixedHodgkinHuxley(), random.Random(4))
        directions = [channel.choose_crossing_direction() for _ in range(2000)]
        inward = directions.count(MembraneCrossingDirection.OUT_TO_IN) / len(directions)
        assert 0.15 < inward < 0.25

    def test_capture_rate_follows_leak_current(self):
        channel = SodiumLeakageChannel(RecordingCapture(), FixedHodgkinHuxley(), random.Random(2))
        nominal_max = channel.max_inter_capture_time
        channel.update_particle_capture_rate(1.0)
        assert channel.max_inter_capture_time < nominal_max
        assert channel.min_inter_capture_time == pytest.approx(0.0002)
        channel.update_particle_capture_rate(0.0)
        assert channel.capture_countdown_timer == math.inf


class TestFactory:
    @pytest.mark.parametrize("channel_type,expected", [
        (MembraneChannelType.SODIUM_GATED_CHANNEL, SodiumDualGatedChannel),
        (MembraneChannelType.POTASSIUM_GATED_CHANNEL, PotassiumGatedChannel),
        (MembraneChannelType.SODIUM_LEAKAGE_CHANNEL, SodiumLeakageChannel),
        (MembraneChannelType.POTASSIUM_LEAKAGE_CHANNEL, PotassiumLeakageChannel),
    ])
    def test_creates_each_type(self, channel_type, expected):
        channel = create_membrane_channel(channel_type, RecordingCapture(), ModifiedHodgkinHuxleyModel())
        assert type(channel) is expected
        assert channel.channel_type is channel_type

    def test_unknown_type(self):
        with pytest.raises(ValueError, match="Unrecognized"):
            create_membrane_channel("chloride_channel", RecordingCapture(), ModifiedHodgkinHuxleyModel())
