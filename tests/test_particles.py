"""Tests for particles and fade strategies."""

import pytest

from axolemma.fade import NullFadeStrategy, TimedFadeAwayStrategy, TimedFadeInStrategy
from axolemma.models import ParticleType
from axolemma.motion import LinearMotionStrategy
from axolemma.particles import (
    DEFAULT_PARTICLE_RADIUS,
    Particle,
    PlaybackParticle,
    create_particle,
)


class TestParticle:
    def test_factory(self):
        p = create_particle(ParticleType.POTASSIUM_ION, 1.0, 2.0)
        assert p.particle_type is ParticleType.POTASSIUM_ION
        assert p.position == (1.0, 2.0)
        assert p.opacity == 1.0
        assert p.radius == DEFAULT_PARTICLE_RADIUS
        assert p.continue_existing

    def test_factory_rejects_unknown_type(self):
        with pytest.raises(ValueError, match="Unrecognized"):
            create_particle("chloride_ion")

    def test_step_applies_motion(self):
        p = Particle(ParticleType.SODIUM_ION)
        p.motion_strategy = LinearMotionStrategy(100.0, -50.0)
        p.step_in_time(0.01)
        assert p.position == pytest.approx((1.0, -0.5))

    def test_available_for_capture_by_default(self):
        assert Particle(ParticleType.SODIUM_ION).is_available_for_capture()

    def test_memento_round_trip(self):
        p = Particle(ParticleType.SODIUM_ION, 3.0, 4.0)
        p.opacity = 0.4
        memento = p.get_playback_memento()

        stand_in = PlaybackParticle(ParticleType.POTASSIUM_ION)
        stand_in.restore_from_memento(memento)
        assert stand_in.particle_type is ParticleType.SODIUM_ION
        assert stand_in.position == (3.0, 4.0)
        assert stand_in.opacity == 0.4


class TestFadeIn:
    def test_reaches_target_then_stops(self):
        p = Particle(ParticleType.SODIUM_ION)
        p.opacity = 0.0
        fade = TimedFadeInStrategy(1.0)
        p.fade_strategy = fade
        fade.update_opacity(p, 0.5)
        assert p.opacity == pytest.approx(0.0)
        fade.update_opacity(p, 0.5)
        assert p.opacity == pytest.approx(0.5)
        fade.update_opacity(p, 0.5)
        assert p.opacity == pytest.approx(1.0)
        assert p.fade_strategy is NullFadeStrategy.instance()

    def test_negative_dt_capped_at_fade_time(self):
        p = Particle(ParticleType.SODIUM_ION)
        fade = TimedFadeInStrategy(1.0)
        fade.update_opacity(p, -0.5)
        assert fade.fade_countdown_timer == pytest.approx(1.0)


class TestFadeAway:
    def test_fades_then_requests_removal(self):
        p = Particle(ParticleType.POTASSIUM_ION)
        p.fade_strategy = TimedFadeAwayStrategy(1.0)
        p.step_in_time(0.5)
        assert p.continue_existing
        p.step_in_time(0.5)
        assert p.opacity == pytest.approx(0.5)
        assert p.continue_existing
        p.step_in_time(0.5)
        assert p.opacity == 0.0
        assert not p.continue_existing

    def test_never_brightens(self):
        p = Particle(ParticleType.POTASSIUM_ION)
        p.opacity = 0.2
        TimedFadeAwayStrategy(1.0).update_opacity(p, 0.1)
        assert p.opacity == pytest.approx(0.2)
