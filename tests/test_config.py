"""Tests for configuration."""

import pytest
from pydantic import ValidationError

from axolemma.config import Settings, get_settings
from axolemma.constants import DEFAULT_ACTION_POTENTIAL_CLOCK_DT


def test_default_settings():
    s = Settings()
    assert s.clock_dt == DEFAULT_ACTION_POTENTIAL_CLOCK_DT
    assert s.frame_rate == 15
    assert s.max_record_points == 375
    assert s.all_ions_simulated is True
    assert s.max_particles == 2000
    assert s.log_level == "INFO"


def test_field_names_accepted():
    s = Settings(seed=7, all_ions_simulated=False, max_record_points=10)
    assert s.seed == 7
    assert s.all_ions_simulated is False
    assert s.max_record_points == 10


def test_env_override(monkeypatch):
    monkeypatch.setenv("AXOLEMMA_SEED", "42")
    monkeypatch.setenv("AXOLEMMA_MAX_PARTICLES", "500")
    s = Settings()
    assert s.seed == 42
    assert s.max_particles == 500


def test_wall_seconds_per_tick():
    assert Settings(frame_rate=20).wall_seconds_per_tick == pytest.approx(0.05)


@pytest.mark.parametrize(
    "overrides",
    [{"clock_dt": 0}, {"clock_dt": -1e-5}, {"max_record_points": 0}, {"max_particles": 0}],
)
def test_invalid_settings_rejected(overrides):
    with pytest.raises(ValidationError):
        Settings(**overrides)


def test_get_settings_cached():
    # Clear the cache
    if hasattr(get_settings, "_instance"):
        delattr(get_settings, "_instance")
    s1 = get_settings()
    s2 = get_settings()
    assert s1 is s2
