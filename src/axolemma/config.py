"""Central configuration loaded from environment / .env file."""

from __future__ import annotations

import math
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings

from .constants import CLOCK_FRAME_RATE, DEFAULT_ACTION_POTENTIAL_CLOCK_DT, TIME_SPAN

_PROJECT_ROOT = Path(__file__).resolve().parents[2]


class Settings(BaseSettings):
    """Simulation settings, populated from env vars or .env file."""

    # Randomness
    seed: Optional[int] = Field(
        default=None, alias="AXOLEMMA_SEED",
        description="Seed for the model's master generator; unset means nondeterministic",
    )

    # Clock
    clock_dt: float = Field(
        default=DEFAULT_ACTION_POTENTIAL_CLOCK_DT, alias="AXOLEMMA_CLOCK_DT", gt=0,
        description="Simulation seconds advanced per clock tick",
    )
    frame_rate: int = Field(default=CLOCK_FRAME_RATE, alias="AXOLEMMA_FRAME_RATE", ge=1)

    # Recording
    max_record_points: int = Field(
        default=math.ceil(TIME_SPAN * CLOCK_FRAME_RATE), alias="AXOLEMMA_MAX_RECORD_POINTS", ge=1,
    )

    # Particles
    all_ions_simulated: bool = Field(default=True, alias="AXOLEMMA_ALL_IONS_SIMULATED")
    max_particles: int = Field(default=2000, alias="AXOLEMMA_MAX_PARTICLES", ge=1)

    # Logging
    log_level: str = Field(default="INFO", alias="AXOLEMMA_LOG_LEVEL")

    model_config = {
        "env_file": str(_PROJECT_ROOT / ".env"),
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "populate_by_name": True,
    }

    @property
    def wall_seconds_per_tick(self) -> float:
        return 1.0 / self.frame_rate


def get_settings() -> Settings:
    """Return a cached Settings instance."""
    if not hasattr(get_settings, "_instance"):
        get_settings._instance = Settings()  # type: ignore[attr-defined]
    return get_settings._instance  # type: ignore[attr-defined]
