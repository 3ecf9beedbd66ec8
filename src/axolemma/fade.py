"""Fade strategies: how a particle's opacity evolves over time."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .particles import Particle


class FadeStrategy:
    """Base strategy; leaves opacity alone and keeps the particle alive."""

    def update_opacity(self, particle: Particle, dt: float) -> None:
        pass

    def should_continue_existing(self, particle: Particle) -> bool:
        return True


class NullFadeStrategy(FadeStrategy):
    _instance: NullFadeStrategy | None = None

    @classmethod
    def instance(cls) -> NullFadeStrategy:
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance


class TimedFadeInStrategy(FadeStrategy):
    """Ramp opacity up to `opacity_target` over `fade_time` seconds."""

    def __init__(self, fade_time: float, opacity_target: float = 1.0) -> None:
        self.fade_time = fade_time
        self.fade_countdown_timer = fade_time
        self.opacity_target = opacity_target

    def update_opacity(self, particle: Particle, dt: float) -> None:
        particle.opacity = min(
            (1 - self.fade_countdown_timer / self.fade_time) * self.opacity_target, 1.0
        )
        # Negative dt winds the countdown back up, capped at the full fade time.
        self.fade_countdown_timer = min(self.fade_countdown_timer - dt, self.fade_time)
        if self.fade_countdown_timer < 0:
            self.fade_countdown_timer = 0.0
            particle.fade_strategy = NullFadeStrategy.instance()


class TimedFadeAwayStrategy(FadeStrategy):
    """Ramp opacity down to zero over `fade_time` seconds; never brightens."""

    def __init__(self, fade_time: float) -> None:
        self.fade_time = fade_time
        self.fade_countdown_timer = fade_time

    def update_opacity(self, particle: Particle, dt: float) -> None:
        particle.opacity = min(
            max(self.fade_countdown_timer / self.fade_time, 0.0), particle.opacity
        )
        self.fade_countdown_timer -= dt

    def should_continue_existing(self, particle: Particle) -> bool:
        return particle.opacity > 0
