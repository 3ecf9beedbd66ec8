"""Axolemma CLI — run, trace and replay the axon membrane simulation."""

from __future__ import annotations

import json
import logging
import math
from typing import Optional

import click
import numpy as np
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from axolemma.config import Settings, get_settings
from axolemma.constants import TIME_SPAN
from axolemma.models import NeuronReadout

console = Console()


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def main(verbose: bool) -> None:
    """Axolemma — axon membrane electrophysiology simulator."""
    settings = get_settings()
    level = logging.DEBUG if verbose else getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%H:%M:%S",
    )


def _settings_with(**overrides) -> Settings:
    updates = {k: v for k, v in overrides.items() if v is not None}
    return get_settings().model_copy(update=updates)


def _display_readout(readout: NeuronReadout, title: str) -> None:
    c = readout.concentrations
    p = readout.particles
    console.print(Panel(
        f"[bold]Time:[/] {readout.time * 1000:.3f} ms ({readout.mode})\n"
        f"[bold]Membrane potential:[/] {readout.membrane_potential * 1000:.2f} mV\n"
        f"[bold]Stimulus lockout:[/] {readout.stimulus_lockout}\n"
        f"[bold]Action potential traveling:[/] {readout.action_potential_traveling}\n"
        f"[bold]Na+ ext/int:[/] {c.sodium_exterior:.4f} / {c.sodium_interior:.4f} mM\n"
        f"[bold]K+ ext/int:[/] {c.potassium_exterior:.4f} / {c.potassium_interior:.4f} mM\n"
        f"[bold]Particles:[/] {p.background} background, {p.transient} transient, "
        f"{p.playback} playback\n"
        f"[bold]Recorded points:[/] {readout.recorded_points}",
        title=f"[bold cyan]{title}[/]",
    ))


def _display_channels(readout: NeuronReadout) -> None:
    table = Table(title="Membrane Channels")
    table.add_column("Type")
    table.add_column("Count", justify="right")
    table.add_column("Open", justify="right")
    table.add_column("Openness", justify="right")
    table.add_column("Inactivation", justify="right")
    for ch in readout.channels:
        table.add_row(
            ch.channel_type.value,
            str(ch.count),
            str(ch.open_count),
            f"{ch.mean_openness:.3f}",
            f"{ch.mean_inactivation:.3f}",
        )
    console.print(table)


# ======================================================================
# RUN — step the model and print a read-out
# ======================================================================
@main.command()
@click.option("--duration", "-d", default=0.005, show_default=True, help="Simulation seconds to run")
@click.option("--stimulate/--no-stimulate", default=True, help="Stimulate once at the start")
@click.option("--seed", default=None, type=int, help="Seed for the model's random generator")
@click.option("--no-background", is_flag=True, help="Do not simulate the background ions")
def run(duration: float, stimulate: bool, seed: Optional[int], no_background: bool) -> None:
    """Run the simulation for a fixed amount of simulation time."""
    from axolemma.clock import NeuronClock
    from axolemma.neuron_model import NeuronModel

    settings = _settings_with(seed=seed, all_ions_simulated=False if no_background else None)
    model = NeuronModel(settings)
    if stimulate:
        model.initiate_stimulus_pulse()
    clock = NeuronClock(settings.frame_rate, settings.clock_dt)
    clock.add_step_listener(model.step)

    ticks = math.ceil(duration / settings.clock_dt)
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task(f"[cyan]Stepping[/] {ticks} ticks", total=ticks)
        for _ in range(ticks):
            clock.tick()
            progress.advance(task)

    readout = model.readout()
    _display_readout(readout, "Neuron Read-out")
    _display_channels(readout)


# ======================================================================
# TRACE — membrane potential after one stimulus
# ======================================================================
@main.command()
@click.option("--samples", "-n", default=25, show_default=True, help="Rows to print")
@click.option("--json", "as_json", is_flag=True, help="Print the trace as JSON")
@click.option("--seed", default=None, type=int, help="Seed for the model's random generator")
def trace(samples: int, as_json: bool, seed: Optional[int]) -> None:
    """Stimulate once and print the membrane potential trace."""
    from axolemma.neuron_model import NeuronModel

    settings = _settings_with(seed=seed, all_ions_simulated=False)
    model = NeuronModel(settings)
    model.potential_chart_visible = True
    model.initiate_stimulus_pulse()

    max_ticks = math.ceil(TIME_SPAN / 1000 / settings.clock_dt) + 10
    for _ in range(max_ticks):
        if model.chart.is_full:
            break
        model.step(settings.clock_dt)

    data = model.chart.to_array()
    if len(data) and samples > 0:
        indices = np.unique(np.linspace(0, len(data) - 1, min(samples, len(data))).astype(int))
        data = data[indices]

    if as_json:
        click.echo(json.dumps(
            [{"time_ms": float(t), "potential_mv": float(v)} for t, v in data], indent=2
        ))
        return

    table = Table(title="Membrane Potential")
    table.add_column("Time (ms)", justify="right")
    table.add_column("Potential (mV)", justify="right")
    for t, v in data:
        table.add_row(f"{t:.3f}", f"{v:.2f}")
    console.print(table)


# ======================================================================
# PLAYBACK — record, seek and compare
# ======================================================================
@main.command()
@click.option("--duration", "-d", default=0.004, show_default=True, help="Simulation seconds to record")
@click.option("--at", "at_time", default=None, type=float, help="Seek time in seconds (default: half way)")
@click.option("--seed", default=None, type=int, help="Seed for the model's random generator")
def playback(duration: float, at_time: Optional[float], seed: Optional[int]) -> None:
    """Record a stimulated run, seek in playback and compare with the live state."""
    from axolemma.neuron_model import NeuronModel

    settings = _settings_with(seed=seed)
    model = NeuronModel(settings)
    model.initiate_stimulus_pulse()

    live: dict[float, NeuronReadout] = {}
    for _ in range(math.ceil(duration / settings.clock_dt)):
        model.step(settings.clock_dt)
        live[model.time] = model.readout(note="live")

    model.set_mode_playback()
    model.set_time(at_time if at_time is not None else duration / 2)
    restored = model.readout(note="playback")
    recorded_time = model.recorder.get_playback_state().time

    _display_readout(restored, f"Playback at {recorded_time * 1000:.3f} ms")
    observed = live.get(recorded_time)
    if observed is None:
        console.print("[yellow]Live read-out for this point has left the history.[/]")
        return
    _display_readout(observed, f"Live at {recorded_time * 1000:.3f} ms")
    matches = observed.channels == restored.channels and observed.membrane_potential == restored.membrane_potential
    style = "green" if matches else "red"
    console.print(f"[bold {style}]Restored state {'matches' if matches else 'differs from'} the live state.[/]")
