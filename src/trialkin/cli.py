"""Command-line interface for trialkin.

Subcommands:
    video-latency  Add display-time bounds to trials with video telemetry
    cop            Add COP and COP velocity to every force plate
    run            Run all enabled stages from a config file

Example:
    $ trialkin video-latency exam.json exam_out.json --display-latency 0.010
    $ trialkin cop exam.json exam_out.json
    $ trialkin run exam.json exam_out.json --config config.toml
"""

from pathlib import Path
from typing import NoReturn, Optional

import typer

from .config import load_settings
from .exceptions import TrialKinError
from .force_plate import compute_force_plate_kinematics
from .io import load_trials, save_trials
from .pipeline import run_file
from .utils import configure_logging
from .video_latency import estimate_video_latency

app = typer.Typer(
    name="trialkin",
    help="Derive video display-time bounds and force plate COP from trial records.",
    add_completion=False,
)


def _fail(error: Exception) -> NoReturn:
    typer.echo(f"Error: {error}", err=True)
    raise typer.Exit(code=1)


@app.command("video-latency")
def video_latency(
    input_path: Path = typer.Argument(..., help="Trial collection (JSON)"),
    output_path: Path = typer.Argument(..., help="Output file (JSON)"),
    display_latency: Optional[float] = typer.Option(None, "--display-latency", help="Display latency excluding buffering (s)"),
    buffered_frames: float = typer.Option(1.0, "--buffered-frames", help="Frames buffered by the display (0 for CRT-like)"),
    log_level: str = typer.Option("INFO", "--log-level"),
):
    """Add minimum and maximum display times to every trial with video telemetry."""
    configure_logging(log_level)
    try:
        trials = load_trials(input_path)
        trials = estimate_video_latency(trials, display_latency_s=display_latency, num_buffered_frames=buffered_frames)
        save_trials(output_path, trials)
    except TrialKinError as e:
        _fail(e)
    typer.echo(f"Wrote {len(trials)} trials to {output_path}")


@app.command("cop")
def cop(
    input_path: Path = typer.Argument(..., help="Trial collection (JSON)"),
    output_path: Path = typer.Argument(..., help="Output file (JSON)"),
    log_level: str = typer.Option("INFO", "--log-level"),
):
    """Add COP and COP velocity channels to every force plate."""
    configure_logging(log_level)
    try:
        trials = load_trials(input_path)
        trials = compute_force_plate_kinematics(trials)
        save_trials(output_path, trials)
    except TrialKinError as e:
        _fail(e)
    typer.echo(f"Wrote {len(trials)} trials to {output_path}")


@app.command("run")
def run(
    input_path: Path = typer.Argument(..., help="Trial collection (JSON)"),
    output_path: Path = typer.Argument(..., help="Output file (JSON)"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Settings file (TOML)"),
):
    """Run every enabled stage as configured."""
    try:
        settings = load_settings(config)
    except TrialKinError as e:
        _fail(e)

    configure_logging(settings.logging.level, settings.logging.structured)
    try:
        result = run_file(input_path, output_path, settings)
    except TrialKinError as e:
        _fail(e)

    summary = result["summary"]
    typer.echo(f"Stages: {', '.join(result['stages']) or 'none'}")
    typer.echo(f"Trials: {summary['n_trials']}, latency bounds: {summary['n_trials_with_latency_bounds']}, plates with COP: {summary['n_plates_with_cop']}")


def main():
    app()


if __name__ == "__main__":
    main()
