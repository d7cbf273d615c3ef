"""Command-line interface for circuit_abm."""

import dataclasses
import logging
from pathlib import Path
from typing import Annotated

import typer

from circuit_abm import __version__

app = typer.Typer(
    name="circuit_abm",
    help="Agent-based simulation of a monetary circuit economy",
    add_completion=False,
)

# Keys echoed in the per-sector summary when the sector records them.
_SUMMARY_KEYS = ("money", "production", "employed", "consumptionValue", "loans")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"circuit_abm version: {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """Agent-based simulation of a monetary circuit economy."""


@app.command()
def run(
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Model configuration YAML (defaults to config/model_parameters.yml).",
        ),
    ] = None,
    periods: Annotated[
        int | None,
        typer.Option(
            "--periods",
            "-n",
            min=0,
            help="Number of periods to run (overrides the configuration).",
        ),
    ] = None,
    seed: Annotated[
        int | None,
        typer.Option(
            "--seed",
            "-s",
            help="Random seed (overrides the configuration).",
        ),
    ] = None,
    output: Annotated[
        Path | None,
        typer.Option(
            "--output",
            "-o",
            help="Write the aggregate series to this JSON file.",
        ),
    ] = None,
    log_level: Annotated[
        str,
        typer.Option(
            "--log-level",
            help="Logging level: DEBUG, INFO, WARNING or ERROR.",
        ),
    ] = "WARNING",
) -> None:
    """Run a simulation and summarise the last period of each sector.

    Examples:

    \\b
        # Run the default scenario
        circuit_abm run

    \\b
        # Run 24 periods with another seed and keep the series
        circuit_abm run --periods 24 --seed 7 -o series.json
    """
    from circuit_abm.abm.config import load_config
    from circuit_abm.abm.errors import SimulationError
    from circuit_abm.abm.model import Simulation

    level = getattr(logging, log_level.upper(), None)
    if not isinstance(level, int):
        typer.echo(f"Error: unknown log level '{log_level}'", err=True)
        raise typer.Exit(code=1)
    logging.basicConfig(
        level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    if config is not None and not config.exists():
        typer.echo(f"Error: config file not found: {config}", err=True)
        raise typer.Exit(code=1)

    try:
        model_config = load_config(config)
        if seed is not None:
            model_config = dataclasses.replace(
                model_config,
                simulation=dataclasses.replace(model_config.simulation, seed=seed),
            )
        simulation = Simulation(model_config)
        result = simulation.run(periods)
    except SimulationError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    typer.echo(f"Ran {len(result.records)} periods.")
    if result.records:
        last = result.records[-1]
        for name, totals in last.sectors.items():
            shown = [
                f"{key}={totals[key]:,.0f}" for key in _SUMMARY_KEYS if key in totals
            ]
            count = int(totals.get("count", 0))
            typer.echo(f"  {name} ({count} agents): {', '.join(shown) or '-'}")
    typer.echo(f"Total money: {simulation.total_money():,}")

    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        _write_json(output, result.to_dict())
        typer.echo(f"Series written to {output}")


@app.command()
def phases() -> None:
    """List the agent roles and the phases each can perform."""
    from circuit_abm.abm.agents import get_agent_class, list_roles

    for role in list_roles():
        names = get_agent_class(role).phase_names()
        typer.echo(f"{role}: {', '.join(names) or '-'}")


def _write_json(path: Path, data: object) -> None:
    """Write *data* as pretty-printed JSON to *path*."""
    import json as _json

    path.write_text(_json.dumps(data, indent=2, default=str), encoding="utf-8")


if __name__ == "__main__":
    app()
