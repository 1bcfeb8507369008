"""
GoldMatch command line.
"""

import json
import logging
from dataclasses import asdict, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
from rich.console import Console
from rich.table import Table

from .config import ResolutionConfig
from .exceptions import ConfigurationError
from .match.config import MatchAlgorithm, MatchOptions, PhoneticAlgorithm
from .match.similarity import similarity
from .pipeline import ResolutionPipeline
from .presets import preset_config
from .utils.config import ConfigManager
from .utils.logging import setup_logging

app = typer.Typer(help="Entity resolution and golden record engine")
console = Console()


def _load_records(path: Path) -> List[Dict[str, Any]]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise typer.BadParameter(f"Cannot read records from {path}: {e}")
    if isinstance(data, dict):
        data = data.get("records", [])
    if not isinstance(data, list):
        raise typer.BadParameter("Records file must hold a list or an object with 'records'")
    return data


@app.command()
def resolve(
    records_file: Path = typer.Argument(..., help="JSON file with the records to resolve"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML resolution configuration"),
    preset: Optional[str] = typer.Option(None, help="Entity type preset when no config file is given"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the full result as JSON"),
    workers: Optional[int] = typer.Option(None, help="Worker threads for bucket scoring"),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit structured JSON logs"),
    log_level: str = typer.Option("INFO", help="Logging level")
):
    """Resolve RECORDS_FILE into golden records."""
    logger = setup_logging("goldmatch", level=log_level.upper(), json_format=json_logs)

    try:
        if config is not None:
            resolution_config = ConfigManager().load(config, ResolutionConfig)
        elif preset:
            resolution_config = preset_config(preset)
        else:
            raise typer.BadParameter("Either --config or --preset is required")
        if workers is not None:
            resolution_config = replace(resolution_config, max_workers=workers)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e.message}")
        raise typer.Exit(code=2)
    except ValueError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(code=2)

    records = _load_records(records_file)
    pipeline = ResolutionPipeline(resolution_config, logger=logger)
    result = pipeline.run(records)

    table = Table(title="Resolution summary", show_header=True, header_style="bold magenta")
    table.add_column("Metric", style="dim")
    table.add_column("Value", justify="right")
    for name, value in asdict(result.stats).items():
        table.add_row(name.replace("_", " ").capitalize(), str(value))
    table.add_row("Review conflicts", str(len(result.review_conflicts)))
    table.add_row("Anomalies", str(len(result.anomalies)))
    console.print(table)

    if output is not None:
        with open(output, "w", encoding="utf-8") as f:
            json.dump(result.to_dict(), f, indent=2, default=str)
        console.print(f"Result written to {output}")


@app.command()
def compare(
    first: str = typer.Argument(..., help="First string"),
    second: str = typer.Argument(..., help="Second string"),
    algorithm: str = typer.Option("jaro-winkler", "--algorithm", "-a", help="Similarity algorithm"),
    phonetic: str = typer.Option("soundex", help="Phonetic code for phonetic algorithms"),
    no_normalize: bool = typer.Option(False, "--no-normalize", help="Compare raw strings")
):
    """Print the similarity of two strings."""
    try:
        parsed = MatchAlgorithm.parse(algorithm)
        options = MatchOptions(
            normalize=not no_normalize,
            phonetic_algorithm=PhoneticAlgorithm(phonetic.lower())
        )
    except ConfigurationError as e:
        console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(code=2)
    except ValueError:
        console.print(f"[red]Unknown phonetic algorithm: {phonetic}[/red]")
        raise typer.Exit(code=2)

    score = similarity(first, second, parsed, options)
    console.print(f"{parsed.value}: {score:.4f}")


def main():
    logging.captureWarnings(True)
    app()


if __name__ == "__main__":
    main()
