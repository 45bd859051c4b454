#!/usr/bin/env python3
"""
Command-line interface for running crawls.

Uses typer for clean CLI with subcommands.
"""

from pathlib import Path
from typing import List, Optional

import typer
from omegaconf import OmegaConf

from harvest.contexts.routing import DATASET_TYPE_TO_URL
from harvest.contexts.scraping import ConfigurationError, load_crawl_input, run_crawl, run_marketplace, setup_logger
from harvest.contexts.scraping.inputs import CONFIG_PATH
from harvest.contexts.storage import DatabaseConfig, RecordSink
from harvest.utils import merge_configs

app = typer.Typer(
    add_completion=False,
    help="HARVEST job catalog and marketplace crawler",
)


@app.command("run")
def run_command(
    start_urls: Optional[List[str]] = typer.Argument(
        None,
        help="URL(s) to start from. Mutually exclusive with --dataset-type.",
    ),
    dataset_type: Optional[str] = typer.Option(
        None,
        "--dataset-type",
        "-t",
        help="Crawl a whole dataset instead of start URLs (see 'datasets' command)",
    ),
    config_file: Optional[List[Path]] = typer.Option(
        None,
        "--config",
        "-c",
        help="YAML file(s) merged over config/crawl.yaml",
        exists=True,
        dir_okay=False,
    ),
    query: Optional[str] = typer.Option(None, "--query", help="Free-text search filter"),
    min_salary: Optional[float] = typer.Option(None, "--min-salary", help="Minimum salary", min=0),
    salary_period: Optional[str] = typer.Option(None, "--salary-period", help="hour or month"),
    employment_type: Optional[str] = typer.Option(
        None, "--employment-type", help="fte, pte, selfemploy, voluntary or internship"
    ),
    remote_work: Optional[str] = typer.Option(
        None, "--remote-work", help="fullRemote, partialRemote or noRemote"
    ),
    last_n_days: Optional[int] = typer.Option(None, "--last-n-days", help="Only offers from the last N days", min=0),
    detailed: Optional[bool] = typer.Option(None, "--detailed/--no-detailed", help="Also scrape job detail pages"),
    count_only: Optional[bool] = typer.Option(
        None, "--count-only", help="Only log the number of matching offers"
    ),
    max_entries: Optional[int] = typer.Option(None, "--max-entries", "-n", help="Maximum number of entries", min=0),
    max_concurrency: Optional[int] = typer.Option(None, "--max-concurrency", help="Pages handled at once", min=1),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        "-q",
        help="Suppress verbose output (errors still logged)",
    ),
):
    """
    Crawl the job catalog, logging to timestamped files.

    Examples:

        # All job offers posted in the last week, with details
        $ run_crawler.py run -t jobOffers --last-n-days 7 --detailed

        # First 50 offers of a listing page
        $ run_crawler.py run https://www.profesia.sk/praca/bratislavsky-kraj/ -n 50

        # Just count matching offers
        $ run_crawler.py run -t jobOffers --query python --count-only
    """
    overrides = {
        "start_urls": start_urls or None,
        "dataset_type": dataset_type,
        "filters": {
            "query": query,
            "min_salary_value": min_salary,
            "min_salary_period": salary_period,
            "employment_type": employment_type,
            "remote_work_type": remote_work,
            "last_n_days": last_n_days,
        },
        "detailed": detailed,
        "count_only": count_only,
        "max_entries": max_entries,
        "crawler": {"max_concurrency": max_concurrency},
    }

    try:
        config = load_crawl_input(config_file, overrides)
    except ConfigurationError as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2)

    log_file = setup_logger()
    typer.echo(f"Logging to: {log_file}")

    try:
        result = run_crawl(config, verbose=not quiet)
    except KeyboardInterrupt:
        typer.secho("\n\nInterrupted by user", fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(code=130)

    if result["status"] == "failed":
        raise typer.Exit(code=1)


@app.command("marketplace")
def marketplace_command(
    start_urls: Optional[List[str]] = typer.Argument(None, help="Store page URL(s)"),
    query: Optional[str] = typer.Option(None, "--query", help="Search query"),
    category: Optional[List[str]] = typer.Option(None, "--category", help="Category button text(s) to visit"),
    headful: bool = typer.Option(False, "--headful", help="Show the browser window"),
):
    """Crawl marketplace store pages, tagging items with their categories."""
    overrides = {
        "start_urls": start_urls or None,
        "query": query,
        "categories": category or None,
        "browser": {"headless": False if headful else None},
    }
    config = merge_configs([CONFIG_PATH / "marketplace.yaml"], overrides)

    log_file = setup_logger()
    typer.echo(f"Logging to: {log_file}")

    try:
        result = run_marketplace(config)
    except KeyboardInterrupt:
        typer.secho("\n\nInterrupted by user", fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(code=130)

    if result["status"] == "failed":
        raise typer.Exit(code=1)


@app.command("datasets")
def datasets_command():
    """List dataset types and their start URLs."""
    typer.secho(f"Dataset types ({len(DATASET_TYPE_TO_URL)}):", fg=typer.colors.BLUE, bold=True)
    for name, url in DATASET_TYPE_TO_URL.items():
        typer.echo(f"  • {name}: {url}")


@app.command("export")
def export_command(
    dataset: str = typer.Argument(..., help="Dataset (table) to export, e.g. profesia_records"),
    output: Path = typer.Argument(..., help="CSV file to write", dir_okay=False),
):
    """Write a stored dataset to CSV, one flattened record per row."""
    sink = RecordSink(DatabaseConfig.from_env(table=dataset))
    df = sink.export_df()
    df.to_csv(output, index=False)
    typer.secho(f"Exported {len(df)} record(s) from {dataset} to {output}", fg=typer.colors.GREEN)


@app.command("show-config")
def show_config_command(
    config_file: Optional[List[Path]] = typer.Option(None, "--config", "-c", exists=True, dir_okay=False),
):
    """Print the crawl defaults merged with the given config files."""
    typer.echo(OmegaConf.to_yaml(merge_configs([CONFIG_PATH / "crawl.yaml", *(config_file or [])])))


if __name__ == "__main__":
    app()
