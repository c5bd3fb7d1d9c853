"""Command line entry point: load extracts or serve the search API.

Usage:
    address-propensity property data/properties.csv
    address-propensity propensity data/scores.csv --plot-dir out/
    address-propensity serve
    address-propensity --config local.env --secrets secrets.env property data/properties.csv
"""

import argparse
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn, TimeElapsedColumn
from rich.table import Table
from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError

from .charts import plot_score_distribution, plot_zipcode_distribution
from .classification import LandUseClassifier
from .config import Settings
from .database import init_db, session_dependency, session_factory
from .errors import PropensityError
from .loader import PropensityLoader, PropertyLoader, QualityReport, RecordLoader, RowOutcome
from .logging_config import configure_logfire, configure_logging
from .reader import count_rows, read_rows

logger = logging.getLogger(__name__)

console = Console(stderr=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="address-propensity",
        description="Load property and propensity extracts, or serve ranked scores",
    )
    parser.add_argument("-c", "--config", type=Path, help="dotenv file with settings overrides")
    parser.add_argument("-s", "--secrets", type=Path, help="dotenv file with secrets overrides")
    sub = parser.add_subparsers(dest="command", required=True)

    prop = sub.add_parser("property", help="Load a property extract")
    prop.add_argument("file", type=Path)
    prop.add_argument("--delimiter", default=",", help="Column delimiter (default: ,)")

    scores = sub.add_parser("propensity", help="Load a propensity score extract")
    scores.add_argument("file", type=Path)
    scores.add_argument("--delimiter", default=",", help="Column delimiter (default: ,)")
    scores.add_argument("--plot-dir", type=Path, help="Write score distribution charts here")

    sub.add_parser("serve", help="Run the propensity search API")
    return parser


def summary_table(report: QualityReport, sample_size: int) -> Table:
    table = Table(title=f"Load summary: {report.source}")
    table.add_column("Outcome")
    table.add_column("Rows", justify="right")
    for outcome in RowOutcome:
        table.add_row(outcome.value, f"{report.count(outcome):,}")
    table.add_row("not in core properties (but still loaded)", f"{len(report.not_in_core_properties):,}")
    if report.lookup_failures:
        table.add_row("lookup failures", f"{len(report.lookup_failures):,}")
    if report.skipped_records:
        first = report.first_skipped(sample_size)
        table.add_row(f"first {len(first)} skipped rows", ", ".join(str(i) for i in first))
    return table


def run_load(loader: RecordLoader, path: Path, delimiter: str) -> QualityReport:
    total = count_rows(path)
    console.print(f"[bold]Loading {loader.kind} records from {path}...[/bold]")
    with Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=console,
    ) as progress:
        task = progress.add_task(f"{loader.kind} records", total=total)

        def advance(index: int, outcome: RowOutcome) -> None:
            progress.update(task, advance=1, description=f"record #{index}")

        report = loader.load(read_rows(path, delimiter=delimiter), on_row=advance)
    return report


def load_command(args: argparse.Namespace, settings: Settings) -> int:
    engine = create_engine(settings.database_url, echo=False)
    init_db(engine)
    SessionLocal = session_factory(engine)

    with SessionLocal() as session:
        source = str(args.file)
        if args.command == "property":
            loader = PropertyLoader(session, LandUseClassifier(), source=source)
        else:
            loader = PropensityLoader(session, source=source)
        report = run_load(loader, args.file, args.delimiter)

    console.print(summary_table(report, settings.skipped_sample_size))
    console.print(f"[bold]{report.summary(settings.skipped_sample_size)}[/bold]")

    plot_dir = getattr(args, "plot_dir", None)
    if plot_dir is not None:
        plot_dir.mkdir(parents=True, exist_ok=True)
        for path in (
            plot_score_distribution(report.propensity_zips, plot_dir),
            plot_zipcode_distribution(report.propensity_zips, plot_dir),
        ):
            console.print(f"Chart saved to {path}")
    return 0


def serve_command(settings: Settings) -> int:
    import uvicorn

    from .database import get_db
    from .main import app

    engine = create_engine(settings.database_url, echo=False)
    app.state.engine = engine
    app.dependency_overrides[get_db] = session_dependency(session_factory(engine))
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = Settings.load(args.config, args.secrets)
        configure_logging(settings.log_level)
        configure_logfire(token=settings.logfire_token)

        if args.command == "serve":
            return serve_command(settings)
        return load_command(args, settings)
    except (PropensityError, OSError, SQLAlchemyError) as e:
        logger.error(f"{args.command} failed: {e}")
        console.print(f"[red]Error: {e}[/red]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
