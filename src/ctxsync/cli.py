"""CLI interface for ctxsync."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Annotated

import structlog
import typer

from ctxsync import __version__
from ctxsync.config import CONFIG_FILENAME, CtxSyncConfig, EngineType
from ctxsync.corpus.classifier import CorpusState
from ctxsync.exceptions import CtxSyncError, PartialFailure
from ctxsync.regeneration.orchestrator import RegenerationResult
from ctxsync.service import ChangeRequest, UpdateService


def configure_logging(verbose: bool = False) -> None:
    """Configure structlog for CLI output on stderr."""
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.DEBUG if verbose else logging.INFO
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


configure_logging()

app = typer.Typer(
    name="ctxsync",
    help="Keep generated context documentation in sync with the code",
    no_args_is_help=True,
)

STATE_COLORS = {
    CorpusState.NEW: typer.colors.RED,
    CorpusState.UNFILLED: typer.colors.YELLOW,
    CorpusState.OUTDATED: typer.colors.YELLOW,
    CorpusState.READY: typer.colors.GREEN,
}

DirOption = Annotated[
    Path,
    typer.Option(
        "--dir",
        "-d",
        help="Repository directory",
        exists=True,
        file_okay=False,
        resolve_path=True,
    ),
]
ConfigOption = Annotated[
    Path | None,
    typer.Option(
        "--config",
        "-c",
        help=f"Path to {CONFIG_FILENAME} config file",
        exists=True,
        dir_okay=False,
        resolve_path=True,
    ),
]
VerboseOption = Annotated[
    bool,
    typer.Option("--verbose", help="Show details and debug logs"),
]
SinceOption = Annotated[
    str | None,
    typer.Option("--since", help="Base revision (overrides the reference pointer)"),
]
StagedOption = Annotated[
    bool,
    typer.Option("--staged", help="Consider staged changes only"),
]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"ctxsync version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """ctxsync - incremental context documentation."""
    pass


def _fail(message: str) -> typer.Exit:
    typer.echo(typer.style(f"Error: {message}", fg=typer.colors.RED), err=True)
    return typer.Exit(1)


def _service(
    base_dir: Path,
    config_path: Path | None,
    *,
    engine: EngineType | None = None,
    model: str | None = None,
    output: str | None = None,
    verbose: bool = False,
) -> UpdateService:
    configure_logging(verbose)
    try:
        config = CtxSyncConfig.discover(base_dir, config_path)
    except CtxSyncError as e:
        raise _fail(str(e)) from e

    if engine is not None:
        config.engine.type = engine
        config.engine.binary = "" if engine is EngineType.FAKE else engine.value
    if model:
        config.engine.model = model
    if output:
        config.context.output_dir = output
    return UpdateService(base_dir, config)


def _echo_result(result: RegenerationResult) -> None:
    prefix = "Would update" if result.dry_run else "Updated"
    typer.echo(f"{prefix} {result.updated} module artifact(s)")
    for path in result.updated_files:
        typer.echo(f"  + {path}")

    prefix = "Would remove" if result.dry_run else "Removed"
    typer.echo(f"{prefix} {result.removed} orphaned artifact(s)")
    for path in result.removed_files:
        typer.echo(f"  - {path}")

    if result.overview_updated:
        verb = "would be" if result.dry_run else "were"
        typer.echo(f"Overview and index {verb} regenerated")

    if result.has_failures:
        typer.echo("")
        typer.echo(typer.style("Warnings:", fg=typer.colors.YELLOW))
        for failure in result.failures:
            typer.echo(f"  ! {failure.module}: {failure.reason}")
        if result.overview_error:
            typer.echo(f"  ! overview: {result.overview_error}")

    if result.pointer_advanced and result.revision:
        typer.echo(f"Reference advanced to {result.revision[:8]}")


@app.command()
def status(
    base_dir: DirOption = Path.cwd(),
    config: ConfigOption = None,
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Output the report as JSON"),
    ] = False,
    verbose: VerboseOption = False,
) -> None:
    """Show how fresh the context documentation is."""
    service = _service(base_dir, config, verbose=verbose)
    try:
        report = service.status()
        tracking = service.tracking_info() if verbose or as_json else None
    except CtxSyncError as e:
        raise _fail(str(e)) from e

    if as_json:
        data = report.to_dict()
        if tracking is not None:
            data["tracking"] = {
                "last_processed": tracking.last_processed,
                "current": tracking.current,
                "branch": tracking.branch,
                "up_to_date": tracking.up_to_date,
            }
        typer.echo(json.dumps(data, indent=2))
        return

    typer.echo(
        f"State: {typer.style(report.state.value, fg=STATE_COLORS[report.state], bold=True)}"
    )
    typer.echo(report.describe())

    if verbose and tracking is not None:
        typer.echo("")
        typer.echo(f"Branch: {tracking.branch}")
        typer.echo(f"Current revision: {tracking.current[:8]}")
        last = tracking.last_processed[:8] if tracking.last_processed else "never"
        typer.echo(f"Last processed: {last}")
        typer.echo(f"Up to date: {'yes' if tracking.up_to_date else 'no'}")


@app.command()
def preview(
    base_dir: DirOption = Path.cwd(),
    config: ConfigOption = None,
    since: SinceOption = None,
    staged: StagedOption = False,
    verbose: VerboseOption = False,
) -> None:
    """Show which modules an update would regenerate."""
    service = _service(base_dir, config, verbose=verbose)
    try:
        analysis = service.preview(ChangeRequest(since=since, staged=staged))
    except CtxSyncError as e:
        raise _fail(str(e)) from e

    for line in analysis.display_lines(verbose=verbose):
        typer.echo(line)


@app.command()
def update(
    base_dir: DirOption = Path.cwd(),
    config: ConfigOption = None,
    since: SinceOption = None,
    staged: StagedOption = False,
    force: Annotated[
        bool,
        typer.Option(
            "--force",
            "-f",
            help="Regenerate every module, ignoring the reference pointer",
        ),
    ] = False,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Plan only; write nothing"),
    ] = False,
    engine: Annotated[
        EngineType | None,
        typer.Option("--engine", "-e", help="Engine to use (codex, gemini, fake)"),
    ] = None,
    model: Annotated[
        str | None,
        typer.Option("--model", "-m", help="Model to use (overrides engine default)"),
    ] = None,
    output: Annotated[
        str | None,
        typer.Option("--output", "-o", help="Artifact directory relative to the repository"),
    ] = None,
    verbose: VerboseOption = False,
) -> None:
    """Regenerate documentation for modules touched by recent changes."""
    service = _service(
        base_dir, config, engine=engine, model=model, output=output, verbose=verbose
    )
    request = ChangeRequest(since=since, staged=staged, force=force)
    try:
        analysis, result = service.update(request, dry_run=dry_run)
    except CtxSyncError as e:
        raise _fail(str(e)) from e

    if verbose or dry_run:
        for line in analysis.display_lines(verbose=verbose):
            typer.echo(line)
        typer.echo("")

    if not analysis.has_work:
        typer.echo("Documentation is up to date; nothing to regenerate.")
        return

    _echo_result(result)

    if result.pointer_advanced or result.dry_run:
        return
    try:
        result.raise_for_failures()
    except PartialFailure as e:
        typer.echo("")
        typer.echo(typer.style(f"Update incomplete: {e}", fg=typer.colors.RED))
        typer.echo("The next run will retry.")
        raise typer.Exit(1) from e


@app.command()
def reset(
    base_dir: DirOption = Path.cwd(),
    config: ConfigOption = None,
) -> None:
    """Forget the last processed revision."""
    service = _service(base_dir, config)
    if not service.reset():
        raise _fail(f"Could not remove {service.paths.reference_json}")
    typer.echo("Reference pointer cleared; the next update starts from the previous commit.")


@app.command()
def init(
    base_dir: Annotated[
        Path,
        typer.Option(
            "--dir",
            "-d",
            help="Directory to initialize",
            resolve_path=True,
        ),
    ] = Path.cwd(),
    engine: Annotated[
        EngineType,
        typer.Option("--engine", "-e", help="Default engine to use"),
    ] = EngineType.CODEX,
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Overwrite existing config"),
    ] = False,
) -> None:
    """Write a default ctxsync.yaml."""
    config_path = base_dir / CONFIG_FILENAME

    if config_path.exists() and not force:
        typer.echo(f"Config already exists: {config_path}")
        typer.echo("Use --force to overwrite.")
        raise typer.Exit(1)

    config = CtxSyncConfig.default(engine)
    config.save(config_path)

    typer.echo(f"Created config: {config_path}")
    typer.echo(f"Engine: {engine.value}")
    typer.echo("")
    typer.echo("Run `ctxsync update --force` to generate the initial documentation.")


if __name__ == "__main__":
    app()
