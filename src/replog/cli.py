"""CLI entry point for replog."""

from __future__ import annotations

import sys

import click
from click.core import ParameterSource

from .core.enums import Outcome

EXIT_FATAL = 1
EXIT_TEMPFAIL = 75  # sysexits EX_TEMPFAIL


@click.group()
@click.option("--log-level", default="INFO", help="DEBUG, INFO, WARNING or ERROR")
@click.option(
    "--log-format",
    type=click.Choice(["console", "json"]),
    default="console",
    help="Log renderer",
)
def main(log_level: str, log_format: str) -> None:
    """Replication log rotation."""
    from .observability.logger import setup_logging

    setup_logging(level=log_level, format=log_format)


@main.command()
@click.argument("source", type=click.Path(dir_okay=False))
@click.argument("dest", type=click.Path(dir_okay=False))
@click.option("--one-shot", is_flag=True, help="Do not truncate the source after copying")
@click.option(
    "--lock-timeout",
    type=click.FloatRange(min=0),
    default=None,
    help="Seconds to wait for a lock (default: block)",
)
def rotate(source: str, dest: str, one_shot: bool, lock_timeout: float | None) -> None:
    """Drain SOURCE into DEST, then empty SOURCE."""
    from .core.locking import FileLocker
    from .rotation.rotator import rotate as rotate_replog

    result = rotate_replog(
        source, dest, one_shot, locker=FileLocker(timeout=lock_timeout)
    )
    if result.outcome is Outcome.SUCCESS:
        click.echo(f"rotated {result.bytes_copied} bytes")
        return

    click.echo(
        f"{result.outcome.value} at {result.failed_step.value}: {result.error}",
        err=True,
    )
    if result.outcome is Outcome.FATAL_FAILURE:
        sys.exit(EXIT_FATAL)
    sys.exit(EXIT_TEMPFAIL)


@main.command()
@click.argument("path", type=click.Path(dir_okay=False))
def probe(path: str) -> None:
    """Exit 0 if PATH exists and is non-empty, 1 otherwise."""
    from .rotation.probe import is_nonempty

    if is_nonempty(path):
        click.echo("non-empty")
        return
    click.echo("empty")
    sys.exit(1)


@main.command()
@click.argument("path", type=click.Path(dir_okay=False))
@click.argument("record")
def append(path: str, record: str) -> None:
    """Append RECORD to the live log at PATH."""
    from .core.file_io import safe_append_line

    try:
        safe_append_line(path, record)
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint="RECORD") from exc


@main.command()
@click.option("--config", default=None, help="Config file path (TOML)")
@click.option("--one-shot", is_flag=True, help="Preserve the live log (overrides config)")
@click.option("--max-ticks", default=None, type=int, help="Stop after N ticks")
@click.pass_context
def run(
    ctx: click.Context,
    config: str | None,
    one_shot: bool,
    max_ticks: int | None,
) -> None:
    """Run the periodic drain loop."""
    import signal

    from .core.config import load_settings
    from .core.errors import ConfigError
    from .observability.logger import setup_logging
    from .scheduler import DrainScheduler

    overrides: dict = {}
    if one_shot:
        overrides["one_shot"] = True

    try:
        settings = load_settings(config_path=config, overrides=overrides)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    # Config file wins over the group defaults, not over explicit flags.
    if ctx.parent.get_parameter_source("log_level") is ParameterSource.DEFAULT:
        setup_logging(
            level=settings.observability.log_level,
            format=settings.observability.log_format.value,
        )

    scheduler = DrainScheduler.from_settings(settings)
    previous = signal.signal(signal.SIGTERM, lambda *_: scheduler.stop())
    try:
        scheduler.run_forever(max_ticks=max_ticks)
    except KeyboardInterrupt:
        scheduler.stop()
    finally:
        signal.signal(signal.SIGTERM, previous)

    if scheduler.halted:
        sys.exit(EXIT_FATAL)


if __name__ == "__main__":
    main()
