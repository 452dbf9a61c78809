"""``purl-validator`` command line.

Exit codes: 0 when every checked PURL exists, 1 when at least one does not,
2 when the index cannot be loaded.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING, TextIO

import click

from purl_validator import __version__
from purl_validator.automaton.builder import write_set
from purl_validator.config import Settings
from purl_validator.errors import IndexLoadError
from purl_validator.index import load_index
from purl_validator.logs import configure_logging
from purl_validator.validator import PurlValidator, normalize

if TYPE_CHECKING:
    from purl_validator.index import PurlIndex

EXIT_MISSING = 1
EXIT_INDEX_ERROR = 2

_index_option = click.option(
    "--index",
    "index_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Index file to use instead of the configured one.",
)


def _open_index(ctx: click.Context, index_path: Path | None) -> PurlIndex:
    settings: Settings = ctx.obj
    path = index_path or Path(settings.index.path)
    try:
        return load_index(path, verify_checksum=settings.index.verify_checksum)
    except IndexLoadError as exc:
        click.echo(f"error: {exc}", err=True)
        raise click.exceptions.Exit(EXIT_INDEX_ERROR) from exc


@click.group()
@click.version_option(__version__, prog_name="purl-validator")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Override the configured log level.",
)
@click.pass_context
def main(ctx: click.Context, log_level: str | None) -> None:
    """Check whether Package URLs refer to known packages, fully offline."""
    settings = Settings()
    if log_level is not None:
        settings.logging = settings.logging.model_copy(update={"level": log_level.upper()})
    configure_logging(settings.logging)
    ctx.obj = settings


@main.command()
@click.argument("purls", nargs=-1, required=True)
@_index_option
@click.option("--json", "as_json", is_flag=True, help="Print results as a JSON object.")
@click.pass_context
def check(
    ctx: click.Context,
    purls: tuple[str, ...],
    index_path: Path | None,
    as_json: bool,
) -> None:
    """Report whether each PURL exists."""
    validator = PurlValidator(_open_index(ctx, index_path))
    results = [(purl, validator.validate(purl)) for purl in purls]

    if as_json:
        click.echo(json.dumps(dict(results), indent=2))
    else:
        for purl, exists in results:
            click.echo(f"{purl}\t{'true' if exists else 'false'}")

    if not all(exists for _, exists in results):
        ctx.exit(EXIT_MISSING)


@main.command()
@_index_option
@click.pass_context
def info(ctx: click.Context, index_path: Path | None) -> None:
    """Print index metadata as JSON."""
    index = _open_index(ctx, index_path)
    click.echo(index.info.model_dump_json(indent=2))


@main.command()
@click.argument("corpus", type=click.File("r", encoding="utf-8"))
@click.argument("output", type=click.Path(dir_okay=False, path_type=Path))
def build(corpus: TextIO, output: Path) -> None:
    """Build an index from CORPUS, one base PURL per line ("-" for stdin)."""
    keys = (normalize(line.rstrip("\r\n")) for line in corpus)
    count = write_set(output, (key for key in keys if key))
    click.echo(f"wrote {count} PURLs to {output}")
