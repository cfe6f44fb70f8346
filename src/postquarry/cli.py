"""Command-line interface for PostQuarry."""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Optional, Tuple

import click
import structlog

from postquarry import __version__
from postquarry.config.config import Config, find_config_file
from postquarry.extractor.models import ExtractionError, ExtractionResult, MediaKind
from postquarry.observability.logging import configure_logging
from postquarry.observability.metrics import set_metrics_enabled
from postquarry.scraper import PostScraper

logger = structlog.get_logger(__name__)


def load_config(config_path: Optional[Path], log_level: Optional[str]) -> Config:
    path = config_path or find_config_file()
    config = Config.from_yaml(path) if path else Config()
    if log_level:
        config.monitoring.log_level = log_level
    configure_logging(config.monitoring)
    set_metrics_enabled(config.monitoring.metrics_enabled)
    return config


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "-c", type=click.Path(exists=True, path_type=Path), help="Configuration file path")
@click.option(
    "--log-level",
    default=None,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Logging level",
)
@click.pass_context
def cli(ctx: click.Context, config: Optional[Path], log_level: Optional[str]) -> None:
    """PostQuarry - extract post text and media."""
    ctx.ensure_object(dict)
    ctx.obj["config"] = load_config(config, log_level)


def _print_result(result: ExtractionResult, as_json: bool) -> None:
    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
        return

    click.echo(result.text)
    for label, urls in (
        ("Images", result.image_urls),
        ("Videos", result.video_urls),
        ("Documents", result.document_urls),
    ):
        if urls:
            click.echo(f"\n{label} ({len(urls)}):")
            for url in urls:
                click.echo(f"  {url}")


@cli.command()
@click.argument("url")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@click.pass_context
def extract(ctx: click.Context, url: str, as_json: bool) -> None:
    """Extract text and media URLs from a post URL."""
    config: Config = ctx.obj["config"]

    async def _run() -> ExtractionResult:
        async with PostScraper(config) as scraper:
            return await scraper.extract_post(url)

    try:
        result = asyncio.run(_run())
    except ExtractionError as e:
        click.echo(f"{e.code.value}: {e.message}", err=True)
        sys.exit(1)

    _print_result(result, as_json)


@cli.command()
@click.argument("url")
@click.option(
    "--output",
    "-o",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("."),
    show_default=True,
    help="Directory the media files are written to",
)
@click.option(
    "--kind",
    "kinds",
    multiple=True,
    type=click.Choice([kind.value for kind in MediaKind]),
    help="Only download these media kinds (default: all)",
)
@click.pass_context
def download(ctx: click.Context, url: str, output: Path, kinds: Tuple[str, ...]) -> None:
    """Extract a post and download its media into a directory."""
    config: Config = ctx.obj["config"]
    wanted = {MediaKind(kind) for kind in kinds} or set(MediaKind)

    async def _run() -> list:
        async with PostScraper(config) as scraper:
            result = await scraper.extract_post(url)
            requests = [request for request in result.media_requests() if request.requested_type in wanted]
            return await scraper.download_media(requests)

    try:
        media = asyncio.run(_run())
    except ExtractionError as e:
        click.echo(f"{e.code.value}: {e.message}", err=True)
        sys.exit(1)

    output.mkdir(parents=True, exist_ok=True)
    for item in media:
        (output / item.filename).write_bytes(item.content)
        click.echo(f"{item.filename}\t{item.mime_type}\t{item.size} bytes")
    logger.info("Media written", output=str(output), count=len(media))

    if not media:
        click.echo("No media downloaded", err=True)


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
