# Copyright (c) 2023-2024 Datalayer, Inc.
#
# BSD 3-Clause License

"""
Command line helpers for seeding and cleaning fixture directories by hand.

Usage: jupyter-ui-harness [upload|cleanup|status|compare] --help
"""

import asyncio
import logging
from pathlib import Path

import click
from PIL import Image

from jupyter_ui_harness import config
from jupyter_ui_harness.contents import ContentsHelper
from jupyter_ui_harness.errors import HarnessError
from jupyter_ui_harness.snapshots import allowed_diff_pixels, diff_images

logger = logging.getLogger(__name__)

server_url_option = click.option(
    "--jupyter-url",
    envvar="JUPYTER_URL",
    type=click.STRING,
    default="http://localhost:8888",
    help="The Jupyter server URL. Defaults to 'http://localhost:8888'.",
)
token_option = click.option(
    "--jupyter-token",
    envvar="JUPYTER_TOKEN",
    type=click.STRING,
    default=None,
    help="The Jupyter server token. If not provided, the server should accept anonymous requests.",
)


def _run(coroutine):
    try:
        return asyncio.run(coroutine)
    except HarnessError as e:
        logger.error(f"{type(e).__name__}: {e}")
        raise click.ClickException(str(e))


@click.group()
@click.option(
    "--log-level",
    envvar="HARNESS_LOG_LEVEL",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=config.LOG_LEVEL,
    help="Logging level. Defaults to 'INFO'.",
)
def harness(log_level: str):
    """Manages fixtures and baselines for the Jupyter UI regression harness."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@harness.command("upload")
@server_url_option
@token_option
@click.argument("sources", nargs=-1, required=True, type=click.Path(exists=True, path_type=Path))
@click.option("--dest", "destination", required=True, help="Server directory to upload into.")
def upload_command(jupyter_url: str, jupyter_token: str, sources, destination: str):
    """Upload local files (or directories) into a server directory."""

    async def _upload():
        async with ContentsHelper(jupyter_url, jupyter_token) as contents:
            count = 0
            for source in sources:
                if source.is_dir():
                    count += len(await contents.upload_directory(source, f"{destination}/{source.name}"))
                else:
                    await contents.upload_file(source, f"{destination}/{source.name}")
                    count += 1
            return count

    count = _run(_upload())
    click.secho(f"Uploaded {count} file(s) to {destination}", fg="green")


@harness.command("cleanup")
@server_url_option
@token_option
@click.argument("directory")
@click.option("--dry-run", is_flag=True, help="Show what would be deleted without doing it.")
def cleanup_command(jupyter_url: str, jupyter_token: str, directory: str, dry_run: bool):
    """Delete a fixture directory left behind by an aborted run."""

    async def _cleanup():
        async with ContentsHelper(jupyter_url, jupyter_token) as contents:
            if dry_run:
                if not await contents.directory_exists(directory):
                    return None
                return await contents.list_directory(directory)
            return await contents.delete_directory(directory)

    result = _run(_cleanup())
    if dry_run:
        if result is None:
            click.secho(f"Nothing to clean: {directory} does not exist", fg="yellow")
            return
        click.secho(f"DRY RUN: would delete {directory} and {len(result)} item(s):", fg="yellow")
        for item in result:
            click.echo(f"   {item.path}")
    elif result:
        click.secho(f"Deleted {directory}", fg="green")
    else:
        click.secho(f"Nothing to clean: {directory} does not exist", fg="yellow")


@harness.command("status")
@server_url_option
@token_option
@click.argument("directory", default="")
def status_command(jupyter_url: str, jupyter_token: str, directory: str):
    """List the contents of a server directory."""

    async def _status():
        async with ContentsHelper(jupyter_url, jupyter_token) as contents:
            return await contents.list_directory(directory)

    items = _run(_status())
    click.secho(f"{len(items)} item(s) in /{directory}", bold=True)
    for item in sorted(items, key=lambda entry: (not entry.is_directory, entry.name)):
        size_kb = (item.size or 0) / 1024
        kind = "dir " if item.is_directory else "file"
        click.echo(f"   {kind} {item.name} ({size_kb:.1f}KB)")


@harness.command("compare")
@click.argument("actual", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("baseline", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--threshold",
    envvar="HARNESS_PIXEL_THRESHOLD",
    type=click.FloatRange(0.0, 1.0),
    default=config.PIXEL_THRESHOLD,
    help="Per-pixel channel tolerance as a fraction of 255.",
)
@click.option(
    "--max-diff-pixels",
    envvar="HARNESS_MAX_DIFF_PIXELS",
    type=click.IntRange(min=0),
    default=config.MAX_DIFF_PIXELS,
    help="Number of differing pixels tolerated.",
)
@click.option(
    "--max-diff-pixel-ratio",
    envvar="HARNESS_MAX_DIFF_PIXEL_RATIO",
    type=click.FloatRange(0.0, 1.0),
    default=config.MAX_DIFF_PIXEL_RATIO,
    help="Share of differing pixels tolerated.",
)
@click.option(
    "--diff-out",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Where to write the diff image when the screenshots differ.",
)
def compare_command(
    actual: Path,
    baseline: Path,
    threshold: float,
    max_diff_pixels: int,
    max_diff_pixel_ratio: float,
    diff_out: Path,
):
    """Compare two PNG screenshots; exits 1 if they differ beyond tolerance."""
    with Image.open(actual) as actual_image, Image.open(baseline) as baseline_image:
        if actual_image.size != baseline_image.size:
            click.secho(
                f"Size mismatch: {actual_image.size} vs baseline {baseline_image.size}", fg="red"
            )
            raise SystemExit(1)
        count, diff = diff_images(actual_image, baseline_image, threshold)
        total = actual_image.size[0] * actual_image.size[1]

    allowed = allowed_diff_pixels(total, max_diff_pixels, max_diff_pixel_ratio)
    if count == 0:
        click.secho("Screenshots match", fg="green")
        return
    if count <= allowed:
        click.secho(f"Screenshots match ({count} pixel(s) differ, {allowed} tolerated)", fg="green")
        return

    click.secho(f"{count} pixel(s) differ ({allowed} tolerated)", fg="red")
    if diff_out is not None:
        diff_out.parent.mkdir(parents=True, exist_ok=True)
        diff.save(diff_out)
        click.echo(f"Diff written to {diff_out}")
    raise SystemExit(1)


###############################################################################
# Main.


if __name__ == "__main__":
    harness()
