"""Command-line interface for timelinemeta."""

import asyncio
import sys
from pathlib import Path

import click

from timelinemeta import __version__
from timelinemeta.config import load_config
from timelinemeta.core.approval import ApprovalWorkflow
from timelinemeta.core.service import MediaUpdateService
from timelinemeta.errors import ContentStoreError
from timelinemeta.models.result import BatchProgress, ResultStatus
from timelinemeta.models.update import CoverImageMode, Provider, ReconciliationOptions
from timelinemeta.store.sensenet import SenseNetContentStore
from timelinemeta.utils.logger import get_logger, setup_logging

_STATUS_STYLE = {
    ResultStatus.CHANGED: ("✓", "green"),
    ResultStatus.UNCHANGED: ("⊘", "yellow"),
    ResultStatus.NOT_FOUND: ("⊘", "yellow"),
    ResultStatus.RATE_LIMITED: ("⊙", "cyan"),
    ResultStatus.ERROR: ("✗", "red"),
}


def update_options(func):
    """Shared reconciliation option flags."""
    options = [
        click.option(
            "--only-missing/--overwrite",
            default=True,
            help="Only fill empty fields (default) or overwrite selected fields",
        ),
        click.option("--no-titles", is_flag=True, help="Do not update titles"),
        click.option("--no-descriptions", is_flag=True, help="Do not update descriptions"),
        click.option("--no-covers", is_flag=True, help="Do not update cover images"),
        click.option("--binary-covers", is_flag=True, help="Upload covers as binaries"),
        click.option(
            "--source",
            "sources",
            multiple=True,
            type=click.Choice([p.value for p in Provider]),
            help="Provider order (repeatable, defaults to configuration)",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def build_options(config, only_missing, no_titles, no_descriptions, no_covers, binary_covers, sources):
    return ReconciliationOptions(
        update_titles=not no_titles,
        update_descriptions=not no_descriptions,
        update_cover_images=not no_covers,
        only_missing=only_missing,
        preferred_sources=[Provider(s) for s in sources] or config.reconciliation.preferred_sources,
        cover_image_mode=CoverImageMode.BINARY if binary_covers else CoverImageMode.URL,
    )


def echo_progress(progress: BatchProgress) -> None:
    if progress.api_status is None:
        click.echo(f"[{progress.current}/{progress.total}] {progress.current_item_label}")
    elif progress.api_status.state == "rate_limited":
        click.secho(f"    rate limited: {progress.api_status.source}", fg="cyan")
    else:
        click.echo(f"    source: {progress.api_status.source}")


async def _load_records(store, ids):
    records = []
    for record_id in ids:
        try:
            records.append(await store.read(record_id))
        except ContentStoreError as e:
            click.secho(f"✗ Could not load #{record_id}: {e}", fg="red", err=True)
    return records


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Path to configuration file (defaults to built-in defaults)",
)
@click.pass_context
def cli(ctx, config):
    """timelinemeta - reconcile media metadata with OMDb, TMDB and Trakt."""
    try:
        cfg = load_config(config)
        ctx.ensure_object(dict)
        ctx.obj["config"] = cfg

        setup_logging(cfg.logging)

    except Exception as e:
        click.echo(f"Error loading configuration: {e}", err=True)
        sys.exit(1)


@cli.command()
@click.argument("ids", nargs=-1, type=int, required=True)
@update_options
@click.pass_context
def preview(ctx, ids, **flags):
    """Show the changes that would be made to the given media items."""
    config = ctx.obj["config"]
    options = build_options(config, **flags)

    async def _preview():
        store = SenseNetContentStore(config.store)
        service = MediaUpdateService.from_config(config, store)
        try:
            records = await _load_records(store, ids)
            return await service.process_bulk_update(records, options, echo_progress, is_preview=True)
        finally:
            await service.close()
            await store.close()

    results = asyncio.run(_preview())
    logger = get_logger(__name__)
    logger.info("Preview finished", items=len(results))

    click.echo("")
    for result in results:
        marker, colour = _STATUS_STYLE[result.status]
        click.secho(f"{marker} {result}", fg=colour)
        if result.change_set:
            for name in result.change_set.changed_fields():
                click.echo(f"    {name}: {getattr(result.change_set, name)}")

    changed = sum(1 for r in results if r.has_changes)
    click.echo("")
    click.echo(f"{changed} of {len(results)} item(s) would be updated")


@cli.command()
@click.argument("ids", nargs=-1, type=int, required=True)
@update_options
@click.option("--yes", "-y", is_flag=True, help="Accept default approvals without prompting")
@click.pass_context
def apply(ctx, ids, yes, **flags):
    """Preview, review and apply updates to the given media items."""
    config = ctx.obj["config"]
    options = build_options(config, **flags)

    async def _apply():
        store = SenseNetContentStore(config.store)
        service = MediaUpdateService.from_config(config, store)
        try:
            records = await _load_records(store, ids)
            workflow = ApprovalWorkflow(service, records)
            items = await workflow.preview(options, echo_progress)

            click.echo("")
            for index, item in enumerate(items):
                if not item.has_changes:
                    continue
                fields = ", ".join(item.result.change_set.changed_fields())
                score = f" (similarity {item.similarity_score:.2f})" if item.similarity_score is not None else ""
                click.echo(f"{item.media_item.label}: {fields}{score}")
                if item.warning_reason:
                    click.secho(f"    ! {item.warning_reason}", fg="yellow")
                if not yes:
                    approved = click.confirm("    Apply?", default=item.approved)
                    workflow.set_approval(index, approved)

            if not workflow.approved_items:
                click.secho("⊘ Nothing to apply", fg="yellow")
                return None

            return await workflow.confirm(echo_progress)
        finally:
            await service.close()
            await store.close()

    summary = asyncio.run(_apply())
    if summary is None:
        sys.exit(0)

    logger = get_logger(__name__)
    logger.info(
        "Apply finished",
        success=summary.success,
        failed=summary.failed,
        skipped=summary.skipped,
    )

    click.echo("=" * 60)
    click.echo("Summary:")
    click.secho(f"  ✓ Updated:  {summary.success}", fg="green")
    click.secho(f"  ⊙ Skipped:  {summary.skipped}", fg="cyan")
    click.secho(f"  ✗ Failed:   {summary.failed}", fg="red")
    for error in summary.errors:
        click.secho(f"    - {error}", fg="red")
    for note in summary.notes:
        click.secho(f"    - {note}", fg="cyan")

    if summary.failed > 0:
        sys.exit(1)


@cli.command()
def version():
    """Show version information."""
    click.echo(f"timelinemeta v{__version__}")


def main():
    """Entry point for the CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
