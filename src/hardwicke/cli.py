import logging
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from hardwicke.core.config import DEFAULT_MANIFEST_NAME, ConversionConfig
from hardwicke.core.errors import HardwickeError
from hardwicke.orchestration.orchestrator import convert, locate_shards, release_inputs
from hardwicke.storage.manifest import BackupCatalog
from hardwicke.storage.shards import ShardLocator

console = Console()
logger = logging.getLogger("hardwicke")

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def configure_logging(level: str = "INFO") -> None:
    """Route all log records through a rich handler on stderr."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=False, show_path=False)],
        force=True,
    )


@click.group()
@click.version_option(package_name="hardwicke")
def cli() -> None:
    """Hardwicke: convert sharded search-index backups to JSONL."""


@cli.command("convert")
@click.option("-s", "--source", type=click.Path(path_type=Path), default=None, help="Local backup or index directory")
@click.option("--gcs-source", default=None, help="Remote backup (gs://bucket/path, .zip archives are unpacked)")
@click.option("-o", "--output", type=click.Path(path_type=Path), default=None, help="Local JSONL output path")
@click.option("--gcs-output", default=None, help="Remote JSONL output (gs://bucket/path)")
@click.option("--batch-size", type=int, default=1_000, show_default=True, help="Documents per read/write batch")
@click.option("--progress-interval", type=float, default=10.0, show_default=True, help="Seconds between progress reports")
@click.option("--compress/--no-compress", default=False, show_default=True, help="Gzip the JSONL output")
@click.option(
    "--gcs-credentials",
    envvar="GOOGLE_APPLICATION_CREDENTIALS",
    default=None,
    help="Service account JSON file (or set GOOGLE_APPLICATION_CREDENTIALS)",
)
@click.option("--no-schema", is_flag=True, default=False, help="Skip schema inference")
@click.option("--manifest-name", default=DEFAULT_MANIFEST_NAME, show_default=True, help="Backup manifest file name")
@click.option("--log-level", type=click.Choice(LOG_LEVELS), default="INFO", show_default=True)
@click.pass_context
def convert_cmd(
    ctx: click.Context,
    source: Path | None,
    gcs_source: str | None,
    output: Path | None,
    gcs_output: str | None,
    batch_size: int,
    progress_interval: float,
    compress: bool,
    gcs_credentials: str | None,
    no_schema: bool,
    manifest_name: str,
    log_level: str,
) -> None:
    """Convert a backup (local or GCS) into newline-delimited JSON."""
    configure_logging(log_level)

    config = ConversionConfig(
        source=source,
        gcs_source=gcs_source,
        output=output,
        gcs_output=gcs_output,
        batch_size=batch_size,
        report_interval=progress_interval,
        compress=compress,
        credentials_path=gcs_credentials,
        infer_schema=not no_schema,
        manifest_name=manifest_name,
    )

    try:
        run = convert(config)
    except HardwickeError as exc:
        logger.error("%s", exc)
        ctx.exit(1)

    result = run.result
    console.print(
        f"[bold]done[/]: {result.processed:,} documents → {result.output} "
        f"• {result.elapsed_s:.2f}s • {result.docs_per_second:,.1f} docs/sec"
    )
    if run.schema is not None:
        console.print(f"[bold]schema[/]: {run.schema.field_count} fields")


@cli.command("inspect")
@click.argument("path", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--manifest-name", default=DEFAULT_MANIFEST_NAME, show_default=True)
@click.option("--log-level", type=click.Choice(LOG_LEVELS), default="WARNING", show_default=True)
@click.pass_context
def inspect_cmd(ctx: click.Context, path: Path, manifest_name: str, log_level: str) -> None:
    """Show a local backup's manifest and the shard directories it resolves to."""
    configure_logging(log_level)

    try:
        manifest, shards = locate_shards(
            path,
            manifest_name=manifest_name,
            catalog=BackupCatalog(),
            locator=ShardLocator(),
        )
    except HardwickeError as exc:
        logger.error("%s", exc)
        ctx.exit(1)

    try:
        if manifest is not None:
            console.print(f"[bold]collection[/]: {manifest.collection}  [bold]backup[/]: {manifest.backup_name}")
            console.print(
                f"[bold]index[/]: version={manifest.index_version} files={manifest.index_file_count} "
                f"size={manifest.index_size_mb:.2f}MB shards={manifest.shard_count}"
            )
            if manifest.start_time and manifest.end_time:
                console.print(f"[bold]taken[/]: {manifest.start_time.isoformat()} → {manifest.end_time.isoformat()}")

        table = Table("#", "provenance", "directory")
        for i, shard in enumerate(shards):
            table.add_row(str(i), shard.provenance.value, str(shard.path))
        console.print(table)
    finally:
        release_inputs(s.path for s in shards if s.is_temporary)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
