"""CLI commands for the live document pipeline."""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from ..core.config import Settings
from ..core.errors import LiveSyncError
from ..pipelines.artifact import ArtifactStore
from ..pipelines.cleanup import is_live_ref
from ..pipelines.kb_builder import KnowledgeBaseBuilder
from ..pipelines.orchestrator import SyncOrchestrator
from ..pipelines.scraper.site_listing import LiveSiteScraper
from ..pipelines.vector_store import VectorStoreClient

LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"
LOG_DATE_FORMAT = "%H:%M:%S"


def load_settings() -> Settings:
    """Build settings once per command invocation."""
    settings = Settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
    )
    return settings


@click.group()
def pipeline():
    """Live document commands: scrape, sync and inspect the vector store."""
    pass


@pipeline.command()
@click.option("--output", type=click.Path(path_type=Path), help="Artifact path override")
def scrape(output: Optional[Path]):
    """Scrape the site and write the live artifact."""
    settings = load_settings()
    click.echo(f"🔍 Scraping {settings.site_base_url}...")

    async def run_scrape():
        store = ArtifactStore(settings)
        path = output or store.resolve_path()
        artifact = await LiveSiteScraper(settings).scrape()
        store.write(artifact, path)
        return path, artifact

    try:
        path, artifact = asyncio.run(run_scrape())
    except LiveSyncError as e:
        click.echo(f"❌ Scraping failed: {e}")
        sys.exit(1)

    click.echo(f"✅ Saved live artifact: {path}")
    click.echo(f"   Notices: {artifact.notice_count}")
    for key, count in artifact.item_counts.items():
        click.echo(f"   📂 {key}: {count} items")
    for error in artifact.errors:
        click.echo(f"   ⚠️  {error}")


@pipeline.command()
@click.option("--no-cleanup", is_flag=True, help="Keep earlier live copies in the store")
@click.option("--regenerate", is_flag=True, help="Scrape a fresh artifact before upload")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
def sync(no_cleanup: bool, regenerate: bool, as_json: bool):
    """Replace the live document in the vector store."""
    settings = load_settings()
    updates = {}
    if no_cleanup:
        updates["cleanup_old"] = False
    if regenerate:
        updates["regenerate_artifact"] = True
    if updates:
        settings = settings.model_copy(update=updates)

    if not as_json:
        click.echo("🚀 Starting live sync...")

    result = asyncio.run(SyncOrchestrator(settings).run())

    if as_json:
        click.echo(result.model_dump_json(indent=2))
    elif result.ok:
        click.echo(f"✅ {result.message}")
        click.echo(f"   Batch: {result.batch_id} ({result.batch_status})")
        if result.store_file_count is not None:
            click.echo(f"   Store files: {result.store_file_count}")
    else:
        click.echo(f"❌ Sync failed: {result.error}")

    if result.failed_deletes and not as_json:
        click.echo(f"   ⚠️  {result.failed_deletes} stale copies could not be deleted")

    if not result.ok:
        sys.exit(1)


@pipeline.command()
@click.option("--limit", default=100, type=click.IntRange(1, 100), help="Files to list")
@click.option("--json", "as_json", is_flag=True, help="Print the listing as JSON")
def status(limit: int, as_json: bool):
    """Show the files in the vector store and which are live copies."""
    settings = load_settings()
    try:
        settings.require_sync_credentials()
    except LiveSyncError as e:
        click.echo(f"❌ {e}")
        sys.exit(1)

    async def run_status():
        rows = []
        async with VectorStoreClient(settings) as client:
            refs = await client.list_store_files(settings.vector_store_id, limit=limit)
            for ref in refs:
                filename = await client.resolve_filename(ref)
                live = is_live_ref(
                    ref,
                    filename,
                    live_filename=settings.live_filename,
                    marker=settings.live_marker,
                    tag_key=settings.document_tag_key,
                )
                rows.append(
                    {
                        "id": ref.id,
                        "file_id": ref.file_id,
                        "filename": filename,
                        "status": ref.status,
                        "live": live,
                    }
                )
        return rows

    try:
        rows = asyncio.run(run_status())
    except LiveSyncError as e:
        click.echo(f"❌ Could not list vector store: {e}")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(rows, indent=2))
        return

    table = Table(title=f"Vector store {settings.vector_store_id}")
    table.add_column("ID", no_wrap=True)
    table.add_column("Filename")
    table.add_column("Status", no_wrap=True)
    table.add_column("Live", no_wrap=True)
    for row in rows:
        table.add_row(
            row["id"], row["filename"] or "-", row["status"] or "-", "✅" if row["live"] else ""
        )
    Console().print(table)


@pipeline.command("build-kb")
@click.option("--output", type=click.Path(path_type=Path), help="Output JSON path override")
def build_kb(output: Optional[Path]):
    """Crawl the reference site into the static knowledge base JSON."""
    settings = load_settings()
    click.echo(f"📚 Building knowledge base from {settings.kb_root_url}...")

    summary = asyncio.run(KnowledgeBaseBuilder(settings).run(output))

    click.echo("✅ Knowledge base built!")
    click.echo(f"   Output: {summary['output_path']}")
    click.echo(f"   Chunks: {summary['chunks']}")
