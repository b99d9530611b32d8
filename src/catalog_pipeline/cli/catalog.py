from __future__ import annotations

from datetime import timedelta

import typer

from catalog_pipeline.cli.common import session_scope
from catalog_pipeline.ingestion.providers.rawg.ingest.catalog_backfill import backfill_catalog
from catalog_pipeline.ingestion.providers.rawg.ingest.catalog_sync import sync_catalog
from catalog_pipeline.ingestion.providers.rawg.ingest.stale_guard import sync_catalog_if_stale

app = typer.Typer(help="Synchronize the RAWG game catalog.")


@app.command("sync")
def sync_cmd(
    page_size: int | None = typer.Option(
        None, "--page-size", help="RAWG page size (defaults to RAWG_PAGE_SIZE)."
    ),
) -> None:
    """Pull RAWG games updated since the stored checkpoint."""

    with session_scope() as session:
        result = sync_catalog(session, page_size=page_size)

    typer.echo(
        " ".join(
            [
                f"Catalog sync {result.status}:",
                f"pages={result.pages}",
                f"entities_upserted={result.entities_upserted}",
                f"checkpoint={result.checkpoint.isoformat() if result.checkpoint else None}",
            ]
        )
    )


@app.command("backfill")
def backfill_cmd() -> None:
    """Fetch per-game detail for catalog rows still pending."""

    with session_scope() as session:
        result = backfill_catalog(session)

    typer.echo(
        " ".join(
            [
                f"Catalog backfill {result.status}:",
                f"pending={result.pending}",
                f"filled={result.filled}",
                f"not_found={result.not_found}",
            ]
        )
    )
    if result.stop_reason:
        typer.echo(f"Stopped at game {result.stopped_at_id}: {result.stop_reason}")


@app.command("sync-if-stale")
def sync_if_stale_cmd(
    max_age_hours: int | None = typer.Option(
        None, "--max-age-hours", help="Staleness threshold (defaults to CATALOG_MAX_AGE_HOURS)."
    ),
) -> None:
    """Sync and backfill only when the checkpoint is older than the threshold."""

    max_age = None if max_age_hours is None else timedelta(hours=max_age_hours)
    with session_scope() as session:
        result = sync_catalog_if_stale(session, max_age=max_age)

    typer.echo(f"Catalog sync-if-stale {result.status}: last_synced_at={result.last_synced_at}")
