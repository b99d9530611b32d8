from __future__ import annotations

import typer

from catalog_pipeline.cli.common import session_scope
from catalog_pipeline.ingestion.providers.steamspy.ingest.trending_snapshot import (
    ingest_trending_snapshot,
)

app = typer.Typer(help="Capture SteamSpy trending snapshots.")


@app.command("ingest")
def ingest_cmd(
    enforce_idempotency: bool | None = typer.Option(
        None,
        "--enforce-idempotency/--no-enforce-idempotency",
        help="Skip when the current 6h bucket already has a snapshot (default from settings).",
    ),
    keep_snapshots: int | None = typer.Option(
        None,
        "--keep-snapshots",
        help="Batches to retain after insert; 0 disables trimming (default from settings).",
    ),
) -> None:
    """Fetch the SteamSpy top-100 ranking and store it as one batch."""

    with session_scope() as session:
        result = ingest_trending_snapshot(
            session,
            enforce_idempotency=enforce_idempotency,
            keep_snapshots=keep_snapshots,
        )

    typer.echo(
        " ".join(
            [
                f"Trending ingest {result.status}:",
                f"bucket={result.bucket.isoformat()}",
                f"batch_id={result.batch_id}",
                f"rows_inserted={result.rows_inserted}",
                f"rows_deleted={result.rows_deleted}",
            ]
        )
    )
