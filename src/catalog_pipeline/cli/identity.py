from __future__ import annotations

import typer

from catalog_pipeline.cli.common import session_scope
from catalog_pipeline.identity.mapping import assign_mapping, find_mapping
from catalog_pipeline.identity.resolver import resolve_identity, resolve_unmapped_batch

app = typer.Typer(help="Resolve SteamSpy app ids to RAWG game ids.")


@app.command("resolve")
def resolve_cmd(
    native_id: int = typer.Option(..., "--native-id", help="SteamSpy app id (e.g. 730)."),
    name: str = typer.Option(..., "--name", help="Game title to search for."),
    threshold: float | None = typer.Option(
        None, "--threshold", help="Minimum similarity (defaults to IDENTITY_AUTO_MATCH_THRESHOLD)."
    ),
) -> None:
    """Resolve a single app id, searching RAWG when no mapping exists."""

    with session_scope() as session:
        result = resolve_identity(session, native_id=native_id, name=name, threshold=threshold)

    typer.echo(
        " ".join(
            [
                f"Resolve {result.native_id} {result.status}:",
                f"target_id={result.target_id}",
                f"confidence={result.confidence}",
                f"source={result.source}",
            ]
        )
    )


@app.command("resolve-unmapped")
def resolve_unmapped_cmd(
    limit: int | None = typer.Option(None, "--limit", help="Max trending rows to consider."),
    threshold: float | None = typer.Option(None, "--threshold", help="Minimum similarity."),
    batch_size: int | None = typer.Option(
        None, "--batch-size", help="Concurrent searches per group."
    ),
) -> None:
    """Auto-match unmapped app ids from the latest trending batch."""

    with session_scope() as session:
        result = resolve_unmapped_batch(
            session, limit=limit, threshold=threshold, batch_size=batch_size
        )

    typer.echo(
        " ".join(
            [
                f"Resolved batch {result.batch_id}:",
                f"processed={result.processed}",
                f"matched={result.matched}",
                f"skipped={result.skipped}",
                f"unresolved={result.unresolved}",
            ]
        )
    )


@app.command("map")
def map_cmd(
    native_id: int = typer.Option(..., "--native-id", help="SteamSpy app id."),
    target_id: int = typer.Option(..., "--target-id", help="RAWG game id."),
) -> None:
    """Manually assign (or overwrite) a mapping."""

    with session_scope() as session:
        mapping = assign_mapping(session, native_id=native_id, target_id=target_id)
        typer.echo(f"Mapped {mapping.source_native_id} -> {mapping.target_id} ({mapping.source})")


@app.command("lookup")
def lookup_cmd(
    native_id: int | None = typer.Option(None, "--native-id", help="SteamSpy app id."),
    target_id: int | None = typer.Option(None, "--target-id", help="RAWG game id."),
) -> None:
    """Show the mapping for an app id or a RAWG id."""

    if native_id is None and target_id is None:
        raise typer.BadParameter("Pass --native-id and/or --target-id.")

    with session_scope() as session:
        mapping = find_mapping(session, native_id=native_id, target_id=target_id)
        if mapping is None:
            typer.echo("No mapping found.")
            raise typer.Exit(code=1)
        typer.echo(
            " ".join(
                [
                    f"native_id={mapping.source_native_id}",
                    f"target_id={mapping.target_id}",
                    f"source={mapping.source}",
                    f"confidence={mapping.confidence}",
                ]
            )
        )
