from __future__ import annotations

import typer

from catalog_pipeline.cli.catalog import app as catalog_app
from catalog_pipeline.cli.common import build_database, configure_logging
from catalog_pipeline.cli.identity import app as identity_app
from catalog_pipeline.cli.trending import app as trending_app
from catalog_pipeline.core.config import settings

app = typer.Typer(no_args_is_help=True)
app.add_typer(catalog_app, name="catalog")
app.add_typer(trending_app, name="trending")
app.add_typer(identity_app, name="identity")


@app.callback()
def main() -> None:
    """Game catalog synchronization jobs."""

    configure_logging()


@app.command("scheduler")
def scheduler_cmd(
    run_on_startup: bool | None = typer.Option(
        None,
        "--run-on-startup/--no-run-on-startup",
        help="Trigger trending ingest and a stale-catalog sync immediately.",
    ),
) -> None:
    """Run every job on its cron schedule until interrupted."""

    from catalog_pipeline.scheduling.runner import JobRunner
    from catalog_pipeline.scheduling.scheduler import PipelineScheduler

    cfg = settings
    if run_on_startup is not None:
        cfg = settings.model_copy(update={"scheduler_run_on_startup": run_on_startup})

    db = build_database()
    scheduler = PipelineScheduler(JobRunner(db), cfg)
    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        pass
    finally:
        scheduler.shutdown()
        db.dispose()
