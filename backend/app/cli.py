import click
from flask import current_app
from flask.cli import AppGroup

from app.application.bundles.lifecycle import get_lifecycle
from app.workers.publish_worker import PublishWorker

bundles_cli = AppGroup("bundles", help="Bundle publication commands.")


@bundles_cli.command("work")
@click.option("--once", is_flag=True, help="Drain the queue once and exit.")
@click.option("--interval", type=float, default=None, help="Seconds between polls of an empty queue.")
def work(once, interval):
    """Run the publish job worker."""
    worker = PublishWorker(get_lifecycle())

    if once:
        processed = worker.run_once()
        click.echo(f"Processed {processed} job(s)")
        return

    worker.run_forever(interval or current_app.config["WORKER_POLL_INTERVAL"])


@bundles_cli.command("sync-all")
def sync_all():
    """Queue a re-sync of every published bundle."""
    jobs = get_lifecycle().manager.sync_all()
    click.echo(f"Queued {len(jobs)} re-sync job(s)")


def register_cli(app):
    app.cli.add_command(bundles_cli)
