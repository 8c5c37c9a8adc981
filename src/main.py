"""
Main orchestrator for the Rental Reservation Reconciler.
"""
import click
from typing import Optional

from .notifications.checkout_digest import CheckoutDigest
from .notifications.notifier import Notifier
from .reconciliation.engine import ReconciliationEngine
from .scheduler.jobs import ReconciliationScheduler
from .storage.base import ReservationStore
from .storage.supabase_store import SupabaseStore
from .utils.errors import InvalidStatusTransition, StoreError
from .utils.logger import setup_logger
from .utils.models import CycleReport, Note, RequestStatus
from config.settings import app_config


class ReconcilerApp:
    """Wires storage, engine, digest and scheduler together."""

    def __init__(self, log_level: str = app_config.log_level, log_file: Optional[str] = None,
                 store: Optional[ReservationStore] = None):
        self.logger = setup_logger(level=log_level, log_file=log_file)
        self.store = store or SupabaseStore()
        self.notifier = Notifier()
        self.engine = ReconciliationEngine(self.store, notifier=self.notifier)
        self.digest = CheckoutDigest(self.store, self.notifier)

    def build_scheduler(self) -> ReconciliationScheduler:
        return ReconciliationScheduler.from_components(self.engine, self.digest)

    def add_note(self, reservation_id: str, content: str, is_internal: bool = True) -> Note:
        if self.store.get_reservation(reservation_id) is None:
            raise KeyError(f"Reservation {reservation_id} not found")
        note = self.store.create_note(Note(reservation_id=reservation_id, content=content,
                                           is_internal=is_internal))
        self.logger.info("Note added", reservation_id=reservation_id, note_id=note.id)
        return note


def _echo_report(report: CycleReport):
    if report.disabled:
        click.echo(f"{report.name}: not configured, nothing done")
        return
    click.echo(f"\n{report.name} completed:")
    for key, value in report.to_dict().items():
        if key not in ("name", "disabled"):
            click.echo(f"  {key.capitalize()}: {value}")


@click.group()
@click.option('--log-level', type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR']),
              default=app_config.log_level.upper(), help='Logging level')
@click.option('--log-file', type=str, help='Log file path (optional)')
@click.pass_context
def cli(ctx, log_level, log_file):
    """
    Rental Reservation Reconciler.

    Keeps reservations in sync with property calendar feeds and guest emails
    and notifies staff about new bookings, updates and checkouts.
    """
    ctx.obj = ReconcilerApp(log_level, log_file)


@cli.command()
@click.pass_obj
def run(app: ReconcilerApp):
    """Run all recurring tasks until interrupted."""
    app.build_scheduler().run_forever()


@cli.command('sync-calendars')
@click.pass_obj
def sync_calendars(app: ReconcilerApp):
    """Run one calendar sync."""
    _echo_report(app.engine.sync_calendars())


@cli.command('process-emails')
@click.pass_obj
def process_emails(app: ReconcilerApp):
    """Poll the mailbox once."""
    _echo_report(app.engine.process_mailbox())


@cli.command('checkout-digest')
@click.pass_obj
def checkout_digest(app: ReconcilerApp):
    """Send tomorrow's checkout notifications."""
    _echo_report(app.digest.run())


@cli.command('add-note')
@click.argument('reservation_id')
@click.argument('content')
@click.option('--guest-visible', is_flag=True, help='Mark the note as visible to the guest')
@click.pass_obj
def add_note(app: ReconcilerApp, reservation_id, content, guest_visible):
    """Attach a note to a reservation."""
    try:
        note = app.add_note(reservation_id, content, is_internal=not guest_visible)
    except (KeyError, StoreError) as e:
        click.echo(f"Error: {e}")
        click.get_current_context().exit(1)
    click.echo(f"Note {note.id} added")


@cli.command('request-status')
@click.argument('request_id')
@click.argument('status', type=click.Choice([RequestStatus.COMPLETED.value, RequestStatus.CANCELLED.value]))
@click.pass_obj
def request_status(app: ReconcilerApp, request_id, status):
    """Complete or cancel a pending special request."""
    try:
        request = app.store.update_special_request_status(request_id, RequestStatus(status))
    except (KeyError, InvalidStatusTransition, StoreError) as e:
        click.echo(f"Error: {e}")
        click.get_current_context().exit(1)
    click.echo(f"Special request {request.id} is now {request.status.value}")


main = cli


if __name__ == "__main__":
    cli()
