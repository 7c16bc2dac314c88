"""Maintenance commands registered on the ``flask`` CLI."""
import click
from flask import Flask
from flask.cli import with_appcontext

from campus_library.models.book import Book
from campus_library.models.borrow import Borrow
from campus_library.models.database import init_db
from campus_library.models.system_log import SystemLog
from campus_library.models.user import User


@click.command('init-db')
@with_appcontext
def init_db_command():
    """Create database tables and default settings."""
    init_db()
    click.echo('Database initialised.')


@click.command('make-admin')
@with_appcontext
@click.argument('email')
def make_admin_command(email):
    """Grant ADMIN role to EMAIL and approve the account."""
    user = User.get_by_email(email)
    if not user:
        raise click.ClickException(f'No user with email {email}')

    user.set_role('ADMIN')
    user.set_status('APPROVED')
    SystemLog.add('Role Changed', f'{email} promoted to ADMIN from the command line',
                  'warning', user.id)
    click.echo(f'{user.full_name} <{email}> is now an approved admin.')


@click.command('check-inventory')
@with_appcontext
def check_inventory_command():
    """Report books whose available copies disagree with active loans."""
    mismatches = Book.check_inventory_sync()
    if not mismatches:
        click.echo('All books are in sync.')
        return

    for item in mismatches:
        click.echo(
            f"{item['title']}: available={item['currentAvailable']} "
            f"expected={item['expectedAvailable']} "
            f"(total={item['totalCopies']}, borrowed={item['borrowedCount']})"
        )
    click.echo(f'{len(mismatches)} book(s) out of sync. Run "flask repair-inventory" to fix.')


@click.command('repair-inventory')
@with_appcontext
def repair_inventory_command():
    """Reset available copies to total copies minus active loans."""
    fixed = Book.repair_inventory_sync(updated_by='cli')
    click.echo(f'Repaired {len(fixed)} book(s).')


@click.command('update-fines')
@with_appcontext
@click.option('--force', is_flag=True, help='Recalculate fines that are already set.')
@click.option('--amount', type=float, default=None, help='Daily fine to use instead of the configured one.')
def update_fines_command(force, amount):
    """Recalculate fines on overdue loans."""
    if amount is not None and amount < 0:
        raise click.BadParameter('amount must not be negative', param_hint='--amount')
    updated = Borrow.update_overdue_fines(custom_amount=amount, force=force)
    click.echo(f'Updated fines for {updated} overdue record(s).')


@click.command('send-reminders')
@with_appcontext
def send_reminders_command():
    """Email due-soon and overdue reminders now."""
    from campus_library.services.reminders import send_all_reminders
    summary = send_all_reminders()
    click.echo(f"Sent {summary['sent']}, failed {summary['failed']}, skipped {summary['skipped']}.")


def register_commands(app: Flask) -> None:
    for command in (init_db_command, make_admin_command, check_inventory_command,
                    repair_inventory_command, update_fines_command, send_reminders_command):
        app.cli.add_command(command)
