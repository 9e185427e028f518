"""
Flask CLI commands.

Commands:
- flask init-db: Create all tables
- flask create-user: Create a staff user
- flask expire-quotes: Expire approved quotes past their validity date
"""

import click
import re
from datetime import date
from quotedesk.database import create_schema, get_session
from quotedesk.models import AppUser, UserRole


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create database tables."""
        create_schema()
        click.echo(click.style('Database tables created.', fg='green'))

    @app.cli.command('create-user')
    @click.option('--email', prompt=True, help='User email address')
    @click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='User password')
    @click.option('--full-name', default=None, help='Display name')
    @click.option('--role', type=click.Choice([r.value for r in UserRole]), default=UserRole.MEMBER.value,
                  show_default=True, help='User role')
    def create_user(email, password, full_name, role):
        """Create a new staff user."""
        email = email.strip().lower()

        email_pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
        if not re.match(email_pattern, email):
            click.echo(click.style('Invalid email. Use the form user@example.com', fg='red'))
            return

        if len(password) < 6:
            click.echo(click.style('The password must have at least 6 characters.', fg='red'))
            return

        session = get_session()
        if session.query(AppUser).filter_by(email=email).first():
            click.echo(click.style(f'A user with email {email} already exists.', fg='red'))
            return

        try:
            user = AppUser(email=email, full_name=full_name, role=role)
            user.set_password(password)
            session.add(user)
            session.commit()

            click.echo(click.style('User created.', fg='green', bold=True))
            click.echo(f'   Email: {email}')
            click.echo(f'   Role: {role}')
            click.echo(f'   ID: {user.id}')
        except Exception as e:
            session.rollback()
            click.echo(click.style(f'Could not create user: {str(e)}', fg='red'))

    @app.cli.command('expire-quotes')
    @click.option('--today', type=click.DateTime(formats=['%Y-%m-%d']), default=None,
                  help='Reference date (defaults to today)')
    def expire_quotes(today):
        """Expire approved quotes whose validity date has passed."""
        from quotedesk.services.quote_service import expire_due_quotes

        reference = today.date() if today else date.today()
        count = expire_due_quotes(get_session(), reference)
        click.echo(f'{count} quote(s) expired.')
