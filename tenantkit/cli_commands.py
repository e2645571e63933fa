"""
Flask CLI commands for housekeeping.

Commands:
- flask init-db: Create all tables
- flask expire-invitations: Mark stale pending invitations as expired
- flask list-plans: Print the pricing catalogue
"""

import click
from flask import current_app

from tenantkit import database
from tenantkit.pricing import UNLIMITED, list_plans
from tenantkit.services.invitation_service import expire_stale_invitations


def _limit(value):
    return 'unlimited' if value == UNLIMITED else str(value)


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create database tables for every model."""
        database.create_all()
        click.echo(click.style('Database tables created.', fg='green'))

    @app.cli.command('expire-invitations')
    def expire_invitations():
        """Mark pending invitations past their expiry date as expired."""
        session = database.get_session()
        try:
            count = expire_stale_invitations(session)
        except Exception as e:
            session.rollback()
            click.echo(click.style(f'Error expiring invitations: {e}', fg='red'))
            raise SystemExit(1)
        click.echo(click.style(f'{count} invitation(s) marked as expired.', fg='green'))

    @app.cli.command('list-plans')
    @click.option('--with-prices', is_flag=True, help='Show configured Stripe price ids')
    def list_plans_command(with_prices):
        """Print the pricing plans."""
        for plan in list_plans(current_app.config):
            line = (
                f"{plan.id:<10} {plan.name:<14} ${plan.price}/{plan.interval}  "
                f"users={_limit(plan.max_users)} projects={_limit(plan.max_projects)}"
            )
            if with_prices:
                line += f"  price_id={plan.provider_price_id or '-'}"
            click.echo(line)
