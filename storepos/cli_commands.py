"""
Flask CLI commands for POS setup.

Commands:
- flask init-db: Create every table
- flask create-seller: Create a seller account
"""

import re

import click

from storepos.database import create_tables, get_session
from storepos.models import AppUser, UserRole


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create the database tables."""
        create_tables()
        click.echo(click.style('✅ Tablas creadas.', fg='green'))

    @app.cli.command('create-seller')
    @click.option('--email', prompt=True, help='Seller email address')
    @click.option('--name', 'full_name', prompt=True, help='Seller full name')
    @click.option('--admin', is_flag=True, default=False, help='Grant the ADMIN role')
    def create_seller(email, full_name, admin):
        """Create a seller allowed to operate the register."""
        email_pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
        if not re.match(email_pattern, email):
            click.echo(click.style('❌ Email inválido. Use formato: user@example.com', fg='red'))
            return

        db_session = get_session()
        if db_session.query(AppUser).filter_by(email=email).first():
            click.echo(click.style(f'❌ Ya existe un usuario con el email: {email}', fg='red'))
            return

        try:
            user = AppUser(
                email=email,
                full_name=full_name,
                role=(UserRole.ADMIN if admin else UserRole.SELLER).value,
            )
            db_session.add(user)
            db_session.commit()

            click.echo(click.style('\n✅ Vendedor creado exitosamente!', fg='green', bold=True))
            click.echo(f'   Email: {email}')
            click.echo(f'   ID: {user.id}')
        except Exception as e:
            db_session.rollback()
            click.echo(click.style(f'❌ Error al crear vendedor: {str(e)}', fg='red'))
