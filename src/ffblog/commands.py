"""
Flask CLI commands: migrations, seeding, cache and code generators.

Registered on ``app.cli`` by :func:`register_commands`, so they are
available both through ``flask --app ffblog.app`` and the ``ff`` script.
Commands run inside an application context.
"""

import importlib.util
import os

import click
from flask import current_app
from flask.cli import with_appcontext

from . import db
from .exceptions import FFError
from .extensions import get_cache
from .generators import Generator, sanitize_class_name
from .migrations import Migrator
from .paths import BASE_DIR, MIGRATIONS_DIR
from .seeds import DatabaseSeeder
from .text import snake


def _migrator():
    return Migrator(db.get_db(), current_app.config.get("MIGRATIONS_DIR", MIGRATIONS_DIR))


def _generator():
    return Generator(current_app.config.get("GENERATOR_BASE_DIR") or BASE_DIR)


# -------------------------------
# MIGRATIONS
# -------------------------------
@click.command("migrate")
@with_appcontext
def migrate_command():
    """Run all pending migrations."""
    try:
        applied = _migrator().run()
    except (FFError, RuntimeError) as exc:
        raise click.ClickException(str(exc)) from exc
    if not applied:
        click.echo("Nothing to migrate.")
        return
    for name in applied:
        click.echo(f"Migrated: {name}")


@click.command("migrate:rollback")
@click.option("--steps", default=1, show_default=True, type=click.IntRange(min=1), help="Number of batches to undo")
@with_appcontext
def rollback_command(steps):
    """Roll back the last batch(es) of migrations."""
    try:
        rolled_back = _migrator().rollback(steps)
    except (FFError, RuntimeError) as exc:
        raise click.ClickException(str(exc)) from exc
    if not rolled_back:
        click.echo("Nothing to rollback.")
        return
    for name in rolled_back:
        click.echo(f"Rolled back: {name}")


@click.command("migrate:reset")
@with_appcontext
def reset_command():
    """Roll back every migration."""
    try:
        rolled_back = _migrator().reset()
    except (FFError, RuntimeError) as exc:
        raise click.ClickException(str(exc)) from exc
    if not rolled_back:
        click.echo("Nothing to rollback.")
        return
    for name in rolled_back:
        click.echo(f"Rolled back: {name}")


@click.command("migrate:status")
@with_appcontext
def status_command():
    """Show which migrations have run."""
    try:
        rows = _migrator().status()
    except (FFError, RuntimeError) as exc:
        raise click.ClickException(str(exc)) from exc
    if not rows:
        click.echo("No migrations found.")
        return
    for row in rows:
        state = f"Ran (batch {row['batch']})" if row["ran"] else "Pending"
        click.echo(f"{state:<16} {row['migration']}")


# -------------------------------
# SEEDING / CACHE
# -------------------------------
def _load_seeder(name):
    """Instantiate seeder ``name`` from the generated ``seeders`` directory."""
    segments = sanitize_class_name(name)
    generator = _generator()
    path = generator.resolve("seeder", "/".join(snake(s) for s in segments) + ".py")
    if not os.path.isfile(path):
        raise click.ClickException(f"Seeder not found: {name}")
    spec = importlib.util.spec_from_file_location(f"ffblog_seeder_{snake(segments[-1])}", path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    seeder_class = getattr(module, segments[-1], None)
    if seeder_class is None:
        raise click.ClickException(f"Seeder class not found: {segments[-1]}")
    return seeder_class()


@click.command("db:seed")
@click.option("--class", "seeder_name", default=None, help="Seeder class generated with make:seeder")
@with_appcontext
def seed_command(seeder_name):
    """Seed the database with sample data."""
    try:
        seeder = _load_seeder(seeder_name) if seeder_name else DatabaseSeeder()
        click.echo(f"Seeding: {type(seeder).__name__}")
        created = seeder.run() or {}
    except (FFError, RuntimeError) as exc:
        raise click.ClickException(f"Seeding failed: {exc}") from exc
    for table, count in created.items():
        click.echo(f"  {table}: {count} created")
    click.echo("Database seeded.")


@click.command("cache:clear")
@with_appcontext
def cache_clear_command():
    """Remove every cached entry."""
    try:
        get_cache().flush()
    except FFError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo("Cache cleared.")


# -------------------------------
# GENERATORS
# -------------------------------
def _generate(method, *args):
    try:
        path = method(*args)
    except FFError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Created: {path}")


@click.command("make:controller")
@click.argument("name")
@with_appcontext
def make_controller_command(name):
    """Create a blueprint module under app/."""
    _generate(_generator().make_controller, name)


@click.command("make:model")
@click.argument("name")
@click.option("--table", default=None, help="Table name (defaults to the plural snake_case name)")
@with_appcontext
def make_model_command(name, table):
    """Create a model class under app/models/."""
    _generate(_generator().make_model, name, table)


@click.command("make:migration")
@click.argument("name")
@with_appcontext
def make_migration_command(name):
    """Create the next numbered migration file."""
    _generate(_generator().make_migration, name)


@click.command("make:seeder")
@click.argument("name")
@with_appcontext
def make_seeder_command(name):
    """Create a seeder class under seeders/."""
    _generate(_generator().make_seeder, name)


COMMANDS = (
    migrate_command,
    rollback_command,
    reset_command,
    status_command,
    seed_command,
    cache_clear_command,
    make_controller_command,
    make_model_command,
    make_migration_command,
    make_seeder_command,
)


def register_commands(app):
    for command in COMMANDS:
        app.cli.add_command(command)
