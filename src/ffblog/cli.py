"""
The ``ff`` console script.

A :class:`flask.cli.FlaskGroup` bound to :func:`ffblog.app.create_app`, so
it offers Flask's built-in commands (``run``, ``shell``, ``routes``) next
to the project commands from :mod:`ffblog.commands`.
"""

from flask.cli import FlaskGroup

from .app import create_app

cli = FlaskGroup(create_app=create_app, help="FF Blog management commands.")


if __name__ == "__main__":  # pragma: no cover
    cli()
