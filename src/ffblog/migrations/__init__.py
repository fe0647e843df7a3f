"""
Schema migrations.

Migration files live in :data:`ffblog.paths.MIGRATIONS_DIR` and are named
``NNN_description.py``. Each defines ``up(cur)`` and ``down(cur)`` taking
a psycopg cursor. :class:`Migrator` tracks which ones ran, grouped in
batches, in the ``migrations`` table.
"""

from .migrator import Migrator

__all__ = ["Migrator"]
