"""
A thin active-record layer over psycopg.

:class:`Model` subclasses declare their table and columns explicitly;
rows are loaded into plain instance attributes. :class:`Query` composes
``SELECT``/``UPDATE``/``DELETE`` statements with :mod:`psycopg.sql` so
identifiers are always quoted and values are always bound parameters.
"""

import logging
from datetime import date, datetime
from math import ceil

from psycopg import sql

from . import db
from .exceptions import ModelNotFoundError
from .pagination import Paginator

logger = logging.getLogger(__name__)

#: Comparison operators accepted by :meth:`Query.where`.
OPERATORS = {"=", "!=", "<>", "<", ">", "<=", ">=", "LIKE", "ILIKE"}

_MISSING = object()


class Query:
    """Fluent query builder bound to a :class:`Model` subclass.

    Builder methods mutate the query and return it so calls can be chained::

        Post.query().where("status", "published").order_by("created_at", "DESC").limit(5).get()
    """

    def __init__(self, model):
        self.model = model
        self._wheres = []
        self._orders = []
        self._limit = None
        self._offset = None

    # -------------------------------
    # BUILDERS
    # -------------------------------
    def where(self, column, operator="=", value=_MISSING, boolean="AND"):
        """Add a ``column <op> value`` condition.

        Called with two arguments the operator defaults to ``=``:
        ``where("status", "published")``. Comparing against ``None`` with
        ``=`` or ``!=`` becomes ``IS NULL`` / ``IS NOT NULL``.

        :raises ValueError: If the operator is not in :data:`OPERATORS`.
        """
        if value is _MISSING:
            operator, value = "=", operator

        operator = str(operator).upper()
        if operator not in OPERATORS:
            raise ValueError(f"Unsupported operator: {operator}")

        column_sql = sql.Identifier(column)
        if value is None and operator in ("=", "!=", "<>"):
            keyword = "IS NULL" if operator == "=" else "IS NOT NULL"
            clause = sql.SQL("{} " + keyword).format(column_sql)
            self._wheres.append((boolean, clause, []))
        else:
            clause = sql.SQL("{} " + operator + " %s").format(column_sql)
            self._wheres.append((boolean, clause, [value]))
        return self

    def or_where(self, column, operator="=", value=_MISSING):
        """Add a condition joined with ``OR``."""
        return self.where(column, operator, value, boolean="OR")

    def where_any(self, columns, operator, value):
        """Add ``(col1 <op> value OR col2 <op> value ...)`` as one AND-ed group.

        Used for search boxes, so the OR does not leak into the other filters.
        """
        operator = str(operator).upper()
        if operator not in OPERATORS:
            raise ValueError(f"Unsupported operator: {operator}")
        columns = list(columns)
        if not columns:
            return self
        clause = sql.SQL("({})").format(
            sql.SQL(" OR ").join(
                sql.SQL("{} " + operator + " %s").format(sql.Identifier(column)) for column in columns
            )
        )
        self._wheres.append(("AND", clause, [value] * len(columns)))
        return self

    def where_in(self, column, values):
        """Add a ``column IN (...)`` condition; an empty list matches nothing."""
        values = list(values)
        if not values:
            self._wheres.append(("AND", sql.SQL("FALSE"), []))
            return self
        placeholders = sql.SQL(", ").join([sql.Placeholder()] * len(values))
        clause = sql.SQL("{} IN ({})").format(sql.Identifier(column), placeholders)
        self._wheres.append(("AND", clause, values))
        return self

    def order_by(self, column, direction="ASC"):
        """Append an ``ORDER BY`` term.

        :raises ValueError: If ``direction`` is not ``ASC`` or ``DESC``.
        """
        direction = str(direction).upper()
        if direction not in ("ASC", "DESC"):
            raise ValueError(f"Invalid sort direction: {direction}")
        self._orders.append(sql.SQL("{} " + direction).format(sql.Identifier(column)))
        return self

    def latest(self, column="created_at"):
        """Order newest first by ``column``.

        :param column: Timestamp column to sort on.
        :type column: str
        :returns: This query.
        :rtype: Query
        """
        return self.order_by(column, "DESC")

    def limit(self, count):
        """Return at most ``count`` rows; negative counts become 0.

        :param count: Maximum number of rows.
        :type count: int
        :returns: This query.
        :rtype: Query
        """
        self._limit = max(0, int(count))
        return self

    def offset(self, count):
        """Skip the first ``count`` rows; negative counts become 0.

        :param count: Number of rows to skip.
        :type count: int
        :returns: This query.
        :rtype: Query
        """
        self._offset = max(0, int(count))
        return self

    # -------------------------------
    # COMPILATION
    # -------------------------------
    def _table(self):
        return sql.Identifier(self.model.table)

    def _compile_where(self):
        if not self._wheres:
            return sql.SQL(""), []

        parts = []
        params = []
        for index, (boolean, clause, values) in enumerate(self._wheres):
            if index:
                parts.append(sql.SQL(boolean))
            parts.append(clause)
            params.extend(values)
        return sql.SQL(" WHERE ") + sql.SQL(" ").join(parts), params

    def _compile_tail(self):
        tail = sql.SQL("")
        if self._orders:
            tail += sql.SQL(" ORDER BY ") + sql.SQL(", ").join(self._orders)
        if self._limit is not None:
            tail += sql.SQL(" LIMIT {}").format(sql.Literal(self._limit))
        if self._offset is not None:
            tail += sql.SQL(" OFFSET {}").format(sql.Literal(self._offset))
        return tail

    def to_sql(self):
        """Return the compiled ``SELECT`` statement and its parameters."""
        where, params = self._compile_where()
        query = sql.SQL("SELECT * FROM {}").format(self._table()) + where + self._compile_tail()
        return query, params

    # -------------------------------
    # EXECUTION
    # -------------------------------
    def get(self):
        """Run the query and return a list of model instances."""
        query, params = self.to_sql()
        rows = db.run(query, params, fetch="all")
        return [self.model.from_row(row) for row in rows or []]

    def first(self):
        """Return the first matching instance, or ``None``."""
        self._limit = 1
        results = self.get()
        return results[0] if results else None

    def count(self):
        """Return the number of matching rows (ignores order/limit/offset)."""
        where, params = self._compile_where()
        query = sql.SQL("SELECT COUNT(*) AS aggregate FROM {}").format(self._table()) + where
        row = db.run(query, params, fetch="one")
        return int(row["aggregate"]) if row else 0

    def exists(self):
        """Return ``True`` when at least one row matches."""
        return self.count() > 0

    def paginate(self, page=1, per_page=15, path="", query_args=None):
        """Return a :class:`ffblog.pagination.Paginator` for one page of results.

        The page number is clamped into the valid range before the rows
        are fetched, so asking for page 99 of 3 returns page 3.
        """
        per_page = per_page if per_page and per_page > 0 else 15
        total = self.count()
        last_page = max(1, ceil(total / per_page))
        try:
            page = int(page)
        except (TypeError, ValueError):
            page = 1
        page = min(max(1, page), last_page)

        items = self.limit(per_page).offset((page - 1) * per_page).get()
        return Paginator(items, total, per_page, page, path, query_args)

    def update(self, values):
        """Update every matching row; returns the affected row count."""
        if not values:
            return 0
        assignments = sql.SQL(", ").join(
            sql.SQL("{} = %s").format(sql.Identifier(column)) for column in values
        )
        where, params = self._compile_where()
        query = sql.SQL("UPDATE {} SET ").format(self._table()) + assignments + where
        return db.run(query, list(values.values()) + params, fetch=None, commit=True)

    def increment(self, column, amount=1):
        """Add ``amount`` to ``column`` on every matching row in one statement.

        The new value is computed by the database (``SET col = col + %s``),
        so concurrent increments are never lost.

        :param column: Numeric column to bump.
        :type column: str
        :param amount: Value to add; may be negative.
        :type amount: int
        :returns: The affected row count.
        :rtype: int
        """
        column_sql = sql.Identifier(column)
        where, params = self._compile_where()
        query = sql.SQL("UPDATE {} SET {} = {} + %s").format(self._table(), column_sql, column_sql) + where
        return db.run(query, [amount] + params, fetch=None, commit=True)

    def delete(self):
        """Delete every matching row; returns the affected row count."""
        where, params = self._compile_where()
        query = sql.SQL("DELETE FROM {}").format(self._table()) + where
        return db.run(query, params, fetch=None, commit=True)


class Model:
    """Base class for table-backed models.

    Subclasses set :attr:`table` and :attr:`columns`. Only names listed in
    :attr:`fillable` can be mass-assigned through :meth:`fill` and
    :meth:`create`; other columns are set by plain attribute assignment or
    :meth:`force_fill`.
    """

    table = None
    primary_key = "id"
    columns = ("id", "created_at", "updated_at")
    fillable = ()
    hidden = ()
    timestamps = True

    def __init__(self, **attributes):
        for column in self.columns:
            setattr(self, column, None)
        self.exists = False
        self._original = {}
        self.fill(attributes)

    def __repr__(self):
        return f"<{type(self).__name__} {self.primary_key}={self.get_key()!r}>"

    def __eq__(self, other):
        return (
            type(self) is type(other)
            and self.get_key() is not None
            and self.get_key() == other.get_key()
        )

    def __hash__(self):
        return hash((type(self).__name__, self.get_key()))

    # -------------------------------
    # CONSTRUCTION
    # -------------------------------
    @classmethod
    def from_row(cls, row):
        """Build a persisted instance from a row dict."""
        instance = cls()
        instance._apply_row(row)
        instance.exists = True
        return instance

    def _apply_row(self, row):
        for column in self.columns:
            if column in row:
                setattr(self, column, row[column])
        self._original = self._snapshot()

    def _snapshot(self):
        return {column: getattr(self, column, None) for column in self.columns}

    def fill(self, attributes):
        """Mass-assign fillable attributes; unknown or guarded keys are ignored."""
        for key, value in attributes.items():
            if key in self.fillable and key in self.columns:
                setattr(self, key, value)
        return self

    def force_fill(self, attributes):
        """Assign any known column, bypassing :attr:`fillable`."""
        for key, value in attributes.items():
            if key in self.columns:
                setattr(self, key, value)
        return self

    def get_key(self):
        """Return the primary key value, or ``None`` for unsaved models."""
        return getattr(self, self.primary_key, None)

    def get_dirty(self):
        """Return the columns whose values changed since load or last save."""
        current = self._snapshot()
        return {
            column: value
            for column, value in current.items()
            if column != self.primary_key and self._original.get(column) != value
        }

    def is_dirty(self):
        """Return ``True`` if any attribute changed since the last load or save."""
        return bool(self.get_dirty())

    # -------------------------------
    # QUERY SHORTCUTS
    # -------------------------------
    @classmethod
    def query(cls):
        """Start a new :class:`Query` on this model's table."""
        return Query(cls)

    @classmethod
    def where(cls, column, operator="=", value=_MISSING):
        """Shortcut for ``cls.query().where(...)``."""
        return cls.query().where(column, operator, value)

    @classmethod
    def all(cls):
        """Return every row of the table as models."""
        return cls.query().order_by(cls.primary_key).get()

    @classmethod
    def find(cls, key):
        """Return the instance with primary key ``key``, or ``None``."""
        if key is None:
            return None
        return cls.query().where(cls.primary_key, key).first()

    @classmethod
    def find_or_fail(cls, key):
        """Like :meth:`find` but raises :class:`ModelNotFoundError`."""
        instance = cls.find(key)
        if instance is None:
            raise ModelNotFoundError(cls.__name__, key)
        return instance

    @classmethod
    def first_where(cls, column, value):
        """Return the first model whose ``column`` equals ``value``, or ``None``."""
        return cls.query().where(column, value).first()

    @classmethod
    def count(cls):
        """Number of rows in the table."""
        return cls.query().count()

    @classmethod
    def create(cls, **attributes):
        """Fill fillable attributes, insert the row and return the instance."""
        instance = cls(**attributes)
        instance.save()
        return instance

    # -------------------------------
    # PERSISTENCE
    # -------------------------------
    def save(self):
        """Insert a new row or update the changed columns of an existing one."""
        now = datetime.now()

        if self.exists:
            dirty = self.get_dirty()
            if not dirty:
                return True
            if self.timestamps and "updated_at" in self.columns:
                self.updated_at = now
                dirty["updated_at"] = now
            self.query().where(self.primary_key, self.get_key()).update(dirty)
            self._original = self._snapshot()
            return True

        if self.timestamps:
            if "created_at" in self.columns and self.created_at is None:
                self.created_at = now
            if "updated_at" in self.columns and self.updated_at is None:
                self.updated_at = now

        # Columns left as None fall back to the database defaults
        values = {
            column: getattr(self, column)
            for column in self.columns
            if column != self.primary_key and getattr(self, column) is not None
        }
        query = sql.SQL("INSERT INTO {} ({}) VALUES ({}) RETURNING *").format(
            sql.Identifier(self.table),
            sql.SQL(", ").join(sql.Identifier(column) for column in values),
            sql.SQL(", ").join([sql.Placeholder()] * len(values)),
        )
        row = db.run(query, list(values.values()), fetch="one", commit=True)
        if row:
            self._apply_row(row)
        self.exists = True
        logger.debug("Inserted %s id=%s", type(self).__name__, self.get_key())
        return True

    def update(self, **attributes):
        """Fill fillable attributes and save."""
        self.fill(attributes)
        return self.save()

    def delete(self):
        """Delete the row backing this instance."""
        if not self.exists:
            return False
        self.query().where(self.primary_key, self.get_key()).delete()
        self.exists = False
        return True

    def refresh(self):
        """Reload column values from the database."""
        fresh = type(self).find(self.get_key())
        if fresh is None:
            raise ModelNotFoundError(type(self).__name__, self.get_key())
        self._apply_row(fresh._snapshot())
        return self

    def to_dict(self):
        """Serialize visible columns; dates become ISO-8601 strings."""
        data = {}
        for column in self.columns:
            if column in self.hidden:
                continue
            value = getattr(self, column, None)
            if isinstance(value, (datetime, date)):
                value = value.isoformat()
            data[column] = value
        return data
