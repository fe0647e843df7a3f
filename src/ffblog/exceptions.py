"""
Exception types raised by the FF Blog services.

Every error the application raises on purpose derives from
:class:`FFError` so callers can catch the whole family at once.
"""


class FFError(Exception):
    """Base class for all application errors."""


class DatabaseError(FFError):
    """A query failed or the database could not be reached."""


class ModelNotFoundError(FFError):
    """A lookup by primary key returned no row."""

    def __init__(self, model, key):
        self.model = model
        self.key = key
        super().__init__(f"No {model} found with id {key!r}")


class ValidationError(FFError):
    """Input failed validation.

    :param errors: Mapping of field name to a list of messages.
    :type errors: dict
    """

    def __init__(self, errors):
        self.errors = errors
        first = next((msgs[0] for msgs in errors.values() if msgs), "Validation failed")
        super().__init__(first)


class CacheError(FFError):
    """A cache driver failed to read, write or delete an entry."""


class AuthenticationError(FFError):
    """Credentials were missing or invalid."""


class ViewNotFoundError(FFError):
    """A view name was invalid or did not map to a template."""


class GeneratorError(FFError):
    """A ``make:*`` command received unusable input or would overwrite a file."""


class MigrationError(FFError):
    """A migration file is missing, malformed or failed to apply."""
