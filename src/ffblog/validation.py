"""
Rule-string input validation.

Rules are written ``"required|min:3|max:255"`` or as a list of rule
strings. A field that is empty and not ``required`` skips its other
rules, so optional fields only need to be valid when present.
"""

import re
from urllib.parse import urlparse

from psycopg import sql

from . import db
from .exceptions import ValidationError

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
ALPHA_DASH_RE = re.compile(r"^[A-Za-z0-9_-]+$")

DEFAULT_MESSAGES = {
    "required": "The {field} field is required.",
    "email": "The {field} must be a valid email address.",
    "min": "The {field} must be at least {0} characters.",
    "max": "The {field} must not exceed {0} characters.",
    "min_numeric": "The {field} must be at least {0}.",
    "max_numeric": "The {field} must not be greater than {0}.",
    "url": "The {field} must be a valid URL.",
    "integer": "The {field} must be an integer.",
    "string": "The {field} must be a string.",
    "numeric": "The {field} must be numeric.",
    "regex": "The {field} format is invalid.",
    "accepted": "The {field} must be accepted.",
    "in": "The selected {field} is invalid.",
    "not_in": "The selected {field} is invalid.",
    "confirmed": "The {field} confirmation does not match.",
    "same": "The {field} and {0} must match.",
    "alpha_dash": "The {field} may only contain letters, numbers, dashes and underscores.",
    "unique": "The {field} has already been taken.",
}


def database_unique_checker(table, column, value, ignore_id=None):
    """Return ``True`` if no row in ``table`` has ``column = value``.

    :param ignore_id: Primary key excluded from the check (the row being edited).
    """
    query = sql.SQL("SELECT COUNT(*) AS aggregate FROM {} WHERE {} = %s").format(
        sql.Identifier(table), sql.Identifier(column)
    )
    params = [value]
    if ignore_id not in (None, ""):
        query += sql.SQL(" AND {} != %s").format(sql.Identifier("id"))
        params.append(ignore_id)
    row = db.run(query, params, fetch="one")
    return not row or int(row["aggregate"]) == 0


def _is_empty(value):
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    return False


def _to_number(value):
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class Validator:
    """Validate a mapping of input data against per-field rules.

    :param data: Input values (e.g. ``request.form``).
    :type data: dict
    :param rules: Mapping of field name to a rule string or list of rules.
    :type rules: dict
    :param messages: Custom messages keyed ``"field.rule"``.
    :type messages: dict or None
    :param unique_checker: Callable ``(table, column, value, ignore_id) -> bool``
        used by the ``unique`` rule; defaults to a database query.
    :type unique_checker: callable or None
    """

    def __init__(self, data, rules, messages=None, unique_checker=None):
        self.data = dict(data or {})
        self.rules = rules
        self.messages = messages or {}
        self.unique_checker = unique_checker or database_unique_checker
        self.errors = {}

    @staticmethod
    def parse_rule(rule):
        """Split ``"name:a,b"`` into ``("name", ["a", "b"])``.

        ``regex`` keeps its pattern whole since patterns may contain commas.
        """
        if ":" not in rule:
            return rule.strip(), []
        name, raw = rule.split(":", 1)
        name = name.strip()
        if name == "regex":
            return name, [raw]
        return name, [param.strip() for param in raw.split(",")]

    def _rules_for(self, field):
        spec = self.rules[field]
        if isinstance(spec, str):
            return [r for r in spec.split("|") if r.strip()]
        return list(spec)

    def validate(self):
        """Run every rule; return ``True`` when there are no errors.

        :raises ValueError: If a rule name is unknown.
        """
        self.errors = {}
        for field in self.rules:
            parsed = [self.parse_rule(rule) for rule in self._rules_for(field)]
            names = {name for name, _ in parsed}
            unknown = sorted(
                name for name in names if name not in ("required", "nullable") and not hasattr(self, f"_check_{name}")
            )
            if unknown:
                raise ValueError(f"Unknown validation rule: {unknown[0]}")
            value = self.data.get(field)

            if _is_empty(value):
                if "required" in names:
                    self._add_error(field, "required", [])
                continue

            numeric = bool(names & {"integer", "numeric"})
            for name, params in parsed:
                if name in ("required", "nullable"):
                    continue
                check = getattr(self, f"_check_{name}")
                if not check(field, value, params, numeric):
                    key = name
                    if name in ("min", "max") and numeric:
                        key = f"{name}_numeric"
                    self._add_error(field, name, params, key)
        return not self.errors

    def fails(self):
        return not self.validate()

    def field_errors(self, field):
        return self.errors.get(field, [])

    def first_error(self):
        for messages in self.errors.values():
            if messages:
                return messages[0]
        return None

    def validated(self):
        """Return only the input keys that have rules."""
        return {field: self.data.get(field) for field in self.rules if field in self.data}

    def _add_error(self, field, rule, params, template_key=None):
        custom = self.messages.get(f"{field}.{rule}")
        if custom:
            message = custom
        else:
            template = DEFAULT_MESSAGES.get(template_key or rule, "The {field} is invalid.")
            message = template.format(*params, field=field.replace("_", " "))
        self.errors.setdefault(field, []).append(message)

    # -------------------------------
    # RULES
    # -------------------------------
    def _check_email(self, field, value, params, numeric):
        return bool(EMAIL_RE.match(str(value)))

    def _check_min(self, field, value, params, numeric):
        limit = _to_number(params[0]) if params else 0
        if numeric:
            number = _to_number(value)
            return number is not None and number >= limit
        return len(str(value)) >= limit

    def _check_max(self, field, value, params, numeric):
        limit = _to_number(params[0]) if params else 0
        if numeric:
            number = _to_number(value)
            return number is not None and number <= limit
        return len(str(value)) <= limit

    def _check_regex(self, field, value, params, numeric):
        pattern = params[0] if params else ""
        # Accept /pattern/ delimiters as well as bare patterns
        if len(pattern) >= 2 and pattern.startswith("/") and pattern.endswith("/"):
            pattern = pattern[1:-1]
        return re.search(pattern, str(value)) is not None

    def _check_url(self, field, value, params, numeric):
        parsed = urlparse(str(value))
        return parsed.scheme in ("http", "https") and bool(parsed.netloc)

    def _check_integer(self, field, value, params, numeric):
        if isinstance(value, bool):
            return False
        if isinstance(value, int):
            return True
        return re.fullmatch(r"-?\d+", str(value).strip()) is not None

    def _check_string(self, field, value, params, numeric):
        return isinstance(value, str)

    def _check_numeric(self, field, value, params, numeric):
        return not isinstance(value, bool) and _to_number(value) is not None

    def _check_accepted(self, field, value, params, numeric):
        return str(value).lower() in ("yes", "1", "true", "on")

    def _check_in(self, field, value, params, numeric):
        return str(value) in params

    def _check_not_in(self, field, value, params, numeric):
        return str(value) not in params

    def _check_confirmed(self, field, value, params, numeric):
        return self.data.get(f"{field}_confirmation") == value

    def _check_same(self, field, value, params, numeric):
        return bool(params) and self.data.get(params[0]) == value

    def _check_alpha_dash(self, field, value, params, numeric):
        return ALPHA_DASH_RE.match(str(value)) is not None

    def _check_unique(self, field, value, params, numeric):
        if not params:
            raise ValueError("The unique rule needs a table name.")
        table = params[0]
        column = params[1] if len(params) > 1 and params[1] else field
        ignore_id = params[2] if len(params) > 2 else None
        return self.unique_checker(table, column, value, ignore_id)


def validate(data, rules, messages=None, unique_checker=None):
    """Validate ``data`` and return the validated subset.

    :raises ffblog.exceptions.ValidationError: If any rule fails.
    """
    validator = Validator(data, rules, messages, unique_checker)
    if not validator.validate():
        raise ValidationError(validator.errors)
    return validator.validated()
