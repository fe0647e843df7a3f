"""
tests.test_validation
======================

Tests for rule-string validation in :mod:`ffblog.validation`.

All tests are marked ``validation``. The ``unique`` rule is exercised
both with an injected checker and against :class:`FakeConnection`.
"""

import pytest

from ffblog.exceptions import ValidationError
from ffblog.validation import Validator, database_unique_checker, validate

pytestmark = pytest.mark.validation


def errors_for(data, rules, **kwargs):
    validator = Validator(data, rules, **kwargs)
    validator.validate()
    return validator.errors


# ============================================================
# INDIVIDUAL RULES
# ============================================================

def test_required_treats_blank_strings_as_missing():
    errors = errors_for({"title": "   "}, {"title": "required", "body": "required"})

    assert errors["title"] == ["The title field is required."]
    assert errors["body"] == ["The body field is required."]


def test_optional_empty_fields_skip_other_rules():
    assert errors_for({"image": ""}, {"image": "nullable|url|max:255"}) == {}
    assert errors_for({}, {"excerpt": "max:5"}) == {}


@pytest.mark.parametrize(
    "value, valid",
    [("jane@example.com", True), ("jane@localhost", False), ("not an email", False), ("a@b.co", True)],
)
def test_email(value, valid):
    assert (errors_for({"email": value}, {"email": "email"}) == {}) is valid


def test_min_and_max_count_characters_for_strings():
    errors = errors_for({"name": "J", "bio": "x" * 11}, {"name": "min:2", "bio": "max:10"})

    assert errors["name"] == ["The name must be at least 2 characters."]
    assert errors["bio"] == ["The bio must not exceed 10 characters."]


def test_min_and_max_compare_values_for_numbers():
    errors = errors_for({"age": "17", "score": "101"}, {"age": "integer|min:18", "score": "numeric|max:100"})

    assert errors["age"] == ["The age must be at least 18."]
    assert errors["score"] == ["The score must not be greater than 100."]


@pytest.mark.parametrize("value, valid", [("12", True), ("-3", True), (7, True), ("1.5", False), (True, False)])
def test_integer(value, valid):
    assert (errors_for({"n": value}, {"n": "integer"}) == {}) is valid


@pytest.mark.parametrize(
    "value, valid",
    [
        ("https://example.com/a.png", True),
        ("http://example.com", True),
        ("javascript:alert(1)", False),
        ("ftp://example.com/file", False),
        ("example.com", False),
    ],
)
def test_url_allows_only_http_schemes(value, valid):
    assert (errors_for({"image": value}, {"image": "url"}) == {}) is valid


@pytest.mark.parametrize(
    "value, valid",
    [("plain text", True), ({"x": "abcdef"}, False), (["0123456789"], False), (42, False), (True, False)],
)
def test_string(value, valid):
    errors = errors_for({"title": value}, {"title": "string|min:3"})

    assert (errors == {}) is valid
    if not valid:
        assert errors["title"][0] == "The title must be a string."


def test_in_and_not_in():
    rules = {"status": "in:draft,published", "role": "not_in:root"}

    assert errors_for({"status": "published", "role": "user"}, rules) == {}
    errors = errors_for({"status": "archived", "role": "root"}, rules)
    assert errors["status"] == ["The selected status is invalid."]
    assert errors["role"] == ["The selected role is invalid."]


def test_confirmed_and_same():
    rules = {"password": "confirmed", "email": "same:email_again"}
    data = {"password": "secret123", "password_confirmation": "secret124", "email": "a@b.c", "email_again": "a@b.c"}

    errors = errors_for(data, rules)

    assert errors == {"password": ["The password confirmation does not match."]}


def test_alpha_dash():
    assert errors_for({"slug": "web-dev_2"}, {"slug": "alpha_dash"}) == {}
    assert errors_for({"slug": "web dev"}, {"slug": "alpha_dash"})


def test_regex_keeps_commas_in_pattern():
    rules = {"code": "regex:/^[A-Z]{2,3}$/"}

    assert errors_for({"code": "ABC"}, rules) == {}
    assert errors_for({"code": "ABCD"}, rules) == {"code": ["The code format is invalid."]}


def test_accepted():
    assert errors_for({"terms": "on"}, {"terms": "accepted"}) == {}
    assert errors_for({"terms": "no"}, {"terms": "accepted"})


def test_rules_as_list():
    errors = errors_for({"title": "ab"}, {"title": ["required", "min:3"]})
    assert errors["title"] == ["The title must be at least 3 characters."]


# ============================================================
# UNIQUE
# ============================================================

def test_unique_uses_injected_checker():
    seen = []

    def checker(table, column, value, ignore_id):
        seen.append((table, column, value, ignore_id))
        return value != "taken@example.com"

    rules = {"email": "unique:users,email,4"}

    assert errors_for({"email": "free@example.com"}, rules, unique_checker=checker) == {}
    errors = errors_for({"email": "taken@example.com"}, rules, unique_checker=checker)

    assert errors["email"] == ["The email has already been taken."]
    assert seen[0] == ("users", "email", "free@example.com", "4")


def test_unique_column_defaults_to_field_name():
    seen = []
    errors_for({"slug": "news"}, {"slug": "unique:categories"}, unique_checker=lambda *a: seen.append(a) or True)
    assert seen == [("categories", "slug", "news", None)]


def test_database_unique_checker_queries_with_ignore_id(fake_db):
    fake_db.on("COUNT(*) AS aggregate FROM users WHERE email = %s", [{"aggregate": 1}])

    assert database_unique_checker("users", "email", "john@example.com") is False

    text, params = fake_db.executed_queries[-1]
    assert text == "SELECT COUNT(*) AS aggregate FROM users WHERE email = %s"
    assert params == ("john@example.com",)

    fake_db.on("AND id != %s", [{"aggregate": 0}])
    assert database_unique_checker("users", "email", "john@example.com", "1") is True
    assert fake_db.executed_queries[-1][1] == ("john@example.com", "1")


# ============================================================
# VALIDATOR API
# ============================================================

def test_custom_messages_win():
    errors = errors_for({}, {"title": "required"}, messages={"title.required": "Give your post a title."})
    assert errors["title"] == ["Give your post a title."]


def test_unknown_rule_raises():
    with pytest.raises(ValueError):
        errors_for({"title": "x"}, {"title": "shiny"})


@pytest.mark.parametrize("data", [{"a": ""}, {"a": None}, {}])
def test_unknown_rule_raises_even_for_empty_values(data):
    with pytest.raises(ValueError, match="bogus_rule"):
        errors_for(data, {"a": "nullable|bogus_rule"})


def test_validated_returns_only_fields_with_rules():
    data = {"title": "Hello", "is_admin": "1"}

    assert validate(data, {"title": "required", "excerpt": "nullable"}) == {"title": "Hello"}


def test_validate_raises_with_all_errors():
    with pytest.raises(ValidationError) as excinfo:
        validate({"title": ""}, {"title": "required", "content": "required|min:10"})

    assert set(excinfo.value.errors) == {"title", "content"}
    assert str(excinfo.value) == "The title field is required."


def test_first_error_and_fails():
    validator = Validator({"title": ""}, {"title": "required"})

    assert validator.fails()
    assert validator.first_error() == "The title field is required."
    assert validator.field_errors("title") == ["The title field is required."]
    assert validator.field_errors("content") == []
