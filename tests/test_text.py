"""
tests.test_text
================

Tests for the string helpers in :mod:`ffblog.text`.
"""

import pytest

from ffblog.text import contains_pattern, excerpt, slugify, snake, strip_tags, studly


@pytest.mark.parametrize(
    "value, expected",
    [
        ("Hello World", "hello-world"),
        ("  Café au lait! ", "cafe-au-lait"),
        ("Python 3.12 -- What's new?", "python-3-12-what-s-new"),
        ("---", ""),
        (None, ""),
    ],
)
def test_slugify(value, expected):
    assert slugify(value) == expected


def test_strip_tags_collapses_whitespace():
    assert strip_tags("<h1>Title</h1>\n<p>Some <em>body</em>   text</p>") == "Title Some body text"
    assert strip_tags(None) == ""


def test_excerpt_cuts_on_word_boundary():
    html = "<p>" + "word " * 60 + "</p>"

    result = excerpt(html, 23)

    assert result == "word word word word..."
    assert excerpt("<p>Short text.</p>", 200) == "Short text."


@pytest.mark.parametrize(
    "value, studly_value, snake_value",
    [
        ("blog_post", "BlogPost", "blog_post"),
        ("PostController", "PostController", "post_controller"),
        ("api-key tag", "ApiKeyTag", "api_key_tag"),
    ],
)
def test_case_conversion(value, studly_value, snake_value):
    assert studly(value) == studly_value
    assert snake(value) == snake_value


@pytest.mark.parametrize(
    "value, expected",
    [
        ("flask", "%flask%"),
        ("50%", r"%50\%%"),
        ("snake_case", r"%snake\_case%"),
        ("C:\\temp", r"%C:\\temp%"),
    ],
)
def test_contains_pattern_escapes_wildcards(value, expected):
    assert contains_pattern(value) == expected
