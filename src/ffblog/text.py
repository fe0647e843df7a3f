"""
String helpers shared by models, views and the generators.
"""

import re
import unicodedata

# BeautifulSoup is used to strip markup from post bodies before excerpting
from bs4 import BeautifulSoup


def slugify(value):
    """Convert ``value`` to a lowercase, hyphen-separated URL slug.

    Accented characters are folded to ASCII; any run of characters outside
    ``[a-z0-9]`` becomes a single hyphen.

    :param value: Text to convert (e.g. a post title).
    :type value: str
    :returns: Slug, possibly empty if ``value`` had no usable characters.
    :rtype: str
    """
    value = unicodedata.normalize("NFKD", str(value or "")).encode("ascii", "ignore").decode("ascii")
    value = re.sub(r"[^a-z0-9]+", "-", value.lower())
    return value.strip("-")


def strip_tags(html):
    """Return the visible text of an HTML fragment with whitespace collapsed."""
    text = BeautifulSoup(html or "", "html.parser").get_text(" ")
    return " ".join(text.split())


def excerpt(html, length=200, suffix="..."):
    """Return at most ``length`` characters of plain text from ``html``.

    Cuts on a word boundary when one exists and appends ``suffix`` only if
    the text was shortened.
    """
    text = strip_tags(html)
    if len(text) <= length:
        return text
    cut = text[:length]
    if " " in cut:
        cut = cut.rsplit(" ", 1)[0]
    return cut.rstrip(",.;: ") + suffix


def studly(value):
    """``"blog_post-tag"`` -> ``"BlogPostTag"``."""
    parts = re.split(r"[^A-Za-z0-9]+", str(value or ""))
    return "".join(part[:1].upper() + part[1:] for part in parts if part)


def snake(value):
    """``"BlogPostTag"`` -> ``"blog_post_tag"``."""
    value = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", str(value or ""))
    value = re.sub(r"[^A-Za-z0-9]+", "_", value)
    return value.strip("_").lower()


def contains_pattern(value):
    """Build an ``ILIKE`` pattern matching ``value`` anywhere, taken literally.

    PostgreSQL treats ``%`` and ``_`` as wildcards and ``\\`` as the escape
    character, so all three are escaped before wrapping in ``%...%``.

    :param value: Search text typed by a user.
    :type value: str
    :rtype: str
    """
    escaped = str(value).replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"
