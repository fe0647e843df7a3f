"""
Small helpers shared by the blueprints and templates.
"""

from datetime import datetime

from flask import current_app, request
from markupsafe import Markup, escape

from ..models import Category, User


def inject_globals():
    """Template context available on every page."""
    return {
        "app_name": current_app.config.get("APP_NAME", "FF Blog"),
        "current_year": datetime.now().year,
    }


def form_input(*fields):
    """Return the stripped form values for ``fields`` (missing ones as ``""``)."""
    return {field: (request.form.get(field) or "").strip() for field in fields}


def page_arg():
    """The ``?page=`` argument as a positive int (defaults to 1)."""
    page = request.args.get("page", 1, type=int)
    return page if page and page > 0 else 1


def format_date(value, fmt="%B %d, %Y"):
    """Format a datetime or ISO string for display; empty for ``None``."""
    if not value:
        return ""
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError:
            return value
    return value.strftime(fmt)


def nl2br(value):
    """Escape ``value`` and turn its line breaks into ``<br>`` tags."""
    if not value:
        return ""
    lines = str(value).replace("\r\n", "\n").replace("\r", "\n").split("\n")
    return Markup("<br>\n").join(escape(line) for line in lines)


def post_card(post, authors=None, categories=None):
    """Serialize ``post`` for listings and the cache.

    The result is a plain dict so it can be stored by the cache and read
    back unchanged. ``authors`` and ``categories`` are optional id → model
    maps that save one lookup per post.
    """
    author = (authors or {}).get(post.user_id) if authors is not None else post.author()
    category = (categories or {}).get(post.category_id) if categories is not None else post.category()
    return {
        "id": post.id,
        "title": post.title,
        "slug": post.slug,
        "summary": post.summary(),
        "status": post.status,
        "views": post.views or 0,
        "image": post.image,
        "published_at": format_date(post.published_at or post.created_at),
        "author": author.name if author else "Unknown",
        "category": category.name if category else None,
        "category_slug": category.slug if category else None,
    }


def post_cards(posts):
    """Serialize a list of posts with one author and one category query."""
    posts = list(posts)
    if not posts:
        return []
    user_ids = sorted({p.user_id for p in posts if p.user_id is not None})
    category_ids = sorted({p.category_id for p in posts if p.category_id is not None})
    authors = {u.id: u for u in User.query().where_in("id", user_ids).get()}
    categories = {c.id: c for c in Category.query().where_in("id", category_ids).get()}
    return [post_card(post, authors, categories) for post in posts]
