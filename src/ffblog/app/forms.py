"""
Form handling shared by the author dashboard and the admin panel.

Both areas edit posts and categories with the same rules; they differ only
in which rows a user may touch and where they redirect afterwards.
"""

import logging
from datetime import datetime

from ..events import POST_LIST_KEYS, PostCreated, PostDeleted, PostUpdated
from ..extensions import get_cache, get_events
from ..models import Category, Post
from ..text import slugify
from ..validation import Validator
from .helpers import form_input

logger = logging.getLogger(__name__)

POST_RULES = {
    "title": "required|min:3|max:255",
    "content": "required|min:10",
    "category_id": "required|integer",
    "status": "required|in:draft,published",
    "excerpt": "nullable|max:500",
    "image": "nullable|url|max:255",
    "meta_title": "nullable|max:255",
    "meta_description": "nullable|max:500",
    "meta_keywords": "nullable|max:255",
}

CATEGORY_RULES = {
    "name": "required|min:2|max:100",
    "slug": "required|alpha_dash|max:100",
    "description": "nullable|max:500",
}


# -------------------------------
# POSTS
# -------------------------------
def validate_post_form():
    """Read and validate the post form.

    :returns: ``(data, errors)``; ``errors`` is empty when the form is valid.
    :rtype: tuple[dict, dict]
    """
    data = form_input(*POST_RULES)
    validator = Validator(data, POST_RULES)
    if validator.validate() and Category.find(int(data["category_id"])) is None:
        validator.errors["category_id"] = ["The selected category is invalid."]
    return data, validator.errors


def save_post(post, data, user_id=None):
    """Apply validated form ``data`` to ``post``, save it and dispatch the event.

    New posts get a unique slug from their title; existing posts get a new
    slug only when the title changes. Publishing stamps ``published_at``
    the first time.
    """
    is_new = not post.exists
    attributes = {key: (value or None) for key, value in data.items()}
    attributes["category_id"] = int(data["category_id"])

    if is_new or post.title != attributes["title"]:
        post.slug = Post.unique_slug(attributes["title"], ignore_id=post.id)
    post.fill(attributes)
    if user_id is not None:
        post.user_id = user_id
    if post.status == "published" and post.published_at is None:
        post.published_at = datetime.now()
    post.save()

    get_events().dispatch(PostCreated(post) if is_new else PostUpdated(post))
    logger.info(
        "Post saved",
        extra={"context": {"post_id": post.id, "created": is_new, "status": post.status}},
    )
    return post


def delete_post(post):
    post.delete()
    get_events().dispatch(PostDeleted(post))
    logger.info("Post deleted", extra={"context": {"post_id": post.id}})


def blank_post():
    """Initial form values for the create page."""
    return {field: "" for field in POST_RULES} | {"status": "draft"}


def post_form_values(post):
    values = {field: getattr(post, field) or "" for field in POST_RULES}
    values["category_id"] = str(post.category_id or "")
    return values


# -------------------------------
# CATEGORIES
# -------------------------------
def validate_category_form(category=None):
    """Read and validate the category form.

    An empty slug is generated from the name. The slug must be unique
    among other categories.
    """
    data = form_input(*CATEGORY_RULES)
    if not data["slug"]:
        data["slug"] = slugify(data["name"])

    rules = dict(CATEGORY_RULES)
    ignore = f",{category.id}" if category is not None and category.id else ""
    rules["slug"] = f"{CATEGORY_RULES['slug']}|unique:categories,slug{ignore}"

    validator = Validator(data, rules)
    validator.validate()
    return data, validator.errors


def forget_category_cache():
    cache = get_cache()
    for key in POST_LIST_KEYS:
        cache.forget(key)


def save_category(category, data):
    category.fill({key: (value or None) for key, value in data.items()})
    category.save()
    forget_category_cache()
    return category


def delete_category(category):
    category.delete()
    forget_category_cache()
    logger.info("Category deleted", extra={"context": {"category_id": category.id}})
