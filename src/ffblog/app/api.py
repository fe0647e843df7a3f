"""
JSON API for posts.

Reads are public. Writes need an ``X-API-Key`` header matching
``API_TOKEN``; creating posts is limited to 10 per hour per key.
"""

import hashlib
import logging
from datetime import datetime

from flask import Blueprint, jsonify, request

from ..events import PostCreated, PostDeleted, PostUpdated
from ..extensions import get_events, get_limiter
from ..models import Category, Post, User
from ..security import api_key_required
from ..validation import Validator

logger = logging.getLogger(__name__)

bp = Blueprint("api", __name__, url_prefix="/api")

STORE_MAX_ATTEMPTS = 10
STORE_DECAY = 60 * 60

STORE_RULES = {
    "title": "required|string|min:3|max:255",
    "content": "required|string|min:10",
    "category_id": "required|integer",
    "user_id": "nullable|integer",
    "status": "nullable|string|in:draft,published",
    "excerpt": "nullable|string|max:500",
}

UPDATE_RULES = {
    "title": "string|min:3|max:255",
    "content": "string|min:10",
    "category_id": "integer",
    "status": "string|in:draft,published",
    "excerpt": "nullable|string|max:500",
}

RELATIONS = (("category_id", Category, "category"), ("user_id", User, "user"))


def _not_found(post_id):
    return jsonify({"error": "Not Found", "message": f"Post {post_id} not found."}), 404


def _invalid(errors):
    return jsonify({"error": "Validation failed", "errors": errors}), 422


def _payload():
    """JSON body, falling back to form data."""
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict()


def _check_relations(data, rules, errors):
    """Add an error for each id field naming a row that does not exist.

    Only fields with rules are looked up, and only once their ``integer``
    rule has passed.
    """
    for field, model, label in RELATIONS:
        value = data.get(field)
        if field not in rules or value in (None, "") or errors.get(field):
            continue
        try:
            key = int(value)
        except (TypeError, ValueError):
            errors[field] = [f"The {label} id must be an integer."]
            continue
        if model.find(key) is None:
            errors[field] = [f"The selected {label} is invalid."]
    return errors


# -------------------------------
# READ
# -------------------------------
@bp.route("/posts", methods=["GET"])
def index():
    """Published posts, newest first, with ``page`` and ``per_page`` arguments."""
    per_page = min(max(request.args.get("per_page", 15, type=int) or 15, 1), 100)
    paginator = Post.published().latest("published_at").paginate(
        request.args.get("page", 1, type=int), per_page
    )
    return jsonify(
        {
            "data": [post.to_dict() for post in paginator],
            "meta": {
                "current_page": paginator.current_page,
                "last_page": paginator.last_page,
                "per_page": paginator.per_page,
                "total": paginator.total,
            },
        }
    )


@bp.route("/posts/<int:post_id>", methods=["GET"])
def show(post_id):
    post = Post.find(post_id)
    if post is None:
        return _not_found(post_id)
    return jsonify({"data": post.to_dict()})


# -------------------------------
# WRITE
# -------------------------------
@bp.route("/posts", methods=["POST"])
@api_key_required
def store():
    """Create a post; ``user_id`` defaults to the first admin."""
    key = "api:posts:" + hashlib.sha256(request.headers.get("X-API-Key", "").encode("utf-8")).hexdigest()[:16]
    limiter = get_limiter()
    if limiter.too_many_attempts(key, STORE_MAX_ATTEMPTS):
        response = jsonify({"error": "Too Many Requests", "message": "Rate limit exceeded."})
        response.headers["Retry-After"] = str(limiter.available_in(key))
        return response, 429
    limiter.hit(key, STORE_DECAY)

    data = _payload()
    validator = Validator(data, STORE_RULES)
    validator.validate()
    errors = _check_relations(data, STORE_RULES, validator.errors)
    if errors:
        return _invalid(errors)

    user_id = data.get("user_id")
    if user_id in (None, ""):
        owner = User.where("is_admin", True).order_by("id").first()
        if owner is None:
            return _invalid({"user_id": ["The user id field is required."]})
        user_id = owner.id

    post = Post(
        title=data["title"],
        content=data["content"],
        excerpt=data.get("excerpt") or None,
        category_id=int(data["category_id"]),
        status=data.get("status") or "draft",
    )
    post.user_id = int(user_id)
    post.slug = Post.unique_slug(post.title)
    if post.status == "published":
        post.published_at = datetime.now()
    post.save()

    get_events().dispatch(PostCreated(post))
    logger.info("Post created via API", extra={"context": {"post_id": post.id}})
    return jsonify({"data": post.to_dict()}), 201


@bp.route("/posts/<int:post_id>", methods=["PUT", "PATCH"])
@api_key_required
def update(post_id):
    post = Post.find(post_id)
    if post is None:
        return _not_found(post_id)

    data = _payload()
    validator = Validator(data, UPDATE_RULES)
    validator.validate()
    errors = _check_relations(data, UPDATE_RULES, validator.errors)
    if errors:
        return _invalid(errors)

    # Only excerpt may be cleared; nulls elsewhere are ignored
    changes = {
        key: data[key]
        for key in UPDATE_RULES
        if key in data and (data[key] not in (None, "") or key == "excerpt")
    }
    if "category_id" in changes:
        changes["category_id"] = int(changes["category_id"])
    if "title" in changes and changes["title"] != post.title:
        post.slug = Post.unique_slug(changes["title"], ignore_id=post.id)
    post.fill(changes)
    if post.status == "published" and post.published_at is None:
        post.published_at = datetime.now()
    post.save()

    get_events().dispatch(PostUpdated(post))
    return jsonify({"data": post.to_dict()})


@bp.route("/posts/<int:post_id>", methods=["DELETE"])
@api_key_required
def destroy(post_id):
    post = Post.find(post_id)
    if post is None:
        return _not_found(post_id)

    post.delete()
    get_events().dispatch(PostDeleted(post))
    logger.info("Post deleted via API", extra={"context": {"post_id": post_id}})
    return jsonify({"message": "Post deleted successfully."})
