"""
Admin panel: site statistics and management of every post, category and user.
"""

import logging

from flask import Blueprint, abort, current_app, flash, redirect, request, url_for
from flask_login import current_user

from .. import logger as log_channels
from ..models import Comment, Category, Post, User
from ..security import admin_required
from ..text import contains_pattern
from ..validation import Validator
from ..views import render
from . import forms
from .helpers import form_input, page_arg

logger = logging.getLogger(__name__)

bp = Blueprint("admin", __name__, url_prefix="/admin")

USER_ROLES = ("admin", "user")


@bp.before_request
@admin_required
def require_admin():
    """Every admin page needs a logged-in administrator."""
    return None


def _find_or_404(model, key):
    instance = model.find(key)
    if instance is None:
        abort(404)
    return instance


def _per_page():
    return current_app.config.get("ADMIN_PER_PAGE", 20)


# -------------------------------
# DASHBOARD
# -------------------------------
@bp.route("")
def dashboard():
    """Counts across the site plus the latest posts and users."""
    stats = {
        "total_users": User.count(),
        "admin_users": User.where("is_admin", True).count(),
        "total_posts": Post.count(),
        "published_posts": Post.where("status", "published").count(),
        "draft_posts": Post.where("status", "draft").count(),
        "total_categories": Category.count(),
        "total_comments": Comment.count(),
    }
    return render(
        "admin.dashboard",
        title="Admin Dashboard",
        stats=stats,
        recent_posts=Post.query().latest().limit(5).get(),
        recent_users=User.query().latest().limit(5).get(),
    )


# -------------------------------
# POSTS
# -------------------------------
@bp.route("/posts")
def posts_index():
    """All posts, filtered by ``search``, ``status`` and ``category``."""
    filters = {
        "search": request.args.get("search", "").strip(),
        "status": request.args.get("status", "").strip(),
        "category": request.args.get("category", "").strip(),
    }
    query = Post.query()
    if filters["search"]:
        query.where_any(("title", "content"), "ILIKE", contains_pattern(filters["search"]))
    if filters["status"] in ("draft", "published"):
        query.where("status", filters["status"])
    if filters["category"].isdigit():
        query.where("category_id", int(filters["category"]))

    paginator = query.latest().paginate(page_arg(), _per_page(), url_for("admin.posts_index"), filters)
    categories = Category.ordered()
    return render(
        "admin.posts.index",
        title="Manage Posts",
        paginator=paginator,
        categories=categories,
        category_names={c.id: c.name for c in categories},
        author_names={u.id: u.name for u in User.query().where_in("id", {p.user_id for p in paginator}).get()},
        filters=filters,
    )


@bp.route("/posts/create")
def posts_create():
    return render(
        "admin.posts.create", title="New Post", categories=Category.ordered(), old=forms.blank_post(), errors={}
    )


@bp.route("/posts", methods=["POST"])
def posts_store():
    data, errors = forms.validate_post_form()
    if errors:
        return render(
            "admin.posts.create", title="New Post", categories=Category.ordered(), old=data, errors=errors
        ), 422

    forms.save_post(Post(), data, user_id=current_user.id)
    flash("Post created successfully.", "success")
    return redirect(url_for("admin.posts_index"))


@bp.route("/posts/<int:post_id>/edit")
def posts_edit(post_id):
    post = _find_or_404(Post, post_id)
    return render(
        "admin.posts.edit",
        title="Edit Post",
        post=post,
        categories=Category.ordered(),
        old=forms.post_form_values(post),
        errors={},
    )


@bp.route("/posts/<int:post_id>", methods=["PUT", "PATCH"])
def posts_update(post_id):
    post = _find_or_404(Post, post_id)
    data, errors = forms.validate_post_form()
    if errors:
        return render(
            "admin.posts.edit", title="Edit Post", post=post, categories=Category.ordered(), old=data, errors=errors
        ), 422

    forms.save_post(post, data)
    flash("Post updated successfully.", "success")
    return redirect(url_for("admin.posts_index"))


@bp.route("/posts/<int:post_id>", methods=["DELETE"])
def posts_destroy(post_id):
    post = _find_or_404(Post, post_id)
    forms.delete_post(post)
    flash("Post deleted successfully.", "success")
    return redirect(url_for("admin.posts_index"))


# -------------------------------
# CATEGORIES
# -------------------------------
@bp.route("/categories")
def categories_index():
    categories = Category.ordered()
    counts = {c.id: Post.where("category_id", c.id).count() for c in categories}
    return render("admin.categories.index", title="Manage Categories", categories=categories, counts=counts)


@bp.route("/categories/create")
def categories_create():
    return render("admin.categories.create", title="New Category", old={}, errors={})


@bp.route("/categories", methods=["POST"])
def categories_store():
    data, errors = forms.validate_category_form()
    if errors:
        return render("admin.categories.create", title="New Category", old=data, errors=errors), 422

    forms.save_category(Category(), data)
    flash("Category created successfully.", "success")
    return redirect(url_for("admin.categories_index"))


@bp.route("/categories/<int:category_id>/edit")
def categories_edit(category_id):
    category = _find_or_404(Category, category_id)
    return render(
        "admin.categories.edit", title="Edit Category", category=category, old=category.to_dict(), errors={}
    )


@bp.route("/categories/<int:category_id>", methods=["PUT", "PATCH"])
def categories_update(category_id):
    category = _find_or_404(Category, category_id)
    data, errors = forms.validate_category_form(category)
    if errors:
        return render(
            "admin.categories.edit", title="Edit Category", category=category, old=data, errors=errors
        ), 422

    forms.save_category(category, data)
    flash("Category updated successfully.", "success")
    return redirect(url_for("admin.categories_index"))


@bp.route("/categories/<int:category_id>", methods=["DELETE"])
def categories_destroy(category_id):
    category = _find_or_404(Category, category_id)
    forms.delete_category(category)
    flash("Category deleted successfully.", "success")
    return redirect(url_for("admin.categories_index"))


# -------------------------------
# USERS
# -------------------------------
@bp.route("/users")
def users_index():
    """All users, filtered by ``search`` (name/email) and ``role``."""
    filters = {
        "search": request.args.get("search", "").strip(),
        "role": request.args.get("role", "").strip(),
    }
    query = User.query()
    if filters["search"]:
        query.where_any(("name", "email"), "ILIKE", contains_pattern(filters["search"]))
    if filters["role"] in USER_ROLES:
        query.where("is_admin", filters["role"] == "admin")

    paginator = query.latest().paginate(page_arg(), _per_page(), url_for("admin.users_index"), filters)
    return render("admin.users.index", title="Manage Users", paginator=paginator, filters=filters)


@bp.route("/users/<int:user_id>/edit")
def users_edit(user_id):
    user = _find_or_404(User, user_id)
    old = {"name": user.name, "email": user.email, "role": "admin" if user.is_admin else "user"}
    return render("admin.users.edit", title="Edit User", user=user, old=old, errors={})


@bp.route("/users/<int:user_id>", methods=["PUT", "PATCH"])
def users_update(user_id):
    user = _find_or_404(User, user_id)
    data = form_input("name", "email", "role", "password", "password_confirmation")
    data["email"] = data["email"].lower()
    rules = {
        "name": "required|min:2|max:100",
        "email": f"required|email|max:255|unique:users,email,{user.id}",
        "role": f"required|in:{','.join(USER_ROLES)}",
        "password": "nullable|min:8|confirmed",
    }
    validator = Validator(data, rules)
    validator.validate()
    if user.id == current_user.id and data["role"] != "admin":
        validator.errors.setdefault("role", []).append("You cannot remove your own admin role.")
    if validator.errors:
        return render("admin.users.edit", title="Edit User", user=user, old=data, errors=validator.errors), 422

    user.name = data["name"]
    user.email = data["email"]
    user.is_admin = data["role"] == "admin"
    if data["password"]:
        user.set_password(data["password"])
    user.save()

    log_channels.channel("security").info(
        "User updated by admin",
        extra={"context": {"user_id": user.id, "admin_id": current_user.id, "is_admin": user.is_admin}},
    )
    flash("User updated successfully.", "success")
    return redirect(url_for("admin.users_index"))


@bp.route("/users/<int:user_id>", methods=["DELETE"])
def users_destroy(user_id):
    user = _find_or_404(User, user_id)
    if user.id == current_user.id:
        flash("You cannot delete your own account.", "error")
        return redirect(url_for("admin.users_index"))

    user.delete()
    log_channels.channel("security").warning(
        "User deleted by admin", extra={"context": {"user_id": user_id, "admin_id": current_user.id}}
    )
    flash("User deleted successfully.", "success")
    return redirect(url_for("admin.users_index"))
