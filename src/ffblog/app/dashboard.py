"""
Author dashboard: stats, profile, and CRUD on the user's own posts and
on categories.
"""

import logging

from flask import Blueprint, abort, current_app, flash, redirect, request, url_for
from flask_login import current_user, login_required

from ..models import Category, Post
from ..validation import Validator
from ..views import render
from . import forms
from .helpers import form_input, page_arg

logger = logging.getLogger(__name__)

bp = Blueprint("dashboard", __name__, url_prefix="/dashboard")


@bp.before_request
@login_required
def require_login():
    """Every dashboard page needs a logged-in user."""
    return None


def _own_post(post_id):
    """The current user's post ``post_id``; other users' posts are a 404."""
    post = Post.where("id", post_id).where("user_id", current_user.id).first()
    if post is None:
        abort(404)
    return post


def _category_or_404(category_id):
    category = Category.find(category_id)
    if category is None:
        abort(404)
    return category


# -------------------------------
# OVERVIEW
# -------------------------------
@bp.route("")
def index():
    """Post counts, total views and the latest posts of the current user."""
    posts = current_user.posts()
    stats = {
        "total_posts": len(posts),
        "published_posts": sum(1 for p in posts if p.is_published()),
        "draft_posts": sum(1 for p in posts if not p.is_published()),
        "total_views": sum(p.views or 0 for p in posts),
    }
    return render("dashboard.index", title="Dashboard", stats=stats, recent_posts=posts[:5])


@bp.route("/profile", methods=["GET", "POST"])
def profile():
    """Update name, email and (optionally) password."""
    if request.method == "GET":
        return render("dashboard.profile", title="Profile", errors={}, old={})

    data = form_input("name", "email", "current_password", "password", "password_confirmation")
    data["email"] = data["email"].lower()
    rules = {
        "name": "required|min:2|max:100",
        "email": f"required|email|max:255|unique:users,email,{current_user.id}",
        "password": "nullable|min:8|confirmed",
    }
    validator = Validator(data, rules)
    validator.validate()
    if data["password"] and not current_user.check_password(data["current_password"]):
        validator.errors.setdefault("current_password", []).append("The current password is incorrect.")
    if validator.errors:
        return render("dashboard.profile", title="Profile", errors=validator.errors, old=data), 422

    user = current_user._get_current_object()
    user.name = data["name"]
    user.email = data["email"]
    if data["password"]:
        user.set_password(data["password"])
    user.save()

    flash("Profile updated successfully.", "success")
    return redirect(url_for("dashboard.profile"))


# -------------------------------
# POSTS
# -------------------------------
@bp.route("/posts")
def posts_index():
    per_page = current_app.config.get("POSTS_PER_PAGE", 10)
    paginator = Post.where("user_id", current_user.id).latest().paginate(
        page_arg(), per_page, url_for("dashboard.posts_index")
    )
    category_names = {c.id: c.name for c in Category.all()}
    return render("posts.index", title="My Posts", paginator=paginator, category_names=category_names)


@bp.route("/posts/create")
def posts_create():
    return render(
        "posts.create", title="New Post", categories=Category.ordered(), old=forms.blank_post(), errors={}
    )


@bp.route("/posts", methods=["POST"])
def posts_store():
    data, errors = forms.validate_post_form()
    if errors:
        return render(
            "posts.create", title="New Post", categories=Category.ordered(), old=data, errors=errors
        ), 422

    post = forms.save_post(Post(), data, user_id=current_user.id)
    flash("Post created successfully.", "success")
    return redirect(url_for("dashboard.posts_edit", post_id=post.id))


@bp.route("/posts/<int:post_id>/edit")
def posts_edit(post_id):
    post = _own_post(post_id)
    return render(
        "posts.edit",
        title="Edit Post",
        post=post,
        categories=Category.ordered(),
        old=forms.post_form_values(post),
        errors={},
    )


@bp.route("/posts/<int:post_id>", methods=["PUT", "PATCH"])
def posts_update(post_id):
    post = _own_post(post_id)
    data, errors = forms.validate_post_form()
    if errors:
        return render(
            "posts.edit", title="Edit Post", post=post, categories=Category.ordered(), old=data, errors=errors
        ), 422

    forms.save_post(post, data)
    flash("Post updated successfully.", "success")
    return redirect(url_for("dashboard.posts_edit", post_id=post.id))


@bp.route("/posts/<int:post_id>", methods=["DELETE"])
def posts_destroy(post_id):
    post = _own_post(post_id)
    forms.delete_post(post)
    flash("Post deleted successfully.", "success")
    return redirect(url_for("dashboard.posts_index"))


# -------------------------------
# CATEGORIES
# -------------------------------
@bp.route("/categories")
def categories_index():
    return render("categories.index", title="Categories", categories=Category.ordered())


@bp.route("/categories/create")
def categories_create():
    return render("categories.create", title="New Category", old={}, errors={})


@bp.route("/categories", methods=["POST"])
def categories_store():
    data, errors = forms.validate_category_form()
    if errors:
        return render("categories.create", title="New Category", old=data, errors=errors), 422

    forms.save_category(Category(), data)
    flash("Category created successfully.", "success")
    return redirect(url_for("dashboard.categories_index"))


@bp.route("/categories/<int:category_id>/edit")
def categories_edit(category_id):
    category = _category_or_404(category_id)
    return render("categories.edit", title="Edit Category", category=category, old=category.to_dict(), errors={})


@bp.route("/categories/<int:category_id>", methods=["PUT", "PATCH"])
def categories_update(category_id):
    category = _category_or_404(category_id)
    data, errors = forms.validate_category_form(category)
    if errors:
        return render("categories.edit", title="Edit Category", category=category, old=data, errors=errors), 422

    forms.save_category(category, data)
    flash("Category updated successfully.", "success")
    return redirect(url_for("dashboard.categories_index"))


@bp.route("/categories/<int:category_id>", methods=["DELETE"])
def categories_destroy(category_id):
    category = _category_or_404(category_id)
    forms.delete_category(category)
    flash("Category deleted successfully.", "success")
    return redirect(url_for("dashboard.categories_index"))
