# Import Flask helpers for routing, rendering templates, and redirects
from flask import Blueprint, current_app, flash, redirect, request, url_for
from flask_login import current_user

import logging

from ..events import CommentAdded
from ..extensions import get_cache, get_events
from ..models import Category, Comment, Post
from ..validation import Validator
from ..views import render
from .helpers import form_input, format_date, page_arg, post_cards

logger = logging.getLogger(__name__)

# Create a Flask Blueprint for the public pages
bp = Blueprint("blog", __name__)

RECENT_POSTS = 6

COMMENT_RULES = {
    "author_name": "required|min:2|max:100",
    "content": "required|min:3|max:2000",
}


# -------------------------------
# CACHED LOOKUPS
# -------------------------------
def recent_posts():
    """Latest published posts for the home page (cached)."""
    ttl = current_app.config.get("CACHE_TTL", 300)
    return get_cache().remember(
        "blog.recent",
        ttl,
        lambda: post_cards(Post.published().latest("published_at").limit(RECENT_POSTS).get()),
    )


def categories():
    """All categories ordered by name (cached)."""
    ttl = current_app.config.get("CACHE_TTL", 300)
    return get_cache().remember("blog.categories", ttl, Category.ordered)


# -------------------------------
# HOME PAGE
# -------------------------------
@bp.route("/")
def home():
    """Render the home page with the most recent posts."""
    return render("home", title="Home", posts=recent_posts(), categories=categories())


# -------------------------------
# BLOG INDEX
# -------------------------------
@bp.route("/blog")
def index():
    """Paginated list of published posts."""
    per_page = current_app.config.get("POSTS_PER_PAGE", 10)
    paginator = Post.published().latest("published_at").paginate(
        page_arg(), per_page, url_for("blog.index"), request.args.to_dict()
    )
    return render(
        "blog.index",
        title="Blog",
        posts=post_cards(paginator.items),
        paginator=paginator,
        categories=categories(),
    )


# -------------------------------
# SINGLE POST
# -------------------------------
@bp.route("/blog/<slug>")
def show(slug):
    """Show a published post; anything else goes back to the blog index."""
    post = Post.find_published(slug)
    if post is None:
        logger.warning("Post not found or not published", extra={"context": {"slug": slug}})
        flash("Post not found", "error")
        return redirect(url_for("blog.index"))

    post.increment_views()
    author = post.author()
    category = post.category()
    return render(
        "blog.show",
        title=post.meta_title or post.title,
        post=post,
        published_at=format_date(post.published_at or post.created_at),
        author=author,
        category=category,
        comments=post.comments(),
        errors={},
        old={},
    )


@bp.route("/blog/<slug>/comments", methods=["POST"])
def comment(slug):
    """Add a comment to a published post."""
    post = Post.find_published(slug)
    if post is None:
        flash("Post not found", "error")
        return redirect(url_for("blog.index"))

    data = form_input(*COMMENT_RULES)
    if current_user.is_authenticated and not data["author_name"]:
        data["author_name"] = current_user.name

    validator = Validator(data, COMMENT_RULES)
    if not validator.validate():
        flash(validator.first_error(), "error")
        return render(
            "blog.show",
            title=post.meta_title or post.title,
            post=post,
            published_at=format_date(post.published_at or post.created_at),
            author=post.author(),
            category=post.category(),
            comments=post.comments(),
            errors=validator.errors,
            old=data,
        ), 422

    new_comment = Comment.create(
        post_id=post.id,
        user_id=current_user.id if current_user.is_authenticated else None,
        author_name=data["author_name"],
        content=data["content"],
    )
    get_events().dispatch(CommentAdded(new_comment, post))
    flash("Comment added.", "success")
    return redirect(url_for("blog.show", slug=post.slug) + "#comments")


# -------------------------------
# CATEGORY PAGE
# -------------------------------
@bp.route("/category/<slug>")
def category(slug):
    """Published posts in one category."""
    found = Category.find_by_slug(slug)
    if found is None:
        flash("Category not found", "error")
        return redirect(url_for("blog.index"))

    per_page = current_app.config.get("POSTS_PER_PAGE", 10)
    paginator = Post.published().where("category_id", found.id).latest("published_at").paginate(
        page_arg(), per_page, url_for("blog.category", slug=slug), request.args.to_dict()
    )
    return render(
        "blog.category",
        title=found.name,
        category=found,
        posts=post_cards(paginator.items),
        paginator=paginator,
        categories=categories(),
    )
