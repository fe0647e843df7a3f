"""
Sample data for development databases.

Run with ``ff db:seed``. Seeding is idempotent: users are matched by email
and categories/posts by slug, so running it twice does not duplicate rows.
"""

import logging
from datetime import datetime, timedelta

from .models import Category, Comment, Post, User

logger = logging.getLogger(__name__)

DEFAULT_PASSWORD = "password123"

USERS = (
    {"name": "Admin User", "email": "admin@example.com", "is_admin": True},
    {"name": "John Doe", "email": "john@example.com", "is_admin": False},
    {"name": "Jane Smith", "email": "jane@example.com", "is_admin": False},
)

CATEGORIES = (
    {"name": "Technology", "slug": "technology", "description": "Latest tech news and tutorials"},
    {"name": "Web Development", "slug": "web-development", "description": "Web dev tips and tricks"},
    {"name": "Python", "slug": "python", "description": "Python programming guides"},
)

# (slug, title, excerpt, content, category slug, author email, views, days ago)
POSTS = (
    (
        "getting-started-ff-blog",
        "Getting Started with FF Blog",
        "A short guide to running FF Blog locally in a few minutes.",
        "FF Blog is a small Flask application for publishing posts. In this guide we set up "
        "the database, run the migrations and seed some sample content.",
        "technology",
        "admin@example.com",
        42,
        5,
    ),
    (
        "building-restful-apis",
        "Building RESTful APIs with Flask",
        "Learn how the JSON API for posts is put together.",
        "Learn how to build a RESTful API with Flask blueprints. We cover routing, "
        "API-key authentication, validation errors and rate limiting.",
        "web-development",
        "john@example.com",
        28,
        3,
    ),
    (
        "python-best-practices",
        "Python Best Practices Guide",
        "Essential practices for writing clean, maintainable Python.",
        "Discover practices for writing clean, maintainable Python code, from project layout "
        "and testing to logging and error handling.",
        "python",
        "admin@example.com",
        156,
        1,
    ),
    (
        "database-design-tips",
        "Database Design Tips",
        "Tips for designing efficient and scalable databases.",
        "Expert tips for designing efficient and scalable databases. Learn about "
        "normalization, indexing and query optimization.",
        "technology",
        "jane@example.com",
        89,
        2,
    ),
    (
        "understanding-mvc-pattern",
        "Understanding the MVC Pattern",
        "How models, views and controllers fit together in a web app.",
        "The Model-View-Controller pattern separates data, presentation and request "
        "handling. This post walks through how FF Blog applies it.",
        "web-development",
        "john@example.com",
        0,
        None,
    ),
)

COMMENTS = (
    ("getting-started-ff-blog", "Jane Smith", "Great introduction, thanks for writing it!"),
    ("python-best-practices", "John Doe", "The section on logging was really helpful."),
)


class DatabaseSeeder:
    """Create the sample users, categories, posts and comments."""

    def __init__(self, password=DEFAULT_PASSWORD):
        self.password = password
        self.created = {"users": 0, "categories": 0, "posts": 0, "comments": 0}

    def run(self):
        """Seed every table and return the number of rows created per table.

        :rtype: dict
        """
        users = self.seed_users()
        categories = self.seed_categories()
        posts = self.seed_posts(users, categories)
        self.seed_comments(posts)
        logger.info("Database seeded", extra={"context": dict(self.created)})
        return self.created

    def seed_users(self):
        users = {}
        for entry in USERS:
            user = User.find_by_email(entry["email"])
            if user is None:
                user = User(name=entry["name"], email=entry["email"])
                user.set_password(self.password)
                self.created["users"] += 1
            user.is_admin = entry["is_admin"]
            if user.email_verified_at is None:
                user.email_verified_at = datetime.now()
            user.save()
            users[user.email] = user
        return users

    def seed_categories(self):
        categories = {}
        for entry in CATEGORIES:
            category = Category.find_by_slug(entry["slug"])
            if category is None:
                category = Category.create(**entry)
                self.created["categories"] += 1
            categories[category.slug] = category
        return categories

    def seed_posts(self, users, categories):
        posts = {}
        for slug, title, excerpt, content, category_slug, email, views, days_ago in POSTS:
            post = Post.first_where("slug", slug)
            if post is None:
                post = Post(
                    title=title,
                    slug=slug,
                    excerpt=excerpt,
                    content=content,
                    category_id=categories[category_slug].id,
                    user_id=users[email].id,
                    status="draft" if days_ago is None else "published",
                )
                post.views = views
                if days_ago is not None:
                    post.published_at = datetime.now() - timedelta(days=days_ago)
                post.save()
                self.created["posts"] += 1
            posts[slug] = post
        return posts

    def seed_comments(self, posts):
        for slug, author_name, content in COMMENTS:
            post = posts[slug]
            exists = Comment.where("post_id", post.id).where("author_name", author_name).exists()
            if not exists:
                Comment.create(post_id=post.id, author_name=author_name, content=content)
                self.created["comments"] += 1
