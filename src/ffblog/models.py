"""
Blog models: users, categories, posts and comments.
"""

import hmac
from datetime import datetime, timedelta

from flask_login import UserMixin

from .orm import Model
from .security import generate_token, hash_password, hash_token, verify_password
from .text import excerpt, slugify

# Password reset links stay valid for one hour
RESET_TOKEN_TTL = timedelta(hours=1)

POST_STATUSES = ("draft", "published")


class User(UserMixin, Model):
    """A registered account; :class:`flask_login.UserMixin` supplies the session protocol."""

    table = "users"
    columns = (
        "id",
        "name",
        "email",
        "password",
        "is_admin",
        "email_verified_at",
        "verification_token",
        "reset_token",
        "reset_token_expires",
        "created_at",
        "updated_at",
    )
    fillable = ("name", "email", "password")
    hidden = ("password", "verification_token", "reset_token", "reset_token_expires")

    @classmethod
    def find_by_email(cls, email):
        return cls.first_where("email", (email or "").strip().lower())

    def set_password(self, plain):
        self.password = hash_password(plain)

    def check_password(self, plain):
        return verify_password(plain, self.password)

    def is_email_verified(self):
        return self.email_verified_at is not None

    def create_verification_token(self):
        """Store the hash of a fresh verification token and return the plain token."""
        token = generate_token()
        self.verification_token = hash_token(token)
        return token

    @classmethod
    def find_by_verification_token(cls, token):
        if not token:
            return None
        return cls.first_where("verification_token", hash_token(token))

    def mark_email_as_verified(self):
        self.email_verified_at = datetime.now()
        self.verification_token = None
        return self.save()

    def generate_password_reset_token(self):
        """Store a hashed reset token valid for one hour; return the plain token."""
        token = generate_token()
        self.reset_token = hash_token(token)
        self.reset_token_expires = datetime.now() + RESET_TOKEN_TTL
        self.save()
        return token

    def is_valid_password_reset_token(self, token):
        if not token or not self.reset_token or not self.reset_token_expires:
            return False
        if not hmac.compare_digest(hash_token(token), self.reset_token):
            return False
        return self.reset_token_expires > datetime.now()

    @classmethod
    def find_by_reset_token(cls, token):
        if not token:
            return None
        return cls.first_where("reset_token", hash_token(token))

    def clear_password_reset_token(self):
        self.reset_token = None
        self.reset_token_expires = None
        return self.save()

    def posts(self):
        return Post.where("user_id", self.id).latest().get()


class Category(Model):
    table = "categories"
    columns = ("id", "name", "slug", "description", "created_at", "updated_at")
    fillable = ("name", "slug", "description")

    @staticmethod
    def generate_slug(name):
        return slugify(name)

    @classmethod
    def find_by_slug(cls, slug):
        return cls.first_where("slug", slug)

    @classmethod
    def ordered(cls):
        return cls.query().order_by("name").get()

    def posts(self, published_only=False):
        query = Post.where("category_id", self.id)
        if published_only:
            query.where("status", "published")
        return query.latest().get()


class Post(Model):
    table = "posts"
    columns = (
        "id",
        "user_id",
        "category_id",
        "title",
        "slug",
        "excerpt",
        "content",
        "status",
        "views",
        "image",
        "meta_title",
        "meta_description",
        "meta_keywords",
        "published_at",
        "created_at",
        "updated_at",
    )
    fillable = (
        "user_id",
        "category_id",
        "title",
        "slug",
        "excerpt",
        "content",
        "status",
        "image",
        "meta_title",
        "meta_description",
        "meta_keywords",
        "published_at",
    )

    @staticmethod
    def generate_slug(title):
        return slugify(title)

    @classmethod
    def unique_slug(cls, title, ignore_id=None):
        """Slug for ``title`` that no other post uses.

        Appends ``-1``, ``-2``, ... to the base slug until it is free.
        ``ignore_id`` excludes the post being edited from the check.
        """
        base = cls.generate_slug(title) or "post"
        slug = base
        counter = 1
        while True:
            query = cls.where("slug", slug)
            if ignore_id is not None:
                query.where("id", "!=", ignore_id)
            if not query.exists():
                return slug
            slug = f"{base}-{counter}"
            counter += 1

    @classmethod
    def published(cls):
        return cls.where("status", "published")

    @classmethod
    def find_published(cls, slug):
        return cls.published().where("slug", slug).first()

    def is_published(self):
        return self.status == "published"

    def publish(self):
        self.status = "published"
        if self.published_at is None:
            self.published_at = datetime.now()
        return self.save()

    def unpublish(self):
        self.status = "draft"
        return self.save()

    def author(self):
        return User.find(self.user_id)

    def category(self):
        return Category.find(self.category_id)

    def comments(self, approved_only=True):
        query = Comment.where("post_id", self.id)
        if approved_only:
            query.where("approved", True)
        return query.order_by("created_at").get()

    def increment_views(self):
        """Atomically bump the view counter without touching ``updated_at``."""
        Post.where("id", self.id).increment("views")
        self.views = (self.views or 0) + 1
        self._original["views"] = self.views

    def summary(self, length=200):
        return self.excerpt or excerpt(self.content, length)


class Comment(Model):
    table = "comments"
    columns = (
        "id",
        "post_id",
        "user_id",
        "author_name",
        "content",
        "approved",
        "created_at",
        "updated_at",
    )
    fillable = ("post_id", "user_id", "author_name", "content")

    def post(self):
        return Post.find(self.post_id)

    def author(self):
        return User.find(self.user_id) if self.user_id else None
