"""
tests.test_seeds
=================

Tests for :class:`ffblog.seeds.DatabaseSeeder`.

Seeding an empty database creates the sample rows; seeding one that
already holds them creates nothing, so ``ff db:seed`` can be re-run.

All tests are marked ``db`` and run against :class:`FakeConnection`.
"""

import pytest

from conftest import category_row, post_row, user_row
from ffblog.seeds import CATEGORIES, POSTS, USERS, DatabaseSeeder

pytestmark = pytest.mark.db


def test_seeding_an_empty_database(fake_db):
    created = DatabaseSeeder().run()

    assert created == {"users": 3, "categories": 3, "posts": 5, "comments": 2}

    users = fake_db.inserted_into("users")
    admin = next(row for row in users if row["email"] == "admin@example.com")
    assert admin["is_admin"] is True
    assert admin["email_verified_at"] is not None
    assert admin["password"] != "password123"

    posts = {row["slug"]: row for row in fake_db.inserted_into("posts")}
    assert posts["understanding-mvc-pattern"]["status"] == "draft"
    assert "published_at" not in posts["understanding-mvc-pattern"]
    assert posts["python-best-practices"]["status"] == "published"
    assert posts["python-best-practices"]["views"] == 156


def test_posts_reference_seeded_authors_and_categories(fake_db):
    DatabaseSeeder().run()

    user_ids = {row["email"]: row["id"] for row in fake_db.inserted_into("users")}
    category_ids = {row["slug"]: row["id"] for row in fake_db.inserted_into("categories")}
    post = next(row for row in fake_db.inserted_into("posts") if row["slug"] == "building-restful-apis")
    assert post["user_id"] == user_ids["john@example.com"]
    assert post["category_id"] == category_ids["web-development"]


def test_seeding_is_idempotent(fake_db):
    fake_db.on(
        "FROM users WHERE email = %s",
        lambda params: [user_row(email=params[0], is_admin=params[0] == "admin@example.com")],
    )
    fake_db.on("FROM categories WHERE slug = %s", lambda params: [category_row(slug=params[0])])
    fake_db.on("FROM posts WHERE slug = %s", lambda params: [post_row(slug=params[0])])
    fake_db.on("COUNT(*) AS aggregate FROM comments", [{"aggregate": 1}])

    created = DatabaseSeeder().run()

    assert created == {"users": 0, "categories": 0, "posts": 0, "comments": 0}
    assert fake_db.inserted == []
    assert fake_db.queries("UPDATE users") == []


def test_sample_data_is_consistent():
    emails = {user["email"] for user in USERS}
    slugs = {category["slug"] for category in CATEGORIES}
    for _, _, _, _, category_slug, email, _, _ in POSTS:
        assert category_slug in slugs
        assert email in emails
