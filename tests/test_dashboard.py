"""
tests.test_dashboard
=====================

Tests for the author dashboard in :mod:`ffblog.app.dashboard`.

Covers:

1. **Access** - every page needs a signed-in user.
2. **Overview and profile** - per-user stats and profile updates.
3. **Posts** - create/update/delete on the user's own posts through HTML
   forms (``_method`` override), with other users' posts behaving as
   missing, post events dispatched and cached listings dropped.
4. **Categories** - create with a generated slug, unique slugs.

All tests are marked ``admin`` and run against :class:`FakeConnection`.
"""

import pytest
from bs4 import BeautifulSoup

from conftest import category_row, post_row
from ffblog.events import PostCreated, PostDeleted, PostUpdated

pytestmark = pytest.mark.admin

POST_FORM = {
    "title": "Writing Flask Blueprints",
    "content": "Blueprints group related routes together.",
    "category_id": "1",
    "status": "published",
    "excerpt": "",
    "image": "",
    "meta_title": "",
    "meta_description": "",
    "meta_keywords": "",
}


@pytest.fixture
def author(login, fake_db):
    """Sign in as user 1 who owns post 1; category 1 exists."""
    login(id=1)
    fake_db.on("FROM categories WHERE id = %s", [category_row()])
    fake_db.on(
        "FROM posts WHERE id = %s AND user_id = %s",
        lambda params: [post_row(id=params[0], user_id=1)] if params == (1, 1) else [],
    )
    return fake_db


@pytest.fixture
def dispatched(app):
    """Collect post events dispatched during the test."""
    events = []
    dispatcher = app.extensions["ffblog"]["events"]
    for name in (PostCreated.name, PostUpdated.name, PostDeleted.name):
        dispatcher.listen(name, events.append)
    return events


def test_dashboard_requires_login(client):
    response = client.get("/dashboard/posts")

    assert response.status_code == 302
    assert "/login" in response.headers["Location"]


# ============================================================
# OVERVIEW / PROFILE
# ============================================================

def test_dashboard_stats(client, author):
    author.on(
        "FROM posts WHERE user_id = %s ORDER BY created_at DESC",
        [post_row(views=10), post_row(id=2, slug="draft", title="Draft", status="draft", views=5)],
    )

    response = client.get("/dashboard")

    soup = BeautifulSoup(response.data, "html.parser")

    def value(stat):
        return soup.select_one(f"#stat-{stat} .value").get_text(strip=True)

    assert value("total") == "2"
    assert value("published") == "1"
    assert value("drafts") == "1"
    assert value("views") == "15"
    assert "Draft" in soup.select_one("ul.recent").get_text()


def test_profile_update(client, author):
    response = client.post("/dashboard/profile", data={"name": "Johnny", "email": "Johnny@Example.com"})

    assert response.status_code == 302
    text, params = author.queries("UPDATE users")[0]
    assert text.startswith("UPDATE users SET name = %s, email = %s")
    assert params[:2] == ("Johnny", "johnny@example.com")


def test_profile_email_uniqueness_ignores_own_row(client, author):
    client.post("/dashboard/profile", data={"name": "Johnny", "email": "john@example.com"})

    text, params = author.queries("COUNT(*) AS aggregate FROM users WHERE email = %s")[0]
    assert text.endswith("AND id != %s")
    assert params == ("john@example.com", "1")


def test_profile_password_change_needs_current_password(client, author):
    response = client.post(
        "/dashboard/profile",
        data={
            "name": "John Doe",
            "email": "john@example.com",
            "current_password": "wrong",
            "password": "brand-new-pass",
            "password_confirmation": "brand-new-pass",
        },
    )

    assert response.status_code == 422
    assert "The current password is incorrect." in response.get_data(as_text=True)
    assert author.queries("UPDATE users") == []


# ============================================================
# POSTS
# ============================================================

def test_posts_create_form(client, author):
    author.on("FROM categories ORDER BY name", [category_row()])

    response = client.get("/dashboard/posts/create")

    soup = BeautifulSoup(response.data, "html.parser")
    assert [o.get_text() for o in soup.select("#category_id option")] == ["Select a category", "Technology"]
    assert soup.select_one("#status option[selected]")["value"] == "draft"


def test_store_post(app, client, author, dispatched):
    cache = app.extensions["ffblog"]["cache"]
    cache.put("blog.recent", ["stale"])

    response = client.post("/dashboard/posts", data=POST_FORM)

    row = author.inserted_into("posts")[0]
    assert response.status_code == 302
    assert response.headers["Location"].endswith(f"/dashboard/posts/{row['id']}/edit")
    assert row["user_id"] == 1
    assert row["category_id"] == 1
    assert row["slug"] == "writing-flask-blueprints"
    assert row["status"] == "published"
    assert row["published_at"] is not None
    assert "excerpt" not in row

    assert [type(e) for e in dispatched] == [PostCreated]
    assert not cache.has("blog.recent")


def test_store_post_validation(client, author):
    author.on("FROM categories ORDER BY name", [category_row()])
    data = dict(POST_FORM, title="", status="archived", image="not a url")

    response = client.post("/dashboard/posts", data=data)

    assert response.status_code == 422
    body = response.get_data(as_text=True)
    assert "The title field is required." in body
    assert "The selected status is invalid." in body
    assert "The image must be a valid URL." in body
    assert author.inserted_into("posts") == []


def test_store_post_with_unknown_category(client, fake_db, login):
    login(id=1)

    response = client.post("/dashboard/posts", data=dict(POST_FORM, category_id="42"))

    assert response.status_code == 422
    assert "The selected category is invalid." in response.get_data(as_text=True)


def test_update_own_post_through_method_override(client, author, dispatched):
    data = dict(POST_FORM, _method="PUT", title="Renamed Post")

    response = client.post("/dashboard/posts/1", data=data)

    assert response.status_code == 302
    assert response.headers["Location"].endswith("/dashboard/posts/1/edit")
    text, params = author.queries("UPDATE posts")[0]
    assert "title = %s" in text
    assert "slug = %s" in text
    assert "Renamed Post" in params
    assert "renamed-post" in params
    assert [type(e) for e in dispatched] == [PostUpdated]


def test_update_keeps_slug_when_title_is_unchanged(client, author):
    data = dict(POST_FORM, _method="PUT", title="Getting Started with FF Blog")

    client.post("/dashboard/posts/1", data=data)

    assert author.queries("COUNT(*) AS aggregate FROM posts WHERE slug") == []
    text, _ = author.queries("UPDATE posts")[0]
    assert "slug = %s" not in text


def test_other_users_posts_are_not_found(client, author):
    assert client.get("/dashboard/posts/2/edit").status_code == 404
    assert client.post("/dashboard/posts/2", data={"_method": "DELETE"}).status_code == 404
    assert author.queries("DELETE FROM posts") == []


def test_delete_own_post(client, author, dispatched):
    response = client.post("/dashboard/posts/1", data={"_method": "DELETE"})

    assert response.status_code == 302
    assert response.headers["Location"].endswith("/dashboard/posts")
    assert author.queries("DELETE FROM posts WHERE id = %s")[0][1] == (1,)
    assert [type(e) for e in dispatched] == [PostDeleted]


def test_posts_index_lists_only_own_posts(client, author):
    client.get("/dashboard/posts")

    text, params = author.queries("COUNT(*) AS aggregate FROM posts")[0]
    assert text.endswith("WHERE user_id = %s")
    assert params == (1,)


# ============================================================
# CATEGORIES
# ============================================================

def test_store_category_generates_slug(client, author):
    response = client.post("/dashboard/categories", data={"name": "Web Development", "slug": ""})

    assert response.status_code == 302
    row = author.inserted_into("categories")[0]
    assert row["slug"] == "web-development"
    assert "description" not in row


def test_store_category_requires_unique_slug(client, author):
    author.on("COUNT(*) AS aggregate FROM categories WHERE slug = %s", [{"aggregate": 1}])

    response = client.post("/dashboard/categories", data={"name": "Technology", "slug": "technology"})

    assert response.status_code == 422
    assert "The slug has already been taken." in response.get_data(as_text=True)


def test_update_category_ignores_itself_in_slug_check(client, author):
    client.post(
        "/dashboard/categories/1",
        data={"_method": "PUT", "name": "Tech", "slug": "technology", "description": ""},
    )

    text, params = author.queries("COUNT(*) AS aggregate FROM categories WHERE slug = %s")[0]
    assert text.endswith("AND id != %s")
    assert params == ("technology", "1")
    assert author.queries("UPDATE categories")


def test_delete_category(client, author):
    response = client.post("/dashboard/categories/1", data={"_method": "DELETE"})

    assert response.status_code == 302
    assert author.queries("DELETE FROM categories WHERE id = %s")[0][1] == (1,)


def test_missing_category_is_not_found(client, fake_db, login):
    login(id=1)

    assert client.get("/dashboard/categories/9/edit").status_code == 404
