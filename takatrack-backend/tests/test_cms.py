"""
Tests for the admin-only CMS: pages, posts, media, roles and users
"""
import io
import os

import pytest
from PIL import Image

import models


def png_bytes(width=3, height=2):
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color=(255, 0, 0)).save(buffer, format="PNG")
    return buffer.getvalue()


def make_page(client, headers, **fields):
    response = client.post("/cms/pages/", headers=headers, json={"title": "About Us", **fields})
    assert response.status_code == 201, response.text
    return response.json()


class TestAccess:
    """Every CMS route requires an admin role."""

    @pytest.mark.parametrize("path", ["/cms/pages/", "/cms/posts/", "/cms/media/", "/cms/roles/", "/cms/users/"])
    def test_regular_user_forbidden(self, client, auth_headers, path):
        assert client.get(path, headers=auth_headers).status_code == 403

    def test_unauthenticated(self, client):
        assert client.get("/cms/pages/").status_code == 401

    def test_admin_allowed(self, client, admin_headers):
        assert client.get("/cms/pages/", headers=admin_headers).status_code == 200


class TestPages:
    def test_slugs_are_unique(self, client, admin_headers):
        first = make_page(client, admin_headers)
        second = make_page(client, admin_headers)

        assert first["slug"] == "about-us"
        assert second["slug"] == "about-us-2"

    def test_publishing_stamps_published_at(self, client, admin_headers):
        page = make_page(client, admin_headers)
        assert page["published_at"] is None

        published = client.put(f"/cms/pages/{page['page_id']}", headers=admin_headers, json={"status": "published"}).json()
        assert published["published_at"] is not None

        again = client.put(f"/cms/pages/{page['page_id']}", headers=admin_headers, json={"title": "About"}).json()
        assert again["published_at"] == published["published_at"]
        assert [p["page_id"] for p in client.get("/cms/pages/published", headers=admin_headers).json()] == [page["page_id"]]

    def test_lookup_by_slug(self, client, admin_headers):
        page = make_page(client, admin_headers, slug="Contact Us!")

        assert page["slug"] == "contact-us"
        assert client.get("/cms/pages/slug/contact-us", headers=admin_headers).json()["page_id"] == page["page_id"]
        assert client.get("/cms/pages/slug/missing", headers=admin_headers).status_code == 404

    def test_page_with_children_cannot_be_deleted(self, client, admin_headers):
        parent = make_page(client, admin_headers)
        child = make_page(client, admin_headers, title="Team", parent_id=parent["page_id"])

        assert client.delete(f"/cms/pages/{parent['page_id']}", headers=admin_headers).status_code == 422
        assert client.delete(f"/cms/pages/{child['page_id']}", headers=admin_headers).status_code == 204
        assert client.delete(f"/cms/pages/{parent['page_id']}", headers=admin_headers).status_code == 204

    def test_page_cannot_be_its_own_parent(self, client, admin_headers):
        page = make_page(client, admin_headers)
        response = client.put(f"/cms/pages/{page['page_id']}", headers=admin_headers, json={"parent_id": page["page_id"]})
        assert response.status_code == 422

    def test_records_author(self, client, admin_headers, db):
        page = make_page(client, admin_headers)
        admin = db.query(models.User).filter(models.User.email == "admin@example.com").one()
        assert page["created_by"] == admin.user_id


class TestPosts:
    def test_tag_and_category_filters(self, client, admin_headers):
        client.post("/cms/posts/", headers=admin_headers, json={
            "title": "Budgeting 101", "tags": ["budget", "basics"], "categories": ["guides"], "status": "published",
        })
        client.post("/cms/posts/", headers=admin_headers, json={
            "title": "Saving tips", "tags": ["savings"], "categories": ["guides"],
        })

        by_tag = client.get("/cms/posts/?tag=budget", headers=admin_headers).json()
        by_category = client.get("/cms/posts/?category=guides", headers=admin_headers).json()

        assert [p["title"] for p in by_tag["posts"]] == ["Budgeting 101"]
        assert by_category["total"] == 2
        assert client.get("/cms/posts/tags", headers=admin_headers).json() == ["basics", "budget", "savings"]
        assert client.get("/cms/posts/categories", headers=admin_headers).json() == ["guides"]
        assert len(client.get("/cms/posts/published", headers=admin_headers).json()) == 1

    def test_clearing_tags(self, client, admin_headers):
        post = client.post("/cms/posts/", headers=admin_headers, json={"title": "Tagged", "tags": ["a"]}).json()

        updated = client.put(f"/cms/posts/{post['post_id']}", headers=admin_headers, json={"tags": None}).json()

        assert updated["tags"] == []

    def test_delete(self, client, admin_headers):
        post = client.post("/cms/posts/", headers=admin_headers, json={"title": "Gone soon"}).json()

        assert client.delete(f"/cms/posts/{post['post_id']}", headers=admin_headers).status_code == 204
        assert client.get(f"/cms/posts/{post['post_id']}", headers=admin_headers).status_code == 404


class TestMedia:
    def test_upload_reads_dimensions_and_delete_removes_file(self, client, admin_headers, db):
        response = client.post(
            "/cms/media/upload",
            headers=admin_headers,
            files={"file": ("logo.png", png_bytes(), "image/png")},
            data={"folder": "branding", "alt_text": "Logo"},
        )

        assert response.status_code == 201
        media = response.json()
        assert media["width"] == 3
        assert media["height"] == 2
        assert media["original_filename"] == "logo.png"
        assert media["url"].startswith("/files/branding/")

        path = db.query(models.Media).filter(models.Media.media_id == media["media_id"]).one().path
        assert os.path.exists(path)
        assert client.get("/cms/media/folders", headers=admin_headers).json() == ["branding"]
        assert client.get("/cms/media/?mime_type=image/", headers=admin_headers).json()["total"] == 1

        assert client.delete(f"/cms/media/{media['media_id']}", headers=admin_headers).status_code == 204
        assert not os.path.exists(path)

    def test_non_image_has_no_dimensions(self, client, admin_headers):
        response = client.post(
            "/cms/media/upload",
            headers=admin_headers,
            files={"file": ("notes.txt", b"hello", "text/plain")},
        )

        assert response.status_code == 201
        assert response.json()["width"] is None
        assert response.json()["title"] == "notes.txt"

    def test_empty_file_rejected(self, client, admin_headers):
        response = client.post(
            "/cms/media/upload", headers=admin_headers, files={"file": ("empty.txt", b"", "text/plain")}
        )
        assert response.status_code == 400

    def test_too_many_files(self, client, admin_headers):
        files = [("files", (f"f{i}.txt", b"x", "text/plain")) for i in range(11)]
        response = client.post("/cms/media/upload-multiple", headers=admin_headers, files=files)
        assert response.status_code == 400


class TestRoles:
    def test_seeded_roles_and_permissions(self, client, admin_headers):
        roles = {role["name"]: role for role in client.get("/cms/roles/", headers=admin_headers).json()}

        assert {"super-admin", "admin", "editor", "author", "viewer", "user"} <= set(roles)
        admin_permissions = {p["name"] for p in roles["admin"]["permissions"]}
        assert "cms.pages.create" in admin_permissions
        assert not any(name.startswith("cms.roles.") for name in admin_permissions)

    def test_create_update_delete(self, client, admin_headers):
        created = client.post("/cms/roles/", headers=admin_headers, json={
            "name": "moderator", "permissions": ["cms.posts.view", "cms.posts.edit"],
        })
        assert created.status_code == 201
        role_id = created.json()["role_id"]

        duplicate = client.post("/cms/roles/", headers=admin_headers, json={"name": "moderator"})
        assert duplicate.status_code == 400

        updated = client.put(f"/cms/roles/{role_id}", headers=admin_headers, json={"permissions": ["cms.posts.view"]})
        assert [p["name"] for p in updated.json()["permissions"]] == ["cms.posts.view"]

        assert client.delete(f"/cms/roles/{role_id}", headers=admin_headers).status_code == 204

    def test_super_admin_is_protected(self, client, admin_headers, db):
        role_id = db.query(models.Role).filter(models.Role.name == "super-admin").one().role_id

        assert client.delete(f"/cms/roles/{role_id}", headers=admin_headers).status_code == 422
        assert client.put(f"/cms/roles/{role_id}", headers=admin_headers, json={"name": "root"}).status_code == 422

    def test_assign_and_remove(self, client, admin_headers, user, db):
        editor_id = db.query(models.Role).filter(models.Role.name == "editor").one().role_id
        user_id = user[1]["user_id"]

        assigned = client.post(f"/cms/roles/{editor_id}/assign", headers=admin_headers, json={"user_id": user_id})
        assert sorted(assigned.json()["roles"]) == ["editor", "user"]

        removed = client.post(f"/cms/roles/{editor_id}/remove", headers=admin_headers, json={"user_id": user_id})
        assert removed.json()["roles"] == ["user"]


class TestAdminUsers:
    def test_create_with_roles_and_search(self, client, admin_headers):
        created = client.post("/cms/users/", headers=admin_headers, json={
            "name": "Editor Person", "email": "editor@example.com", "password": "password123", "roles": ["editor"],
        })
        assert created.status_code == 201
        assert created.json()["roles"] == ["editor"]

        found = client.get("/cms/users/?role=editor", headers=admin_headers).json()
        assert [u["email"] for u in found["users"]] == ["editor@example.com"]
        assert client.get("/cms/users/?search=Editor", headers=admin_headers).json()["total"] == 1

        login = client.post("/auth/login", json={"email": "editor@example.com", "password": "password123"})
        assert login.status_code == 200

    def test_duplicate_email(self, client, admin_headers, user):
        response = client.post("/cms/users/", headers=admin_headers, json={
            "name": "Copy", "email": "user@example.com", "password": "password123",
        })
        assert response.status_code == 400

    def test_update(self, client, admin_headers, user):
        user_id = user[1]["user_id"]
        updated = client.put(f"/cms/users/{user_id}", headers=admin_headers, json={"name": "Renamed"})
        assert updated.json()["name"] == "Renamed"

    def test_delete_clears_gamification_rows(self, client, admin_headers, auth_headers, user, db):
        client.post("/gamification/spin", headers=auth_headers)
        user_id = user[1]["user_id"]

        assert client.delete(f"/cms/users/{user_id}", headers=admin_headers).status_code == 204
        assert db.query(models.DailySpin).count() == 0
        assert db.query(models.User).filter(models.User.user_id == user_id).first() is None

    def test_cannot_delete_self(self, client, admin_headers, db):
        admin_id = db.query(models.User).filter(models.User.email == "admin@example.com").one().user_id
        assert client.delete(f"/cms/users/{admin_id}", headers=admin_headers).status_code == 422
