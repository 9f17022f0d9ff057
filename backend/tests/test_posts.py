"""Tests for posts and comments."""
import pytest
from fastapi.testclient import TestClient

from archive.exceptions import PostNotFound
from archive.main import create_app
from archive.posts.service import PostService


@pytest.fixture
def service(tmp_path):
    post_service = PostService(str(tmp_path / "posts.duckdb"))
    yield post_service
    post_service.close()


class TestPostService:
    """Tests for the DuckDB-backed PostService."""

    def test_create_and_get(self, service):
        post = service.create_post("Hello", "First post", author_id="user-1", author_login="alice")

        found = service.get_post(post.id)
        assert found == post
        assert found.author_login == "alice"

    def test_list_in_creation_order(self, service):
        for title in ("b", "a", "c"):
            service.create_post(title, "body", author_id="user-1", author_login="alice")

        assert [post.title for post in service.list_posts()] == ["b", "a", "c"]

    def test_list_empty(self, service):
        assert service.list_posts() == []

    def test_missing_post(self, service):
        with pytest.raises(PostNotFound):
            service.get_post("nope")

    def test_thread_has_only_its_comments(self, service):
        first = service.create_post("one", "body", author_id="user-1", author_login="alice")
        second = service.create_post("two", "body", author_id="user-1", author_login="alice")
        service.add_comment(first.id, "nice", author_id="user-2", author_login="bob")
        service.add_comment(second.id, "other", author_id="user-2", author_login="bob")
        service.add_comment(first.id, "thanks", author_id="user-1", author_login="alice")

        thread = service.get_thread(first.id)

        assert thread.post == first
        assert [comment.body for comment in thread.comments] == ["nice", "thanks"]

    def test_comment_on_missing_post(self, service):
        with pytest.raises(PostNotFound):
            service.add_comment("nope", "hello", author_id="user-1", author_login="alice")
        assert service.list_comments("nope") == []

    def test_data_survives_reopen(self, tmp_path):
        path = str(tmp_path / "reopen.duckdb")
        first = PostService(path)
        post = first.create_post("kept", "body", author_id="user-1", author_login="alice")
        first.close()

        second = PostService(path)
        try:
            assert second.get_post(post.id).title == "kept"
        finally:
            second.close()


class TestPostRoutes:
    """Tests for /post and /comment."""

    @pytest.mark.parametrize(
        "method, path, body",
        [
            ("GET", "/post", None),
            ("GET", "/post/some-id", None),
            ("POST", "/post", {"title": "t", "body": "b"}),
            ("POST", "/comment", {"post_id": "some-id", "body": "b"}),
        ],
    )
    def test_routes_are_gated(self, client, method, path, body):
        response = client.request(method, path, json=body, follow_redirects=False)

        assert response.status_code == 302
        assert response.headers["location"] == "/"

    def test_anonymous_post_is_not_stored(self, client):
        client.post("/post", json={"title": "t", "body": "b"}, follow_redirects=False)

        client.post("/api/auth/login", json={"login": "alice", "password": "wonderland"})
        assert client.get("/post").json() == []

    def test_create_post_uses_session_author(self, logged_in):
        response = logged_in.post("/post", json={"title": "Hello", "body": "First post"})

        assert response.status_code == 201
        post = response.json()
        assert post["title"] == "Hello"
        assert post["author_id"] == "user-1"
        assert post["author_login"] == "alice"
        assert post["id"]

    def test_create_post_validates_body(self, logged_in):
        response = logged_in.post("/post", json={"title": "", "body": "b"})
        assert response.status_code == 422

    def test_list_posts(self, logged_in):
        logged_in.post("/post", json={"title": "one", "body": "b"})
        logged_in.post("/post", json={"title": "two", "body": "b"})

        response = logged_in.get("/post")

        assert response.status_code == 200
        assert [post["title"] for post in response.json()] == ["one", "two"]

    def test_view_post_with_comments(self, logged_in):
        post_id = logged_in.post("/post", json={"title": "Hello", "body": "b"}).json()["id"]

        comment = logged_in.post("/comment", json={"post_id": post_id, "body": "Nice"})
        assert comment.status_code == 201
        assert comment.json()["author_login"] == "alice"

        thread = logged_in.get(f"/post/{post_id}").json()
        assert thread["post"]["id"] == post_id
        assert [c["body"] for c in thread["comments"]] == ["Nice"]

    def test_view_missing_post(self, logged_in):
        response = logged_in.get("/post/nope")

        assert response.status_code == 404
        assert response.json() == {"err": "No post exists"}

    def test_comment_on_missing_post(self, logged_in):
        response = logged_in.post("/comment", json={"post_id": "nope", "body": "hi"})

        assert response.status_code == 404
        assert response.json() == {"err": "No post exists"}

    def test_not_ready_before_startup(self, config):
        # No `with`: the lifespan never runs, so the document database stays closed.
        client = TestClient(create_app(config))
        client.post("/api/auth/login", json={"login": "alice", "password": "wonderland"})

        response = client.get("/post")

        assert response.status_code == 503
        assert response.json() == {"err": "Document store not ready"}
