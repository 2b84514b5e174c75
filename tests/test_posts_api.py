import logging
from datetime import datetime
from typing import List, Tuple

from fastapi.testclient import TestClient

from src.api.errors import StorageError
from src.api.main import create_app
from src.api.models import PostChanges, PostEntity
from src.api.repositories import PostRepository, get_repository


def create_post_payload(
    title="Test Post",
    content="Testing the API",
    author="Developer",
    status=None,
):
    payload = {
        "title": title,
        "content": content,
        "author": author,
    }
    if status is not None:
        payload["status"] = status
    return payload


def assert_post_shape(post: dict):
    for key in ["id", "title", "content", "author", "status", "created_at", "updated_at"]:
        assert key in post
    assert isinstance(post["id"], int)
    assert isinstance(post["title"], str)
    assert isinstance(post["status"], str)
    # Pydantic serializes UTC as a trailing 'Z'
    datetime.fromisoformat(post["created_at"].replace("Z", "+00:00"))
    datetime.fromisoformat(post["updated_at"].replace("Z", "+00:00"))


def parse_ts(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def assert_error(res, status_code: int):
    assert res.status_code == status_code
    body = res.json()
    assert body["status"] == status_code
    assert isinstance(body["error"], str)
    return body


class TestHealth:
    def test_health_check(self, client: TestClient):
        res = client.get("/health")
        assert res.status_code == 200
        assert res.json() == {"status": "ok"}

    def test_root(self, client: TestClient):
        res = client.get("/")
        assert res.status_code == 200
        assert res.json()["message"] == "Blog API Server"


class TestPostsCRUD:
    def test_create_post_defaults(self, client: TestClient):
        res = client.post("/posts", json=create_post_payload())
        assert res.status_code == 201
        post = res.json()
        assert_post_shape(post)
        assert post["title"] == "Test Post"
        assert post["status"] == "draft"
        assert post["created_at"] == post["updated_at"]

    def test_create_post_with_status(self, client: TestClient):
        res = client.post("/posts", json=create_post_payload(status="published"))
        assert res.status_code == 201
        assert res.json()["status"] == "published"

    def test_create_then_get_round_trip(self, client: TestClient):
        created = client.post("/posts", json=create_post_payload(title="Round trip")).json()

        res = client.get(f"/posts/{created['id']}")
        assert res.status_code == 200
        assert res.json() == created

    def test_get_missing_post(self, client: TestClient):
        res = client.get("/posts/999999")
        body = assert_error(res, 404)
        assert body["error"] == "Post not found"

    def test_update_preserves_unsupplied_fields(self, client: TestClient):
        created = client.post("/posts", json=create_post_payload(title="Original", status="review")).json()

        res = client.put(f"/posts/{created['id']}", json={"content": "x"})
        assert res.status_code == 200
        updated = res.json()
        assert updated["content"] == "x"
        assert updated["title"] == "Original"
        assert updated["author"] == created["author"]
        assert updated["status"] == "review"
        assert updated["created_at"] == created["created_at"]
        assert parse_ts(updated["updated_at"]) > parse_ts(created["updated_at"])

        # The stored row matches the response
        assert client.get(f"/posts/{created['id']}").json() == updated

    def test_update_empty_body_refreshes_updated_at(self, client: TestClient):
        created = client.post("/posts", json=create_post_payload()).json()

        updated = client.put(f"/posts/{created['id']}", json={}).json()
        assert updated["title"] == created["title"]
        assert parse_ts(updated["updated_at"]) > parse_ts(created["updated_at"])

    def test_update_null_fields_are_ignored(self, client: TestClient):
        created = client.post("/posts", json=create_post_payload(title="Keep me")).json()

        res = client.put(f"/posts/{created['id']}", json={"title": None, "status": "published"})
        assert res.status_code == 200
        assert res.json()["title"] == "Keep me"
        assert res.json()["status"] == "published"

    def test_update_missing_post(self, client: TestClient):
        res = client.put("/posts/424242", json={"title": "Nope"})
        assert_error(res, 404)

    def test_delete_post(self, client: TestClient):
        pid = client.post("/posts", json=create_post_payload()).json()["id"]

        res_del = client.delete(f"/posts/{pid}")
        assert res_del.status_code == 204
        assert res_del.text == ""

        assert_error(client.get(f"/posts/{pid}"), 404)
        # Deleting again is a 404
        assert_error(client.delete(f"/posts/{pid}"), 404)

    def test_ids_beyond_integer_range_are_not_found(self, client: TestClient):
        big = 99999999999999999999
        assert_error(client.get(f"/posts/{big}"), 404)
        assert_error(client.put(f"/posts/{big}", json={"title": "Nope"}), 404)
        assert_error(client.delete(f"/posts/{big}"), 404)
        assert_error(client.get(f"/posts/-{big}"), 404)

    def test_api_prefix_alias(self, client: TestClient):
        created = client.post("/api/posts", json=create_post_payload(title="Aliased"))
        assert created.status_code == 201
        pid = created.json()["id"]

        assert client.get(f"/api/posts/{pid}").json()["title"] == "Aliased"
        assert client.get("/api/posts").json()["total"] == 1
        assert client.delete(f"/api/posts/{pid}").status_code == 204


class TestValidation:
    def test_short_title_rejected(self, client: TestClient):
        res = client.post("/posts", json={"title": "ab", "content": "x", "author": "me"})
        body = assert_error(res, 400)
        assert "at least 3 characters" in body["error"]
        # Nothing was stored
        assert client.get("/posts").json()["total"] == 0

    def test_three_character_title_accepted(self, client: TestClient):
        res = client.post("/posts", json={"title": "abc", "content": "x", "author": "me"})
        assert res.status_code == 201

    def test_empty_content_rejected(self, client: TestClient):
        res = client.post("/posts", json=create_post_payload(content=""))
        body = assert_error(res, 400)
        assert "Content cannot be empty" in body["error"]

    def test_empty_author_rejected(self, client: TestClient):
        res = client.post("/posts", json=create_post_payload(author=""))
        body = assert_error(res, 400)
        assert "Author cannot be empty" in body["error"]

    def test_missing_field_rejected(self, client: TestClient):
        res = client.post("/posts", json={"title": "Valid title", "content": "x"})
        body = assert_error(res, 400)
        assert body["error"] == "Author is required"

    def test_update_short_title_rejected(self, client: TestClient):
        created = client.post("/posts", json=create_post_payload(title="Original")).json()

        res = client.put(f"/posts/{created['id']}", json={"title": "ab"})
        body = assert_error(res, 400)
        assert "at least 3 characters" in body["error"]
        assert client.get(f"/posts/{created['id']}").json()["title"] == "Original"

    def test_update_validation_precedes_lookup(self, client: TestClient):
        res = client.put("/posts/999999", json={"title": "ab"})
        assert_error(res, 400)

    def test_non_integer_id_rejected(self, client: TestClient):
        assert_error(client.get("/posts/abc"), 400)

    def test_malformed_json_rejected(self, client: TestClient):
        res = client.post("/posts", content="{not json", headers={"Content-Type": "application/json"})
        body = assert_error(res, 400)
        assert body["error"] == "Invalid JSON body"


class TestPagination:
    def seed_posts(self, client: TestClient, count: int) -> List[int]:
        ids = []
        for i in range(count):
            res = client.post("/posts", json=create_post_payload(title=f"Post {i}"))
            assert res.status_code == 201
            ids.append(res.json()["id"])
        return ids

    def test_first_page_returns_newest(self, client: TestClient):
        ids = self.seed_posts(client, 3)

        res = client.get("/posts?page=1&per_page=2")
        assert res.status_code == 200
        body = res.json()
        assert body["total"] == 3
        assert body["page"] == 1
        assert body["per_page"] == 2
        assert [p["id"] for p in body["data"]] == [ids[2], ids[1]]

        second = client.get("/posts?page=2&per_page=2").json()
        assert [p["id"] for p in second["data"]] == [ids[0]]

    def test_defaults(self, client: TestClient):
        self.seed_posts(client, 2)
        body = client.get("/posts").json()
        assert body["page"] == 1
        assert body["per_page"] == 10
        assert len(body["data"]) == 2

    def test_page_and_per_page_are_clamped(self, client: TestClient):
        self.seed_posts(client, 2)

        body = client.get("/posts?page=0&per_page=0").json()
        assert body["page"] == 1
        assert body["per_page"] == 1
        assert len(body["data"]) == 1

        body = client.get("/posts?page=-5&per_page=1000").json()
        assert body["page"] == 1
        assert body["per_page"] == 100

    def test_page_past_end_is_empty(self, client: TestClient):
        self.seed_posts(client, 2)
        body = client.get("/posts?page=50&per_page=10").json()
        assert body["data"] == []
        assert body["total"] == 2

    def test_listing_is_repeatable(self, client: TestClient):
        self.seed_posts(client, 4)
        first = client.get("/posts?page=1&per_page=3").json()
        second = client.get("/posts?page=1&per_page=3").json()
        assert first == second

    def test_huge_page_is_empty(self, client: TestClient):
        self.seed_posts(client, 1)
        res = client.get(f"/posts?page={10**18}&per_page=100")
        assert res.status_code == 200
        body = res.json()
        assert body["data"] == []
        assert body["total"] == 1

    def test_non_integer_page_rejected(self, client: TestClient):
        assert_error(client.get("/posts?page=first"), 400)


class FailingRepository(PostRepository):
    """Repository whose every operation hits a storage fault."""

    detail = "disk I/O error at /var/lib/blog/blog.db"

    def _fail(self):
        raise StorageError(self.detail)

    def create(self, title: str, content: str, author: str, status: str = "draft") -> PostEntity:
        self._fail()

    def get(self, post_id: int) -> PostEntity:
        self._fail()

    def update(self, post_id: int, changes: PostChanges) -> PostEntity:
        self._fail()

    def delete(self, post_id: int) -> int:
        self._fail()

    def count(self) -> int:
        self._fail()

    def list(self, page: int, per_page: int) -> Tuple[List[PostEntity], int]:
        self._fail()


class TestErrorMapping:
    def test_storage_faults_map_to_500_without_leaking(self, app, client: TestClient, caplog):
        app.dependency_overrides[get_repository] = lambda: FailingRepository()
        try:
            responses = [
                client.get("/posts"),
                client.get("/posts/1"),
                client.post("/posts", json=create_post_payload()),
                client.put("/posts/1", json={"content": "x"}),
                client.delete("/posts/1"),
            ]
        finally:
            app.dependency_overrides.clear()

        for res in responses:
            body = assert_error(res, 500)
            assert body["error"] == "Internal server error"
            assert "/var/lib" not in res.text
        assert FailingRepository.detail in caplog.text

    def test_validation_checked_before_storage(self, app, client: TestClient):
        app.dependency_overrides[get_repository] = lambda: FailingRepository()
        try:
            res = client.post("/posts", json={"title": "ab", "content": "x", "author": "me"})
        finally:
            app.dependency_overrides.clear()
        assert_error(res, 400)

    def test_unknown_route_uses_error_shape(self, client: TestClient):
        body = assert_error(client.get("/nope"), 404)
        assert body["error"] == "Not Found"

    def test_wrong_method_uses_error_shape(self, client: TestClient):
        assert_error(client.patch("/posts/1", json={}), 405)


class TestLogging:
    def test_log_level_applied_on_startup(self, settings_factory, tmp_path):
        root = logging.getLogger()
        previous = root.level
        try:
            app = create_app(settings_factory(tmp_path / "blog.db", log_level="WARNING"))
            with TestClient(app) as c:
                assert root.level == logging.WARNING
                assert c.get("/health").status_code == 200
        finally:
            root.setLevel(previous)

    def test_building_app_leaves_logging_untouched(self, settings_factory, tmp_path):
        root = logging.getLogger()
        previous = root.level
        try:
            root.setLevel(logging.ERROR)
            create_app(settings_factory(tmp_path / "blog.db", log_level="DEBUG"))
            assert root.level == logging.ERROR
        finally:
            root.setLevel(previous)
