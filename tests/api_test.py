"""Tests for the posts HTTP endpoints, backed by an in-memory source"""

import pytest
from fastapi.testclient import TestClient

from keyset_repo.api import POST_NOT_FOUND, create_app, get_post_repository, transaction_scope
from keyset_repo.exceptions import InvalidIdError
from keyset_repo.paginator import KeysetPaginator
from tests.memory_source import MemorySource


class InMemoryPostRepository:
    """Stands in for PostRepository in the endpoints"""

    def __init__(self, source: MemorySource):
        self.source = source

    def resume_paginator(self, order_by, *, page_index, first_key, last_key, **kwargs):
        return KeysetPaginator.resume(
            self.source,
            page_index=page_index,
            first_key=first_key,
            last_key=last_key,
            order_by=order_by,
            **kwargs,
        )

    async def find_by_id(self, entity_id):
        if entity_id < 1:
            raise InvalidIdError(entity_id)
        return next((r for r in self.source.records if r["id"] == entity_id), None)


async def no_transaction():
    yield


@pytest.fixture
def source():
    return MemorySource(
        [
            {
                "id": i,
                "title": f"Post title number {i}",
                "content": "Some content that is long enough",
                "user_id": 1 if i <= 15 else 2,
            }
            for i in range(1, 26)
        ]
    )


@pytest.fixture
def client(source):
    app = create_app()
    app.dependency_overrides[transaction_scope] = no_transaction
    app.dependency_overrides[get_post_repository] = lambda: InMemoryPostRepository(source)
    return TestClient(app)


def ids(response) -> list[int]:
    return [post["id"] for post in response.json()["data"]]


class TestListPosts:
    """Test the paginated posts listing"""

    def test_first_page(self, client):
        """Test the first page and its page state"""
        response = client.get("/posts")

        assert response.status_code == 200
        assert ids(response) == list(range(1, 11))
        page = response.json()["page"]
        assert page["page_index"] == 0
        assert page["total_pages"] == 3
        assert page["total_items"] == 25
        assert (page["first_key"], page["last_key"]) == (1, 10)
        assert page["has_next"] is True
        assert page["has_previous"] is False

    def test_navigate_with_returned_state(self, client):
        """Test moving to the next page with the state of the previous response"""
        page = client.get("/posts", params={"order": "desc"}).json()["page"]

        response = client.get(
            "/posts",
            params={
                "order": "desc",
                "direction": "next",
                "page": page["page_index"],
                "first_id": page["first_key"],
                "last_id": page["last_key"],
            },
        )

        assert response.status_code == 200
        assert ids(response) == list(range(15, 5, -1))
        assert response.json()["page"]["page_index"] == 1

    def test_previous_on_first_page_is_not_found(self, client):
        """Test previous on the first page"""
        response = client.get("/posts", params={"direction": "previous"})

        assert response.status_code == 404

    def test_next_on_last_page_is_not_found(self, client):
        """Test next on the last page"""
        response = client.get(
            "/posts",
            params={"direction": "next", "page": 2, "first_id": 21, "last_id": 25},
        )

        assert response.status_code == 404

    def test_page_past_the_last_one_is_not_found(self, client):
        """Test a page index beyond the last page"""
        response = client.get("/posts", params={"page": 99, "first_id": 1, "last_id": 10})

        assert response.status_code == 404
        assert "out of range" in response.json()["detail"]

    def test_invalid_direction(self, client, source):
        """Test an unknown direction parameter"""
        response = client.get("/posts", params={"direction": "sideways"})

        assert response.status_code == 400
        assert source.count_calls == []

    def test_inconsistent_state(self, client):
        """Test a page index sent without boundary ids"""
        response = client.get("/posts", params={"page": 2})

        assert response.status_code == 400

    def test_filter_by_user(self, client):
        """Test listing the posts of one user"""
        response = client.get("/posts", params={"user_id": 2, "per_page": 4})

        assert ids(response) == [16, 17, 18, 19]
        assert response.json()["page"]["total_items"] == 10

    def test_per_page_is_capped(self, client):
        """Test that the page size is capped by the settings"""
        response = client.get("/posts", params={"per_page": 1000})

        assert response.json()["page"]["per_page"] == 100

    def test_storage_failure(self, client, source):
        """Test that storage failures answer 503"""
        source.count_error = ConnectionError("database went away")

        response = client.get("/posts")

        assert response.status_code == 503


class TestShowPost:
    """Test showing a single post"""

    def test_found(self, client):
        """Test an existing post"""
        response = client.get("/posts/7")

        assert response.status_code == 200
        assert response.json()["data"]["title"] == "Post title number 7"

    @pytest.mark.parametrize("post_id", [0, 999])
    def test_not_found(self, client, post_id):
        """Test invalid and missing ids"""
        response = client.get(f"/posts/{post_id}")

        assert response.status_code == 404
        assert response.json()["detail"] == POST_NOT_FOUND
