"""
Integration tests run against a PostgreSQL test container.

Every test here gets the parent conftest's pool automatically.
"""

import pytest

from keyset_repo.post_repository import PostRepository
from keyset_repo.user_repository import UserRepository


@pytest.fixture(autouse=True)
def _database(db_pool):
    return db_pool


@pytest.fixture
def post_repo():
    return PostRepository()


@pytest.fixture
def user_repo():
    return UserRepository()
