"""Async PostgreSQL repositories for posts and users with keyset pagination"""

from keyset_repo.db_context import DatabaseManager, transactional
from keyset_repo.filters import Filter
from keyset_repo.models import Post, PostUpdate, User, UserUpdate
from keyset_repo.paginator import Direction, KeysetPaginator, PageSource, PageState
from keyset_repo.post_repository import PostRepository
from keyset_repo.repository import Repository, RepositoryConfig
from keyset_repo.user_repository import UserRepository

__all__ = [
    "DatabaseManager",
    "Direction",
    "Filter",
    "KeysetPaginator",
    "PageSource",
    "PageState",
    "Post",
    "PostRepository",
    "PostUpdate",
    "Repository",
    "RepositoryConfig",
    "User",
    "UserRepository",
    "UserUpdate",
    "transactional",
]
