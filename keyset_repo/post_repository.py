from keyset_repo.models import Post, PostUpdate, User
from keyset_repo.repository import Repository, RepositoryConfig


class PostRepository(Repository[Post, Post, PostUpdate]):
    def __init__(self, config: RepositoryConfig | None = None):
        super().__init__(
            entity_schema_class=Post,
            entity_domain_class=Post,
            update_class=PostUpdate,
            table_name="posts",
            config=config,
        )

    async def for_user(self, user_id: int) -> list[Post]:
        """Posts written by a user, oldest first"""
        return await self.where("user_id", user_id).order_by_asc("id").get()

    async def user_of(self, post: Post) -> User | None:
        """The author of a post (belongs_to)"""
        if post.user_id is None:
            return None
        from keyset_repo.user_repository import UserRepository

        return await UserRepository(self.config).find_by_id(post.user_id)
