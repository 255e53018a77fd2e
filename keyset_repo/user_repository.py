from keyset_repo.models import Post, User, UserUpdate
from keyset_repo.post_repository import PostRepository
from keyset_repo.repository import Repository, RepositoryConfig


class UserRepository(Repository[User, User, UserUpdate]):
    def __init__(self, config: RepositoryConfig | None = None):
        super().__init__(
            entity_schema_class=User,
            entity_domain_class=User,
            update_class=UserUpdate,
            table_name="users",
            config=config,
        )

    async def find_by_email(self, email: str) -> User | None:
        return await self.find_by("email", email)

    async def get_posts(self, user_id: int) -> list[Post]:
        """Posts of a user (has_many)"""
        return await PostRepository(self.config).for_user(user_id)

    async def create_post(self, user_id: int, post: Post) -> Post:
        """Create a post owned by the user"""
        return await PostRepository(self.config).create(
            post.model_copy(update={"user_id": user_id})
        )
