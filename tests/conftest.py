import asyncpg
import pytest
import pytest_asyncio
from testcontainers.postgres import PostgresContainer

from keyset_repo.db_context import DatabaseManager

TEST_POOL = "test_db"

SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id BIGSERIAL PRIMARY KEY,
    email VARCHAR(255) NOT NULL UNIQUE,
    encrypted_password VARCHAR(255) NOT NULL DEFAULT '',
    reset_password_token VARCHAR(255),
    reset_password_sent_at TIMESTAMPTZ,
    remember_created_at TIMESTAMPTZ,
    sign_in_count INTEGER NOT NULL DEFAULT 0,
    current_sign_in_at TIMESTAMPTZ,
    last_sign_in_at TIMESTAMPTZ,
    current_sign_in_ip VARCHAR(64),
    last_sign_in_ip VARCHAR(64),
    role VARCHAR(50),
    created_at TIMESTAMPTZ NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL
);
CREATE TABLE IF NOT EXISTS posts (
    id BIGSERIAL PRIMARY KEY,
    title VARCHAR(255) NOT NULL,
    content TEXT NOT NULL,
    user_id BIGINT,
    created_at TIMESTAMPTZ NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL
);
"""


@pytest.fixture(scope="session")
def postgres_container():
    """Start a PostgreSQL test container for the session."""
    with PostgresContainer("postgres:17") as postgres:
        yield postgres


@pytest_asyncio.fixture
async def db_pool(postgres_container):
    """A fresh pool per test, registered as 'test_db', with empty tables."""
    host = postgres_container.get_container_host_ip()
    port = postgres_container.get_exposed_port(5432)
    dsn = f"postgresql://{postgres_container.username}:{postgres_container.password}@{host}:{port}/{postgres_container.dbname}"

    # A pool per test avoids sharing connections across event loops
    pool = await asyncpg.create_pool(dsn, min_size=1, max_size=5)
    async with pool.acquire() as conn:
        await conn.execute(SCHEMA)

    await DatabaseManager.add_pool(TEST_POOL, pool)

    yield pool

    async with pool.acquire() as conn:
        await conn.execute("TRUNCATE TABLE posts, users RESTART IDENTITY;")
    await DatabaseManager.close_pool(TEST_POOL)
