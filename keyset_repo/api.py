"""
JSON endpoints listing and showing posts.

The list endpoint is stateless: each response carries the page state
(page index and boundary ids) and the client sends it back together with a
direction to move to the previous, current or next page.

Run with: uvicorn keyset_repo.api:app
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from keyset_repo._logging import configure_logging, logger
from keyset_repo.config import Settings, get_settings
from keyset_repo.db_context import DatabaseManager
from keyset_repo.exceptions import (
    BoundaryNotSetError,
    CountQueryFailedError,
    InvalidDirectionError,
    InvalidIdError,
    NoNextPageError,
    NoPreviousPageError,
    PageOutOfRangeError,
    RangeQueryFailedError,
)
from keyset_repo.filters import Filter
from keyset_repo.models import Post
from keyset_repo.paginator import PageState
from keyset_repo.post_repository import PostRepository

POST_NOT_FOUND = "Post not found or some error occurred!"


class PostListResponse(BaseModel):
    data: list[Post]
    page: PageState


class PostResponse(BaseModel):
    data: Post


async def transaction_scope(
    settings: Settings = Depends(get_settings),
) -> AsyncIterator[None]:
    """Run the request inside a transaction on the configured pool"""
    async with DatabaseManager.transaction(settings.pool_name):
        yield


def get_post_repository() -> PostRepository:
    return PostRepository()


router = APIRouter(dependencies=[Depends(transaction_scope)])


@router.get("/posts", response_model=PostListResponse)
async def list_posts(
    direction: str = "current",
    page: int = Query(default=0, ge=0),
    per_page: int | None = Query(default=None, ge=1),
    first_id: int | None = None,
    last_id: int | None = None,
    order: str = "asc",
    user_id: int | None = None,
    repo: PostRepository = Depends(get_post_repository),
    settings: Settings = Depends(get_settings),
) -> PostListResponse:
    """A page of posts, navigated relative to the page the client last saw"""
    size = min(per_page or settings.default_per_page, settings.max_per_page)
    where = Filter.of("user_id = $1", user_id) if user_id is not None else None

    try:
        paginator = repo.resume_paginator(
            {"id": order},
            page_index=page,
            first_key=first_id,
            last_key=last_id,
            where=where,
            per_page=size,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e

    try:
        posts = await paginator.get_page(direction)
    except InvalidDirectionError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message) from e
    except (
        NoNextPageError, NoPreviousPageError, PageOutOfRangeError, BoundaryNotSetError
    ) as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message) from e

    return PostListResponse(data=posts, page=paginator.snapshot())


@router.get("/posts/{post_id}", response_model=PostResponse)
async def show_post(
    post_id: int, repo: PostRepository = Depends(get_post_repository)
) -> PostResponse:
    try:
        post = await repo.find_by_id(post_id)
    except InvalidIdError:
        post = None
    if post is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=POST_NOT_FOUND)
    return PostResponse(data=post)


async def storage_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Storage query failed", extra={"path": request.url.path, "error": str(exc)})
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Posts not found or some error occurred!"},
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level)
        await DatabaseManager.create_pool(settings)
        try:
            yield
        finally:
            await DatabaseManager.close_pool(settings.pool_name)

    app = FastAPI(title="keyset_repo posts", lifespan=lifespan)
    app.include_router(router)
    app.add_exception_handler(CountQueryFailedError, storage_error_handler)
    app.add_exception_handler(RangeQueryFailedError, storage_error_handler)
    return app


app = create_app()
