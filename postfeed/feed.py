"""
Post operations shared by the REST controllers and GraphQL resolvers.

Every change is broadcast as a `posts` event with an `action` of `create`,
`update` or `delete`.
"""

from __future__ import annotations

import logging
from typing import Optional

from postfeed.db import DbClient, PostRecord, UserRecord
from postfeed.errors import FeedError
from postfeed.realtime import POSTS_EVENT, Broadcaster
from postfeed.storage import StorageClient
from postfeed.validation import check_post_input

logger = logging.getLogger(__name__)

INVALID_POST_INPUT = "Validation failed, entered data is incorrect."


def _check_post_input(title: str, content: str) -> None:
    errors = check_post_input(title, content)
    if errors:
        raise FeedError(INVALID_POST_INPUT, 422, data=errors)


def _load_post(db: DbClient, post_id: str) -> PostRecord:
    post = db.get_post(post_id)
    if not post:
        raise FeedError("Could not find post.", 404)
    return post


def _check_creator(post: PostRecord, user_id: str) -> None:
    if post.creator_id != user_id:
        raise FeedError("Not authorized!", 403)


def list_posts(
    db: DbClient, page: Optional[int] = None, per_page: int = 2
) -> tuple[list[tuple[PostRecord, Optional[UserRecord]]], int]:
    page = page if page and page > 0 else 1
    total = db.count_posts()
    posts = db.list_posts(offset=(page - 1) * per_page, limit=per_page)
    return [(post, db.get_user(post.creator_id)) for post in posts], total


def get_post(db: DbClient, post_id: str) -> tuple[PostRecord, Optional[UserRecord]]:
    post = _load_post(db, post_id)
    return post, db.get_user(post.creator_id)


async def create_post(
    db: DbClient,
    broadcaster: Broadcaster,
    user_id: str,
    title: str,
    content: str,
    image_url: Optional[str],
) -> tuple[PostRecord, UserRecord]:
    _check_post_input(title, content)
    if not image_url:
        raise FeedError("No image provided.", 422)
    user = db.get_user(user_id)
    if not user:
        raise FeedError("Invalid user.", 401)

    post = db.create_post(
        title=title.strip(),
        content=content.strip(),
        image_url=image_url,
        creator_id=user.user_id,
    )
    db.add_user_post(user.user_id, post.post_id)
    logger.info("User %s created post %s", user.user_id, post.post_id)

    await broadcaster.emit(
        POSTS_EVENT, {"action": "create", "post": post.as_dict(user)}
    )
    return post, user


async def update_post(
    db: DbClient,
    storage: StorageClient,
    broadcaster: Broadcaster,
    user_id: str,
    post_id: str,
    title: str,
    content: str,
    image_url: Optional[str],
    keep_image: bool = False,
) -> tuple[PostRecord, Optional[UserRecord]]:
    """
    Validate, then replace the post's fields. With `keep_image` a missing
    `image_url` falls back to the image already stored on the post.
    """
    _check_post_input(title, content)
    if not image_url and not keep_image:
        raise FeedError("No file picked.", 422)
    post = _load_post(db, post_id)
    _check_creator(post, user_id)

    image_url = image_url or post.image_url
    if image_url != post.image_url:
        storage.clear_image(post.image_url)
    updated = db.update_post(
        post_id, title=title.strip(), content=content.strip(), image_url=image_url
    )
    if not updated:
        raise FeedError("Could not find post.", 404)
    creator = db.get_user(updated.creator_id)

    await broadcaster.emit(
        POSTS_EVENT, {"action": "update", "post": updated.as_dict(creator)}
    )
    return updated, creator


async def delete_post(
    db: DbClient,
    storage: StorageClient,
    broadcaster: Broadcaster,
    user_id: str,
    post_id: str,
) -> bool:
    post = _load_post(db, post_id)
    _check_creator(post, user_id)

    storage.clear_image(post.image_url)
    if not db.delete_post(post_id):
        return False
    db.remove_user_post(user_id, post_id)
    logger.info("User %s deleted post %s", user_id, post_id)

    await broadcaster.emit(POSTS_EVENT, {"action": "delete", "post": post_id})
    return True
