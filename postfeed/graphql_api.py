"""
GraphQL surface mounted at /graphql.

Resolvers are thin adapters over `postfeed.auth` and `postfeed.feed`. A
`FeedError` raised by an operation is reported with its status code and
validation data under the error's `extensions`.
"""

from typing import Optional

import strawberry
from fastapi import Depends
from strawberry.fastapi import GraphQLRouter
from strawberry.types import Info

from postfeed import auth, feed
from postfeed.auth import AuthInfo
from postfeed.config import get_settings
from postfeed.db import DbClient, PostRecord, UserRecord
from postfeed.dependencies import (
    get_auth,
    get_db_client,
    get_realtime,
    get_storage_client,
)
from postfeed.realtime import Broadcaster
from postfeed.storage import StorageClient

UNSET_IMAGE_VALUES = ("", "undefined", "null")


@strawberry.type
class User:
    id: strawberry.ID = strawberry.field(name="_id")
    email: str
    name: str
    status: str
    post_ids: strawberry.Private[list[str]]

    @strawberry.field
    def posts(self, info: Info) -> list["Post"]:
        db: DbClient = info.context["db"]
        records = [db.get_post(post_id) for post_id in self.post_ids]
        return [
            to_post(record, db.get_user(record.creator_id))
            for record in records
            if record
        ]


@strawberry.type
class Post:
    id: strawberry.ID = strawberry.field(name="_id")
    title: str
    content: str
    image_url: str
    creator: Optional[User]
    created_at: str
    updated_at: str


@strawberry.type
class AuthData:
    token: str
    user_id: str


@strawberry.type
class PostData:
    posts: list[Post]
    total_posts: int


@strawberry.input
class UserInputData:
    email: str
    name: str
    password: str


@strawberry.input
class PostInputData:
    title: str
    content: str
    image_url: Optional[str] = None


def to_user(record: UserRecord) -> User:
    return User(
        id=strawberry.ID(record.user_id),
        email=record.email,
        name=record.name,
        status=record.status,
        post_ids=list(record.posts),
    )


def to_post(record: PostRecord, creator: Optional[UserRecord]) -> Post:
    return Post(
        id=strawberry.ID(record.post_id),
        title=record.title,
        content=record.content,
        image_url=record.image_url,
        creator=to_user(creator) if creator else None,
        created_at=record.created_at.isoformat(),
        updated_at=record.updated_at.isoformat(),
    )


def _db(info: Info) -> DbClient:
    return info.context["db"]


def _user_id(info: Info) -> str:
    auth_info: AuthInfo = info.context["auth"]
    return auth_info.require()


@strawberry.type
class Query:
    @strawberry.field
    def login(self, info: Info, email: str, password: str) -> AuthData:
        token, user_id = auth.login(_db(info), email, password)
        return AuthData(token=token, user_id=user_id)

    @strawberry.field
    def posts(self, info: Info, page: Optional[int] = None) -> PostData:
        _user_id(info)
        items, total = feed.list_posts(
            _db(info), page, per_page=get_settings().posts_per_page
        )
        return PostData(
            posts=[to_post(post, creator) for post, creator in items],
            total_posts=total,
        )

    @strawberry.field
    def post(self, info: Info, id: strawberry.ID) -> Post:
        _user_id(info)
        post, creator = feed.get_post(_db(info), str(id))
        return to_post(post, creator)

    @strawberry.field
    def user(self, info: Info) -> User:
        return to_user(auth.get_user(_db(info), _user_id(info)))


@strawberry.type
class Mutation:
    @strawberry.mutation
    def create_user(self, info: Info, user_input: UserInputData) -> User:
        user = auth.signup(
            _db(info), user_input.email, user_input.password, user_input.name
        )
        return to_user(user)

    @strawberry.mutation
    async def create_post(self, info: Info, post_input: PostInputData) -> Post:
        user_id = _user_id(info)
        post, creator = await feed.create_post(
            _db(info),
            info.context["broadcaster"],
            user_id,
            post_input.title,
            post_input.content,
            post_input.image_url,
        )
        return to_post(post, creator)

    @strawberry.mutation
    async def update_post(
        self, info: Info, id: strawberry.ID, post_input: PostInputData
    ) -> Post:
        user_id = _user_id(info)
        image_url = post_input.image_url
        if image_url in UNSET_IMAGE_VALUES:
            image_url = None
        post, creator = await feed.update_post(
            _db(info),
            info.context["storage"],
            info.context["broadcaster"],
            user_id,
            str(id),
            post_input.title,
            post_input.content,
            image_url,
            keep_image=True,
        )
        return to_post(post, creator)

    @strawberry.mutation
    async def delete_post(self, info: Info, id: strawberry.ID) -> bool:
        user_id = _user_id(info)
        return await feed.delete_post(
            _db(info),
            info.context["storage"],
            info.context["broadcaster"],
            user_id,
            str(id),
        )

    @strawberry.mutation
    def update_status(self, info: Info, status: str) -> str:
        user = auth.update_status(_db(info), _user_id(info), status)
        return user.status


schema = strawberry.Schema(query=Query, mutation=Mutation)


async def get_context(
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
    broadcaster: Broadcaster = Depends(get_realtime),
    auth_info: AuthInfo = Depends(get_auth),
) -> dict:
    return {
        "db": db,
        "storage": storage,
        "broadcaster": broadcaster,
        "auth": auth_info,
    }


def create_graphql_router() -> GraphQLRouter:
    return GraphQLRouter(schema, context_getter=get_context, graphql_ide="graphiql")
