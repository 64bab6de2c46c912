"""
Pydantic schemas for the REST surface.

Field aliases keep the JSON contract the feed clients already speak
(`_id`, `imageUrl`, `createdAt`, ...).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from postfeed.db import PostRecord, UserRecord


class AliasedModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SignupRequest(BaseModel):
    email: str = Field(..., max_length=254)
    password: str = Field(..., max_length=128)
    name: str = Field(..., max_length=128)


class SignupResponse(AliasedModel):
    message: str
    user_id: str = Field(alias="userId")


class LoginRequest(BaseModel):
    email: str
    password: str


class LoginResponse(AliasedModel):
    token: str
    user_id: str = Field(alias="userId")


class StatusUpdateRequest(BaseModel):
    status: Optional[str] = Field(default=None, max_length=256)


class StatusResponse(BaseModel):
    message: str
    status: str


class MessageResponse(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    message: str
    data: Optional[Any] = None


class CreatorOut(AliasedModel):
    id: str = Field(alias="_id")
    name: str

    @classmethod
    def from_record(cls, user: UserRecord) -> "CreatorOut":
        return cls(id=user.user_id, name=user.name)


class PostOut(AliasedModel):
    id: str = Field(alias="_id")
    title: str
    content: str
    image_url: str = Field(alias="imageUrl")
    # A bare id when the creator no longer exists.
    creator: Union[CreatorOut, str]
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")

    @classmethod
    def from_record(
        cls, post: PostRecord, creator: Optional[UserRecord] = None
    ) -> "PostOut":
        return cls(
            id=post.post_id,
            title=post.title,
            content=post.content,
            image_url=post.image_url,
            creator=CreatorOut.from_record(creator) if creator else post.creator_id,
            created_at=post.created_at,
            updated_at=post.updated_at,
        )


class PostListResponse(AliasedModel):
    message: str
    posts: list[PostOut]
    total_items: int = Field(alias="totalItems")


class PostResponse(BaseModel):
    message: str
    post: PostOut


class CreatePostResponse(BaseModel):
    message: str
    post: PostOut
    creator: CreatorOut


class ImageUploadResponse(AliasedModel):
    message: str
    file_path: Optional[str] = Field(default=None, alias="filePath")
