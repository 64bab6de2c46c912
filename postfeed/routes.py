"""
HTTP routes for the REST surface: auth, feed and image uploads.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Form, Query, Request, WebSocket, WebSocketDisconnect
from starlette.datastructures import UploadFile

from postfeed import auth, feed
from postfeed.config import get_settings
from postfeed.db import DbClient
from postfeed.dependencies import (
    get_db_client,
    get_realtime,
    get_storage_client,
    require_user_id,
)
from postfeed.errors import FeedError
from postfeed.realtime import Broadcaster, get_broadcaster
from postfeed.schemas import (
    CreatePostResponse,
    CreatorOut,
    ErrorResponse,
    ImageUploadResponse,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    PostListResponse,
    PostOut,
    PostResponse,
    SignupRequest,
    SignupResponse,
    StatusResponse,
    StatusUpdateRequest,
)
from postfeed.storage import StorageClient, accepts

logger = logging.getLogger(__name__)

router = APIRouter(
    responses={
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    }
)


async def _store_upload(upload: object, storage: StorageClient) -> Optional[str]:
    """Persist an uploaded image and return its path, or None if there is none."""
    if not isinstance(upload, UploadFile) or not upload.filename:
        return None
    if not accepts(upload.content_type):
        logger.info(
            "Ignoring upload %s with content type %s",
            upload.filename,
            upload.content_type,
        )
        return None
    data = await upload.read()
    return storage.save_image(upload.filename, data, upload.content_type)


# ----------------- Auth -----------------


@router.put("/auth/signup", response_model=SignupResponse, status_code=201)
def signup(payload: SignupRequest, db: DbClient = Depends(get_db_client)):
    user = auth.signup(db, payload.email, payload.password, payload.name)
    return SignupResponse(message="User created!", user_id=user.user_id)


@router.post("/auth/login", response_model=LoginResponse)
def login(payload: LoginRequest, db: DbClient = Depends(get_db_client)):
    token, user_id = auth.login(db, payload.email, payload.password)
    return LoginResponse(token=token, user_id=user_id)


@router.get("/auth/status", response_model=StatusResponse)
def get_status(
    user_id: str = Depends(require_user_id),
    db: DbClient = Depends(get_db_client),
):
    status = auth.get_status(db, user_id)
    return StatusResponse(message="User status fetched.", status=status)


@router.patch("/auth/status", response_model=MessageResponse)
def update_status(
    payload: StatusUpdateRequest,
    user_id: str = Depends(require_user_id),
    db: DbClient = Depends(get_db_client),
):
    auth.update_status(db, user_id, payload.status)
    return MessageResponse(message="Status updated successfully.")


# ----------------- Feed -----------------


@router.get("/feed/posts", response_model=PostListResponse)
def get_posts(
    page: Optional[int] = Query(None),
    user_id: str = Depends(require_user_id),
    db: DbClient = Depends(get_db_client),
):
    items, total = feed.list_posts(db, page, per_page=get_settings().posts_per_page)
    return PostListResponse(
        message="Fetched posts successfully.",
        posts=[PostOut.from_record(post, creator) for post, creator in items],
        total_items=total,
    )


@router.post("/feed/post", response_model=CreatePostResponse, status_code=201)
async def create_post(
    request: Request,
    title: str = Form(""),
    content: str = Form(""),
    user_id: str = Depends(require_user_id),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
    broadcaster: Broadcaster = Depends(get_realtime),
):
    form = await request.form()
    image_url = await _store_upload(form.get("image"), storage)
    try:
        post, creator = await feed.create_post(
            db, broadcaster, user_id, title, content, image_url
        )
    except FeedError:
        if image_url:
            storage.clear_image(image_url)
        raise
    return CreatePostResponse(
        message="Post created successfully!",
        post=PostOut.from_record(post, creator),
        creator=CreatorOut.from_record(creator),
    )


@router.get("/feed/post/{post_id}", response_model=PostResponse)
def get_post(
    post_id: str,
    user_id: str = Depends(require_user_id),
    db: DbClient = Depends(get_db_client),
):
    post, creator = feed.get_post(db, post_id)
    return PostResponse(message="Post fetched.", post=PostOut.from_record(post, creator))


@router.put("/feed/post/{post_id}", response_model=PostResponse)
async def update_post(
    post_id: str,
    request: Request,
    title: str = Form(""),
    content: str = Form(""),
    user_id: str = Depends(require_user_id),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
    broadcaster: Broadcaster = Depends(get_realtime),
):
    form = await request.form()
    image = form.get("image")
    # `image` is either a new upload or the path of the image already stored.
    uploaded = None
    if isinstance(image, UploadFile):
        image_url = uploaded = await _store_upload(image, storage)
    else:
        image_url = image or None
    try:
        post, creator = await feed.update_post(
            db, storage, broadcaster, user_id, post_id, title, content, image_url
        )
    except FeedError:
        if uploaded:
            storage.clear_image(uploaded)
        raise
    return PostResponse(message="Post updated!", post=PostOut.from_record(post, creator))


@router.delete("/feed/post/{post_id}", response_model=MessageResponse)
async def delete_post(
    post_id: str,
    user_id: str = Depends(require_user_id),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
    broadcaster: Broadcaster = Depends(get_realtime),
):
    await feed.delete_post(db, storage, broadcaster, user_id, post_id)
    return MessageResponse(message="Deleted post.")


# ----------------- Images -----------------


@router.put(
    "/post-image", response_model=ImageUploadResponse, response_model_exclude_none=True
)
async def post_image(
    request: Request,
    user_id: str = Depends(require_user_id),
    storage: StorageClient = Depends(get_storage_client),
):
    form = await request.form()
    file_path = await _store_upload(form.get("image"), storage)
    if not file_path:
        return ImageUploadResponse(message="No file provided!")
    old_path = form.get("oldPath")
    if isinstance(old_path, str) and old_path:
        storage.clear_image(old_path)
    return ImageUploadResponse(message="File stored.", file_path=file_path)


# ----------------- Realtime -----------------


@router.websocket("/socket")
async def socket(websocket: WebSocket):
    broadcaster = get_broadcaster()
    await broadcaster.connect(websocket)
    try:
        while True:
            # Clients only listen; inbound frames are read to detect disconnects.
            await websocket.receive_text()
    except WebSocketDisconnect as exc:
        logger.info("Socket disconnected (code %s)", exc.code)
    finally:
        broadcaster.disconnect(websocket)
