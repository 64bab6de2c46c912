"""
Signup, login and bearer-token handling.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from passlib.context import CryptContext

from postfeed.config import Settings, get_settings
from postfeed.db import DbClient, UserRecord
from postfeed.errors import FeedError
from postfeed.validation import check_user_input, normalize_email

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=12)


@dataclass
class AuthInfo:
    """Per-request authentication result; never raises on a bad token."""

    is_auth: bool = False
    user_id: Optional[str] = None

    def require(self) -> str:
        if not self.is_auth or not self.user_id:
            raise FeedError("Not authenticated.", 401)
        return self.user_id


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    return pwd_context.verify(password, hashed)


def create_token(user: UserRecord, settings: Optional[Settings] = None) -> str:
    settings = settings or get_settings()
    expires = datetime.now(timezone.utc) + timedelta(minutes=settings.jwt_expires_minutes)
    claims = {"email": user.email, "userId": user.user_id, "exp": expires}
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str, settings: Optional[Settings] = None) -> dict:
    settings = settings or get_settings()
    try:
        claims = jwt.decode(
            token, settings.jwt_secret, algorithms=[settings.jwt_algorithm]
        )
    except jwt.ExpiredSignatureError:
        raise FeedError("Not authenticated.", 401, data=[{"message": "Token expired."}])
    except jwt.InvalidTokenError:
        raise FeedError("Not authenticated.", 401)
    if not claims.get("userId"):
        raise FeedError("Not authenticated.", 401)
    return claims


def auth_from_header(
    authorization: Optional[str], settings: Optional[Settings] = None
) -> AuthInfo:
    if not authorization:
        return AuthInfo()
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return AuthInfo()
    try:
        claims = decode_token(token.strip(), settings)
    except FeedError:
        return AuthInfo()
    return AuthInfo(is_auth=True, user_id=claims["userId"])


def signup(db: DbClient, email: str, password: str, name: str) -> UserRecord:
    errors = check_user_input(email, password, name)
    if errors:
        raise FeedError("Validation failed.", 422, data=errors)
    email = normalize_email(email)
    if db.find_user_by_email(email):
        raise FeedError("User exists already!", 403)
    user = db.create_user(
        email=email, password=hash_password(password), name=name.strip()
    )
    logger.info("Created user %s", user.user_id)
    return user


def login(db: DbClient, email: str, password: str) -> tuple[str, str]:
    user = db.find_user_by_email(normalize_email(email or "") or email)
    if not user:
        raise FeedError("A user with this email could not be found.", 401)
    if not verify_password(password or "", user.password):
        raise FeedError("Wrong password!", 401)
    return create_token(user), user.user_id


def get_user(db: DbClient, user_id: str) -> UserRecord:
    user = db.get_user(user_id)
    if not user:
        raise FeedError("Could not find user.", 404)
    return user


def get_status(db: DbClient, user_id: str) -> str:
    return get_user(db, user_id).status


def update_status(db: DbClient, user_id: str, status: Optional[str]) -> UserRecord:
    if not status or not status.strip():
        raise FeedError("No status to update with.", 422)
    user = db.update_user_status(user_id, status.strip())
    if not user:
        raise FeedError("User does not exist.", 404)
    return user
