"""
Database abstraction for users and posts.

Three implementations share the `DbClient` interface: an in-memory store for
development and tests, a SQLAlchemy store (Postgres, or SQLite for tests) and
a MongoDB document store.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional, Protocol

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import DESCENDING, MongoClient, ReturnDocument
from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    String,
    Text,
    create_engine,
    func,
    select,
)
from sqlalchemy.orm import Session, declarative_base, sessionmaker

DEFAULT_STATUS = "I am new!"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class DbClient(Protocol):
    """Interface for database access."""

    def create_user(self, email: str, password: str, name: str) -> "UserRecord":
        ...

    def get_user(self, user_id: str) -> Optional["UserRecord"]:
        ...

    def find_user_by_email(self, email: str) -> Optional["UserRecord"]:
        ...

    def update_user_status(
        self, user_id: str, status: str
    ) -> Optional["UserRecord"]:
        ...

    def add_user_post(self, user_id: str, post_id: str) -> None:
        ...

    def remove_user_post(self, user_id: str, post_id: str) -> None:
        ...

    def create_post(
        self, title: str, content: str, image_url: str, creator_id: str
    ) -> "PostRecord":
        ...

    def get_post(self, post_id: str) -> Optional["PostRecord"]:
        ...

    def list_posts(self, offset: int = 0, limit: int = 2) -> list["PostRecord"]:
        ...

    def count_posts(self) -> int:
        ...

    def update_post(
        self, post_id: str, *, title: str, content: str, image_url: str
    ) -> Optional["PostRecord"]:
        ...

    def delete_post(self, post_id: str) -> bool:
        ...


@dataclass
class UserRecord:
    user_id: str
    email: str
    password: str
    name: str
    status: str = DEFAULT_STATUS
    posts: list[str] = field(default_factory=list)


@dataclass
class PostRecord:
    post_id: str
    title: str
    content: str
    image_url: str
    creator_id: str
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    def as_dict(self, creator: Optional[UserRecord] = None) -> dict:
        if creator is not None:
            creator_json: dict | str = {"_id": creator.user_id, "name": creator.name}
        else:
            creator_json = self.creator_id
        return {
            "_id": self.post_id,
            "title": self.title,
            "content": self.content,
            "imageUrl": self.image_url,
            "creator": creator_json,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }


class InMemoryDbClient:
    """Simple in-memory database for development and tests."""

    def __init__(self):
        self.users: Dict[str, UserRecord] = {}
        self.posts: Dict[str, PostRecord] = {}

    def create_user(self, email: str, password: str, name: str) -> UserRecord:
        record = UserRecord(
            user_id=uuid.uuid4().hex, email=email, password=password, name=name
        )
        self.users[record.user_id] = record
        return record

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        return self.users.get(user_id)

    def find_user_by_email(self, email: str) -> Optional[UserRecord]:
        for user in self.users.values():
            if user.email == email:
                return user
        return None

    def update_user_status(self, user_id: str, status: str) -> Optional[UserRecord]:
        user = self.users.get(user_id)
        if user:
            user.status = status
        return user

    def add_user_post(self, user_id: str, post_id: str) -> None:
        user = self.users.get(user_id)
        if user and post_id not in user.posts:
            user.posts.append(post_id)

    def remove_user_post(self, user_id: str, post_id: str) -> None:
        user = self.users.get(user_id)
        if user and post_id in user.posts:
            user.posts.remove(post_id)

    def create_post(
        self, title: str, content: str, image_url: str, creator_id: str
    ) -> PostRecord:
        record = PostRecord(
            post_id=uuid.uuid4().hex,
            title=title,
            content=content,
            image_url=image_url,
            creator_id=creator_id,
        )
        self.posts[record.post_id] = record
        return record

    def get_post(self, post_id: str) -> Optional[PostRecord]:
        return self.posts.get(post_id)

    def list_posts(self, offset: int = 0, limit: int = 2) -> list[PostRecord]:
        # Insertion order breaks ties between equal timestamps.
        ordered = sorted(
            enumerate(self.posts.values()),
            key=lambda item: (item[1].created_at, item[0]),
            reverse=True,
        )
        return [post for _, post in ordered[offset : offset + limit]]

    def count_posts(self) -> int:
        return len(self.posts)

    def update_post(
        self, post_id: str, *, title: str, content: str, image_url: str
    ) -> Optional[PostRecord]:
        post = self.posts.get(post_id)
        if not post:
            return None
        post.title = title
        post.content = content
        post.image_url = image_url
        post.updated_at = _now()
        return post

    def delete_post(self, post_id: str) -> bool:
        return self.posts.pop(post_id, None) is not None


class SqlDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlDbClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    def _to_user_record(self, row: "UserRow") -> UserRecord:
        return UserRecord(
            user_id=row.user_id,
            email=row.email,
            password=row.password,
            name=row.name,
            status=row.status,
            posts=list(row.posts or []),
        )

    def _to_post_record(self, row: "PostRow") -> PostRecord:
        return PostRecord(
            post_id=row.post_id,
            title=row.title,
            content=row.content,
            image_url=row.image_url,
            creator_id=row.creator_id,
            created_at=_as_utc(row.created_at),
            updated_at=_as_utc(row.updated_at),
        )

    def create_user(self, email: str, password: str, name: str) -> UserRecord:
        with self.Session() as session:
            row = UserRow(
                user_id=uuid.uuid4().hex,
                email=email,
                password=password,
                name=name,
                status=DEFAULT_STATUS,
                posts=[],
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_user_record(row)

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        with self.Session() as session:
            row = session.get(UserRow, user_id)
            return self._to_user_record(row) if row else None

    def find_user_by_email(self, email: str) -> Optional[UserRecord]:
        with self.Session() as session:
            stmt = select(UserRow).where(UserRow.email == email).limit(1)
            row = session.execute(stmt).scalar_one_or_none()
            return self._to_user_record(row) if row else None

    def update_user_status(self, user_id: str, status: str) -> Optional[UserRecord]:
        with self.Session() as session:
            row = session.get(UserRow, user_id)
            if not row:
                return None
            row.status = status
            session.commit()
            return self._to_user_record(row)

    def add_user_post(self, user_id: str, post_id: str) -> None:
        with self.Session() as session:
            row = session.get(UserRow, user_id)
            if not row:
                return
            posts = list(row.posts or [])
            if post_id not in posts:
                # JSON columns only persist on reassignment.
                row.posts = posts + [post_id]
                session.commit()

    def remove_user_post(self, user_id: str, post_id: str) -> None:
        with self.Session() as session:
            row = session.get(UserRow, user_id)
            if not row:
                return
            posts = list(row.posts or [])
            if post_id in posts:
                row.posts = [existing for existing in posts if existing != post_id]
                session.commit()

    def create_post(
        self, title: str, content: str, image_url: str, creator_id: str
    ) -> PostRecord:
        now = _now()
        with self.Session() as session:
            row = PostRow(
                post_id=uuid.uuid4().hex,
                title=title,
                content=content,
                image_url=image_url,
                creator_id=creator_id,
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_post_record(row)

    def get_post(self, post_id: str) -> Optional[PostRecord]:
        with self.Session() as session:
            row = session.get(PostRow, post_id)
            return self._to_post_record(row) if row else None

    def list_posts(self, offset: int = 0, limit: int = 2) -> list[PostRecord]:
        with self.Session() as session:
            stmt = (
                select(PostRow)
                .order_by(PostRow.created_at.desc(), PostRow.post_id.desc())
                .offset(offset)
                .limit(limit)
            )
            return [self._to_post_record(row) for row in session.execute(stmt).scalars()]

    def count_posts(self) -> int:
        with self.Session() as session:
            return session.execute(select(func.count()).select_from(PostRow)).scalar_one()

    def update_post(
        self, post_id: str, *, title: str, content: str, image_url: str
    ) -> Optional[PostRecord]:
        with self.Session() as session:
            row = session.get(PostRow, post_id)
            if not row:
                return None
            row.title = title
            row.content = content
            row.image_url = image_url
            row.updated_at = _now()
            session.commit()
            session.refresh(row)
            return self._to_post_record(row)

    def delete_post(self, post_id: str) -> bool:
        with self.Session() as session:
            row = session.get(PostRow, post_id)
            if not row:
                return False
            session.delete(row)
            session.commit()
            return True


class MongoDbClient:
    """
    pymongo-backed document store. Users and posts live in the `users` and
    `posts` collections keyed by ObjectId; a user's `posts` holds post ObjectIds.
    """

    def __init__(
        self,
        database_url: str,
        database_name: str = "postfeed",
        client: Optional[MongoClient] = None,
    ):
        self.client = client or MongoClient(database_url, tz_aware=True)
        self.db = self.client[database_name]
        self.users = self.db["users"]
        self.posts = self.db["posts"]
        self.users.create_index("email")
        self.posts.create_index([("createdAt", DESCENDING)])

    @staticmethod
    def _object_id(value: str) -> Optional[ObjectId]:
        try:
            return ObjectId(value)
        except (InvalidId, TypeError):
            return None

    def _to_user_record(self, doc: dict) -> UserRecord:
        return UserRecord(
            user_id=str(doc["_id"]),
            email=doc["email"],
            password=doc["password"],
            name=doc["name"],
            status=doc.get("status", DEFAULT_STATUS),
            posts=[str(post_id) for post_id in doc.get("posts", [])],
        )

    def _to_post_record(self, doc: dict) -> PostRecord:
        return PostRecord(
            post_id=str(doc["_id"]),
            title=doc["title"],
            content=doc["content"],
            image_url=doc["imageUrl"],
            creator_id=str(doc["creator"]),
            created_at=_as_utc(doc["createdAt"]),
            updated_at=_as_utc(doc["updatedAt"]),
        )

    def create_user(self, email: str, password: str, name: str) -> UserRecord:
        doc = {
            "email": email,
            "password": password,
            "name": name,
            "status": DEFAULT_STATUS,
            "posts": [],
        }
        result = self.users.insert_one(doc)
        doc["_id"] = result.inserted_id
        return self._to_user_record(doc)

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        oid = self._object_id(user_id)
        if oid is None:
            return None
        doc = self.users.find_one({"_id": oid})
        return self._to_user_record(doc) if doc else None

    def find_user_by_email(self, email: str) -> Optional[UserRecord]:
        doc = self.users.find_one({"email": email})
        return self._to_user_record(doc) if doc else None

    def update_user_status(self, user_id: str, status: str) -> Optional[UserRecord]:
        oid = self._object_id(user_id)
        if oid is None:
            return None
        doc = self.users.find_one_and_update(
            {"_id": oid},
            {"$set": {"status": status}},
            return_document=ReturnDocument.AFTER,
        )
        return self._to_user_record(doc) if doc else None

    def add_user_post(self, user_id: str, post_id: str) -> None:
        oid, post_oid = self._object_id(user_id), self._object_id(post_id)
        if oid is None or post_oid is None:
            return
        self.users.update_one({"_id": oid}, {"$addToSet": {"posts": post_oid}})

    def remove_user_post(self, user_id: str, post_id: str) -> None:
        oid, post_oid = self._object_id(user_id), self._object_id(post_id)
        if oid is None or post_oid is None:
            return
        self.users.update_one({"_id": oid}, {"$pull": {"posts": post_oid}})

    def create_post(
        self, title: str, content: str, image_url: str, creator_id: str
    ) -> PostRecord:
        now = _now()
        doc = {
            "title": title,
            "content": content,
            "imageUrl": image_url,
            "creator": self._object_id(creator_id) or creator_id,
            "createdAt": now,
            "updatedAt": now,
        }
        result = self.posts.insert_one(doc)
        doc["_id"] = result.inserted_id
        return self._to_post_record(doc)

    def get_post(self, post_id: str) -> Optional[PostRecord]:
        oid = self._object_id(post_id)
        if oid is None:
            return None
        doc = self.posts.find_one({"_id": oid})
        return self._to_post_record(doc) if doc else None

    def list_posts(self, offset: int = 0, limit: int = 2) -> list[PostRecord]:
        cursor = (
            self.posts.find()
            .sort([("createdAt", DESCENDING), ("_id", DESCENDING)])
            .skip(offset)
            .limit(limit)
        )
        return [self._to_post_record(doc) for doc in cursor]

    def count_posts(self) -> int:
        return self.posts.count_documents({})

    def update_post(
        self, post_id: str, *, title: str, content: str, image_url: str
    ) -> Optional[PostRecord]:
        oid = self._object_id(post_id)
        if oid is None:
            return None
        doc = self.posts.find_one_and_update(
            {"_id": oid},
            {
                "$set": {
                    "title": title,
                    "content": content,
                    "imageUrl": image_url,
                    "updatedAt": _now(),
                }
            },
            return_document=ReturnDocument.AFTER,
        )
        return self._to_post_record(doc) if doc else None

    def delete_post(self, post_id: str) -> bool:
        oid = self._object_id(post_id)
        if oid is None:
            return False
        return self.posts.delete_one({"_id": oid}).deleted_count > 0


def _as_utc(value: datetime) -> datetime:
    # SQLite and naive Mongo clients hand back naive datetimes.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


Base = declarative_base()


class UserRow(Base):
    __tablename__ = "users"

    user_id = Column(String, primary_key=True)
    email = Column(String, nullable=False, index=True)
    password = Column(String, nullable=False)
    name = Column(String, nullable=False)
    status = Column(String, nullable=False, default=DEFAULT_STATUS)
    posts = Column(JSON, nullable=False, default=list)


class PostRow(Base):
    __tablename__ = "posts"

    post_id = Column(String, primary_key=True)
    title = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    image_url = Column(String, nullable=False)
    creator_id = Column(String, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False)
