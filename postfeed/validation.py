"""
Input checks shared by the REST routes and GraphQL resolvers.

Each check returns a list of `{"message", "field"}` entries; an empty list
means the input is acceptable.
"""

from __future__ import annotations

from typing import Optional

from email_validator import EmailNotValidError, validate_email

MIN_PASSWORD_LENGTH = 5
MIN_TEXT_LENGTH = 5


def normalize_email(email: str) -> Optional[str]:
    """Return the normalized address, or None when it is not a valid e-mail."""
    try:
        return validate_email(email, check_deliverability=False).normalized
    except EmailNotValidError:
        return None


def check_user_input(email: str, password: str, name: str) -> list[dict]:
    errors = []
    if normalize_email(email or "") is None:
        errors.append({"message": "E-Mail is invalid.", "field": "email"})
    if len((password or "").strip()) < MIN_PASSWORD_LENGTH:
        errors.append({"message": "Password too short!", "field": "password"})
    if not (name or "").strip():
        errors.append({"message": "Name is required.", "field": "name"})
    return errors


def check_post_input(title: str, content: str) -> list[dict]:
    errors = []
    if len((title or "").strip()) < MIN_TEXT_LENGTH:
        errors.append({"message": "Title is invalid.", "field": "title"})
    if len((content or "").strip()) < MIN_TEXT_LENGTH:
        errors.append({"message": "Content is invalid.", "field": "content"})
    return errors
