"""Owner identity: user creation and credential checks."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Optional

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHash, VerificationError, VerifyMismatchError
from sqlmodel import Session, select

from ..errors import UnauthorizedError
from ..models.user import User

SessionFactory = Callable[[], Session]

_hasher = PasswordHasher()


def get_user_by_username(username: str, session_factory: SessionFactory) -> Optional[User]:
    """Fetch a user by username."""
    username = username.strip()
    with session_factory() as session:
        user = session.exec(select(User).where(User.username == username)).first()
        if user:
            session.expunge(user)
        return user


def create_user(*, username: str, password: str, session_factory: SessionFactory) -> User:
    """Create a new user with hashed password."""

    username = username.strip()
    if not username:
        raise ValueError("Username cannot be empty")
    if not password:
        raise ValueError("Password cannot be empty")
    password_hash = _hasher.hash(password)
    with session_factory() as session:
        existing = session.exec(select(User).where(User.username == username)).first()
        if existing:
            raise ValueError("Username already exists")
        user = User(username=username, password_hash=password_hash)
        session.add(user)
        session.commit()
        session.refresh(user)
        session.expunge(user)
        return user


def authenticate(*, username: str, password: str, session_factory: SessionFactory) -> Optional[User]:
    """Validate credentials and return the user when correct."""

    username = username.strip()
    if not username:
        return None
    with session_factory() as session:
        user = session.exec(select(User).where(User.username == username)).first()
        if user is None:
            return None
        try:
            _hasher.verify(user.password_hash, password)
        except (VerifyMismatchError, InvalidHash, VerificationError):
            return None

        user.last_login = datetime.now(timezone.utc)
        session.add(user)
        session.commit()
        session.refresh(user)
        session.expunge(user)
        return user


def resolve_owner_id(user: Optional[User]) -> int:
    """Return the owner id for an authenticated user."""

    if user is None or user.id is None:
        raise UnauthorizedError("Authentication required")
    return user.id
