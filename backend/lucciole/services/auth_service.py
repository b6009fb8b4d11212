# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

Every signed-in identity maps to exactly one role through the static role
table in the catalog. Passwords are bcrypt hashed.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor BCRYPT_ROUNDS, 12 by default)
- Minimum 6 characters
- Unknown identifiers and wrong passwords both raise AuthFailure; neither
  changes any state
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import User
from ..catalog import ROLE_UNAUTHENTICATED, get_catalog
from lucciole.time_utils import utcnow
from . import session_service
from .session_service import SessionChange

MIN_PASSWORD_LENGTH = 6


class AuthFailure(Exception):
    """Bad credentials or unrecognized identifier."""
    pass


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


@dataclass
class SignInResult:
    user: User
    role: str
    token: str


def validate_password_strength(password: str) -> None:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
        )


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=current_app.config["BCRYPT_ROUNDS"])
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash
        return False


def create_user(email: str, password: str) -> User:
    """
    Create a login account.

    The email must already appear in the role table, otherwise the account
    could never sign in. Raises ValueError on duplicates.
    """
    catalog = get_catalog()
    email = catalog.resolve_identifier(email)
    if catalog.role_for(email) == ROLE_UNAUTHENTICATED:
        raise ValueError(f"{email} is not in the role table")

    if db.session.query(User).filter_by(email=email).first():
        raise ValueError(f"User {email} already exists")

    user = User(email=email, password_hash=hash_password(password), is_active=True)
    db.session.add(user)
    db.session.commit()
    return user


def role_for_user(user: User | None) -> str:
    if user is None:
        return ROLE_UNAUTHENTICATED
    return get_catalog().role_for(user.email)


def sign_in(identifier: str, secret: str) -> SignInResult:
    """
    Authenticate and open a session.

    identifier may be a bare username ("admin") or an email.
    """
    catalog = get_catalog()
    email = catalog.resolve_identifier(identifier)
    role = catalog.role_for(email)
    if role == ROLE_UNAUTHENTICATED:
        raise AuthFailure("Unrecognized user")

    user = db.session.query(User).filter_by(email=email).first()
    if not user or not user.is_active or not verify_password(secret or "", user.password_hash):
        raise AuthFailure("Sign-in failed. Check the password (min 6 characters)")

    user.last_login_at = utcnow()
    _, token = session_service.create_session(user, role)

    session_service.get_session_events().emit(SessionChange(email=user.email, role=role))
    return SignInResult(user=user, role=role, token=token)


def sign_out(token: str) -> bool:
    revoked = session_service.revoke_session(token)
    if revoked:
        session_service.get_session_events().emit(SessionChange(email=None, role=None))
    return revoked


def on_session_change(callback: Callable[[SessionChange], None]) -> Callable[[], None]:
    return session_service.get_session_events().subscribe(callback)
