# Overview: Service-layer operations for session; encapsulates business logic and database work.

"""
Session Token Management

Tokens are random, hashed in the database, and time-limited.

- 32 bytes of entropy, hex encoded; only the SHA-256 is stored
- Absolute expiry after SESSION_HOURS
- Revocable on sign-out
- The role is captured at sign-in from the static role table
"""

from __future__ import annotations

import secrets
import hashlib
import threading
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User
from lucciole.time_utils import utcnow

_LISTENERS_KEY = "lucciole.session_listeners"


@dataclass
class SessionContext:
    """What validate_session hands to a protected route."""
    user: User
    session: SessionToken
    role: str


@dataclass(frozen=True)
class SessionChange:
    """Delivered to on_session_change listeners; email/role are None on sign-out."""
    email: str | None
    role: str | None


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(user: User, role: str) -> tuple[SessionToken, str]:
    """
    Create a session for an authenticated user.

    Returns (session_record, plaintext_token). The client keeps the plaintext,
    the database keeps only its hash.
    """
    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        user_id=user.id,
        token_hash=hash_token(plaintext_token),
        role=role,
        created_at=now,
        expires_at=now + timedelta(hours=current_app.config["SESSION_HOURS"]),
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def validate_session(token: str) -> SessionContext | None:
    """
    Returns None if the token is unknown, expired or revoked, or if the user
    was deactivated since sign-in.
    """
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()

    if not session:
        return None

    if session.expires_at < utcnow():
        return None

    user = session.user
    if not user or not user.is_active:
        session.is_revoked = True
        session.revoked_at = utcnow()
        db.session.commit()
        return None

    return SessionContext(user=user, session=session, role=session.role)


def revoke_session(token: str) -> bool:
    """Returns True if a live session was revoked."""
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()

    if not session:
        return False

    session.is_revoked = True
    session.revoked_at = utcnow()
    db.session.commit()
    return True


class SessionEvents:
    """Observer list for sign-in/sign-out."""

    def __init__(self):
        self._listeners: list[Callable[[SessionChange], None]] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Callable[[SessionChange], None]) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        return unsubscribe

    def emit(self, change: SessionChange) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for callback in listeners:
            try:
                callback(change)
            except Exception:
                current_app.logger.exception("Session change listener failed")


def init_session_events(app) -> SessionEvents:
    events = SessionEvents()
    app.extensions[_LISTENERS_KEY] = events
    return events


def get_session_events() -> SessionEvents:
    return current_app.extensions[_LISTENERS_KEY]
