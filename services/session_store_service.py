"""
Temporary storage for reconciliation sessions.
Keeps sessions in memory with a sliding TTL.
Single-server only.
"""
from datetime import datetime, timedelta
from typing import Optional

from config import settings
from exceptions import SessionNotFoundError
from services.reconciliation_session import ReconciliationSession

_sessions: dict[str, tuple[datetime, ReconciliationSession]] = {}


def store_session(
    session: ReconciliationSession,
    ttl_minutes: Optional[int] = None,
) -> str:
    """Store a session, return its session_id."""
    ttl = ttl_minutes or settings.session_ttl_minutes
    _sessions[session.session_id] = (datetime.now() + timedelta(minutes=ttl), session)
    _cleanup_expired()
    return session.session_id


def retrieve_session(session_id: str) -> ReconciliationSession:
    """
    Get a live session and extend its TTL.

    Raises:
        SessionNotFoundError: If missing or expired
    """
    entry = _sessions.get(session_id)
    if entry is None:
        raise SessionNotFoundError(session_id)
    expires_at, session = entry
    if datetime.now() > expires_at:
        del _sessions[session_id]
        raise SessionNotFoundError(session_id)
    store_session(session)
    return session


def delete_session(session_id: str) -> bool:
    """Discard a session. Returns True if it existed."""
    return _sessions.pop(session_id, None) is not None


def clear_sessions() -> None:
    """Drop every session."""
    _sessions.clear()


def _cleanup_expired() -> None:
    """Remove all expired entries."""
    now = datetime.now()
    expired = [k for k, (exp, _) in _sessions.items() if now > exp]
    for k in expired:
        del _sessions[k]
