import logging
from collections import deque
from typing import Any, Deque, Dict, List, Optional
from datetime import datetime, timezone

from sqlalchemy import insert, select
from sqlalchemy.exc import SQLAlchemyError

from braincore.core.config import settings
from braincore.core.database import brain_access_audit, get_db_session, get_database_url
from braincore.core.logging import get_correlation_id
from braincore.models.brain_access import BrainAccessStatus

logger = logging.getLogger(__name__)

# Fallback buffer when DB is unavailable; oldest events drop off first
MEMORY_BUFFER_SIZE = 1000
_memory_events: Deque[Dict[str, Any]] = deque(maxlen=MEMORY_BUFFER_SIZE)


def _safe_truncate(value: Any, limit: int = 500):
    try:
        text = str(value)
    except Exception:
        return "<unserializable>"
    if len(text) <= limit:
        return text
    return text[:limit] + "...<truncated>"


def _status_value(status: Optional[BrainAccessStatus]) -> Optional[str]:
    if status is None:
        return None
    return BrainAccessStatus(status).value


def record_transition(
    *,
    action: str,
    user_id: str,
    from_status: Optional[BrainAccessStatus],
    to_status: BrainAccessStatus,
    actor_id: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    ts: Optional[datetime] = None,
) -> None:
    """Record a brain access transition to the audit table (or fallback buffer).

    Notes:
    - Respects AUDIT_ENABLED.
    - Metadata values are truncated; write failures never propagate.
    """

    if not settings.AUDIT_ENABLED:
        return

    safe_metadata = None
    if metadata:
        safe_metadata = {k: _safe_truncate(v) for k, v in metadata.items()}

    record = {
        "ts": ts or datetime.now(timezone.utc),
        "user_id": user_id,
        "action": action,
        "from_status": _status_value(from_status),
        "to_status": _status_value(to_status),
        "actor_id": actor_id,
        "correlation_id": get_correlation_id(),
        "metadata": safe_metadata,
    }

    if not get_database_url():
        _memory_events.append(record)
        logger.debug("Audit event buffered in memory (no DB configured)")
        return

    try:
        with get_db_session() as session:
            session.execute(insert(brain_access_audit).values(**record))
    except SQLAlchemyError as exc:
        logger.warning(f"Audit event write failed: {exc}")
        _memory_events.append(record)


def list_transitions(user_id: str) -> List[Dict[str, Any]]:
    """Recorded transitions for a user, oldest first (buffered events included)."""
    events: List[Dict[str, Any]] = []
    if get_database_url():
        try:
            with get_db_session() as session:
                rows = session.execute(
                    select(brain_access_audit)
                    .where(brain_access_audit.c.user_id == user_id)
                    .order_by(brain_access_audit.c.ts, brain_access_audit.c.id)
                ).mappings().all()
            events.extend(dict(row) for row in rows)
        except SQLAlchemyError as exc:
            logger.warning(f"Audit event read failed: {exc}")

    events.extend(dict(e) for e in _memory_events if e["user_id"] == user_id)
    return events


def clear_buffered_audit_events() -> None:
    _memory_events.clear()
