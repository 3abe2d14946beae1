"""
braincore/features/users/persistence.py

SQL persistence for per-user plan, usage counters and brain access state.

Every read hands back a fresh snapshot; nothing is cached between calls.
I/O failures surface as PersistenceError so callers can tell "could not
read" apart from "nothing stored yet". The one exception is
read_user_plan, which fails over to the free plan.
"""

from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional, Union
import logging

from sqlalchemy import func, insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from braincore.core.database import get_db_session, user_states
from braincore.core.errors import PersistenceError, ValidationError
from braincore.core.logging import log_event
from braincore.features.plans.catalog import coerce_plan, get_plan_info
from braincore.features.quotas.service import current_period
from braincore.models.brain_access import BrainAccessRequest, BrainAccessStatus
from braincore.models.plan import Plan
from braincore.models.user_state import UserState


logger = logging.getLogger(__name__)

# Workflow metadata keys accepted by write_brain_access_status -> column
_BRAIN_ACCESS_COLUMNS = {
    "requested_at": "brain_access_requested_at",
    "approved_at": "brain_access_approved_at",
    "rejected_at": "brain_access_rejected_at",
    "rejection_reason": "brain_access_rejection_reason",
    "reviewer_id": "brain_access_reviewer_id",
    "notes": "brain_access_notes",
}


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _now() -> datetime:
    return datetime.now(timezone.utc)


class UserStatePersistence:
    """
    Database-backed persistence collaborator.

    Args:
        session_factory: Context manager factory yielding a SQLAlchemy
            session (defaults to braincore.core.database.get_db_session)
    """

    def __init__(self, session_factory: Optional[Callable[[], Any]] = None):
        self._session_factory = session_factory or get_db_session

    @contextmanager
    def _session(self, operation: str, user_id: Optional[str] = None):
        try:
            with self._session_factory() as session:
                yield session
        except SQLAlchemyError as exc:
            log_event(
                "error",
                "[persistence] operation failed",
                user_id=user_id,
                event_type=f"persistence.{operation}",
                error_code=PersistenceError.code,
                extra={"error": exc},
            )
            raise PersistenceError(f"{operation} failed for user {user_id}") from exc

    def _select_row(self, session, user_id: str):
        return session.execute(
            select(user_states).where(user_states.c.user_id == user_id)
        ).first()

    def ensure_user(self, user_id: str, plan: Union[Plan, str] = Plan.FREE) -> None:
        """Create the user's record if missing (idempotent)."""
        resolved = coerce_plan(plan)
        if resolved is None:
            raise ValidationError(f"Unknown plan: {plan!r}")
        try:
            with self._session("ensure_user", user_id) as session:
                if self._select_row(session, user_id) is None:
                    session.execute(
                        insert(user_states).values(
                            user_id=user_id,
                            plan=resolved.value,
                            updated_at=_now(),
                        )
                    )
        except PersistenceError as exc:
            # Lost an insert race with another writer; the row exists now
            if isinstance(exc.__cause__, IntegrityError):
                return
            raise

    # ------------------------------------------------------------------
    # Plan
    # ------------------------------------------------------------------

    def set_user_plan(self, user_id: str, plan: Union[Plan, str]) -> Plan:
        resolved = coerce_plan(plan)
        if resolved is None:
            raise ValidationError(f"Unknown plan: {plan!r}")
        self.ensure_user(user_id, resolved)
        with self._session("set_user_plan", user_id) as session:
            session.execute(
                update(user_states)
                .where(user_states.c.user_id == user_id)
                .values(plan=resolved.value, updated_at=_now())
            )
        return resolved

    def read_user_plan(self, user_id: str) -> Plan:
        """User's plan; free on any read error, missing record or unknown key."""
        try:
            with self._session("read_user_plan", user_id) as session:
                row = self._select_row(session, user_id)
        except PersistenceError:
            logger.warning(
                "[persistence] plan read failed, using free plan",
                extra={"user_id": user_id},
            )
            return Plan.FREE

        if row is None:
            return Plan.FREE
        resolved = coerce_plan(row.plan)
        if resolved is None:
            logger.warning(
                "[persistence] unknown stored plan, using free plan",
                extra={"user_id": user_id, "stored_plan": row.plan},
            )
            return Plan.FREE
        return resolved

    # ------------------------------------------------------------------
    # Usage counters
    # ------------------------------------------------------------------

    def read_upload_count(self, user_id: str, period: str) -> int:
        """Uploads consumed in period; 0 when nothing recorded for that period."""
        with self._session("read_upload_count", user_id) as session:
            row = self._select_row(session, user_id)
        if row is None or row.period_start != period:
            return 0
        return int(row.uploads_this_period)

    def read_query_count(self, user_id: str, period: str) -> int:
        with self._session("read_query_count", user_id) as session:
            row = self._select_row(session, user_id)
        if row is None or row.query_period_start != period:
            return 0
        return int(row.queries_this_period)

    def _increment(self, user_id: str, period: str, count_column: str, period_column: str) -> int:
        self.ensure_user(user_id)
        count_col = user_states.c[count_column]
        period_col = user_states.c[period_column]
        with self._session(f"record_{count_column}", user_id) as session:
            # Same period: atomic increment. New period: counter restarts at 1.
            result = session.execute(
                update(user_states)
                .where(user_states.c.user_id == user_id)
                .where(period_col == period)
                .values({count_col: count_col + 1, user_states.c.updated_at: _now()})
            )
            if result.rowcount == 0:
                session.execute(
                    update(user_states)
                    .where(user_states.c.user_id == user_id)
                    .values({count_col: 1, period_col: period, user_states.c.updated_at: _now()})
                )
            row = self._select_row(session, user_id)
            return int(getattr(row, count_column))

    def record_upload(self, user_id: str, period: str) -> int:
        """Count one upload in period; returns the new count."""
        return self._increment(user_id, period, "uploads_this_period", "period_start")

    def record_query(self, user_id: str, period: str) -> int:
        return self._increment(user_id, period, "queries_this_period", "query_period_start")

    def read_user_state(self, user_id: str, now: Optional[Any] = None) -> UserState:
        """
        Snapshot of plan and counters for the current periods.

        Raises:
            PersistenceError: If the record cannot be read
        """
        with self._session("read_user_state", user_id) as session:
            row = self._select_row(session, user_id)
        if row is None:
            return UserState(user_id=user_id)

        plan = coerce_plan(row.plan) or Plan.FREE
        info = get_plan_info(plan)
        upload_period = current_period(info.upload_period, now)
        query_period = current_period(info.query_period, now)
        return UserState(
            user_id=user_id,
            plan=plan,
            uploads_this_period=int(row.uploads_this_period) if row.period_start == upload_period else 0,
            queries_this_period=int(row.queries_this_period) if row.query_period_start == query_period else 0,
            period_start=upload_period,
        )

    # ------------------------------------------------------------------
    # Brain access
    # ------------------------------------------------------------------

    def read_brain_access_status(self, user_id: str) -> BrainAccessRequest:
        """
        Current brain access record; status NONE if never requested.

        Raises:
            PersistenceError: If the record cannot be read
        """
        with self._session("read_brain_access_status", user_id) as session:
            row = self._select_row(session, user_id)
        if row is None:
            return BrainAccessRequest(user_id=user_id)

        try:
            status = BrainAccessStatus(row.brain_access_status)
        except ValueError as exc:
            raise PersistenceError(
                f"Unrecognized brain access status {row.brain_access_status!r} for user {user_id}"
            ) from exc

        return BrainAccessRequest(
            user_id=user_id,
            status=status,
            requested_at=_as_utc(row.brain_access_requested_at),
            approved_at=_as_utc(row.brain_access_approved_at),
            rejected_at=_as_utc(row.brain_access_rejected_at),
            rejection_reason=row.brain_access_rejection_reason,
            reviewer_id=row.brain_access_reviewer_id,
            notes=row.brain_access_notes,
        )

    def write_brain_access_status(
        self,
        user_id: str,
        new_status: BrainAccessStatus,
        metadata: Optional[Mapping[str, Any]] = None,
        *,
        expected_status: BrainAccessStatus,
    ) -> bool:
        """
        Compare-and-swap the brain access status.

        The update only applies while the stored status still equals
        expected_status, so concurrent writers record at most one transition.

        Returns:
            True if this call performed the transition, False if another
            writer changed the status first
        """
        values: Dict[Any, Any] = {
            "brain_access_status": BrainAccessStatus(new_status).value,
            "updated_at": _now(),
        }
        for key, value in (metadata or {}).items():
            column = _BRAIN_ACCESS_COLUMNS.get(key)
            if column is None:
                raise ValidationError(f"Unknown brain access field: {key}")
            values[column] = value

        self.ensure_user(user_id)
        with self._session("write_brain_access_status", user_id) as session:
            result = session.execute(
                update(user_states)
                .where(user_states.c.user_id == user_id)
                .where(user_states.c.brain_access_status == BrainAccessStatus(expected_status).value)
                .values(**values)
            )
            return result.rowcount == 1

    def reset_brain_access(self, user_id: str) -> None:
        """Clear all brain access fields back to NONE."""
        values = {column: None for column in _BRAIN_ACCESS_COLUMNS.values()}
        with self._session("reset_brain_access", user_id) as session:
            session.execute(
                update(user_states)
                .where(user_states.c.user_id == user_id)
                .values(brain_access_status=BrainAccessStatus.NONE.value, updated_at=_now(), **values)
            )

    def count_brain_access_by_status(self) -> Dict[BrainAccessStatus, int]:
        with self._session("count_brain_access_by_status") as session:
            rows = session.execute(
                select(user_states.c.brain_access_status, func.count())
                .group_by(user_states.c.brain_access_status)
            ).all()
        counts = {status: 0 for status in BrainAccessStatus}
        for status_value, count in rows:
            try:
                counts[BrainAccessStatus(status_value)] += int(count)
            except ValueError:
                logger.warning(
                    "[persistence] skipping unrecognized brain access status",
                    extra={"status": status_value},
                )
        return counts
