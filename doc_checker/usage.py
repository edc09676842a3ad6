"""
Usage/Quota Gate
================

Per-user analysis counter checked before a job starts.

`check_and_reserve` is a single conditional UPDATE, so two concurrent
requests at `limit - 1` cannot both pass:

    UPDATE users SET usage_count = usage_count + 1
    WHERE id = :id AND (usage_limit = -1 OR usage_count < usage_limit)

A failed job gives its reservation back with `release`, leaving the
counter +1 per successful analysis and unchanged otherwise.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import update, or_, func
from sqlalchemy.orm import Session

from .db.models import AnalysisJob, User, Document, Report
from .db.session import get_db_session
from .errors import NotFoundError, QuotaExceededError
from .extractor import SessionFactory
from .plans import UNLIMITED, get_plan_limits
from .schemas import DashboardStats, JobStatus, SubscriptionTier, UsageResponse

logger = logging.getLogger(__name__)


def start_of_month(now: Optional[datetime] = None) -> datetime:
    now = now or datetime.utcnow()
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def _get_user(db: Session, user_id: str) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise NotFoundError("User not found")
    return user


def is_over_limit(usage_count: int, usage_limit: int) -> bool:
    """Fail closed: usage at the limit is already over it"""
    if usage_limit == UNLIMITED:
        return False
    return usage_count >= usage_limit


def check_quota(user_id: str, session_factory: SessionFactory = get_db_session) -> None:
    """
    Read-only quota check (used before uploads).

    Raises:
        NotFoundError: Unknown user
        QuotaExceededError: Counter at or above the limit
    """
    with session_factory() as db:
        user = _get_user(db, user_id)
        if is_over_limit(user.usage_count, user.usage_limit):
            logger.info("Quota check rejected user=%s usage=%d/%d", user_id, user.usage_count, user.usage_limit)
            raise QuotaExceededError()


def check_and_reserve(user_id: str, session_factory: SessionFactory = get_db_session) -> None:
    """
    Atomically reserve one analysis against the user's limit.

    Raises:
        NotFoundError: Unknown user
        QuotaExceededError: Limit reached; nothing was reserved
    """
    with session_factory() as db:
        result = db.execute(
            update(User)
            .where(
                User.id == user_id,
                or_(User.usage_limit == UNLIMITED, User.usage_count < User.usage_limit),
            )
            .values(usage_count=User.usage_count + 1, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            logger.debug("Reserved analysis for user=%s", user_id)
            return

        # Distinguish "no such user" from "over the limit"
        _get_user(db, user_id)
        logger.info("Quota reservation rejected user=%s", user_id)
        raise QuotaExceededError()


def release(user_id: str, session_factory: SessionFactory = get_db_session) -> None:
    """
    Give back a reservation after a failed job.

    Never raises: the job outcome is already decided, so a failure here is
    only logged.
    """
    try:
        with session_factory() as db:
            db.execute(
                update(User)
                .where(User.id == user_id, User.usage_count > 0)
                .values(usage_count=User.usage_count - 1, updated_at=datetime.utcnow())
                .execution_options(synchronize_session=False)
            )
    except Exception as e:
        logger.error("Failed to release usage reservation for user=%s: %s", user_id, e)


def get_usage_summary(user_id: str, session_factory: SessionFactory = get_db_session) -> UsageResponse:
    """Current usage, limit, tier and this month's document/report counts"""
    month_start = start_of_month()

    with session_factory() as db:
        user = _get_user(db, user_id)

        documents_this_month = db.query(func.count(Document.id)).filter(
            Document.user_id == user_id,
            Document.created_at >= month_start,
        ).scalar() or 0

        reports_generated = db.query(func.count(Report.id)).filter(
            Report.user_id == user_id,
            Report.generated_at >= month_start,
        ).scalar() or 0

        return UsageResponse(
            current_usage=user.usage_count,
            usage_limit=user.usage_limit,
            subscription_tier=user.subscription_tier,
            documents_this_month=documents_this_month,
            reports_generated=reports_generated,
        )


def create_user(
    email: str,
    tier: SubscriptionTier = SubscriptionTier.FREE,
    full_name: Optional[str] = None,
    user_id: Optional[str] = None,
    session_factory: SessionFactory = get_db_session,
) -> str:
    """Create a user seeded with the tier's monthly analysis limit"""
    limits = get_plan_limits(tier)
    with session_factory() as db:
        user = User(
            email=email,
            full_name=full_name,
            subscription_tier=SubscriptionTier(tier),
            usage_count=0,
            usage_limit=limits.analyses_per_month,
        )
        if user_id:
            user.id = user_id
        db.add(user)
        db.flush()
        return user.id


def apply_plan(user_id: str, tier: SubscriptionTier, session_factory: SessionFactory = get_db_session) -> None:
    """
    Move a user to a plan: new limit, counter reset to zero.

    Called by whatever handles plan changes (billing is external).
    """
    limits = get_plan_limits(tier)
    with session_factory() as db:
        user = _get_user(db, user_id)
        user.subscription_tier = SubscriptionTier(tier)
        user.usage_limit = limits.analyses_per_month
        user.usage_count = 0
        user.updated_at = datetime.utcnow()
    logger.info("User %s moved to %s plan (limit=%d)", user_id, SubscriptionTier(tier).value, limits.analyses_per_month)


def get_dashboard_stats(user_id: str, session_factory: SessionFactory = get_db_session) -> DashboardStats:
    """Totals for the dashboard; analyses count completed jobs only"""
    month_start = start_of_month()

    with session_factory() as db:
        completed = db.query(func.count(AnalysisJob.id)).filter(
            AnalysisJob.user_id == user_id,
            AnalysisJob.status == JobStatus.COMPLETED,
        )
        return DashboardStats(
            total_documents=db.query(func.count(Document.id)).filter(Document.user_id == user_id).scalar() or 0,
            total_analyses=completed.scalar() or 0,
            total_reports=db.query(func.count(Report.id)).filter(Report.user_id == user_id).scalar() or 0,
            this_month_analyses=completed.filter(AnalysisJob.created_at >= month_start).scalar() or 0,
        )
