"""Background worker that abandons stale assessment sessions.

This worker:
1. Runs periodically to find in-progress sessions with no activity past the age limit
2. Moves them to the terminal ``abandoned`` state
3. Records an audit entry per abandoned session

Completed sessions are never touched. Abandonment is a lifecycle policy layered
on top of the state machine; respondents cannot trigger it.
"""
import logging
import os
import time
from datetime import datetime, timedelta

from sqlalchemy import func
from sqlalchemy.orm import Session

from services.amr import models
from services.amr.db import session_scope
from services.amr.sessions import abandon_session

logger = logging.getLogger(__name__)

ABANDON_AFTER_HOURS = float(os.getenv("AMR_ABANDON_AFTER_HOURS", "24"))
SWEEP_INTERVAL_SECONDS = int(os.getenv("AMR_SWEEP_INTERVAL_SECONDS", "3600"))


def get_abandon_cutoff(now: datetime, max_age_hours: float) -> datetime:
    return now - timedelta(hours=max_age_hours)


def run_abandonment_check(
    db: Session | None = None,
    *,
    now: datetime | None = None,
    max_age_hours: float = ABANDON_AFTER_HOURS,
) -> dict:
    """Abandon every in-progress session whose last activity is before the cutoff.

    Last activity is the newest response update, or session creation when the
    session has no responses yet.

    Returns:
        Statistics about the sweep
    """
    now = now or datetime.utcnow()
    cutoff = get_abandon_cutoff(now, max_age_hours)

    with session_scope(db) as db:
        try:
            last_answered = (
                db.query(
                    models.AssessmentResponse.session_id,
                    func.max(models.AssessmentResponse.updated_at).label("last_answered_at"),
                )
                .group_by(models.AssessmentResponse.session_id)
                .subquery()
            )
            last_activity = func.coalesce(last_answered.c.last_answered_at, models.AssessmentSession.created_at)

            stale = (
                db.query(models.AssessmentSession)
                .outerjoin(last_answered, last_answered.c.session_id == models.AssessmentSession.id)
                .filter(
                    models.AssessmentSession.status == models.SessionStatus.in_progress,
                    last_activity < cutoff,
                )
                .order_by(models.AssessmentSession.created_at.asc())
                .all()
            )

            abandoned_count = 0
            for session in stale:
                if abandon_session(db, session, reason=f"inactive for more than {max_age_hours:g}h"):
                    abandoned_count += 1

            db.commit()
        except Exception as e:
            logger.error(f"Error during abandonment check: {e}")
            db.rollback()
            raise

    logger.info(f"Abandonment check complete: {len(stale)} stale, {abandoned_count} abandoned")
    return {
        "checked": len(stale),
        "abandoned": abandoned_count,
        "cutoff": cutoff.isoformat(),
        "timestamp": now.isoformat(),
    }


def run_periodic_abandonment(interval_seconds: int = SWEEP_INTERVAL_SECONDS):
    logger.info(f"Starting periodic abandonment worker (interval: {interval_seconds}s)")

    while True:
        try:
            result = run_abandonment_check()
            logger.info(f"Abandonment result: {result}")
        except Exception as e:
            logger.error(f"Abandonment check failed: {e}")

        time.sleep(interval_seconds)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    run_periodic_abandonment()
