from sqlalchemy.orm import Session
from sqlalchemy.sql import func
from typing import Optional
import logging

from crud.dialect import insert_for
from models.user_plan import UserPlan

logger = logging.getLogger(__name__)

DEFAULT_PLAN = {"plan_id": "free", "billing": "monthly", "active": True}

def get_user_plan(db: Session, user_id: str) -> Optional[UserPlan]:
    """Get the current plan row for a user"""
    return db.query(UserPlan).filter(UserPlan.user_id == user_id).first()

def ensure_user_plan(db: Session, user_id: str, user_email: Optional[str] = None) -> UserPlan:
    """Create the free plan row at signup; an existing row is left alone"""
    try:
        stmt = insert_for(db, UserPlan).values(
            user_id=user_id, user_email=user_email or None, **DEFAULT_PLAN
        ).on_conflict_do_nothing(index_elements=[UserPlan.user_id])
        db.execute(stmt)
        db.commit()
    except Exception as e:
        logger.error(f"Error creating plan row for {user_id}: {e}")
        db.rollback()
        raise e
    return get_user_plan(db, user_id)

def upsert_user_plan(
    db: Session,
    user_id: str,
    user_email: Optional[str],
    plan_id: str,
    billing: str,
    commit: bool = True,
) -> UserPlan:
    """Overwrite the user's single entitlement row with a purchased plan"""
    stmt = insert_for(db, UserPlan).values(
        user_id=user_id,
        user_email=user_email or None,
        plan_id=plan_id,
        billing=billing,
        active=True,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[UserPlan.user_id],
        set_={
            "plan_id": stmt.excluded.plan_id,
            "billing": stmt.excluded.billing,
            # an empty email on the confirmation must not wipe a known one
            "user_email": func.coalesce(stmt.excluded.user_email, UserPlan.user_email),
            "active": True,
            "updated_at": func.now(),
        },
    )
    try:
        db.execute(stmt)
        if commit:
            db.commit()
        else:
            db.flush()
    except Exception as e:
        logger.error(f"Error upserting plan for {user_id}: {e}")
        db.rollback()
        raise e

    db.expire_all()
    logger.info(f"User {user_id} plan -> {plan_id}/{billing}")
    return get_user_plan(db, user_id)
