from sqlalchemy import update
from sqlalchemy.orm import Session
from sqlalchemy.sql import func
from datetime import datetime
from typing import Optional, Tuple, Any
import logging

from crud.dialect import insert_for
from models.payment import Payment, PAYMENT_STATUSES

logger = logging.getLogger(__name__)

# Outcomes of transition_payment_status
APPLIED = "applied"
UNCHANGED = "unchanged"
MISSING = "missing"

def get_payment_by_tran_id(db: Session, tran_id: str) -> Optional[Payment]:
    """Get payment by transaction id"""
    if not tran_id:
        return None
    return db.query(Payment).filter(Payment.tran_id == tran_id).first()

def create_payment(db: Session, **fields: Any) -> Payment:
    """Insert a pending payment; a second insert with the same tran_id is a no-op."""
    values = {"status": "pending", "currency": "USD", **fields}
    try:
        stmt = insert_for(db, Payment).values(**values).on_conflict_do_nothing(
            index_elements=[Payment.tran_id]
        )
        db.execute(stmt)
        db.commit()
    except Exception as e:
        logger.error(f"Error creating payment {values.get('tran_id')}: {e}")
        db.rollback()
        raise e

    payment = get_payment_by_tran_id(db, values["tran_id"])
    logger.info(f"Created payment {payment.tran_id} ({payment.gateway} {payment.plan_id}/{payment.billing})")
    return payment

def transition_payment_status(
    db: Session,
    tran_id: str,
    new_status: str,
    gateway_reference: Optional[str] = None,
    raw_response: Optional[dict] = None,
    commit: bool = True,
) -> Tuple[str, Optional[Payment]]:
    """Move a payment out of 'pending'.

    The update only matches rows still in 'pending', so terminal rows are
    never touched and concurrent duplicate deliveries apply at most once.
    Returns (APPLIED | UNCHANGED | MISSING, payment).
    """
    if new_status not in PAYMENT_STATUSES or new_status == "pending":
        raise ValueError(f"Invalid target status: {new_status}")

    values = {"status": new_status, "updated_at": func.now()}
    if gateway_reference:
        values["gateway_reference"] = gateway_reference
    if raw_response is not None:
        values["raw_response"] = raw_response

    try:
        result = db.execute(
            update(Payment)
            .where(Payment.tran_id == tran_id, Payment.status == "pending")
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if commit:
            db.commit()
        else:
            db.flush()
    except Exception as e:
        logger.error(f"Error moving payment {tran_id} to {new_status}: {e}")
        db.rollback()
        raise e

    db.expire_all()
    payment = get_payment_by_tran_id(db, tran_id)
    if payment is None:
        return MISSING, None
    if result.rowcount:
        logger.info(f"Payment {tran_id} -> {new_status}")
        return APPLIED, payment
    return UNCHANGED, payment

def expire_stale_pending(db: Session, cutoff: datetime) -> int:
    """Cancel pending payments created before cutoff; returns rows affected"""
    try:
        result = db.execute(
            update(Payment)
            .where(Payment.status == "pending", Payment.created_at < cutoff)
            .values(status="cancelled", updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        db.commit()
    except Exception as e:
        logger.error(f"Error expiring stale payments: {e}")
        db.rollback()
        raise e
    return result.rowcount or 0
