"""Gateway confirmations: the only place a payment leaves 'pending'.

Both receivers treat delivery as at-least-once. A status change and the plan
upsert it triggers are committed together; persistence errors are logged and
swallowed so the gateway still gets its acknowledgement and can redeliver.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

import httpx
from sqlalchemy.orm import Session

from core.sslcommerz import is_valid_status
from crud.payment import MISSING, UNCHANGED, get_payment_by_tran_id, transition_payment_status
from crud.user_plan import upsert_user_plan
from models.payment import Payment
from schemas.payment import ConfirmationOutcome

logger = logging.getLogger(__name__)

STRIPE_EVENT_STATUS = {
    "payment_intent.succeeded": "paid",
    "payment_intent.canceled": "cancelled",
}

# A failed attempt returns the intent to requires_payment_method; the same
# intent can still succeed, so the row stays pending.
STRIPE_RETRYABLE_EVENTS = ("payment_intent.payment_failed",)


def apply_transition(
    db: Session,
    tran_id: str,
    target: str,
    gateway_reference: Optional[str] = None,
    raw_response: Optional[Dict[str, Any]] = None,
    fallback: Optional[Dict[str, Optional[str]]] = None,
) -> ConfirmationOutcome:
    """Move tran_id to target and, for 'paid', activate the purchased plan.

    `fallback` carries the gateway-side copy of userId/userEmail/planId/billing
    and is only consulted when the stored row lacks a value.
    """
    fallback = fallback or {}
    try:
        result, payment = transition_payment_status(
            db, tran_id, target,
            gateway_reference=gateway_reference,
            raw_response=raw_response,
            commit=False,
        )
        if result == MISSING:
            db.rollback()
            logger.warning("Confirmation for unknown transaction %s ignored", tran_id)
            return ConfirmationOutcome(tran_id=tran_id, detail="unknown transaction")

        outcome = ConfirmationOutcome(
            tran_id=tran_id, status=payment.status, applied=(result != UNCHANGED)
        )
        if not outcome.applied and payment.status != target:
            logger.warning(
                "Transaction %s is already %s; %s confirmation ignored",
                tran_id, payment.status, target,
            )
            db.rollback()
            outcome.detail = "terminal"
            return outcome

        if payment.status == "paid":
            # re-applied on redelivery: the upsert is idempotent and repairs a lost activation
            outcome.plan_activated = _activate_plan(db, payment, fallback)

        db.commit()
        return outcome
    except Exception as e:
        logger.error("Failed to apply %s for transaction %s: %s", target, tran_id, e, exc_info=True)
        db.rollback()
        return ConfirmationOutcome(tran_id=tran_id, detail="persistence error")


def _activate_plan(db: Session, payment: Payment, fallback: Dict[str, Optional[str]]) -> bool:
    user_id = payment.user_id or fallback.get("user_id")
    if not user_id:
        logger.warning("Paid transaction %s has no user id; plan not activated", payment.tran_id)
        return False
    upsert_user_plan(
        db,
        user_id=user_id,
        user_email=payment.user_email or fallback.get("user_email"),
        plan_id=payment.plan_id or fallback.get("plan_id"),
        billing=payment.billing or fallback.get("billing"),
        commit=False,
    )
    return True


# ---------------- Stripe ----------------

def apply_stripe_event(db: Session, event: Dict[str, Any]) -> ConfirmationOutcome:
    """Apply a signature-verified Stripe event"""
    event_type = event.get("type")
    intent = (event.get("data") or {}).get("object") or {}
    metadata = intent.get("metadata") or {}

    if event_type in STRIPE_RETRYABLE_EVENTS:
        logger.info(
            "[Stripe] %s for %s (%s); payment stays pending",
            event_type, intent.get("id"), metadata.get("tranId"),
        )
        return ConfirmationOutcome(tran_id=metadata.get("tranId"), detail="attempt failed")

    target = STRIPE_EVENT_STATUS.get(event_type)
    if target is None:
        logger.debug("Ignoring Stripe event %s", event_type)
        return ConfirmationOutcome(detail=f"ignored {event_type}")

    tran_id = metadata.get("tranId")
    if not tran_id:
        logger.warning("Stripe event %s for %s carries no tranId", event_type, intent.get("id"))
        return ConfirmationOutcome(detail="missing tranId")

    logger.info("[Stripe] %s for %s (%s)", event_type, intent.get("id"), tran_id)
    return apply_transition(
        db, tran_id, target,
        gateway_reference=intent.get("id"),
        raw_response=event,
        fallback={
            "user_id": metadata.get("userId"),
            "user_email": metadata.get("userEmail"),
            "plan_id": metadata.get("planId"),
            "billing": metadata.get("billing"),
        },
    )


# ---------------- SSLCommerz ----------------

def _validation_confirms(validation: Dict[str, Any], payment: Payment) -> bool:
    if not is_valid_status(validation.get("status")):
        return False
    if validation.get("tran_id") and validation["tran_id"] != payment.tran_id:
        logger.warning(
            "SSLCommerz validation tran_id %s does not match %s",
            validation["tran_id"], payment.tran_id,
        )
        return False
    if validation.get("currency_amount") and validation.get("currency_type") == payment.currency:
        try:
            paid = Decimal(str(validation["currency_amount"]))
        except InvalidOperation:
            return False
        if paid < Decimal(payment.amount_usd):
            logger.warning(
                "SSLCommerz amount %s below expected %s for %s",
                paid, payment.amount_usd, payment.tran_id,
            )
            return False
    return True


async def apply_sslcommerz_ipn(db: Session, gateway, payload: Dict[str, Any]) -> ConfirmationOutcome:
    """Apply an IPN; a claimed success is only trusted after the validator round-trip"""
    tran_id = payload.get("tran_id")
    claimed = (payload.get("status") or "").upper()
    val_id = payload.get("val_id")
    fallback = {
        "user_id": payload.get("value_a"),
        "plan_id": payload.get("value_b"),
        "billing": payload.get("value_c"),
    }
    logger.info("[SSLCommerz] IPN: tran_id=%s status=%s val_id=%s", tran_id, claimed, val_id)

    payment = get_payment_by_tran_id(db, tran_id)
    if payment is None:
        logger.warning("IPN for unknown transaction %s ignored", tran_id)
        return ConfirmationOutcome(tran_id=tran_id, detail="unknown transaction")

    if is_valid_status(claimed):
        if not gateway.is_configured:
            logger.error("IPN for %s cannot be validated: SSLCommerz not configured", tran_id)
            return ConfirmationOutcome(tran_id=tran_id, status=payment.status, detail="not configured")
        if not val_id:
            return apply_transition(db, tran_id, "failed", raw_response=dict(payload), fallback=fallback)
        try:
            validation = await gateway.validate(val_id)
        except (httpx.HTTPError, ValueError) as e:
            # stays pending; a redelivered IPN can still confirm it
            logger.error("SSLCommerz validation call failed for %s: %s", tran_id, e)
            return ConfirmationOutcome(tran_id=tran_id, status=payment.status, detail="validation unavailable")

        if _validation_confirms(validation, payment):
            logger.info("[SSLCommerz] Payment validated: %s", tran_id)
            return apply_transition(
                db, tran_id, "paid", gateway_reference=val_id, raw_response=validation, fallback=fallback
            )
        logger.warning("[SSLCommerz] Validation rejected %s: %s", tran_id, validation.get("status"))
        return apply_transition(db, tran_id, "failed", gateway_reference=val_id, raw_response=validation)

    target = "cancelled" if claimed == "CANCELLED" else "failed"
    return apply_transition(db, tran_id, target, gateway_reference=val_id, raw_response=dict(payload))

