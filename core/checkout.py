import logging
import uuid
from typing import Any, Dict, Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from core.auth import Identity
from core.pricing import resolve_price
from crud.payment import create_payment
from schemas.payment import CheckoutRequest

logger = logging.getLogger(__name__)


async def initiate_checkout(
    db: Session,
    gateway,
    request: CheckoutRequest,
    identity: Optional[Identity] = None,
) -> Dict[str, Any]:
    """Open a gateway session and record the pending payment.

    Steps:
    - Validate plan and billing, price them from the server-side table
    - Refuse with 503 when the gateway has no credentials
    - Create the gateway session under a fresh transaction id
    - Persist the pending row before any continuation data leaves the server

    Returns the adapter's session data plus tran_id and amount_usd.
    """
    plan_id, billing, amount_usd = resolve_price(request.plan_id, request.billing)

    if not gateway.is_configured:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{gateway.label} is not configured"
        )

    user_id = request.user_id
    user_email = request.user_email
    user_name = request.user_name
    if identity is not None:
        # verified token wins over free-text body fields
        user_id = identity.user_id
        user_email = identity.email or user_email
        user_name = identity.name or user_name

    tran_id = str(uuid.uuid4())
    session = await gateway.create_session(
        amount_usd=amount_usd,
        tran_id=tran_id,
        plan_id=plan_id,
        billing=billing,
        user_id=user_id,
        user_email=user_email,
        user_name=user_name,
    )

    try:
        create_payment(
            db,
            tran_id=tran_id,
            user_id=user_id or "",
            user_email=user_email or "",
            user_name=user_name or "",
            plan_id=plan_id,
            billing=billing,
            gateway=gateway.name,
            amount_usd=amount_usd,
            currency="USD",
            gateway_reference=session.get("id"),
        )
    except Exception as e:
        # without a local row a completed payment could never be matched
        logger.error("Could not record %s payment %s: %s", gateway.name, tran_id, e, exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to record payment"
        )

    return {**session, "tran_id": tran_id, "amount_usd": amount_usd}
