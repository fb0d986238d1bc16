from fastapi import APIRouter, Depends, HTTPException, status, Request
from fastapi.responses import PlainTextResponse, RedirectResponse
from sqlalchemy.orm import Session
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode
import logging

from db.session import get_db
from config.settings import settings
from core.auth import Identity, get_verified_identity
from core.checkout import initiate_checkout
from core.confirmation import apply_sslcommerz_ipn, apply_stripe_event
from core.pricing import price_table
from core.sslcommerz import SSLCommerzGateway, get_sslcommerz_gateway
from core.stripe_gateway import StripeGateway, WebhookVerificationError, get_stripe_gateway
from crud.payment import get_payment_by_tran_id
from schemas.payment import (
    CheckoutRequest, PaymentResponse, PlanPrice, SSLCommerzInitResponse, StripeIntentResponse
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/payments", tags=["payments"])


async def _read_gateway_payload(request: Request) -> Dict[str, Any]:
    """Gateways post either form-encoded or JSON bodies"""
    content_type = request.headers.get("content-type", "")
    if "application/json" in content_type:
        data = await request.json()
        return data if isinstance(data, dict) else {}
    if request.method == "POST":
        form = await request.form()
        return dict(form)
    return {}


@router.get("/plans", response_model=List[PlanPrice], summary="Server-side price table")
async def list_plan_prices():
    return price_table()

# ---------------- Stripe ----------------

@router.post("/stripe/create-intent", response_model=StripeIntentResponse)
async def stripe_create_intent(
    body: CheckoutRequest,
    identity: Optional[Identity] = Depends(get_verified_identity),
    gateway: StripeGateway = Depends(get_stripe_gateway),
    db: Session = Depends(get_db)
):
    """Create a PaymentIntent and a pending payment row"""
    result = await initiate_checkout(db, gateway, body, identity)
    return StripeIntentResponse(
        client_secret=result["client_secret"],
        payment_intent_id=result["id"],
        amount=result["amount"],
        currency=result["currency"],
    )

@router.post("/stripe/webhook")
async def stripe_webhook(
    request: Request,
    gateway: StripeGateway = Depends(get_stripe_gateway),
    db: Session = Depends(get_db)
):
    """Handle Stripe webhook events"""
    if not gateway.webhook_configured:
        # acknowledged so Stripe does not retry against an unconfigured server
        logger.warning("Stripe webhook received but Stripe or its webhook secret is not configured")
        return {"received": True}

    body = await request.body()
    try:
        event = gateway.verify_webhook_signature(body, request.headers.get("stripe-signature"))
    except WebhookVerificationError as e:
        logger.error("Webhook signature error: %s", e)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Webhook Error: {e}"
        )

    outcome = apply_stripe_event(db, event)
    logger.info("Stripe event %s processed: %s", event.get("id"), outcome.model_dump())
    return {"received": True}

# ---------------- SSLCommerz ----------------

@router.post("/sslcommerz/init", response_model=SSLCommerzInitResponse)
async def sslcommerz_init(
    body: CheckoutRequest,
    identity: Optional[Identity] = Depends(get_verified_identity),
    gateway: SSLCommerzGateway = Depends(get_sslcommerz_gateway),
    db: Session = Depends(get_db)
):
    """Open a hosted payment page session and a pending payment row"""
    result = await initiate_checkout(db, gateway, body, identity)
    return SSLCommerzInitResponse(
        status="success",
        redirect_url=result["redirect_url"],
        session_key=result["session_key"],
    )

@router.post("/sslcommerz/ipn", response_class=PlainTextResponse)
async def sslcommerz_ipn(
    request: Request,
    gateway: SSLCommerzGateway = Depends(get_sslcommerz_gateway),
    db: Session = Depends(get_db)
):
    """SSLCommerz IPN listener; always acknowledged with 200"""
    try:
        payload = await _read_gateway_payload(request)
        outcome = await apply_sslcommerz_ipn(db, gateway, payload)
        logger.info("IPN processed: %s", outcome.model_dump())
    except Exception as e:
        logger.error("[SSLCommerz] IPN error: %s", e, exc_info=True)
    return PlainTextResponse("OK")

def _frontend_redirect(path: str, params: Dict[str, Optional[str]]) -> RedirectResponse:
    query = urlencode({k: v for k, v in params.items() if v})
    url = f"{settings.FRONTEND_URL.rstrip('/')}{path}"
    return RedirectResponse(url=f"{url}?{query}" if query else url, status_code=status.HTTP_303_SEE_OTHER)

@router.api_route("/sslcommerz/success", methods=["GET", "POST"])
async def sslcommerz_success(request: Request):
    """Browser return after payment; the IPN, not this redirect, marks the payment paid"""
    form = await _read_gateway_payload(request)
    params = request.query_params
    tran_id = params.get("tran_id") or form.get("tran_id")
    logger.info("SSLCommerz success callback: %s", tran_id)
    return _frontend_redirect("/payment/success", {
        "tran_id": tran_id,
        "plan": params.get("plan") or form.get("value_b"),
        "billing": params.get("billing") or form.get("value_c"),
    })

@router.api_route("/sslcommerz/fail", methods=["GET", "POST"])
async def sslcommerz_fail(request: Request):
    """Browser return after a failed attempt; only the IPN changes the payment"""
    form = await _read_gateway_payload(request)
    tran_id = request.query_params.get("tran_id") or form.get("tran_id")
    logger.info("SSLCommerz fail callback: %s", tran_id)
    return _frontend_redirect("/payment/fail", {"tran_id": tran_id})

@router.api_route("/sslcommerz/cancel", methods=["GET", "POST"])
async def sslcommerz_cancel(request: Request):
    form = await _read_gateway_payload(request)
    tran_id = request.query_params.get("tran_id") or form.get("tran_id")
    logger.info("SSLCommerz cancel callback: %s", tran_id)
    return _frontend_redirect("/payment/cancel", {"tran_id": tran_id})

# ---------------- Lookup ----------------

@router.get("/{tran_id}", response_model=PaymentResponse, summary="Payment status for result pages")
async def get_payment_status(tran_id: str, db: Session = Depends(get_db)):
    payment = get_payment_by_tran_id(db, tran_id)
    if not payment:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Payment not found")
    return PaymentResponse.model_validate(payment)
