import json
import logging
from decimal import Decimal
from typing import Any, Dict, Optional

import stripe
from fastapi import HTTPException, status
from starlette.concurrency import run_in_threadpool

from config.settings import settings
from core.pricing import to_minor_units

logger = logging.getLogger(__name__)


class WebhookVerificationError(Exception):
    """Raised when a webhook payload cannot be proven to come from Stripe."""


class StripeGateway:
    """Stripe PaymentIntent adapter.

    Card collection and 3-D Secure happen in the browser with Stripe.js; this
    class only creates intents and checks webhook signatures.
    """

    name = "stripe"
    label = "Stripe"

    def __init__(self, secret_key: str, webhook_secret: str = ""):
        self.secret_key = secret_key or ""
        self.webhook_secret = webhook_secret or ""

    @property
    def is_configured(self) -> bool:
        return self.secret_key.startswith("sk_")

    @property
    def webhook_configured(self) -> bool:
        return self.is_configured and bool(self.webhook_secret)

    async def create_session(
        self,
        amount_usd: Decimal,
        tran_id: str,
        plan_id: str,
        billing: str,
        user_id: Optional[str] = None,
        user_email: Optional[str] = None,
        user_name: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Create a PaymentIntent; returns client_secret, id and amount in cents."""
        amount_cents = to_minor_units(amount_usd)
        params: Dict[str, Any] = {
            "amount": amount_cents,
            "currency": "usd",
            # Metadata is the only link from the async webhook back to our row
            "metadata": {
                "planId": plan_id,
                "billing": billing,
                "userId": user_id or "",
                "userEmail": user_email or "",
                "userName": user_name or "",
                "tranId": tran_id,
            },
            "automatic_payment_methods": {"enabled": True},
            "description": f"MediMind {plan_id} plan ({billing})",
        }
        if user_email:
            params["receipt_email"] = user_email

        try:
            intent = await run_in_threadpool(
                stripe.PaymentIntent.create, api_key=self.secret_key, **params
            )
        except stripe.StripeError as e:
            logger.error("[Stripe] PaymentIntent creation failed for %s: %s", tran_id, e)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Stripe error: {e.user_message or 'failed to create payment intent'}"
            )

        logger.info("[Stripe] PaymentIntent created: %s for %s/%s", intent["id"], plan_id, billing)
        return {
            "client_secret": intent["client_secret"],
            "id": intent["id"],
            "amount": amount_cents,
            "currency": "usd",
        }

    def verify_webhook_signature(self, raw_body: bytes, signature_header: Optional[str]) -> Dict[str, Any]:
        """Verify the Stripe-Signature header and return the decoded event."""
        if not signature_header:
            raise WebhookVerificationError("Missing Stripe-Signature header")
        try:
            payload = raw_body.decode("utf-8") if isinstance(raw_body, bytes) else raw_body
        except UnicodeDecodeError as e:
            raise WebhookVerificationError(f"Invalid payload encoding: {e}") from e
        try:
            stripe.WebhookSignature.verify_header(
                payload,
                signature_header,
                self.webhook_secret,
                stripe.Webhook.DEFAULT_TOLERANCE,
            )
        except stripe.SignatureVerificationError as e:
            raise WebhookVerificationError(str(e)) from e
        try:
            return json.loads(payload)
        except ValueError as e:
            raise WebhookVerificationError(f"Invalid payload: {e}") from e


def get_stripe_gateway() -> StripeGateway:
    """Dependency returning the configured Stripe adapter"""
    return StripeGateway(settings.STRIPE_SECRET_KEY, settings.STRIPE_WEBHOOK_SECRET)
