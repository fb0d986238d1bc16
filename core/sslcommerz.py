import httpx
import logging
from decimal import Decimal
from typing import Any, Dict, Optional
from urllib.parse import urlencode
from fastapi import HTTPException, status

from config.settings import settings

logger = logging.getLogger(__name__)

SESSION_PATH = "/gwprocess/v4/api.php"
VALIDATION_PATH = "/validator/api/validationserverAPI.php"

# Statuses the validator returns for a genuine, settled payment
VALID_STATUSES = ("VALID", "VALIDATED")


class SSLCommerzGateway:
    """Hosted payment page adapter for SSLCommerz.

    SSLCommerz has no metadata channel, so userId/planId/billing ride along in
    the value_a/value_b/value_c pass-through fields.
    """

    name = "sslcommerz"
    label = "SSLCommerz"

    def __init__(
        self,
        store_id: str,
        store_password: str,
        base_url: str,
        api_base_url: str,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.store_id = store_id or ""
        self.store_password = store_password or ""
        self.base_url = base_url.rstrip("/")
        self.api_base_url = api_base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.store_id and self.store_password and "your_" not in self.store_id)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self._transport)

    def callback_urls(self, tran_id: str, plan_id: str, billing: str) -> Dict[str, str]:
        """Browser callback URLs plus the server-to-server IPN URL"""
        callback = f"{self.api_base_url}/api/payments/sslcommerz"
        query = urlencode({"tran_id": tran_id, "plan": plan_id, "billing": billing})
        return {
            "success_url": f"{callback}/success?{query}",
            "fail_url": f"{callback}/fail?{urlencode({'tran_id': tran_id})}",
            "cancel_url": f"{callback}/cancel?{urlencode({'tran_id': tran_id})}",
            "ipn_url": f"{callback}/ipn",
        }

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
        """Open a hosted-page session; returns redirect_url and session_key."""
        payload = {
            "store_id": self.store_id,
            "store_passwd": self.store_password,
            "total_amount": str(amount_usd),
            "currency": "USD",
            "tran_id": tran_id,
            **self.callback_urls(tran_id, plan_id, billing),
            "product_name": f"MediMind {plan_id} plan",
            "product_category": "Software Subscription",
            "product_profile": "general",
            "cus_name": user_name or "Customer",
            "cus_email": user_email or "customer@example.com",
            "cus_add1": "N/A",
            "cus_city": "Dhaka",
            "cus_postcode": "1000",
            "cus_country": "Bangladesh",
            "cus_phone": "01700000000",
            "shipping_method": "NO",
            "num_of_item": "1",
            "value_a": user_id or "",
            "value_b": plan_id,
            "value_c": billing,
        }

        try:
            async with self._client() as client:
                response = await client.post(SESSION_PATH, data=payload)
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("[SSLCommerz] init request failed for %s: %s", tran_id, e)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to reach SSLCommerz"
            )

        gateway_url = data.get("GatewayPageURL") if isinstance(data, dict) else None
        if not gateway_url:
            reason = data.get("failedreason") if isinstance(data, dict) else None
            logger.error("[SSLCommerz] No gateway URL for %s: %s", tran_id, reason or data)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="SSLCommerz did not return a gateway URL"
            )

        logger.info("[SSLCommerz] Session created: %s", tran_id)
        return {
            "redirect_url": gateway_url,
            "session_key": data.get("sessionkey") or tran_id,
        }

    async def validate(self, val_id: str) -> Dict[str, Any]:
        """Ask SSLCommerz whether val_id is a genuine payment.

        Returns the validator payload. Transport failures raise httpx errors
        so the caller can leave the transaction untouched for a retry.
        """
        params = {
            "val_id": val_id,
            "store_id": self.store_id,
            "store_passwd": self.store_password,
            "format": "json",
            "v": "1",
        }
        async with self._client() as client:
            response = await client.get(VALIDATION_PATH, params=params)
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict):
            raise ValueError("Unexpected SSLCommerz validation payload")
        return data


def is_valid_status(value: Optional[str]) -> bool:
    return (value or "").upper() in VALID_STATUSES


def get_sslcommerz_gateway() -> SSLCommerzGateway:
    """Dependency returning the configured SSLCommerz adapter"""
    return SSLCommerzGateway(
        store_id=settings.SSLCOMMERZ_STORE_ID,
        store_password=settings.SSLCOMMERZ_STORE_PASSWORD,
        base_url=settings.SSLCOMMERZ_BASE_URL,
        api_base_url=settings.EFFECTIVE_API_BASE_URL,
        timeout=settings.GATEWAY_TIMEOUT_SECONDS,
    )
