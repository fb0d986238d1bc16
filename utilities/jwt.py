from jose import jwt
from datetime import datetime, timedelta, timezone
from typing import Optional
import logging
from config.settings import settings

logger = logging.getLogger(__name__)

def create_jwt_token(data: dict, expires_delta: timedelta = None) -> str:
    """Create JWT token"""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(hours=1))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)

def verify_jwt_token(token: str) -> Optional[dict]:
    """Verify JWT token"""
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.JWTError:
        return None

def validate_env_variables() -> bool:
    """Report missing configuration; missing gateways degrade, they never abort startup"""
    ok = True
    if not settings.STRIPE_ENABLED:
        logger.warning("Stripe disabled: set STRIPE_SECRET_KEY (sk_...)")
        ok = False
    elif not settings.STRIPE_WEBHOOK_SECRET:
        logger.warning("Stripe webhook secret missing: webhooks will be acknowledged but ignored")
        ok = False
    if not settings.SSLCOMMERZ_ENABLED:
        logger.warning("SSLCommerz disabled: set SSLCOMMERZ_STORE_ID and SSLCOMMERZ_STORE_PASSWORD")
        ok = False
    if settings.REQUIRE_AUTH and settings.JWT_SECRET == "your-secret-key-here":
        logger.warning("REQUIRE_AUTH is on but JWT_SECRET is the placeholder value")
        ok = False
    if ok:
        logger.info("All payment configuration is set")
    return ok
