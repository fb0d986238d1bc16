from dataclasses import dataclass
from typing import Optional
import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from config.settings import settings
from utilities.jwt import verify_jwt_token

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class Identity:
    user_id: str
    email: Optional[str] = None
    name: Optional[str] = None


async def get_verified_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[Identity]:
    """Identity from a bearer token, or None when no token was sent.

    A token that fails verification is rejected outright rather than
    falling back to request body fields.
    """
    if credentials is None:
        if settings.REQUIRE_AUTH:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Authentication required"
            )
        return None

    payload = verify_jwt_token(credentials.credentials)
    if not payload or not payload.get("sub"):
        logger.warning("Rejected request with invalid bearer token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token"
        )
    return Identity(
        user_id=str(payload["sub"]),
        email=payload.get("email"),
        name=payload.get("name"),
    )
