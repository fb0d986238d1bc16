from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import Optional
import logging

from db.session import get_db
from core.auth import Identity, get_verified_identity
from crud.user_plan import DEFAULT_PLAN, ensure_user_plan, get_user_plan
from schemas.user_plan import UserPlanCreate, UserPlanResponse

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/user-plans", tags=["user-plans"])

def _check_owner(identity: Optional[Identity], user_id: str):
    if identity is not None and identity.user_id != user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to access this plan")

@router.get("/{user_id}", response_model=UserPlanResponse)
async def read_user_plan(
    user_id: str,
    identity: Optional[Identity] = Depends(get_verified_identity),
    db: Session = Depends(get_db)
):
    """Current entitlement; users without a row are on the free plan"""
    _check_owner(identity, user_id)
    plan = get_user_plan(db, user_id)
    if not plan:
        return UserPlanResponse(user_id=user_id, **DEFAULT_PLAN)
    return UserPlanResponse.model_validate(plan)

@router.post("", response_model=UserPlanResponse)
async def create_user_plan(
    body: UserPlanCreate,
    identity: Optional[Identity] = Depends(get_verified_identity),
    db: Session = Depends(get_db)
):
    """Create the free plan row at signup; an existing plan is returned unchanged"""
    user_id = identity.user_id if identity else body.user_id
    user_email = (identity.email if identity else None) or body.user_email
    if not user_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="userId is required")
    plan = ensure_user_plan(db, user_id, user_email)
    return UserPlanResponse.model_validate(plan)
