from decimal import Decimal
from typing import Dict, List, Optional, Tuple
from fastapi import HTTPException, status

PLAN_PRICES_USD: Dict[str, Dict[str, Decimal]] = {
    "standard": {"monthly": Decimal("9"), "yearly": Decimal("84")},
    "premium": {"monthly": Decimal("19"), "yearly": Decimal("180")},
}

def to_minor_units(amount_usd: Decimal) -> int:
    """USD amount in cents"""
    return int((amount_usd * 100).to_integral_value())

def resolve_price(plan_id: Optional[str], billing: Optional[str]) -> Tuple[str, str, Decimal]:
    """Validate a plan selection and return (plan_id, billing, amount_usd).

    Raises a 400 naming the offending field; the amount always comes from
    PLAN_PRICES_USD.
    """
    if not plan_id or not billing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="planId and billing are required"
        )
    if plan_id not in PLAN_PRICES_USD:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown planId: {plan_id}"
        )
    if billing not in PLAN_PRICES_USD[plan_id]:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown billing: {billing}"
        )
    return plan_id, billing, PLAN_PRICES_USD[plan_id][billing]

def price_table() -> List[dict]:
    rows = []
    for plan_id, cycles in PLAN_PRICES_USD.items():
        for billing, amount in cycles.items():
            rows.append({
                "plan_id": plan_id,
                "billing": billing,
                "amount_usd": amount,
                "amount_cents": to_minor_units(amount),
            })
    return rows
