from decimal import Decimal

import pytest
from fastapi import HTTPException

from core.pricing import PLAN_PRICES_USD, price_table, resolve_price, to_minor_units

EXPECTED_CENTS = {
    ("standard", "monthly"): 900,
    ("standard", "yearly"): 8400,
    ("premium", "monthly"): 1900,
    ("premium", "yearly"): 18000,
}


@pytest.mark.parametrize("plan_id,billing", sorted(EXPECTED_CENTS))
def test_resolve_price_uses_table(plan_id, billing):
    resolved_plan, resolved_billing, amount = resolve_price(plan_id, billing)
    assert (resolved_plan, resolved_billing) == (plan_id, billing)
    assert amount == PLAN_PRICES_USD[plan_id][billing]
    assert to_minor_units(amount) == EXPECTED_CENTS[(plan_id, billing)]


@pytest.mark.parametrize("plan_id,billing,message", [
    (None, "monthly", "planId and billing are required"),
    ("standard", "", "planId and billing are required"),
    ("enterprise", "monthly", "Unknown planId: enterprise"),
    ("premium", "weekly", "Unknown billing: weekly"),
])
def test_resolve_price_rejects_bad_selection(plan_id, billing, message):
    with pytest.raises(HTTPException) as exc:
        resolve_price(plan_id, billing)
    assert exc.value.status_code == 400
    assert exc.value.detail == message


def test_minor_units_rounds_to_cents():
    assert to_minor_units(Decimal("19.99")) == 1999
    assert to_minor_units(Decimal("180")) == 18000


def test_price_table_lists_every_selection():
    rows = {(r["plan_id"], r["billing"]): r["amount_cents"] for r in price_table()}
    assert rows == EXPECTED_CENTS


def test_plans_endpoint(client):
    resp = client.get("/api/payments/plans")
    assert resp.status_code == 200
    body = {(r["planId"], r["billing"]): (Decimal(r["amountUsd"]), r["amountCents"]) for r in resp.json()}
    assert body[("premium", "yearly")] == (Decimal("180"), 18000)
    assert body[("standard", "monthly")] == (Decimal("9"), 900)
