from datetime import datetime, timedelta, timezone
from decimal import Decimal

from conftest import fetch_payment
from core.expiry import expiry_tick, start_expiry_scheduler
from crud.payment import create_payment
from db.session import SessionLocal
from scripts.expire_pending import main as expire_pending_main


def seed(tran_id, age_minutes, status="pending"):
    created = datetime.now(timezone.utc) - timedelta(minutes=age_minutes)
    with SessionLocal() as db:
        create_payment(
            db,
            tran_id=tran_id,
            user_id="uid-1",
            plan_id="standard",
            billing="monthly",
            gateway="stripe",
            amount_usd=Decimal("9"),
            status=status,
            created_at=created,
            updated_at=created,
        )


def test_tick_cancels_only_stale_pending():
    seed("old-pending", 3 * 24 * 60)
    seed("new-pending", 5)
    seed("old-paid", 3 * 24 * 60, status="paid")

    assert expiry_tick() == 1
    assert fetch_payment("old-pending").status == "cancelled"
    assert fetch_payment("new-pending").status == "pending"
    assert fetch_payment("old-paid").status == "paid"


def test_script_dry_run_changes_nothing():
    seed("old-pending", 3 * 24 * 60)
    assert expire_pending_main(["--dry-run"]) == 0
    assert fetch_payment("old-pending").status == "pending"


def test_script_honours_ttl():
    seed("ten-minutes", 10)
    assert expire_pending_main(["--ttl-minutes", "60"]) == 0
    assert fetch_payment("ten-minutes").status == "pending"
    assert expire_pending_main(["--ttl-minutes", "5"]) == 0
    assert fetch_payment("ten-minutes").status == "cancelled"


def test_scheduler_off_by_default():
    assert start_expiry_scheduler() is None
