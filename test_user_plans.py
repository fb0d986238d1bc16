from conftest import count_rows, fetch_user_plan
from crud.user_plan import upsert_user_plan
from db.session import SessionLocal
from models.user_plan import UserPlan
from utilities.jwt import create_jwt_token


def auth_header(user_id, email=None):
    token = create_jwt_token({"sub": user_id, "email": email})
    return {"Authorization": f"Bearer {token}"}


def test_user_without_row_is_on_free_plan(client):
    resp = client.get("/api/user-plans/new-user")
    assert resp.status_code == 200
    data = resp.json()
    assert data["userId"] == "new-user"
    assert data["planId"] == "free"
    assert data["active"] is True
    assert count_rows(UserPlan) == 0


def test_create_plan_row_at_signup(client):
    resp = client.post("/api/user-plans", json={"userId": "uid-1", "userEmail": "a@example.com"})
    assert resp.status_code == 200
    assert resp.json()["planId"] == "free"
    assert fetch_user_plan("uid-1").user_email == "a@example.com"


def test_signup_does_not_downgrade_paid_plan(client):
    with SessionLocal() as db:
        upsert_user_plan(db, "uid-1", "a@example.com", "premium", "yearly")

    resp = client.post("/api/user-plans", json={"userId": "uid-1"})
    assert resp.status_code == 200
    assert resp.json()["planId"] == "premium"
    assert count_rows(UserPlan) == 1


def test_create_requires_user_id(client):
    resp = client.post("/api/user-plans", json={"userEmail": "a@example.com"})
    assert resp.status_code == 400
    assert resp.json()["message"] == "userId is required"


def test_token_identity_is_used_for_signup(client):
    resp = client.post("/api/user-plans", json={"userId": "spoofed"}, headers=auth_header("uid-7", "s@example.com"))
    assert resp.status_code == 200
    assert resp.json()["userId"] == "uid-7"
    assert fetch_user_plan("spoofed") is None


def test_reading_another_users_plan_is_forbidden(client):
    resp = client.get("/api/user-plans/uid-2", headers=auth_header("uid-1"))
    assert resp.status_code == 403
    assert client.get("/api/user-plans/uid-1", headers=auth_header("uid-1")).status_code == 200


def test_upsert_keeps_known_email(client):
    with SessionLocal() as db:
        upsert_user_plan(db, "uid-1", "a@example.com", "standard", "monthly")
        upsert_user_plan(db, "uid-1", None, "premium", "monthly")

    plan = fetch_user_plan("uid-1")
    assert (plan.plan_id, plan.user_email) == ("premium", "a@example.com")
