from datetime import timedelta
from decimal import Decimal
import io
import os

import pytest

from rfx.extensions import db
from rfx.models import User
from rfx.utils.clock import utcnow


@pytest.fixture
def live_campaign(make_campaign):
    return make_campaign(start=utcnow() - timedelta(hours=1), tasks=[{"day": 1, "reward": "0.01"}])


def _proof(name="proof.jpg"):
    return {"proof": (io.BytesIO(b"\xff\xd8\xff fake jpeg"), name)}


def test_health(client):
    res = client.get("/api/health")
    assert res.status_code == 200
    assert res.get_json()["db"] == "ok"


def test_anonymous_calls_are_unauthorized(client, live_campaign):
    res = client.post(f"/api/campaigns/{live_campaign.id}/join")
    assert res.status_code == 401
    assert res.get_json()["code"] == "UNAUTHORIZED"

    res = client.post(
        f"/api/campaigns/{live_campaign.id}/join",
        headers={"Authorization": "Bearer not-a-token"},
    )
    assert res.status_code == 401


def test_join_then_complete_then_repeat(client, make_user, live_campaign, auth_headers):
    user = make_user()
    headers = auth_headers(user)
    task_id = live_campaign.tasks_list[0].id

    res = client.post(f"/api/campaigns/{live_campaign.id}/join", headers=headers)
    assert res.status_code == 200
    assert res.get_json()["participants"] == 1

    res = client.post(f"/api/campaigns/{live_campaign.id}/tasks/{task_id}/complete", headers=headers)
    assert res.status_code == 200
    data = res.get_json()["data"]
    assert data["reward"] == 0.01
    assert data["penalty"] is None
    assert data["balance"] == "0.01000"
    assert data["progress"]["percentage"] == 100.0

    res = client.post(f"/api/campaigns/{live_campaign.id}/tasks/{task_id}/complete", headers=headers)
    assert res.status_code == 400
    assert res.get_json()["code"] == "TASK_ALREADY_COMPLETED"

    res = client.get("/api/wallet/transactions", headers=headers)
    rows = res.get_json()
    assert len(rows) == 1
    assert rows[0]["amount"] == "0.01000"
    assert rows[0]["type"] == "earn"


def test_unknown_campaign_is_404(client, make_user, auth_headers):
    user = make_user()
    res = client.post("/api/campaigns/999/tasks/1/complete", headers=auth_headers(user))
    assert res.status_code == 404
    assert res.get_json()["code"] == "CAMPAIGN_NOT_FOUND"


def test_completing_without_joining(client, make_user, live_campaign, auth_headers):
    user = make_user()
    task_id = live_campaign.tasks_list[0].id
    res = client.post(f"/api/campaigns/{live_campaign.id}/tasks/{task_id}/complete", headers=auth_headers(user))
    assert res.status_code == 400
    assert res.get_json()["code"] == "CAMPAIGN_NOT_JOINED"


def test_proof_upload_flow(client, app, make_user, live_campaign, auth_headers):
    user = make_user()
    headers = auth_headers(user)
    task_id = live_campaign.tasks_list[0].id
    client.post(f"/api/campaigns/{live_campaign.id}/join", headers=headers)
    url = f"/api/campaigns/{live_campaign.id}/tasks/{task_id}/proof"

    res = client.post(url, headers=headers, data={}, content_type="multipart/form-data")
    assert res.status_code == 400
    assert res.get_json()["code"] == "MISSING_PROOF_FILE"

    res = client.post(url, headers=headers, data=_proof("notes.txt"), content_type="multipart/form-data")
    assert res.status_code == 400
    assert res.get_json()["code"] == "INVALID_PROOF_FILE"

    res = client.post(url, headers=headers, data=_proof(), content_type="multipart/form-data")
    assert res.status_code == 200
    data = res.get_json()["data"]
    assert data["status"] == "pending"
    assert data["proof_url"].startswith("/api/uploads/proofs/")

    served = client.get(data["proof_url"])
    assert served.status_code == 200
    served.close()

    res = client.post(url, headers=headers, data=_proof(), content_type="multipart/form-data")
    assert res.status_code == 400
    assert res.get_json()["code"] == "PROOF_PENDING_REVIEW"
    # Only the accepted upload stays on disk.
    assert len(os.listdir(app.config["UPLOAD_DIR"])) == 1


def test_admin_routes_require_admin(client, make_user, live_campaign, auth_headers):
    user = make_user()
    res = client.get(f"/api/admin/campaigns/{live_campaign.id}/proofs", headers=auth_headers(user))
    assert res.status_code == 403


def test_admin_approves_uploaded_proof(client, make_user, live_campaign, auth_headers):
    user = make_user()
    admin = make_user(is_admin=True)
    task_id = live_campaign.tasks_list[0].id
    client.post(f"/api/campaigns/{live_campaign.id}/join", headers=auth_headers(user))
    client.post(
        f"/api/campaigns/{live_campaign.id}/tasks/{task_id}/proof",
        headers=auth_headers(user),
        data=_proof(),
        content_type="multipart/form-data",
    )

    listing = client.get(f"/api/admin/campaigns/{live_campaign.id}/proofs", headers=auth_headers(admin)).get_json()
    assert listing[0]["proofs"][0]["status"] == "pending"

    bad = client.post(
        f"/api/admin/campaigns/{live_campaign.id}/approve-proof",
        headers=auth_headers(admin),
        json={"proofs": [], "approve": True},
    )
    assert bad.status_code == 400
    assert bad.get_json()["code"] == "INVALID_REQUEST"

    res = client.post(
        f"/api/admin/campaigns/{live_campaign.id}/approve-proof",
        headers=auth_headers(admin),
        json={"proofs": [{"task_id": task_id, "user_id": user.id}], "approve": True},
    )
    assert res.status_code == 200
    assert res.get_json()["results"][0]["status"] == "completed"
    assert db.session.get(User, user.id).earnings == Decimal("0.01")


def test_reconcile_is_super_admin_only(client, make_user, auth_headers):
    admin = make_user(is_admin=True)
    root = make_user(is_super_admin=True)

    assert client.post("/api/admin/reconcile", headers=auth_headers(admin)).status_code == 403
    res = client.post("/api/admin/reconcile", headers=auth_headers(root), json={"limit": 10})
    assert res.status_code == 200
    assert res.get_json()["ok"] is True


def test_user_campaigns_and_profile(client, make_user, live_campaign, auth_headers):
    user = make_user()
    headers = auth_headers(user)
    client.post(f"/api/campaigns/{live_campaign.id}/join", headers=headers)

    mine = client.get("/api/user/campaigns", headers=headers).get_json()
    assert [c["id"] for c in mine] == [live_campaign.id]

    view = client.get(f"/api/campaigns/{live_campaign.id}/user", headers=headers).get_json()
    assert view["has_joined"] is True
    assert view["current_day"] == 1

    profile = client.get("/api/user/profile", headers=headers).get_json()
    assert profile["user"]["username"] == user.username


def test_public_listing_and_details(client, live_campaign):
    res = client.get("/api/campaigns?status=active")
    assert res.status_code == 200
    assert [c["id"] for c in res.get_json()["data"]] == [live_campaign.id]

    details = client.get(f"/api/campaigns/{live_campaign.id}").get_json()
    assert details["status"] == "active"
    assert details["tasks"][0]["reward"] == "0.01000"

    assert client.get("/api/campaigns/404").status_code == 404
