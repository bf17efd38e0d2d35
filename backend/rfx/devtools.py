import os
from datetime import timedelta
from decimal import Decimal

from flask import Blueprint, jsonify, current_app

from rfx.extensions import db
from rfx.models import Campaign, User
from rfx.services.campaigns import add_task
from rfx.utils.clock import utcnow
from rfx.utils.jwt_utils import create_access_token

dev = Blueprint("devtools", __name__, url_prefix="/dev")

DEMO_TASKS = [
    (1, "Pick up litter", "Collect litter along a beach or riverbank and photograph the haul.", "0.002", "2.5"),
    (1, "Refill, don't buy", "Use a refillable bottle all day instead of single-use plastic.", "0.001", None),
    (2, "Walk or cycle", "Replace one car trip with walking or cycling and share a photo.", "0.003", "3.0"),
    (3, "Plant something", "Plant a tree, shrub or herb and upload a picture of it.", "0.005", "4.0"),
]


@dev.get("/routes")
def list_routes():
    # Lists all registered routes.
    out = []
    for rule in sorted(current_app.url_map.iter_rules(), key=lambda r: r.rule):
        methods = sorted([m for m in rule.methods if m not in ("HEAD", "OPTIONS")])
        out.append({"rule": rule.rule, "methods": methods, "endpoint": rule.endpoint})
    return jsonify(out)


@dev.post("/seed-demo")
def seed_demo():
    email = os.getenv("ADMIN_EMAIL") or "admin@rfx.local"
    password = os.getenv("ADMIN_PASSWORD") or "admin12345"

    admin = User.query.filter_by(email=email).first()
    if not admin:
        admin = User(username="admin", email=email, full_name="RFX Admin", is_admin=True, is_super_admin=True)
        admin.set_password(password)
        db.session.add(admin)

    campaign = Campaign.query.filter_by(title="Clean Coasts Week").first()
    if not campaign:
        campaign = Campaign(
            title="Clean Coasts Week",
            description="A week of small daily actions for cleaner oceans and coastlines.",
            category="Ocean",
            difficulty="Easy",
            reward=Decimal("0.01"),
            start_date=utcnow() - timedelta(hours=1),
            duration=7,
            featured=True,
        )
        db.session.add(campaign)
        for day, title, description, reward, co2 in DEMO_TASKS:
            add_task(
                campaign,
                day=day,
                title=title,
                description=description,
                reward=Decimal(reward),
                co2_impact=Decimal(co2) if co2 else None,
            )
    db.session.commit()

    return jsonify({
        "ok": True,
        "admin_id": admin.id,
        "campaign_id": campaign.id,
        "admin_token": create_access_token(
            admin.id,
            ttl_seconds=int(current_app.config.get("JWT_TTL_SECONDS", 604800)),
            secret=current_app.config["SECRET_KEY"],
        ),
    })
