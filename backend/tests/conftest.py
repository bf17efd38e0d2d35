from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from flask import g

from rfx import create_app
from rfx.extensions import db
from rfx.models import Campaign, User
from rfx.services.campaigns import add_task, join_campaign
from rfx.utils.jwt_utils import create_access_token

START = datetime(2026, 3, 1, 9, 0, 0)
SECRET = "test-secret-key-0123456789"


@pytest.fixture
def app(tmp_path):
    app = create_app({
        "TESTING": True,
        "ENV_NAME": "test",
        "SECRET_KEY": SECRET,
        "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
        "UPLOAD_DIR": str(tmp_path / "proofs"),
        "ENABLE_SCHEDULER": False,
    })
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    @app.teardown_request
    def _forget_login(_exc):
        # Requests share the fixture's app context, so g outlives each request.
        g.pop("_login_user", None)

    return app.test_client()


@pytest.fixture
def make_user(app):
    counter = {"n": 0}

    def _make(**kw):
        counter["n"] += 1
        n = counter["n"]
        user = User(
            username=kw.pop("username", f"user{n}"),
            email=kw.pop("email", f"user{n}@example.com"),
            full_name=kw.pop("full_name", f"User {n}"),
            wallet_address=kw.pop("wallet_address", f"0xwallet{n:04d}"),
            **kw,
        )
        user.set_password("password123")
        db.session.add(user)
        db.session.commit()
        return user

    return _make


@pytest.fixture
def make_campaign(app):
    def _make(start=START, duration=7, tasks=None, **kw):
        campaign = Campaign(
            title=kw.pop("title", "Clean Coasts"),
            description=kw.pop("description", "Daily actions for cleaner coastlines."),
            category=kw.pop("category", "Ocean"),
            difficulty=kw.pop("difficulty", "Easy"),
            start_date=start,
            duration=duration,
            **kw,
        )
        db.session.add(campaign)
        for spec in tasks if tasks is not None else [{"day": 1, "reward": "0.01"}]:
            spec = dict(spec)
            day = spec.pop("day", 1)
            add_task(
                campaign,
                day=day,
                title=spec.pop("title", f"Task for day {day}"),
                description=spec.pop("description", "Do something good for the planet."),
                reward=Decimal(str(spec.pop("reward", "0.01"))),
                co2_impact=spec.pop("co2_impact", Decimal("3.0")),
                type=spec.pop("type", "article-read"),
                **spec,
            )
        db.session.commit()
        return campaign

    return _make


@pytest.fixture
def joined(make_user, make_campaign):
    """A user who joined a one-task campaign (task due day 1, reward 0.01) on day 1."""
    user = make_user()
    campaign = make_campaign()
    join_campaign(user.id, campaign.id, now=START + timedelta(minutes=5))
    return user, campaign, campaign.tasks_list[0]


@pytest.fixture
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token(user.id, secret=SECRET)}"}

    return _headers
