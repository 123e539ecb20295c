"""Pytest configuration and shared fixtures for all tests."""

import os
import sys
import tempfile
from decimal import Decimal
from pathlib import Path

# Minimal environment so config.py imports without a .env file
os.environ.setdefault("SECRET_KEY", "test_secret_key_for_testing_only")
os.environ.setdefault("FLASK_ENV", "testing")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="referral-logs-"))

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pytest

from app import create_app
from config import TestingConfig
from extensions import db
from models import User, Referral


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    """Insert a user directly, bypassing registration and commissions."""
    def _make_user(username, referred_by=None, active=True, password=None, role="user", **balances):
        user = User(
            username=username,
            email=f"{username.lower()}@example.com",
            referral_code=username.upper(),
            referred_by_code=referred_by.referral_code if referred_by is not None else None,
            account_active=active,
            role=role,
        )
        if password:
            user.set_password(password)
        else:
            user.password_hash = "!"
        for field, value in balances.items():
            setattr(user, field, Decimal(str(value)))
        db.session.add(user)
        db.session.commit()
        return user

    return _make_user


@pytest.fixture
def make_edge(app):
    def _make_edge(referrer, referred, level=1, commission="1800"):
        edge = Referral(
            referrer_id=referrer.id,
            referred_id=referred.id,
            level=level,
            commission=Decimal(commission),
            paid=True,
        )
        db.session.add(edge)
        db.session.commit()
        return edge

    return _make_edge


@pytest.fixture
def login(client):
    """Put a user id in the test client's session."""
    def _login(user):
        with client.session_transaction() as sess:
            sess["user_id"] = user.id
        return client

    return _login
