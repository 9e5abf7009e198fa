"""Pytest fixtures for testing"""

import pytest
from datetime import datetime, timezone
from typing import Any, Dict, Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from issuing_gateway.api.main import create_app
from issuing_gateway.domain.defaults import build_default_policy
from issuing_gateway.domain.models import AuthorizationRequest, PolicyConfig
from issuing_gateway.infrastructure.database.models import Base
from issuing_gateway.infrastructure.database.session import get_db


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

FIXED_NOW = datetime(2025, 7, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def policy() -> PolicyConfig:
    """Demo policy: standard employee limits (monthly £500, daily £25)"""
    return build_default_policy("standard_employee")


@pytest.fixture
def app(db: Session, policy: PolicyConfig):
    """FastAPI app with test database and demo policy"""
    app = create_app(policy_config=policy, create_tables=False)

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    return app


@pytest.fixture
def client(app) -> TestClient:
    """Create FastAPI test client with test database"""
    return TestClient(app)


def make_request(**overrides: Any) -> AuthorizationRequest:
    """Paul, restaurant MCC, £12.50 unless overridden"""
    fields: Dict[str, Any] = {
        "id": "iauth_test_1",
        "amount": 1250,
        "currency": "gbp",
        "merchant_name": "Paul",
        "merchant_category_code": "5812",
        "is_amount_controllable": False,
    }
    fields.update(overrides)
    return AuthorizationRequest(**fields)


def make_authorization_payload(**overrides: Any) -> Dict[str, Any]:
    """issuing_authorization object as delivered in an authorization request event"""
    payload: Dict[str, Any] = {
        "id": "iauth_1NvPZb2eZvKYlo2C",
        "object": "issuing.authorization",
        "amount": 0,
        "currency": "gbp",
        "approved": False,
        "status": "pending",
        "merchant_data": {"name": "Paul", "category": "eating_places_restaurants", "city": "London"},
        "pending_request": {"amount": 1250, "currency": "gbp", "is_amount_controllable": False},
    }
    payload.update(overrides)
    return payload


def make_event(authorization: Dict[str, Any], event_type: str = "issuing_authorization.request") -> Dict[str, Any]:
    return {
        "id": "evt_test_123",
        "object": "event",
        "type": event_type,
        "created": 1751371200,
        "account": "acct_test_huel",
        "data": {"object": authorization},
    }
