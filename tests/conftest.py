"""
Shared fixtures. Tests run against an in-memory SQLite database that is
created fresh for every test.
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-signing-cookies-and-tokens")

import pytest
from fastapi.testclient import TestClient

from tracker.database import Base, SessionLocal, engine
from tracker.main import app
from tracker.models import Company, Opportunity


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def company(db):
    row = Company(name="Northwind Logistics", slug="northwind-logistics")
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


@pytest.fixture
def opportunity(db, company):
    row = Opportunity(
        name="Route optimization assistant",
        company_id=company.id,
        company=company.name,
        phase=2,
        status="in_progress",
        estimated_som=150000,
        target_date="2024-03-01",
        sort_order=1,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row
