#!/usr/bin/env python3
"""
Database Seeding for Innovation Tracker

Usage:
    python -m tracker.seed                  # Create companies if none exist
    SEED_DEMO=true python -m tracker.seed   # Also create demo opportunities

Behavior:
    - Creates tables if they are missing
    - If NO companies exist: Creates the starter companies
    - SEED_DEMO=true: Creates demo opportunities that don't exist yet (by name)
    - Safe to run multiple times (idempotent)
"""

import os

from tracker.database import SessionLocal, init_db
from tracker.models import Company, Opportunity
from tracker.models.company import slugify


# =============================================================================
# SEED DATA
# =============================================================================

COMPANIES = [
    "Northwind Logistics",
    "Contoso Health",
    "Fabrikam Retail",
]

# Demo opportunities - only created when SEED_DEMO=true
DEMO_OPPORTUNITIES = [
    {
        "name": "Route optimization assistant",
        "company": "Northwind Logistics",
        "phase": 2,
        "status": "in_progress",
        "estimated_som": 150000,
        "target_date": "2024-03-01",
        "messaging_indicator": "green",
        "campaign_indicator": "amber",
        "pricing_indicator": "amber",
        "sales_alignment_indicator": "red",
        "next_steps": "Pilot with two depots",
        "demo_links": ["https://example.com/demos/routing"],
    },
    {
        "name": "Claims triage",
        "company": "Contoso Health",
        "phase": 1,
        "status": "planned",
        "estimated_som": 420000,
        "target_date": "2024-01-15",
        "messaging_indicator": "amber",
        "next_steps": "Discovery interviews",
    },
    {
        "name": "Shelf-gap detection",
        "company": "Fabrikam Retail",
        "phase": 0,
        "status": "paused",
        "estimated_som": None,
        "target_date": None,
    },
]


# =============================================================================
# SEEDING FUNCTIONS
# =============================================================================


def seed_companies(db) -> int:
    """
    Create starter companies if no companies exist.
    Returns count of companies created.
    """
    company_count = db.query(Company).count()

    if company_count > 0:
        print(f"  [SKIP] {company_count} company(ies) already exist")
        return 0

    for name in COMPANIES:
        print(f"  [CREATE] Company: {name}")
        db.add(Company(name=name, slug=slugify(name)))
    db.flush()
    return len(COMPANIES)


def seed_demo_opportunities(db) -> int:
    """
    Create demo opportunities that don't exist yet.
    Returns count of opportunities created.
    """
    created_count = 0
    companies = {c.name: c for c in db.query(Company).all()}

    for sort_order, data in enumerate(DEMO_OPPORTUNITIES, start=1):
        if db.query(Opportunity).filter(Opportunity.name == data["name"]).first():
            print(f"  [SKIP] Demo opportunity exists: {data['name']}")
            continue

        values = dict(data)
        company = companies.get(values.get("company"))
        values["company_id"] = company.id if company else None
        values["sort_order"] = sort_order
        print(f"  [CREATE] Demo opportunity: {data['name']} (phase {data['phase']})")
        db.add(Opportunity(**values))
        created_count += 1

    return created_count


def main():
    """Main seeding entry point."""
    print("=" * 60)
    print("INNOVATION TRACKER - DATABASE SEEDING")
    print("=" * 60)

    seed_demo = os.getenv("SEED_DEMO", "false").lower() == "true"

    init_db()

    db = SessionLocal()
    try:
        print("Phase 1: Companies")
        companies_created = seed_companies(db)

        demo_created = 0
        if seed_demo:
            print("\nPhase 2: Demo Opportunities")
            demo_created = seed_demo_opportunities(db)
        else:
            print("\nPhase 2: Demo Opportunities [SKIPPED - set SEED_DEMO=true to enable]")

        db.commit()

        print("\n" + "=" * 60)
        print("SEEDING COMPLETE")
        print("=" * 60)
        print(f"Created {companies_created} company(ies), {demo_created} opportunity(ies)")

    except Exception as e:
        db.rollback()
        print(f"\n[ERROR] Seeding failed: {e}")
        raise

    finally:
        db.close()


if __name__ == "__main__":
    main()
