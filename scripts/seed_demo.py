#!/usr/bin/env python3
"""
Seed script to create a demo organization with one integration per platform
"""

import asyncio
import secrets
import uuid


async def seed_demo_data():
    """Seed demo data for development"""
    from orderbridge.database import SessionLocal, engine, Base
    from orderbridge.models.tenant import Organization, Branch, PlatformIntegration, Platform

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with SessionLocal() as db:
        # Check if demo organization already exists
        from sqlalchemy import select
        result = await db.execute(
            select(Organization).where(Organization.name == "Mario's Italian Kitchen")
        )
        existing = result.scalar_one_or_none()

        if existing:
            print("Demo data already exists. Skipping...")
            return

        print("Creating demo organization...")

        organization = Organization(
            id=uuid.uuid4(),
            name="Mario's Italian Kitchen",
        )
        db.add(organization)
        await db.flush()

        print(f"Created organization: {organization.name} (ID: {organization.id})")

        branch = Branch(
            id=uuid.uuid4(),
            organization_id=organization.id,
            name="Mario's - Soho",
        )
        db.add(branch)

        integrations = []
        for platform, store_id in (
            (Platform.UBER_EATS, "uber-store-demo"),
            (Platform.DELIVEROO, None),
            (Platform.JUST_EAT, "je-restaurant-demo"),
        ):
            integration = PlatformIntegration(
                organization_id=organization.id,
                platform=platform.value,
                platform_restaurant_id=store_id,
                credentials={"webhook_secret": secrets.token_hex(32)},
                settings={
                    "auto_accept_orders": False,
                    "auto_accept_same_day": True,
                    "branch_id": str(branch.id),
                    "currency": "GBP",
                },
            )
            db.add(integration)
            integrations.append(integration)

        await db.commit()

        secrets_text = "\n".join(
            f"  {i.platform}: {i.credentials['webhook_secret']}" for i in integrations
        )

        print(f"""
Demo data created successfully!

Organization: Mario's Italian Kitchen
  ID: {organization.id}
  Branch: {branch.name} ({branch.id})

Webhook URLs:
  POST /webhooks/uber_eats?org={organization.id}
  POST /webhooks/deliveroo?org={organization.id}
  POST /webhooks/just_eat?org={organization.id}

Webhook secrets (sign the raw body with HMAC-SHA256, hex digest):
{secrets_text}
""")


if __name__ == "__main__":
    asyncio.run(seed_demo_data())
