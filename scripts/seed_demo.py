"""
Seed a demo business, two contractors, a project and a pending work request.
Run: python -m scripts.seed_demo (from the repository root).
Then call the API with header X-User-ID: demo-business or demo-contractor.
"""
import asyncio
from decimal import Decimal

from database import AsyncSessionLocal, init_db
from models import Project, User, WorkRequest
from services.budget import start_budget_period
from services.repository import utcnow

USERS_DATA = [
    {
        "id": "demo-business",
        "username": "acme-studio",
        "email": "ops@acme.example",
        "role": "business",
        "budget_cap": Decimal("5000.00"),
        "budget_period": "monthly",
        "budget_reset_enabled": True,
    },
    {
        "id": "demo-contractor",
        "username": "jo-designs",
        "email": "jo@designs.example",
        "role": "contractor",
        "stripe_connect_account_id": "acct_demo_contractor",
    },
    {
        "id": "demo-contractor-unlinked",
        "username": "sam-writes",
        "email": "sam@writes.example",
        "role": "contractor",
    },
]

PROJECT_ID = "prj-demo"
WORK_REQUEST_ID = "wr-demo"


async def seed():
    await init_db()
    async with AsyncSessionLocal() as session:
        for data in USERS_DATA:
            if await session.get(User, data["id"]):
                print(f"User {data['id']} already exists, skipping")
                continue
            user = User(budget_used=Decimal("0"), **data)
            if user.budget_cap is not None:
                start_budget_period(user, utcnow())
            session.add(user)
            print(f"Seeded user: {data['username']} ({data['role']})")

        if await session.get(Project, PROJECT_ID) is None:
            now = utcnow()
            session.add(Project(
                id=PROJECT_ID,
                business_id="demo-business",
                name="Brand refresh",
                description="Logo, palette and landing page",
                budget=Decimal("3000.00"),
                status="active",
                created_at=now,
            ))
            session.add(WorkRequest(
                id=WORK_REQUEST_ID,
                project_id=PROJECT_ID,
                business_id="demo-business",
                contractor_user_id="demo-contractor",
                title="Landing page design",
                deliverable_description="Figma file with desktop and mobile layouts",
                amount=Decimal("750.00"),
                currency="gbp",
                status="pending",
                created_at=now,
            ))
            print(f"Seeded project {PROJECT_ID} with work request {WORK_REQUEST_ID}")
        await session.commit()
    print("Seed complete.")


if __name__ == "__main__":
    asyncio.run(seed())
