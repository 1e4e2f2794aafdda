"""
Field-force test fixtures.
An in-memory mongomock-motor database replaces the Motor client before any
service module binds `db`; the API is driven through httpx over ASGI.
Run: cd backend && pytest tests -v
"""

import uuid
from datetime import datetime, timedelta, timezone

import httpx
import pytest
import pytest_asyncio
from mongomock_motor import AsyncMongoMockClient

import config

if not isinstance(config.client, AsyncMongoMockClient):
    config.client = AsyncMongoMockClient()
    config.db = config.client[config.DB_NAME]

from config import hash_password, now_iso, to_iso  # noqa: E402
from server import app  # noqa: E402

PASSWORD = "FieldForce2024!"

COLLECTIONS = (
    "users", "sessions", "doctors", "visits", "doctor_coverage_plans",
    "beat_plans", "activity_logs", "settings",
)


@pytest.fixture
def db():
    return config.db


@pytest_asyncio.fixture(autouse=True)
async def clean_db():
    for name in COLLECTIONS:
        await config.db[name].delete_many({})
    yield


@pytest_asyncio.fixture
async def client():
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


# ═══════════════════════════════════════════════════════════════
# Factories
# ═══════════════════════════════════════════════════════════════

async def make_user(role, name=None, manager_id=None, is_active=True):
    user = {
        "id": str(uuid.uuid4()),
        "name": name or f"{role} {uuid.uuid4().hex[:6]}",
        "email": f"{uuid.uuid4().hex[:10]}@fieldforce.test",
        "password": hash_password(PASSWORD),
        "role": role,
        "manager_id": manager_id,
        "employee_id": f"EMP-{uuid.uuid4().hex[:5].upper()}",
        "is_active": is_active,
        "created_at": now_iso(),
    }
    await config.db.users.insert_one(user)
    user.pop("_id", None)
    return user


async def make_session(user):
    token = uuid.uuid4().hex
    await config.db.sessions.insert_one({
        "token": token,
        "user_id": user["id"],
        "created_at": now_iso(),
        "expires_at": to_iso(datetime.now(timezone.utc) + timedelta(days=1)),
    })
    return {"Authorization": f"Bearer {token}"}


async def make_doctor(assigned_mr=None, name=None, is_active=True):
    doctor = {
        "id": str(uuid.uuid4()),
        "name": name or f"Dr {uuid.uuid4().hex[:6]}",
        "specialization": "Cardiology",
        "clinic_name": "City Clinic",
        "city": "Mumbai",
        "assigned_mr": assigned_mr,
        "is_approved": True,
        "is_active": is_active,
        "created_at": now_iso(),
    }
    await config.db.doctors.insert_one(doctor)
    doctor.pop("_id", None)
    return doctor


async def widen_visit_window(days=100000):
    """Allow visits far in the past (fixed historical months in tests)"""
    from services.settings import upsert_setting
    await upsert_setting("visit_rules", {"max_visit_age_days": days})


@pytest_asyncio.fixture
async def team():
    """Owner, one manager with two MRs, one MR outside the team, one doctor per MR"""
    owner = await make_user("Owner", "Olivia Owner")
    manager = await make_user("Manager", "Manish Manager")
    other_manager = await make_user("Manager", "Other Manager")
    mr1 = await make_user("MR", "Ravi MR", manager_id=manager["id"])
    mr2 = await make_user("MR", "Sita MR", manager_id=manager["id"])
    outsider = await make_user("MR", "Outside MR", manager_id=other_manager["id"])
    return {
        "owner": owner,
        "manager": manager,
        "other_manager": other_manager,
        "mr1": mr1,
        "mr2": mr2,
        "outsider": outsider,
        "doctor1": await make_doctor(mr1["id"], "Dr Mehta"),
        "doctor2": await make_doctor(mr2["id"], "Dr Rao"),
        "doctor_out": await make_doctor(outsider["id"], "Dr Outside"),
        "h_owner": await make_session(owner),
        "h_manager": await make_session(manager),
        "h_mr1": await make_session(mr1),
        "h_mr2": await make_session(mr2),
        "h_outsider": await make_session(outsider),
    }
