"""
MongoDB indexes, created at startup.
The unique sparse keys are the storage backstop for the uniqueness rules:
one active coverage plan per (doctor, month), one non-cancelled visit per
(mr, doctor, day), one beat plan per (mr, day).
"""

import logging

from config import db

logger = logging.getLogger("indexes")


async def ensure_indexes():
    await db.users.create_index("id", unique=True)
    await db.users.create_index("email", unique=True)
    await db.users.create_index("manager_id")
    await db.sessions.create_index("token")
    await db.sessions.create_index("expires_at")
    await db.doctors.create_index("id", unique=True)
    await db.doctors.create_index("assigned_mr")

    await db.doctor_coverage_plans.create_index("id", unique=True)
    await db.doctor_coverage_plans.create_index("active_key", unique=True, sparse=True)
    await db.doctor_coverage_plans.create_index([("assigned_mr", 1), ("month", -1)])

    await db.visits.create_index("id", unique=True)
    await db.visits.create_index("day_key", unique=True, sparse=True)
    await db.visits.create_index([("doctor_id", 1), ("mr_id", 1), ("visit_date", -1)])
    await db.visits.create_index([("mr_id", 1), ("visit_date", -1)])

    await db.beat_plans.create_index("id", unique=True)
    await db.beat_plans.create_index([("mr_id", 1), ("plan_date", 1)], unique=True)

    await db.activity_logs.create_index("created_at")
    await db.settings.create_index("key", unique=True)

    logger.info("[INDEXES] MongoDB indexes ensured")
