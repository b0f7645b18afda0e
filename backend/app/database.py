"""
backend/app/database.py

Purpose:
    MongoDB connection bootstrap and index management for all collections.
    The unique indexes here back the one-stake-per-tip and
    one-reaction-per-kind rules.

Dependencies:
    - motor.motor_asyncio
    - pymongo
    - app.config
"""

import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from app.config import settings

client: AsyncIOMotorClient = None
db: AsyncIOMotorDatabase = None

logger = logging.getLogger("tipfeed.database")


async def connect_db() -> None:
    global client, db
    client = AsyncIOMotorClient(
        settings.MONGO_URI,
        maxPoolSize=25,
        minPoolSize=5,
        tz_aware=True,
    )
    db = client[settings.MONGO_DB]
    await _ensure_indexes()


async def close_db() -> None:
    global client
    if client:
        client.close()


async def get_db() -> AsyncIOMotorDatabase:
    return db


async def _ensure_indexes() -> None:
    """Create indexes on startup. Idempotent, safe to run repeatedly."""

    # ---- Users ----
    await db.users.create_index("email", unique=True)
    await db.users.create_index("roles")

    # ---- Tips ----
    await db.tips.create_index([("created_at", -1)])
    await db.tips.create_index([("status", 1), ("created_at", -1)])
    await db.tips.create_index("match_start_time")

    # ---- Tracking (stakes): one per (user, tip) ----
    await db.user_tracking.create_index(
        [("user_id", 1), ("tip_id", 1)], unique=True
    )
    await db.user_tracking.create_index("tip_id")
    await db.user_tracking.create_index([("created_at", -1)])

    # ---- Reactions: one per (user, tip, kind) ----
    await db.tip_reactions.create_index(
        [("user_id", 1), ("tip_id", 1), ("reaction_type", 1)], unique=True
    )
    await db.tip_reactions.create_index("tip_id")

    # ---- Comments ----
    await db.tip_comments.create_index([("tip_id", 1), ("created_at", 1)])

    # ---- Auth tokens ----
    await db.refresh_tokens.create_index("jti", unique=True)
    await db.refresh_tokens.create_index("family")
    await db.refresh_tokens.create_index("expires_at", expireAfterSeconds=0)
    await db.access_blocklist.create_index("jti", unique=True)
    await db.access_blocklist.create_index("expires_at", expireAfterSeconds=0)

    # ---- Audit ----
    await db.audit_logs.create_index([("timestamp", -1)])
    await db.audit_logs.create_index([("actor_id", 1), ("timestamp", -1)])

    logger.info("Database indexes ensured")
