import logging

import app.database as _db
from app.config import settings
from app.models.user import Role
from app.services.auth_service import hash_password
from app.utils import utcnow

logger = logging.getLogger("tipfeed.seed")


async def seed_initial_admin() -> None:
    """Create (or promote) the configured admin account."""
    if not settings.SEED_ADMIN_EMAIL or not settings.SEED_ADMIN_PASSWORD:
        logger.debug("SEED_ADMIN_EMAIL not set, skipping seed")
        return

    existing = await _db.db.users.find_one({"email": settings.SEED_ADMIN_EMAIL})
    if existing:
        if Role.admin.value not in (existing.get("roles") or []):
            await _db.db.users.update_one(
                {"_id": existing["_id"]},
                {"$addToSet": {"roles": Role.admin.value}, "$set": {"updated_at": utcnow()}},
            )
            logger.info("Seed user promoted to admin")
        else:
            logger.info("Seed admin already exists, skipping")
        return

    now = utcnow()
    await _db.db.users.insert_one({
        "email": settings.SEED_ADMIN_EMAIL,
        "hashed_password": hash_password(settings.SEED_ADMIN_PASSWORD),
        "username": settings.SEED_ADMIN_USERNAME,
        "roles": [Role.user.value, Role.admin.value],
        "created_at": now,
        "updated_at": now,
    })
    logger.info("Seed admin created: %s", settings.SEED_ADMIN_EMAIL)
