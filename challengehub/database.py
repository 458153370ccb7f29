import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING

from challengehub.core.config import (
    settings,
    CHALLENGES,
    USER_CHALLENGES,
    TEAMS,
    TEAM_MEMBERS,
    SUBMISSIONS,
    USERS,
)

logger = logging.getLogger(__name__)


class Database:
    client: Optional[AsyncIOMotorClient] = None

    @classmethod
    async def connect_db(cls):
        """Connect to MongoDB"""
        cls.client = AsyncIOMotorClient(settings.MONGODB_URL, tz_aware=False)
        logger.info("[OK] Connected to MongoDB")

        # Create indexes
        await cls.create_indexes()

    @classmethod
    async def create_indexes(cls):
        """Create the indexes the midnight run queries rely on"""
        db = cls.get_db()

        # Challenges: status scans (deadlines, released scores, public counts)
        try:
            await db[CHALLENGES].create_index([("status", ASCENDING), ("scores_released", ASCENDING)])
            await db[CHALLENGES].create_index([("visibility", ASCENDING), ("status", ASCENDING)])
            logger.info("[OK] Created indexes on %s", CHALLENGES)
        except Exception as e:
            logger.warning("[WARN] Indexes on %s may already exist: %s", CHALLENGES, e)

        # Enrollments: per-challenge status lookups
        try:
            await db[USER_CHALLENGES].create_index([("challenge_id", ASCENDING), ("status", ASCENDING)])
            await db[USER_CHALLENGES].create_index([("user_id", ASCENDING), ("challenge_id", ASCENDING)], unique=True)
            logger.info("[OK] Created indexes on %s", USER_CHALLENGES)
        except Exception as e:
            logger.warning("[WARN] Indexes on %s may already exist: %s", USER_CHALLENGES, e)

        # Teams and memberships
        try:
            await db[TEAMS].create_index([("challenge_id", ASCENDING), ("status", ASCENDING)])
            await db[TEAM_MEMBERS].create_index([("team_id", ASCENDING), ("status", ASCENDING)])
            logger.info("[OK] Created indexes on %s and %s", TEAMS, TEAM_MEMBERS)
        except Exception as e:
            logger.warning("[WARN] Indexes on teams may already exist: %s", e)

        # Submissions and users
        try:
            await db[SUBMISSIONS].create_index([("challenge_id", ASCENDING), ("status", ASCENDING)])
            await db[USERS].create_index([("user_type", ASCENDING)])
            logger.info("[OK] Created indexes on %s and %s", SUBMISSIONS, USERS)
        except Exception as e:
            logger.warning("[WARN] Indexes on submissions/users may already exist: %s", e)

    @classmethod
    async def close_db(cls):
        """Close MongoDB connection"""
        if cls.client:
            cls.client.close()
            cls.client = None
            logger.info("[OK] Disconnected from MongoDB")

    @classmethod
    def get_db(cls) -> Optional[AsyncIOMotorDatabase]:
        """Get database instance (None before connect_db)"""
        if cls.client is None:
            return None
        return cls.client[settings.DATABASE_NAME]
