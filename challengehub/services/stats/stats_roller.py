"""
Statistics Roller

Two nightly jobs over the stats collection:

- Monthly prev rollover: on the 1st of the month (reference timezone)
  every tagged metric's current magnitude is copied into its `prev`, the
  baseline for month-over-month change. Any other day it does nothing.
- Public stats: counts public challenges, participant users and total
  prize money (USD) of completed challenges into stats/public; `prev`
  there is simply the previous run's value.
"""
import logging
from typing import Any, Dict, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from challengehub.core.config import CHALLENGES, USERS, STATS, PUBLIC_STATS_ID
from challengehub.models.challenge.challenge import ChallengeStatus, ChallengeVisibility
from challengehub.models.stats.stats import (
    MetricKind,
    PUBLIC_CHALLENGES,
    PUBLIC_DEVELOPERS,
    PUBLIC_PRIZES,
)
from challengehub.services.stats.stats_service import StatsService
from challengehub.utils.clock import Clock
from challengehub.utils.currency import convert_to_usd

logger = logging.getLogger(__name__)


class StatsRoller:

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        clock: Optional[Clock] = None,
        stats_service: Optional[StatsService] = None,
    ):
        self.db = db
        self.clock = clock or Clock()
        self.stats = db[STATS]
        self.challenges = db[CHALLENGES]
        self.users = db[USERS]
        self.stats_service = stats_service or StatsService(db, self.clock)

    async def update_prev_values(self) -> Dict[str, Any]:
        """Monthly rollover. Returns a summary (`skipped` when not the 1st)."""
        if not self.clock.is_first_day_of_month():
            logger.info("[STATS] Skipping prev value update - not first day of month")
            return {"skipped": True, "total_docs": 0, "updated": 0, "errors": 0}

        logger.info("[STATS] Updating prev values for all stats documents (monthly rollover)")

        docs = await self.stats.find({}, {"_id": 1}).to_list(length=None)
        updated = 0
        errors = 0

        for doc in docs:
            try:
                await self.stats_service.rollover_prev_values(doc["_id"])
                updated += 1
            except Exception:
                errors += 1
                logger.exception("[STATS] Failed to update stats/%s", doc["_id"])

        logger.info("[STATS] Prev values update complete: total_docs=%d updated=%d errors=%d", len(docs), updated, errors)
        return {"skipped": False, "total_docs": len(docs), "updated": updated, "errors": errors}

    async def calculate_public_stats(self) -> Dict[str, float]:
        """Count challenges, developers and prize money"""
        total_challenges = await self.challenges.count_documents({
            "visibility": ChallengeVisibility.PUBLIC.value,
            "status": {"$in": [ChallengeStatus.ACTIVE.value, ChallengeStatus.COMPLETED.value]},
        })

        total_developers = await self.users.count_documents({"user_type": "participant"})

        completed = await self.challenges.find(
            {"status": ChallengeStatus.COMPLETED.value},
            {"total_prize": 1, "currency": 1},
        ).to_list(length=None)

        total_prizes = 0.0
        for challenge in completed:
            total_prizes += convert_to_usd(challenge.get("total_prize") or 0, challenge.get("currency"))

        return {
            PUBLIC_CHALLENGES: total_challenges,
            PUBLIC_DEVELOPERS: total_developers,
            PUBLIC_PRIZES: total_prizes,
        }

    async def update_public_stats(self) -> Dict[str, float]:
        logger.info("[STATS] Calculating public stats...")

        values = await self.calculate_public_stats()
        current = await self.stats.find_one({"_id": PUBLIC_STATS_ID}) or {}

        fields = {
            name: {
                "kind": MetricKind.SCALAR.value,
                "value": value,
                "prev": (current.get(name) or {}).get("value", 0),
            }
            for name, value in values.items()
        }
        fields["last_updated"] = self.clock.utcnow()

        await self.stats.update_one({"_id": PUBLIC_STATS_ID}, {"$set": fields}, upsert=True)

        logger.info(
            "[STATS] Public stats updated: challenges=%d developers=%d prizes=%.2f",
            values[PUBLIC_CHALLENGES], values[PUBLIC_DEVELOPERS], values[PUBLIC_PRIZES],
        )
        return values
