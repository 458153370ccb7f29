"""
Stats Service

Writes to stat documents. Array metrics are changed with $addToSet /
$pull so repeated or concurrent runs commute; the organization
completion rate depends on previous totals and uses a version-guarded
read-then-write.
"""
import logging
from typing import Any, Dict, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from challengehub.core.config import STATS, org_stats_id
from challengehub.core.exceptions import StatsConflictError
from challengehub.models.stats.stats import (
    ACTIVE_CHALLENGES,
    COMPLETION_RATE,
    COMPLETION_TRACKING,
    CompletionTracking,
    MetricKind,
    metric_magnitudes,
)
from challengehub.utils.clock import Clock
from challengehub.utils.wallet import version_filter

logger = logging.getLogger(__name__)

MAX_WRITE_ATTEMPTS = 5


def percentage(part: int, whole: int) -> int:
    """round(100 * part / whole), halves rounded up; 0 when whole is 0"""
    if whole <= 0:
        return 0
    return (200 * part + whole) // (2 * whole)


class StatsService:
    """Service for stat document updates"""

    def __init__(self, db: AsyncIOMotorDatabase, clock: Optional[Clock] = None):
        self.db = db
        self.stats = db[STATS]
        self.clock = clock or Clock()

    async def get(self, stats_id: str) -> Optional[Dict[str, Any]]:
        return await self.stats.find_one({"_id": stats_id})

    async def add_to_array_metric(self, stats_id: str, metric: str, member_id: str) -> None:
        await self.stats.update_one(
            {"_id": stats_id},
            {
                "$addToSet": {f"{metric}.ids": member_id},
                "$set": {f"{metric}.kind": MetricKind.ARRAY.value},
            },
            upsert=True,
        )

    async def remove_from_array_metric(self, stats_id: str, metric: str, member_id: str) -> None:
        """Idempotent: removing an absent id (or from an absent document) is a no-op"""
        await self.stats.update_one(
            {"_id": stats_id},
            {"$pull": {f"{metric}.ids": member_id}},
        )

    async def remove_active_challenge(self, organization_id: str, challenge_id: str) -> None:
        await self.remove_from_array_metric(org_stats_id(organization_id), ACTIVE_CHALLENGES, challenge_id)

    async def record_org_completion(
        self,
        organization_id: str,
        participants: int,
        submissions: int,
    ) -> int:
        """
        Fold one closed challenge into the organization's weighted
        completion rate.

        Totals accumulate across every challenge the organization has
        closed; completion_rate.prev takes the old value immediately.
        Returns the new rate.
        """
        stats_id = org_stats_id(organization_id)

        for attempt in range(1, MAX_WRITE_ATTEMPTS + 1):
            doc = await self.get(stats_id)
            now = self.clock.utcnow()

            tracking = CompletionTracking.model_validate((doc or {}).get(COMPLETION_TRACKING) or {})
            previous_rate = ((doc or {}).get(COMPLETION_RATE) or {}).get("value", 0)

            total_participants = tracking.total_participants + participants
            total_submissions = tracking.total_submissions + submissions
            new_rate = percentage(total_submissions, total_participants)

            fields = {
                f"{COMPLETION_RATE}.kind": MetricKind.SCALAR.value,
                f"{COMPLETION_RATE}.value": new_rate,
                f"{COMPLETION_RATE}.prev": previous_rate,
                f"{COMPLETION_TRACKING}.total_participants": total_participants,
                f"{COMPLETION_TRACKING}.total_submissions": total_submissions,
                f"{COMPLETION_TRACKING}.updated_at": now,
            }

            if doc is None:
                try:
                    await self.stats.insert_one({
                        "_id": stats_id,
                        COMPLETION_RATE: {"kind": MetricKind.SCALAR.value, "value": new_rate, "prev": previous_rate},
                        COMPLETION_TRACKING: {
                            "total_participants": total_participants,
                            "total_submissions": total_submissions,
                            "updated_at": now,
                        },
                        "version": 1,
                    })
                except DuplicateKeyError:
                    continue
            else:
                fields["version"] = doc.get("version", 0) + 1
                result = await self.stats.update_one(version_filter(doc), {"$set": fields})
                if result.modified_count != 1:
                    logger.info("[STATS] %s changed during completion update, retrying (attempt %d)", stats_id, attempt)
                    continue

            logger.info(
                "[STATS] Updated org %s completion rate: %d%% (participants=%d submissions=%d)",
                organization_id, new_rate, total_participants, total_submissions,
            )
            return new_rate

        raise StatsConflictError(stats_id, MAX_WRITE_ATTEMPTS)

    async def rollover_prev_values(self, stats_id: str) -> int:
        """
        Copy each tagged metric's current magnitude into its prev field.

        Returns the number of metrics written.
        """
        doc = await self.get(stats_id)
        if not doc:
            return 0

        updates = {
            f"{name}.prev": magnitude
            for name, magnitude in metric_magnitudes(doc).items()
        }
        if updates:
            await self.stats.update_one({"_id": stats_id}, {"$set": updates})
            logger.info("[STATS] Updated prev values for stats/%s (fields=%d)", stats_id, len(updates))
        return len(updates)
