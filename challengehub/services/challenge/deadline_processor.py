"""
Challenge Deadline Processing

Checks every active challenge; once its deadline date is behind us
(reference timezone, calendar days):
1. Participants who submitted -> 'completed'
2. Participants who didn't submit -> 'expired'
3. Teams tied to the challenge -> 'closed', members notified
4. Completion rates calculated
5. Challenge -> 'judging' (partner reviews and releases scores)
6. Organization stats updated (active challenges, weighted completion rate)

The challenge moves on to 'completed' once the partner releases scores
(see PrizeDistributionService).
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase

from challengehub.core.config import CHALLENGES, USER_CHALLENGES, TEAMS, TEAM_MEMBERS
from challengehub.models.challenge.challenge import ChallengeStatus, CompletionStats, can_transition
from challengehub.models.challenge.enrollment import EnrollmentStatus
from challengehub.models.challenge.team import TeamStatus
from challengehub.models.notification.notification import NotificationCreate, NotificationType
from challengehub.models.stats.stats import ACTIVE_CHALLENGES, ACTIVE_TEAMS
from challengehub.services.challenge.teams import active_member_ids
from challengehub.services.notification.notification_service import NotificationService
from challengehub.services.stats.stats_service import StatsService, percentage
from challengehub.utils.clock import Clock, to_local_date

logger = logging.getLogger(__name__)

DEADLINE_PASSED = "deadline_passed"
CHALLENGE_ENDED = "challenge_ended"


class DeadlineProcessor:
    """Drives ACTIVE -> JUDGING and its cascade to enrollments and teams."""

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        clock: Optional[Clock] = None,
        notification_service: Optional[NotificationService] = None,
        stats_service: Optional[StatsService] = None,
    ):
        self.db = db
        self.clock = clock or Clock()
        self.challenges = db[CHALLENGES]
        self.user_challenges = db[USER_CHALLENGES]
        self.teams = db[TEAMS]
        self.team_members = db[TEAM_MEMBERS]
        self.notification_service = notification_service or NotificationService(db, self.clock)
        self.stats_service = stats_service or StatsService(db, self.clock)

    def has_deadline_passed(self, deadline: Any) -> bool:
        """Deadline has passed if its date is before today; a missing deadline never passes"""
        deadline_date = to_local_date(deadline, self.clock.tz)
        if deadline_date is None:
            return False
        return deadline_date < self.clock.today()

    async def run(self) -> Dict[str, Any]:
        """Process every expired active challenge. Returns a summary."""
        logger.info("[DEADLINES] Checking for expired challenge deadlines...")

        active_challenges = await self.challenges.find(
            {"status": ChallengeStatus.ACTIVE.value}
        ).to_list(length=None)

        logger.info("[DEADLINES] Found %d active challenges to check", len(active_challenges))

        summary = {
            "checked_challenges": len(active_challenges),
            "expired_challenges": 0,
            "participants_completed": 0,
            "participants_expired": 0,
            "teams_disabled": 0,
            "challenge_ids": [],
            "errors": [],
        }

        for challenge in active_challenges:
            if not self.has_deadline_passed(challenge.get("deadline")):
                continue

            challenge_id = str(challenge["_id"])
            try:
                result = await self.process_expired_challenge(challenge)
                summary["participants_completed"] += result["participants_completed"]
                summary["participants_expired"] += result["participants_expired"]
                summary["teams_disabled"] += result["teams_disabled"]
                if result["transitioned"]:
                    summary["expired_challenges"] += 1
                    summary["challenge_ids"].append(challenge_id)
            except Exception as e:
                # Challenge stays active; the next run picks it up again
                summary["errors"].append({"challenge_id": challenge_id, "error": str(e)})
                logger.exception("[DEADLINES] Failed to process expired challenge %s", challenge_id)

        logger.info(
            "[DEADLINES] Deadline processing complete: checked=%d expired=%d "
            "participants_completed=%d participants_expired=%d teams_disabled=%d ids=%s",
            summary["checked_challenges"], summary["expired_challenges"],
            summary["participants_completed"], summary["participants_expired"],
            summary["teams_disabled"], summary["challenge_ids"],
        )
        return summary

    async def process_expired_challenge(self, challenge: Dict[str, Any]) -> Dict[str, Any]:
        """Run the full cascade for one challenge whose deadline has passed"""
        challenge_id = str(challenge["_id"])
        challenge_title = challenge.get("title") or "Challenge"

        if not can_transition(challenge.get("status"), ChallengeStatus.JUDGING):
            logger.warning(
                "[DEADLINES] Challenge %s is %s, not active; skipping", challenge_id, challenge.get("status")
            )
            return self._result(challenge_id, transitioned=False)

        logger.info("[DEADLINES] Processing expired challenge: %s (%s)", challenge_title, challenge_id)

        participants_completed = await self._close_enrollments(
            challenge_id,
            from_status=EnrollmentStatus.SUBMITTED,
            to_status=EnrollmentStatus.COMPLETED,
            stamp="completed",
            notification=NotificationCreate(
                type=NotificationType.SUCCESS,
                title="Challenge Completed!",
                message=f'The challenge "{challenge_title}" has ended. Your submission has been recorded successfully!',
                link="/dashboard?tab=challenges",
                metadata={"challenge_id": challenge_id, "challenge_title": challenge_title},
            ),
        )

        participants_expired = await self._close_enrollments(
            challenge_id,
            from_status=EnrollmentStatus.IN_PROGRESS,
            to_status=EnrollmentStatus.EXPIRED,
            stamp="expired",
            notification=NotificationCreate(
                type=NotificationType.WARNING,
                title="Challenge Expired",
                message=f'The challenge "{challenge_title}" has ended. Unfortunately, you did not submit before the deadline.',
                link="/dashboard?tab=challenges",
                metadata={"challenge_id": challenge_id, "challenge_title": challenge_title},
            ),
        )

        teams_disabled, teams_submitted = await self._close_teams(challenge_id, challenge_title)

        total_participants = participants_completed + participants_expired
        now = self.clock.utcnow()
        completion_stats = CompletionStats(
            total_participants=total_participants,
            submitted_count=participants_completed,
            expired_count=participants_expired,
            completion_rate=percentage(participants_completed, total_participants),
            total_teams=teams_disabled,
            teams_submitted=teams_submitted,
            team_completion_rate=percentage(teams_submitted, teams_disabled),
            calculated_at=now,
        )

        result = await self.challenges.update_one(
            {"_id": challenge["_id"], "status": ChallengeStatus.ACTIVE.value},
            {"$set": {
                "status": ChallengeStatus.JUDGING.value,
                "judging_started_at": now,
                "status_reason": DEADLINE_PASSED,
                "completion_stats": completion_stats.model_dump(),
                "updated_at": now,
            }}
        )

        transitioned = result.modified_count == 1
        if not transitioned:
            # Another run moved it to judging first and already counted it
            logger.info("[DEADLINES] Challenge %s was no longer active, skipping org stats", challenge_id)

        organization_id = challenge.get("organization_id")
        if organization_id and transitioned:
            await self.stats_service.remove_active_challenge(organization_id, challenge_id)
            await self.stats_service.record_org_completion(
                organization_id,
                participants=total_participants,
                submissions=participants_completed,
            )

        return self._result(
            challenge_id,
            transitioned=transitioned,
            participants_completed=participants_completed,
            participants_expired=participants_expired,
            teams_disabled=teams_disabled,
            teams_submitted=teams_submitted,
            completion_stats=completion_stats,
        )

    @staticmethod
    def _result(
        challenge_id: str,
        transitioned: bool,
        participants_completed: int = 0,
        participants_expired: int = 0,
        teams_disabled: int = 0,
        teams_submitted: int = 0,
        completion_stats: Optional[CompletionStats] = None,
    ) -> Dict[str, Any]:
        return {
            "challenge_id": challenge_id,
            "transitioned": transitioned,
            "participants_completed": participants_completed,
            "participants_expired": participants_expired,
            "teams_disabled": teams_disabled,
            "teams_submitted": teams_submitted,
            "completion_stats": completion_stats,
        }

    async def _close_enrollments(
        self,
        challenge_id: str,
        from_status: EnrollmentStatus,
        to_status: EnrollmentStatus,
        stamp: str,
        notification: NotificationCreate,
    ) -> int:
        """Move every enrollment in `from_status` to `to_status`. Returns how many succeeded."""
        enrollments = await self.user_challenges.find({
            "challenge_id": challenge_id,
            "status": from_status.value,
        }).to_list(length=None)

        count = 0
        for enrollment in enrollments:
            user_id = enrollment.get("user_id")
            try:
                now = self.clock.utcnow()
                result = await self.user_challenges.update_one(
                    {"_id": enrollment["_id"], "status": from_status.value},
                    {"$set": {
                        "status": to_status.value,
                        f"{stamp}_at": now,
                        f"{stamp}_reason": DEADLINE_PASSED,
                    }}
                )
                if result.modified_count != 1:
                    # Closed by an overlapping run
                    continue

                await self.stats_service.remove_from_array_metric(user_id, ACTIVE_CHALLENGES, challenge_id)
                await self.notification_service.add_notification(user_id, notification)

                count += 1
            except Exception:
                logger.exception(
                    "[DEADLINES] Failed to update %s participant %s for challenge %s",
                    from_status.value, user_id, challenge_id,
                )
        return count

    async def _close_teams(self, challenge_id: str, challenge_title: str) -> Tuple[int, int]:
        """Close every active team of the challenge. Returns (teams_disabled, teams_submitted)."""
        teams = await self.teams.find({
            "challenge_id": challenge_id,
            "status": TeamStatus.ACTIVE.value,
        }).to_list(length=None)

        teams_disabled = 0
        teams_submitted = 0

        for team in teams:
            team_id = str(team["_id"])
            team_name = team.get("name") or "Team"
            try:
                now = self.clock.utcnow()
                result = await self.teams.update_one(
                    {"_id": team["_id"], "status": TeamStatus.ACTIVE.value},
                    {"$set": {
                        "status": TeamStatus.CLOSED.value,
                        "closed_at": now,
                        "closed_reason": CHALLENGE_ENDED,
                    }}
                )
                if result.modified_count != 1:
                    continue

                if team.get("has_submitted"):
                    teams_submitted += 1

                for member_id in await self.active_member_ids(team_id):
                    try:
                        await self.stats_service.remove_from_array_metric(member_id, ACTIVE_TEAMS, team_id)
                        await self.notification_service.add_notification(member_id, NotificationCreate(
                            type=NotificationType.INFO,
                            title="Team Closed",
                            message=f'Your team "{team_name}" has been closed because the challenge "{challenge_title}" has ended.',
                            link="/dashboard?tab=teams",
                            metadata={
                                "team_id": team_id,
                                "team_name": team_name,
                                "challenge_id": challenge_id,
                                "challenge_title": challenge_title,
                            },
                        ))
                    except Exception:
                        logger.exception("[DEADLINES] Failed to notify member %s of team %s", member_id, team_id)

                teams_disabled += 1
            except Exception:
                logger.exception("[DEADLINES] Failed to disable team %s for challenge %s", team_id, challenge_id)

        return teams_disabled, teams_submitted

    async def active_member_ids(self, team_id: str) -> List[str]:
        return await active_member_ids(self.team_members, team_id)
