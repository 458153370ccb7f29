"""
Challenge Submission Reminders

Sends a warning to everyone who joined an active challenge but has not
submitted, and to members of teams that have not submitted, exactly
REMINDER_DAYS_BEFORE days before the deadline. Read-only apart from the
notifications themselves.
"""
import logging
from typing import Any, Dict, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from challengehub.core.config import CHALLENGES, USER_CHALLENGES, TEAMS, TEAM_MEMBERS, settings
from challengehub.models.challenge.challenge import ChallengeStatus
from challengehub.models.challenge.enrollment import EnrollmentStatus
from challengehub.models.challenge.team import TeamStatus
from challengehub.models.notification.notification import NotificationCreate, NotificationType
from challengehub.services.challenge.teams import active_member_ids
from challengehub.services.notification.notification_service import NotificationService
from challengehub.utils.clock import Clock, to_local_date

logger = logging.getLogger(__name__)


class ReminderDispatcher:

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        clock: Optional[Clock] = None,
        notification_service: Optional[NotificationService] = None,
        days_before: int = settings.REMINDER_DAYS_BEFORE,
    ):
        self.db = db
        self.clock = clock or Clock()
        self.challenges = db[CHALLENGES]
        self.user_challenges = db[USER_CHALLENGES]
        self.teams = db[TEAMS]
        self.team_members = db[TEAM_MEMBERS]
        self.notification_service = notification_service or NotificationService(db, self.clock)
        self.days_before = days_before

    async def run(self) -> Dict[str, Any]:
        logger.info("[REMINDERS] Running challenge submission reminders...")

        target_date = self.clock.days_from_today(self.days_before)
        challenges = await self.challenges.find(
            {"status": ChallengeStatus.ACTIVE.value}
        ).to_list(length=None)

        summary = {"challenges": 0, "users_reminded": 0, "team_members_reminded": 0, "failed": 0}

        for challenge in challenges:
            if to_local_date(challenge.get("deadline"), self.clock.tz) != target_date:
                continue

            summary["challenges"] += 1
            try:
                await self._remind_challenge(challenge, summary)
            except Exception:
                logger.exception("[REMINDERS] Failed to process reminders for challenge %s", challenge["_id"])

        logger.info(
            "[REMINDERS] Challenge submission reminders sent: challenges=%d users=%d team_members=%d failed=%d",
            summary["challenges"], summary["users_reminded"],
            summary["team_members_reminded"], summary["failed"],
        )
        return summary

    async def _remind_challenge(self, challenge: Dict[str, Any], summary: Dict[str, int]) -> None:
        challenge_id = str(challenge["_id"])
        challenge_title = challenge.get("title") or "Challenge"
        days = self.days_before

        # Users who joined but haven't submitted
        enrollments = await self.user_challenges.find({
            "challenge_id": challenge_id,
            "status": EnrollmentStatus.IN_PROGRESS.value,
        }).to_list(length=None)

        for enrollment in enrollments:
            user_id = enrollment.get("user_id")
            try:
                await self.notification_service.add_notification(user_id, NotificationCreate(
                    type=NotificationType.WARNING,
                    title="Challenge Submission Reminder",
                    message=f'Only {days} days left to submit for "{challenge_title}"! Don\'t miss your chance to participate.',
                    link="/dashboard?tab=challenges",
                    metadata={"challenge_id": challenge_id, "challenge_title": challenge_title},
                ))
                summary["users_reminded"] += 1
            except Exception:
                summary["failed"] += 1
                logger.exception("[REMINDERS] Failed to send reminder to user %s for challenge %s", user_id, challenge_id)

        # Teams that haven't submitted
        teams = await self.teams.find({
            "challenge_id": challenge_id,
            "status": TeamStatus.ACTIVE.value,
            "has_submitted": {"$ne": True},
        }).to_list(length=None)

        for team in teams:
            team_id = str(team["_id"])
            team_name = team.get("name") or "Team"

            for member_id in await active_member_ids(self.team_members, team_id):
                try:
                    await self.notification_service.add_notification(member_id, NotificationCreate(
                        type=NotificationType.WARNING,
                        title="Team Submission Reminder",
                        message=(f'Only {days} days left for your team "{team_name}" to submit for '
                                 f'"{challenge_title}"! Encourage your team to participate.'),
                        link="/dashboard?tab=teams",
                        metadata={
                            "team_id": team_id,
                            "team_name": team_name,
                            "challenge_id": challenge_id,
                            "challenge_title": challenge_title,
                        },
                    ))
                    summary["team_members_reminded"] += 1
                except Exception:
                    summary["failed"] += 1
                    logger.exception("[REMINDERS] Failed to send reminder to team member %s for team %s", member_id, team_id)
