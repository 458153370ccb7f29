"""
Prize Distribution Service

Completes challenges whose scores the partner has released:
1. Winners (1st/2nd/3rd, special awards) credited in their wallets
   (team wallet for team submissions)
2. Winners notified with an achievement
3. Every other participant who submitted notified of the results
4. Challenge -> 'completed'

Status gates the query (judging + scores_released), so a completed
challenge is never picked up again. Credits carry a per-award
idempotency key, so a retry after a partial failure does not pay twice.
"""
import logging
from typing import Any, Dict, List, Optional, Set, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase

from challengehub.core.config import CHALLENGES, SUBMISSIONS, TEAM_MEMBERS
from challengehub.models.challenge.challenge import (
    ChallengeAwards,
    ChallengeStatus,
    PrizeDistributionStats,
    WinnerEntry,
    can_transition,
)
from challengehub.models.challenge.enrollment import SubmissionStatus
from challengehub.models.notification.notification import NotificationCreate, NotificationType
from challengehub.models.payment.wallet import OwnerType
from challengehub.services.challenge.teams import active_member_ids
from challengehub.services.notification.notification_service import NotificationService
from challengehub.services.payment.wallet_service import ORDINALS, WalletService
from challengehub.services.stats.stats_service import StatsService
from challengehub.utils.clock import Clock

logger = logging.getLogger(__name__)

SCORES_RELEASED = "scores_released"
PLACEMENTS = ("first", "second", "third")


def _format_amount(amount: float) -> str:
    return f"{amount:g}"


def iter_awards(awards: ChallengeAwards) -> List[Tuple[str, str, WinnerEntry]]:
    """
    Flatten an award record into (award_key, award_type, winner).

    award_key is unique within the challenge (idempotency);
    award_type is what the winner is told they won.
    """
    entries = []
    for placement in PLACEMENTS:
        winner = getattr(awards, placement)
        if winner is not None:
            entries.append((placement, placement, winner))
    for index, winner in enumerate(awards.special_awards):
        entries.append((f"special_{index}", winner.award_name or "Special Award", winner))
    return entries


def parse_awards(raw: Optional[Dict[str, Any]]) -> ChallengeAwards:
    """Parse a stored award record, dropping empty special-award slots"""
    raw = dict(raw or {})
    raw["special_awards"] = [entry for entry in raw.get("special_awards") or [] if entry]
    return ChallengeAwards.model_validate(raw)


class PrizeDistributionService:
    """Drives JUDGING -> COMPLETED once scores are released."""

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        clock: Optional[Clock] = None,
        notification_service: Optional[NotificationService] = None,
        wallet_service: Optional[WalletService] = None,
        stats_service: Optional[StatsService] = None,
    ):
        self.db = db
        self.clock = clock or Clock()
        self.challenges = db[CHALLENGES]
        self.submissions = db[SUBMISSIONS]
        self.team_members = db[TEAM_MEMBERS]
        self.notification_service = notification_service or NotificationService(db, self.clock)
        self.wallet_service = wallet_service or WalletService(db, self.clock)
        self.stats_service = stats_service or StatsService(db, self.clock)

    async def run(self) -> Dict[str, Any]:
        """Process every judging challenge with released scores. Returns a summary."""
        logger.info("[PRIZES] Checking for challenges with released scores...")

        challenges = await self.challenges.find({
            "status": ChallengeStatus.JUDGING.value,
            "scores_released": True,
        }).to_list(length=None)

        logger.info("[PRIZES] Found %d challenges with released scores to process", len(challenges))

        summary = {
            "challenges_processed": 0,
            "total_winners": 0,
            "total_participants_notified": 0,
            "total_prize_distributed": 0,
            "challenge_ids": [],
            "errors": [],
        }

        for challenge in challenges:
            challenge_id = str(challenge["_id"])
            try:
                result = await self.process_released_challenge(challenge)
                summary["total_winners"] += result["winners_processed"]
                summary["total_participants_notified"] += result["participants_notified"]
                summary["total_prize_distributed"] += result["total_prize_distributed"]
                if result["transitioned"]:
                    summary["challenges_processed"] += 1
                    summary["challenge_ids"].append(challenge_id)
            except Exception as e:
                summary["errors"].append({"challenge_id": challenge_id, "error": str(e)})
                logger.exception("[PRIZES] Failed to process released scores for challenge %s", challenge_id)

        logger.info(
            "[PRIZES] Released scores processing complete: challenges=%d winners=%d notified=%d prize=%s ids=%s",
            summary["challenges_processed"], summary["total_winners"],
            summary["total_participants_notified"], summary["total_prize_distributed"],
            summary["challenge_ids"],
        )
        return summary

    async def process_released_challenge(self, challenge: Dict[str, Any]) -> Dict[str, Any]:
        challenge_id = str(challenge["_id"])
        challenge_title = challenge.get("title") or "Challenge"

        released = bool(challenge.get("scores_released"))
        still_judging = await self.challenges.count_documents(
            {"_id": challenge["_id"], "status": ChallengeStatus.JUDGING.value}
        )
        current_status = challenge.get("status") if still_judging else None
        if not released or not can_transition(current_status, ChallengeStatus.COMPLETED):
            logger.warning("[PRIZES] Challenge %s is not judging with released scores; skipping", challenge_id)
            return {
                "challenge_id": challenge_id,
                "transitioned": False,
                "winners_processed": 0,
                "participants_notified": 0,
                "total_prize_distributed": 0,
            }

        awards = parse_awards(challenge.get("awards"))

        logger.info("[PRIZES] Processing released scores for: %s (%s)", challenge_title, challenge_id)

        processed_user_ids: Set[str] = set()
        winners_processed = 0
        total_prize_distributed = 0

        for award_key, award_type, winner in iter_awards(awards):
            try:
                await self.process_winner(
                    winner, challenge_id, challenge_title, award_type, award_key, processed_user_ids
                )
                winners_processed += 1
                total_prize_distributed += winner.prize or 0
            except Exception:
                logger.exception("[PRIZES] Failed to process %s winner for challenge %s", award_type, challenge_id)

        participants_notified = await self._notify_participants(challenge_id, challenge_title, processed_user_ids)

        now = self.clock.utcnow()
        result = await self.challenges.update_one(
            {"_id": challenge["_id"], "status": ChallengeStatus.JUDGING.value},
            {"$set": {
                "status": ChallengeStatus.COMPLETED.value,
                "completed_at": now,
                "completed_reason": SCORES_RELEASED,
                "prize_distribution_completed": True,
                "prize_distribution_stats": PrizeDistributionStats(
                    winners_processed=winners_processed,
                    participants_notified=participants_notified,
                    total_prize_distributed=total_prize_distributed,
                    processed_at=now,
                ).model_dump(),
                "updated_at": now,
            }}
        )

        transitioned = result.modified_count == 1
        if not transitioned:
            logger.info("[PRIZES] Challenge %s was already completed by another run", challenge_id)

        organization_id = challenge.get("organization_id")
        if organization_id and transitioned:
            await self.stats_service.remove_active_challenge(organization_id, challenge_id)

        return {
            "challenge_id": challenge_id,
            "transitioned": transitioned,
            "winners_processed": winners_processed,
            "participants_notified": participants_notified,
            "total_prize_distributed": total_prize_distributed,
        }

    async def process_winner(
        self,
        winner: WinnerEntry,
        challenge_id: str,
        challenge_title: str,
        award_type: str,
        award_key: str,
        processed_user_ids: Set[str],
    ) -> None:
        """Credit one placement or special award and notify the people behind it"""
        prize = winner.prize or 0

        if winner.is_team:
            await self.wallet_service.credit_prize(
                winner.team_id, OwnerType.TEAM, prize, challenge_id, challenge_title, award_type, award_key
            )
            recipients = await self.active_member_ids(winner.team_id)
        elif winner.participant_id:
            await self.wallet_service.credit_prize(
                winner.participant_id, OwnerType.USER, prize, challenge_id, challenge_title, award_type, award_key
            )
            recipients = [winner.participant_id]
        else:
            logger.warning("[PRIZES] %s winner of %s has no owner, skipping", award_type, challenge_id)
            return

        notification = self.winner_notification(challenge_id, challenge_title, award_type, prize, winner.project_title)
        for user_id in recipients:
            processed_user_ids.add(user_id)
            try:
                await self.notification_service.add_notification(user_id, notification)
            except Exception:
                logger.exception("[PRIZES] Failed to notify winner %s for challenge %s", user_id, challenge_id)

    @staticmethod
    def winner_notification(
        challenge_id: str,
        challenge_title: str,
        award_type: str,
        prize: float,
        project_title: str,
    ) -> NotificationCreate:
        placement = ORDINALS.get(award_type)
        amount = _format_amount(prize)

        if placement:
            title = f"🏆 {placement} Place Winner!"
            message = (f'Congratulations! Your project "{project_title}" won {placement} place in '
                       f'"{challenge_title}"! You\'ve been awarded ${amount}.')
        else:
            title = "🏆 Special Award Winner!"
            message = (f'Congratulations! Your project "{project_title}" won the {award_type} award in '
                       f'"{challenge_title}"! You\'ve been awarded ${amount}.')

        return NotificationCreate(
            type=NotificationType.ACHIEVEMENT,
            title=title,
            message=message,
            link=f"/dashboard/challenges/{challenge_id}",
            metadata={
                "challenge_id": challenge_id,
                "challenge_title": challenge_title,
                "award_type": award_type,
                "prize": prize,
                "project_title": project_title,
            },
        )

    async def _notify_participants(
        self,
        challenge_id: str,
        challenge_title: str,
        processed_user_ids: Set[str],
    ) -> int:
        """Tell everyone else who submitted that results are out"""
        submissions = await self.submissions.find({
            "challenge_id": challenge_id,
            "status": SubmissionStatus.SUBMITTED.value,
        }).to_list(length=None)

        notification = NotificationCreate(
            type=NotificationType.INFO,
            title="Challenge Results Announced",
            message=f'The results for "{challenge_title}" have been announced. Check out the winners and see how you ranked!',
            link=f"/challenge/{challenge_id}",
            metadata={"challenge_id": challenge_id, "challenge_title": challenge_title},
        )

        notified = 0
        for submission in submissions:
            if submission.get("team_id"):
                try:
                    recipients = await self.active_member_ids(submission["team_id"])
                except Exception:
                    logger.exception("[PRIZES] Failed to load members of team %s", submission["team_id"])
                    continue
            elif submission.get("participant_id"):
                recipients = [submission["participant_id"]]
            else:
                continue

            for user_id in recipients:
                if user_id in processed_user_ids:
                    continue
                try:
                    await self.notification_service.add_notification(user_id, notification)
                    processed_user_ids.add(user_id)
                    notified += 1
                except Exception:
                    logger.exception("[PRIZES] Failed to notify participant %s", user_id)

        return notified

    async def active_member_ids(self, team_id: str) -> List[str]:
        return await active_member_ids(self.team_members, team_id)
