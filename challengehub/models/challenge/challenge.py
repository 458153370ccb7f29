from pydantic import BaseModel, ConfigDict
from typing import Optional, List
from datetime import datetime
from enum import Enum


class ChallengeStatus(str, Enum):
    """
    Challenge status types - State Machine

    State Transitions:
    - DRAFT -> ACTIVE (partner publishes)
    - ACTIVE -> JUDGING (deadline passed, midnight run)
    - JUDGING -> COMPLETED (scores released, midnight run)

    Transitions are one-directional; the pipeline never moves a challenge back.
    """
    DRAFT = "draft"  # Partner can edit, not visible to public
    ACTIVE = "active"  # Published, accepting submissions
    JUDGING = "judging"  # Deadline passed, partner reviewing submissions
    COMPLETED = "completed"  # Scores released, prizes credited


class ChallengeVisibility(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"


ALLOWED_TRANSITIONS = {
    ChallengeStatus.DRAFT: {ChallengeStatus.ACTIVE},
    ChallengeStatus.ACTIVE: {ChallengeStatus.JUDGING},
    ChallengeStatus.JUDGING: {ChallengeStatus.COMPLETED},
    ChallengeStatus.COMPLETED: set(),
}


def can_transition(current: Optional[str], target: ChallengeStatus) -> bool:
    """True if `target` is the next state after `current`. Unknown states move nowhere."""
    try:
        current = ChallengeStatus(current)
    except ValueError:
        return False
    return target in ALLOWED_TRANSITIONS[current]


class WinnerEntry(BaseModel):
    """
    One placement or special award.

    A submission is either individual (participant_id) or team-owned
    (team_id); team ownership wins if both are present.
    """
    model_config = ConfigDict(extra="ignore")

    submission_id: Optional[str] = None
    project_title: str = "Project"
    prize: float = 0
    score: Optional[float] = None
    participant_id: Optional[str] = None
    participant_name: Optional[str] = None
    participant_type: Optional[str] = None
    team_id: Optional[str] = None
    award_name: Optional[str] = None  # Special awards only

    @property
    def is_team(self) -> bool:
        return bool(self.team_id)


class ChallengeAwards(BaseModel):
    """Winner record written when scores are released"""
    model_config = ConfigDict(extra="ignore")

    first: Optional[WinnerEntry] = None
    second: Optional[WinnerEntry] = None
    third: Optional[WinnerEntry] = None
    special_awards: List[WinnerEntry] = []


class CompletionStats(BaseModel):
    """Snapshot attached to a challenge when it enters judging"""
    total_participants: int = 0
    submitted_count: int = 0
    expired_count: int = 0
    completion_rate: int = 0
    total_teams: int = 0
    teams_submitted: int = 0
    team_completion_rate: int = 0
    calculated_at: Optional[datetime] = None


class PrizeDistributionStats(BaseModel):
    """Summary attached to a challenge when it completes"""
    winners_processed: int = 0
    participants_notified: int = 0
    total_prize_distributed: float = 0
    processed_at: Optional[datetime] = None

