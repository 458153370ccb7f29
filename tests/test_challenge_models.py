from challengehub.models.challenge.challenge import ChallengeStatus, can_transition
from challengehub.models.payment.wallet import OwnerType, wallet_id_for


def test_lifecycle_only_moves_forward():
    assert can_transition(ChallengeStatus.DRAFT, ChallengeStatus.ACTIVE)
    assert can_transition("active", ChallengeStatus.JUDGING)
    assert can_transition(ChallengeStatus.JUDGING, ChallengeStatus.COMPLETED)

    assert not can_transition(ChallengeStatus.ACTIVE, ChallengeStatus.COMPLETED)
    assert not can_transition(ChallengeStatus.JUDGING, ChallengeStatus.ACTIVE)
    assert not can_transition(ChallengeStatus.COMPLETED, ChallengeStatus.JUDGING)


def test_wallet_ids():
    assert wallet_id_for("u1", OwnerType.USER) == "u1"
    assert wallet_id_for("t1", OwnerType.TEAM) == "team_t1"
    assert wallet_id_for("t1", "team") == "team_t1"


def test_unknown_or_missing_state_moves_nowhere():
    assert not can_transition(None, ChallengeStatus.JUDGING)
    assert not can_transition("archived", ChallengeStatus.COMPLETED)
