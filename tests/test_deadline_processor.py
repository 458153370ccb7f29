from datetime import datetime

from conftest import FlakyNotificationService, notification_titles, utc

from challengehub.core.config import CHALLENGES, USER_CHALLENGES, TEAMS, TEAM_MEMBERS, STATS
from challengehub.models.challenge.enrollment import EnrollmentStatus
from challengehub.models.notification.notification import NotificationCreate
from challengehub.services.challenge.deadline_processor import DeadlineProcessor
from challengehub.services.notification.notification_service import NotificationService


async def seed(db):
    await db[CHALLENGES].insert_many([
        # Deadline yesterday (local)
        {"_id": "c1", "title": "AI Hack", "status": "active", "deadline": utc(2025, 3, 9, 12, 0),
         "organization_id": "org1"},
        # 00:30 local today: not passed yet
        {"_id": "c2", "title": "Later", "status": "active", "deadline": utc(2025, 3, 9, 22, 30)},
        {"_id": "c3", "title": "No Deadline", "status": "active"},
    ])
    await db[USER_CHALLENGES].insert_many([
        {"_id": "e1", "user_id": "userA", "challenge_id": "c1", "status": "submitted"},
        {"_id": "e2", "user_id": "userB", "challenge_id": "c1", "status": "in-progress"},
        {"_id": "e3", "user_id": "userC", "challenge_id": "c2", "status": "in-progress"},
    ])
    await db[TEAMS].insert_one(
        {"_id": "teamX", "challenge_id": "c1", "name": "Team X", "status": "active", "has_submitted": False}
    )
    await db[TEAM_MEMBERS].insert_many([
        {"team_id": "teamX", "user_id": "memberA", "status": "active"},
        {"team_id": "teamX", "user_id": "memberB", "status": "active"},
        {"team_id": "teamX", "user_id": "memberC", "status": "left"},
    ])
    await db[STATS].insert_many([
        {"_id": "userA", "active_challenges": {"kind": "array", "ids": ["c1", "c9"], "prev": 0}},
        {"_id": "memberA", "active_teams": {"kind": "array", "ids": ["teamX"], "prev": 0}},
        {"_id": "org_org1", "active_challenges": {"kind": "array", "ids": ["c1", "c5"], "prev": 0}},
    ])


async def test_expired_challenge_cascade(db, clock):
    await seed(db)

    summary = await DeadlineProcessor(db, clock).run()

    assert summary["checked_challenges"] == 3
    assert summary["expired_challenges"] == 1
    assert summary["participants_completed"] == 1
    assert summary["participants_expired"] == 1
    assert summary["teams_disabled"] == 1
    assert summary["challenge_ids"] == ["c1"]

    challenge = await db[CHALLENGES].find_one({"_id": "c1"})
    assert challenge["status"] == "judging"
    assert challenge["status_reason"] == "deadline_passed"
    assert isinstance(challenge["judging_started_at"], datetime)
    assert challenge["completion_stats"]["total_participants"] == 2
    assert challenge["completion_stats"]["completion_rate"] == 50
    assert challenge["completion_stats"]["team_completion_rate"] == 0

    assert (await db[USER_CHALLENGES].find_one({"_id": "e1"}))["status"] == "completed"
    expired = await db[USER_CHALLENGES].find_one({"_id": "e2"})
    assert expired["status"] == "expired"
    assert expired["expired_reason"] == "deadline_passed"

    team = await db[TEAMS].find_one({"_id": "teamX"})
    assert team["status"] == "closed"
    assert team["closed_reason"] == "challenge_ended"

    assert await notification_titles(db, "userA") == ["Challenge Completed!"]
    assert await notification_titles(db, "userB") == ["Challenge Expired"]
    assert await notification_titles(db, "memberA") == ["Team Closed"]
    assert await notification_titles(db, "memberB") == ["Team Closed"]
    assert await notification_titles(db, "memberC") == []

    assert (await db[STATS].find_one({"_id": "userA"}))["active_challenges"]["ids"] == ["c9"]
    assert (await db[STATS].find_one({"_id": "memberA"}))["active_teams"]["ids"] == []

    org = await db[STATS].find_one({"_id": "org_org1"})
    assert org["active_challenges"]["ids"] == ["c5"]
    assert org["completion_rate"]["value"] == 50
    assert org["_completion_tracking"]["total_participants"] == 2
    assert org["_completion_tracking"]["total_submissions"] == 1


async def test_challenges_not_yet_due_are_untouched(db, clock):
    await seed(db)

    await DeadlineProcessor(db, clock).run()

    assert (await db[CHALLENGES].find_one({"_id": "c2"}))["status"] == "active"
    assert (await db[CHALLENGES].find_one({"_id": "c3"}))["status"] == "active"
    assert (await db[USER_CHALLENGES].find_one({"_id": "e3"}))["status"] == "in-progress"
    assert await notification_titles(db, "userC") == []


async def test_second_run_is_a_no_op(db, clock):
    await seed(db)
    processor = DeadlineProcessor(db, clock)

    await processor.run()
    summary = await processor.run()

    assert summary["expired_challenges"] == 0
    assert await notification_titles(db, "userA") == ["Challenge Completed!"]
    org = await db[STATS].find_one({"_id": "org_org1"})
    assert org["_completion_tracking"]["total_participants"] == 2


async def test_failed_notification_does_not_block_the_challenge(db, clock):
    await seed(db)
    notifications = FlakyNotificationService(db, failing_user_ids=["userB", "memberA"])

    summary = await DeadlineProcessor(db, clock, notifications).run()

    assert summary["expired_challenges"] == 1
    assert summary["participants_completed"] == 1
    assert summary["participants_expired"] == 0
    assert (await db[CHALLENGES].find_one({"_id": "c1"}))["status"] == "judging"
    assert await notification_titles(db, "memberB") == ["Team Closed"]


async def test_weighted_completion_rate_across_challenges(db, clock):
    await db[CHALLENGES].insert_many([
        {"_id": "c1", "title": "One", "status": "active", "deadline": "2025-03-08", "organization_id": "org1"},
        {"_id": "c2", "title": "Two", "status": "active", "deadline": "2025-03-09", "organization_id": "org1"},
    ])
    await db[USER_CHALLENGES].insert_many(
        [{"user_id": f"a{i}", "challenge_id": "c1", "status": "submitted"} for i in range(3)]
        + [{"user_id": "b0", "challenge_id": "c2", "status": "in-progress"}]
    )

    await DeadlineProcessor(db, clock, NotificationService(db)).run()

    # 3 of 4 participants submitted overall
    org = await db[STATS].find_one({"_id": "org_org1"})
    assert org["completion_rate"]["value"] == 75
    assert org["_completion_tracking"]["total_participants"] == 4
    assert org["_completion_tracking"]["total_submissions"] == 3


def test_has_deadline_passed(db, clock):
    processor = DeadlineProcessor(db, clock)

    assert processor.has_deadline_passed("2025-03-09")
    assert not processor.has_deadline_passed("2025-03-10")
    assert not processor.has_deadline_passed(None)
    assert not processor.has_deadline_passed("soon")


async def test_stale_snapshot_from_overlapping_run_changes_nothing(db, clock):
    await seed(db)
    processor = DeadlineProcessor(db, clock)
    # Read by a second run before the first one finished
    stale = await db[CHALLENGES].find_one({"_id": "c1"})

    await processor.run()
    result = await processor.process_expired_challenge(stale)

    assert result["transitioned"] is False
    assert result["participants_completed"] == 0
    assert result["teams_disabled"] == 0
    org = await db[STATS].find_one({"_id": "org_org1"})
    assert org["completion_rate"] == {"kind": "scalar", "value": 50, "prev": 0}
    assert org["_completion_tracking"]["total_participants"] == 2
    assert await notification_titles(db, "userA") == ["Challenge Completed!"]
    assert await notification_titles(db, "memberA") == ["Team Closed"]


async def test_enrollment_closed_by_another_run_is_not_counted(db, clock):
    await seed(db)
    processor = DeadlineProcessor(db, clock)
    # e2 was read as in-progress, then expired elsewhere before this run wrote it
    stale_read = dict(await db[USER_CHALLENGES].find_one({"_id": "e2"}))
    await db[USER_CHALLENGES].update_one({"_id": "e2"}, {"$set": {"status": "expired"}})
    processor.user_challenges = _StaleReads(db[USER_CHALLENGES], [stale_read])

    count = await processor._close_enrollments(
        "c1",
        from_status=EnrollmentStatus.IN_PROGRESS,
        to_status=EnrollmentStatus.EXPIRED,
        stamp="expired",
        notification=NotificationCreate(type="warning", title="Challenge Expired", message="ended"),
    )

    assert count == 0
    assert await notification_titles(db, "userB") == []


async def test_only_active_challenges_move_to_judging(db, clock):
    await seed(db)
    await db[CHALLENGES].update_one({"_id": "c1"}, {"$set": {"status": "completed"}})
    challenge = await db[CHALLENGES].find_one({"_id": "c1"})

    result = await DeadlineProcessor(db, clock).process_expired_challenge(challenge)

    assert result["transitioned"] is False
    assert (await db[CHALLENGES].find_one({"_id": "c1"}))["status"] == "completed"
    assert (await db[USER_CHALLENGES].find_one({"_id": "e1"}))["status"] == "submitted"


class _StaleCursor:
    def __init__(self, docs):
        self.docs = docs

    async def to_list(self, length=None):
        return list(self.docs)


class _StaleReads:
    """Real collection whose find() returns documents read earlier"""

    def __init__(self, collection, docs):
        self._collection = collection
        self._docs = docs

    def find(self, *args, **kwargs):
        return _StaleCursor(self._docs)

    def __getattr__(self, name):
        return getattr(self._collection, name)
