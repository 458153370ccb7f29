from typing import List

from motor.motor_asyncio import AsyncIOMotorCollection

from challengehub.models.challenge.team import TeamMemberStatus


async def active_member_ids(team_members: AsyncIOMotorCollection, team_id: str) -> List[str]:
    """User ids of a team's active members"""
    members = await team_members.find({
        "team_id": team_id,
        "status": TeamMemberStatus.ACTIVE.value,
    }).to_list(length=None)
    return [member["user_id"] for member in members if member.get("user_id")]
