from enum import Enum


class TeamStatus(str, Enum):
    """Team lifecycle: ACTIVE until the challenge deadline, then CLOSED"""
    ACTIVE = "active"
    CLOSED = "closed"


class TeamMemberStatus(str, Enum):
    ACTIVE = "active"
    LEFT = "left"
    REMOVED = "removed"
