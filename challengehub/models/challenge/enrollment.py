from enum import Enum


class EnrollmentStatus(str, Enum):
    """
    A user's participation in one challenge.

    IN_PROGRESS -> SUBMITTED (user submits)
    SUBMITTED -> COMPLETED (deadline passed)
    IN_PROGRESS -> EXPIRED (deadline passed without a submission)
    """
    IN_PROGRESS = "in-progress"
    SUBMITTED = "submitted"
    COMPLETED = "completed"
    EXPIRED = "expired"


class SubmissionStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
