"""ORM models. Importing the package registers every table on ``Base.metadata``."""

from studesq.models.achievement import Achievement, AchievementType
from studesq.models.opportunity import Opportunity
from studesq.models.parent_link import ParentLink
from studesq.models.student_profile import StudentProfile
from studesq.models.user import User, UserRole
from studesq.models.waitlist import WaitlistSignup

__all__ = [
    "Achievement",
    "AchievementType",
    "Opportunity",
    "ParentLink",
    "StudentProfile",
    "User",
    "UserRole",
    "WaitlistSignup",
]
