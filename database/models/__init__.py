from database.models.users import User
from database.models.profiles import Profile, ClassStanding
from database.models.teams import Team, TeamMember, TeamRole
from database.models.applications import Application, ApplicationStatus, Note
from database.models.communications import Message, SenderType

__all__ = [
    "User",
    "Profile",
    "ClassStanding",
    "Team",
    "TeamMember",
    "TeamRole",
    "Application",
    "ApplicationStatus",
    "Note",
    "Message",
    "SenderType",
]
