"""
API Services Layer.

Database operations behind the API endpoints. Each function takes the
session and caller id and returns a result dict.
"""

from api.services.applications import (
    create_application,
    update_answers,
    submit_application,
    get_my_application,
    list_my_applications,
    get_application_detail,
    list_team_applications,
    update_status,
)

from api.services.messages import (
    send_message,
    list_messages,
    stream_messages,
)

from api.services.notes import (
    add_note,
    update_note,
    delete_note,
    list_notes,
)

from api.services.reviewers import (
    add_reviewer,
    remove_reviewer,
    list_reviewers,
)

from api.services.profiles import (
    get_profile,
    create_profile,
    update_profile,
    upload_resume,
    delete_resume,
)

from api.services.teams import (
    list_teams,
    list_categories,
    get_team,
    provision_team,
    update_deadlines,
    list_managed_teams,
)

from api.services.users import (
    ensure_user,
    get_account_context,
)

__all__ = [
    # Applications
    "create_application",
    "update_answers",
    "submit_application",
    "get_my_application",
    "list_my_applications",
    "get_application_detail",
    "list_team_applications",
    "update_status",
    # Messages
    "send_message",
    "list_messages",
    "stream_messages",
    # Notes
    "add_note",
    "update_note",
    "delete_note",
    "list_notes",
    # Reviewers
    "add_reviewer",
    "remove_reviewer",
    "list_reviewers",
    # Profiles
    "get_profile",
    "create_profile",
    "update_profile",
    "upload_resume",
    "delete_resume",
    # Teams
    "list_teams",
    "list_categories",
    "get_team",
    "provision_team",
    "update_deadlines",
    "list_managed_teams",
    # Users
    "ensure_user",
    "get_account_context",
]
