"""
Application service functions for API endpoints.

Drives the application lifecycle: drafts are created and edited by the
student, submitted once, and then moved through the review pipeline by the
team owner. Every function takes the session and the caller id explicitly
and returns a result dict.
"""

from typing import Any, Dict, List, Optional
from datetime import datetime
import logging

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from api.services.messages import message_counts
from api.services.notes import note_counts
from api.services.notifications import EmailNotification, Notifier, dispatch
from api.services.profiles import serialize_profile
from api.services.results import ErrorCode, fail, ok, store_failure
from core.integrations.email import EmailTemplates
from core.middleware.authorization import Permission, get_team_access
from core.security import log_audit_event
from core.utils.datetime import isoformat, now as utcnow
from core import workflow
from database.models.applications import Application, ApplicationStatus
from database.models.profiles import Profile
from database.models.teams import Team

logger = logging.getLogger(__name__)

DEADLINE_PASSED_MESSAGE = "The application deadline has passed"
DRAFT_NOT_FOUND_MESSAGE = "Application not found or already submitted"


def serialize_application(application: Application) -> Dict[str, Any]:
    return {
        "id": application.id,
        "student_id": application.student_id,
        "team_id": application.team_id,
        "status": application.status.value,
        "answers": dict(application.answers or {}),
        "created_at": isoformat(application.created_at),
        "updated_at": isoformat(application.updated_at),
    }


def serialize_applicant(profile: Optional[Profile]) -> Optional[Dict[str, Any]]:
    if profile is None:
        return None
    return serialize_profile(profile)


def _load_questions(team: Team) -> List[workflow.TeamQuestion]:
    return workflow.parse_questions(team.custom_questions)


async def _get_own_draft(
    session: AsyncSession, actor_id: str, application_id: str
) -> Optional[Application]:
    result = await session.execute(
        select(Application).where(
            Application.id == application_id,
            Application.student_id == actor_id,
            Application.status == ApplicationStatus.DRAFT,
        )
    )
    return result.scalar_one_or_none()


async def _deadline_for(
    session: AsyncSession, team: Team, student_id: str
) -> Optional[datetime]:
    profile = await session.get(Profile, student_id)
    class_standing = profile.class_standing if profile else None
    return workflow.applicable_deadline(team, class_standing)


# ==================== Applicant Operations ==================== #
async def create_application(
    session: AsyncSession,
    actor_id: str,
    team_id: str,
    answers: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Start a draft application to a team.

    Args:
        session: Database session
        actor_id: The applying student
        team_id: Team being applied to
        answers: Partial answers keyed by question id
        now: Clock override for deadline checks

    Returns:
        Result dict carrying the new application
    """
    answers = {} if answers is None else answers
    team = await session.get(Team, team_id)
    if not team:
        return fail(ErrorCode.NOT_FOUND, "Team not found")

    profile = await session.get(Profile, actor_id)
    if not profile:
        return fail(ErrorCode.VALIDATION_FAILED, "Create your profile before applying")

    existing = await session.execute(
        select(Application.id).where(
            Application.student_id == actor_id,
            Application.team_id == team_id,
        )
    )
    if existing.scalar_one_or_none():
        return fail(ErrorCode.CONFLICT, "You have already applied to this team")

    deadline = workflow.applicable_deadline(team, profile.class_standing)
    if workflow.deadline_passed(deadline, now or utcnow()):
        return fail(ErrorCode.DEADLINE_PASSED, DEADLINE_PASSED_MESSAGE)

    error = workflow.validate_draft_answers(_load_questions(team), answers)
    if error:
        return fail(ErrorCode.VALIDATION_FAILED, error)

    application = Application(
        student_id=actor_id,
        team_id=team_id,
        status=ApplicationStatus.DRAFT,
        answers=dict(answers),
    )
    session.add(application)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        return fail(ErrorCode.CONFLICT, "You have already applied to this team")
    except SQLAlchemyError as e:
        await session.rollback()
        return store_failure(e)

    logger.info(f"Draft application {application.id} created for team {team_id}")
    return ok(application=serialize_application(application))


async def update_answers(
    session: AsyncSession,
    actor_id: str,
    application_id: str,
    answers: Dict[str, Any],
) -> Dict[str, Any]:
    """Replace a draft's answers. Only the student may edit, and only in draft."""
    application = await _get_own_draft(session, actor_id, application_id)
    if not application:
        return fail(ErrorCode.NOT_FOUND, DRAFT_NOT_FOUND_MESSAGE)

    team = await session.get(Team, application.team_id)
    error = workflow.validate_draft_answers(_load_questions(team), answers)
    if error:
        return fail(ErrorCode.VALIDATION_FAILED, error)

    application.answers = dict(answers)
    try:
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        return store_failure(e)

    return ok(application=serialize_application(application))


async def submit_application(
    session: AsyncSession,
    actor_id: str,
    application_id: str,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Submit a draft. Required questions must be answered and the student's
    deadline must not have passed. Only the first failing question is reported.
    """
    application = await _get_own_draft(session, actor_id, application_id)
    if not application:
        return fail(ErrorCode.NOT_FOUND, DRAFT_NOT_FOUND_MESSAGE)

    team = await session.get(Team, application.team_id)
    deadline = await _deadline_for(session, team, actor_id)
    if workflow.deadline_passed(deadline, now or utcnow()):
        return fail(ErrorCode.DEADLINE_PASSED, DEADLINE_PASSED_MESSAGE)

    error = workflow.validate_submission(
        _load_questions(team), application.answers or {}
    )
    if error:
        return fail(ErrorCode.VALIDATION_FAILED, error)

    application.status = ApplicationStatus.SUBMITTED
    try:
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        return store_failure(e)

    logger.info(f"Application {application.id} submitted to team {team.id}")
    return ok(application=serialize_application(application))


async def get_my_application(
    session: AsyncSession, actor_id: str, team_id: str
) -> Dict[str, Any]:
    """The caller's application to one team, in any state."""
    result = await session.execute(
        select(Application).where(
            Application.student_id == actor_id,
            Application.team_id == team_id,
        )
    )
    application = result.scalar_one_or_none()
    if not application:
        return fail(ErrorCode.NOT_FOUND, "Application not found")
    return ok(application=serialize_application(application))


async def list_my_applications(session: AsyncSession, actor_id: str) -> Dict[str, Any]:
    """The caller's applications, most recently updated first."""
    result = await session.execute(
        select(Application, Team.name)
        .join(Team, Team.id == Application.team_id)
        .where(Application.student_id == actor_id)
        .order_by(Application.updated_at.desc())
    )
    rows = result.all()
    counts = await message_counts(
        session, [application.id for application, _ in rows]
    )

    applications = []
    for application, team_name in rows:
        item = serialize_application(application)
        item["team_name"] = team_name
        item["message_count"] = counts.get(application.id, 0)
        applications.append(item)

    return ok(applications=applications, total=len(applications))


# ==================== Team-Side Operations ==================== #
async def get_application_detail(
    session: AsyncSession, actor_id: str, application_id: str
) -> Dict[str, Any]:
    """
    Full review view of one application for the owner or a reviewer.

    Answers are paired with the team's current questions. Answers whose
    question has since been removed are returned under ``unmatched_answers``.
    """
    application = await session.get(Application, application_id)
    if not application or application.status == ApplicationStatus.DRAFT:
        return fail(ErrorCode.NOT_FOUND, "Application not found")

    team = await session.get(Team, application.team_id)
    access = await get_team_access(session, team, actor_id)
    if not access.can(Permission.APPLICATION_READ):
        return fail(ErrorCode.NOT_FOUND, "Application not found")

    profile = await session.get(Profile, application.student_id)
    questions = _load_questions(team)
    answers = application.answers or {}
    known_ids = {q.id for q in questions}

    return ok(
        application=serialize_application(application),
        team={"id": team.id, "name": team.name},
        applicant=serialize_applicant(profile),
        questions=[
            {**q.model_dump(), "answer": answers.get(q.id, "")} for q in questions
        ],
        unmatched_answers={k: v for k, v in answers.items() if k not in known_ids},
        access={"is_owner": access.is_owner, "is_reviewer": access.is_reviewer},
    )


async def list_team_applications(
    session: AsyncSession,
    actor_id: str,
    team_id: str,
    status: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Submitted applications for a team, most recently updated first.

    Drafts are never listed. ``status_counts`` covers every non-draft
    application regardless of the filter.
    """
    team = await session.get(Team, team_id)
    if not team:
        return fail(ErrorCode.NOT_FOUND, "Team not found")

    access = await get_team_access(session, team, actor_id)
    if not access.can(Permission.APPLICATION_READ):
        return fail(ErrorCode.NOT_FOUND, "Team not found")

    status_filter = None
    if status:
        status_filter = workflow.coerce_status(status)
        if status_filter is None or status_filter == ApplicationStatus.DRAFT:
            return fail(ErrorCode.VALIDATION_FAILED, f'Invalid status "{status}"')

    count_result = await session.execute(
        select(Application.status, func.count(Application.id))
        .where(
            Application.team_id == team_id,
            Application.status != ApplicationStatus.DRAFT,
        )
        .group_by(Application.status)
    )
    status_counts = {s.value: 0 for s in workflow.DECISION_STATUSES}
    for row_status, count in count_result.all():
        status_counts[row_status.value] = count
    status_counts["all"] = sum(status_counts.values())

    query = (
        select(Application, Profile)
        .outerjoin(Profile, Profile.id == Application.student_id)
        .where(
            Application.team_id == team_id,
            Application.status != ApplicationStatus.DRAFT,
        )
    )
    if status_filter:
        query = query.where(Application.status == status_filter)
    query = query.order_by(Application.updated_at.desc())

    rows = (await session.execute(query)).all()
    ids = [application.id for application, _ in rows]
    messages_by_app = await message_counts(session, ids)
    notes_by_app = await note_counts(session, ids)

    applications = []
    for application, profile in rows:
        item = serialize_application(application)
        item["applicant"] = profile.summary() if profile else None
        item["message_count"] = messages_by_app.get(application.id, 0)
        item["note_count"] = notes_by_app.get(application.id, 0)
        applications.append(item)

    return ok(
        team={"id": team.id, "name": team.name},
        applications=applications,
        total=len(applications),
        status_counts=status_counts,
    )


async def update_status(
    session: AsyncSession,
    actor_id: str,
    application_id: str,
    status: str,
    notifier: Optional[Notifier] = None,
) -> Dict[str, Any]:
    """
    Owner-only decision transition.

    The applicant is emailed after the commit; that email can fail without
    affecting the status change.
    """
    application = await session.get(Application, application_id)
    if not application:
        return fail(ErrorCode.NOT_FOUND, "Application not found")

    team = await session.get(Team, application.team_id)
    access = await get_team_access(session, team, actor_id, application)
    if not access.can(Permission.APPLICATION_DECIDE):
        if access.roles:
            return fail(
                ErrorCode.NOT_AUTHORIZED,
                "Only the team account can update application status",
            )
        return fail(ErrorCode.NOT_FOUND, "Application not found")

    target = workflow.coerce_status(status)
    if target is None or target not in workflow.DECISION_STATUSES:
        return fail(ErrorCode.VALIDATION_FAILED, f'Invalid status "{status}"')
    if not workflow.can_transition(application.status, target):
        return fail(
            ErrorCode.VALIDATION_FAILED,
            "Draft applications cannot be moved through the review pipeline",
        )

    previous = application.status
    application.status = target
    try:
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        return store_failure(e)

    log_audit_event(
        "status_change",
        "application",
        resource_id=application.id,
        actor_id=actor_id,
        details={"from": previous.value, "to": target.value},
    )

    if notifier is not None:
        async def build() -> Optional[EmailNotification]:
            profile = await session.get(Profile, application.student_id)
            if not profile or not profile.email:
                return None
            template = EmailTemplates.status_change(
                applicant_name=profile.full_name,
                team_name=team.name,
                new_status=target.value,
            )
            return EmailNotification(
                to=[profile.email], subject=template["subject"], html=template["html"]
            )

        await dispatch(notifier, build, kind="status_changed")

    return ok(application=serialize_application(application))
