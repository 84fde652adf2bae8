"""
Application lifecycle rules.

Pure functions over teams, questions and answers. Nothing here touches the
database; the services in ``api.services`` load rows and call into these.

State machine::

    draft -> submitted -> {interviewing, accepted, rejected}

The owner may set any post-draft status at any time. ``draft`` is never
re-entered.
"""

from datetime import datetime, timedelta
from typing import Annotated, Any, Iterable, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, field_validator

from core.utils.datetime import ensure_utc, is_past, is_within
from database.models.applications import ApplicationStatus
from database.models.profiles import ClassStanding


DECISION_STATUSES = frozenset(
    {
        ApplicationStatus.SUBMITTED,
        ApplicationStatus.INTERVIEWING,
        ApplicationStatus.ACCEPTED,
        ApplicationStatus.REJECTED,
    }
)

DEADLINE_SOON_WINDOW = timedelta(days=3)


# ==================== Team Questions ===================== #
class _QuestionBase(BaseModel):
    id: str = Field(..., min_length=1)
    label: str = Field(..., min_length=1)
    required: bool = False


class TextQuestion(_QuestionBase):
    type: Literal["text"]


class TextareaQuestion(_QuestionBase):
    type: Literal["textarea"]


class SelectQuestion(_QuestionBase):
    type: Literal["select"]
    options: list[str] = Field(..., min_length=1)

    @field_validator("options")
    @classmethod
    def options_not_blank(cls, v: list[str]) -> list[str]:
        if any(not option.strip() for option in v):
            raise ValueError("Select options cannot be blank")
        return v


TeamQuestion = Annotated[
    Union[TextQuestion, TextareaQuestion, SelectQuestion],
    Field(discriminator="type"),
]

_question_list = TypeAdapter(list[TeamQuestion])


def parse_questions(raw: Iterable[Any]) -> list[TeamQuestion]:
    """
    Parse a team's stored question list.

    Raises:
        pydantic.ValidationError: If an entry is malformed
        ValueError: If two questions share an id
    """
    questions = _question_list.validate_python(list(raw or []))
    seen: set[str] = set()
    for question in questions:
        if question.id in seen:
            raise ValueError(f'Duplicate question id "{question.id}"')
        seen.add(question.id)
    return questions


# ==================== Deadlines ===================== #
def applicable_deadline(team, class_standing: Optional[ClassStanding]) -> Optional[datetime]:
    """Lowerclassmen get the lowerclassman deadline; everyone else the upperclassman one."""
    if class_standing == ClassStanding.LOWERCLASSMAN:
        return ensure_utc(team.lowerclassman_deadline)
    return ensure_utc(team.upperclassman_deadline)


def deadline_passed(deadline: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """True iff a deadline is set and ``now`` is strictly after it."""
    if deadline is None:
        return False
    return is_past(deadline, now)


def deadline_soon(deadline: Optional[datetime], now: Optional[datetime] = None) -> bool:
    if deadline is None:
        return False
    return is_within(deadline, DEADLINE_SOON_WINDOW, now)


# ==================== Answer Validation ===================== #
def validate_draft_answers(
    questions: list[TeamQuestion], answers: Any
) -> Optional[str]:
    """
    Check a (possibly partial) answer map against the team's questions.

    Returns:
        The first error message, or None if the answers are acceptable
    """
    if not isinstance(answers, dict):
        return "Answers must be an object"

    by_id = {q.id: q for q in questions}
    for key, value in answers.items():
        question = by_id.get(key)
        if question is None:
            return f'Unknown question "{key}"'
        if not isinstance(value, str):
            return f'"{question.label}" must be text'
        if isinstance(question, SelectQuestion) and value and value not in question.options:
            return f'"{question.label}" must be one of the listed options'
    return None


def validate_submission(
    questions: list[TeamQuestion], answers: dict[str, str]
) -> Optional[str]:
    """Return the message for the first required question left blank, if any."""
    for question in questions:
        if not question.required:
            continue
        value = answers.get(question.id)
        if not isinstance(value, str) or not value.strip():
            return f'"{question.label}" is required'
    return None


# ==================== Transitions ===================== #
def can_transition(current: ApplicationStatus, target: ApplicationStatus) -> bool:
    """
    Decision rule for owner-driven status changes.

    Any post-draft status may move to any decision status, including back
    out of accepted or rejected. Drafts stay with the applicant.
    """
    if target not in DECISION_STATUSES:
        return False
    return current != ApplicationStatus.DRAFT


def coerce_status(value: Any) -> Optional[ApplicationStatus]:
    """Map a raw status string to ApplicationStatus, or None if unknown."""
    if isinstance(value, ApplicationStatus):
        return value
    try:
        return ApplicationStatus(value)
    except ValueError:
        return None
