"""Tests for application message threads."""

import pytest

from api.services import messages as service
from api.services.results import ErrorCode
from database.models.applications import ApplicationStatus
from database.models.communications import SenderType


class TestSendMessage:
    @pytest.mark.asyncio
    async def test_applicant_writes_as_applicant(self, session, world, notifier):
        result = await service.send_message(
            session, world.applicant.id, world.application.id, "When is the interview?",
            notifier=notifier,
        )
        assert result["success"] is True
        assert result["message"]["sender_type"] == "applicant"
        assert result["message"]["sender_id"] == world.applicant.id

        assert notifier.kinds() == ["applicant_message"]
        email = notifier.sent[0]
        assert email.to == ["robotics@teams.example.edu", "rv12@cornell.edu"]
        assert email.subject == "New message from applicant Alan Turing"

    @pytest.mark.asyncio
    async def test_owner_writes_as_team(self, session, world, notifier):
        result = await service.send_message(
            session, world.owner.id, world.application.id, "Thursday at 5pm",
            notifier=notifier,
        )
        assert result["message"]["sender_type"] == "team"

        assert notifier.kinds() == ["team_message"]
        assert notifier.sent[0].to == ["ap34@cornell.edu"]
        assert notifier.sent[0].subject == "New message from Cornell Robotics"

    @pytest.mark.asyncio
    async def test_reviewer_cannot_write(self, session, world, notifier):
        result = await service.send_message(
            session, world.reviewer.id, world.application.id, "Hi", notifier=notifier
        )
        assert result["code"] == ErrorCode.NOT_AUTHORIZED
        assert notifier.sent == []

    @pytest.mark.asyncio
    async def test_outsider_sees_not_found(self, session, world):
        result = await service.send_message(
            session, world.outsider.id, world.application.id, "Hi"
        )
        assert result["code"] == ErrorCode.NOT_FOUND

    @pytest.mark.asyncio
    async def test_unknown_application(self, session, world):
        result = await service.send_message(session, world.applicant.id, "missing", "Hi")
        assert result["code"] == ErrorCode.NOT_FOUND

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body,error",
        [
            ("", "Message cannot be empty"),
            (None, "Message cannot be empty"),
            ("x" * 2001, "Message cannot exceed 2000 characters"),
        ],
    )
    async def test_body_validation(self, session, world, body, error):
        result = await service.send_message(
            session, world.applicant.id, world.application.id, body
        )
        assert result["code"] == ErrorCode.VALIDATION_FAILED
        assert result["error"] == error

    @pytest.mark.asyncio
    async def test_longest_body_accepted(self, session, world):
        result = await service.send_message(
            session, world.applicant.id, world.application.id, "x" * 2000
        )
        assert result["success"] is True

    @pytest.mark.asyncio
    async def test_applicant_may_write_on_draft(self, session, factory, world):
        draft = await factory.application(world.outsider, world.team, ApplicationStatus.DRAFT)
        result = await service.send_message(session, world.outsider.id, draft.id, "Question")
        assert result["success"] is True

    @pytest.mark.asyncio
    async def test_team_cannot_write_on_draft(self, session, factory, world, notifier):
        draft = await factory.application(world.outsider, world.team, ApplicationStatus.DRAFT)
        result = await service.send_message(
            session, world.owner.id, draft.id, "Saw your draft", notifier=notifier
        )
        assert result["code"] == ErrorCode.NOT_FOUND
        assert notifier.sent == []

    @pytest.mark.asyncio
    async def test_notification_skipped_without_owner(self, session, factory, notifier):
        team = await factory.team(name="Ownerless")
        student = await factory.student()
        application = await factory.application(student, team)
        result = await service.send_message(
            session, student.id, application.id, "Anyone there?", notifier=notifier
        )
        assert result["success"] is True
        assert notifier.sent == []


class TestListMessages:
    @pytest.mark.asyncio
    async def test_oldest_first_for_every_party(self, session, factory, world):
        await factory.message(world.application, world.applicant.id, SenderType.APPLICANT, "one")
        await factory.message(world.application, world.owner.id, SenderType.TEAM, "two")

        for actor in (world.applicant.id, world.owner.id, world.reviewer.id):
            result = await service.list_messages(session, actor, world.application.id)
            assert [m["body"] for m in result["messages"]] == ["one", "two"]

    @pytest.mark.asyncio
    async def test_outsider_sees_not_found(self, session, world):
        result = await service.list_messages(session, world.outsider.id, world.application.id)
        assert result["code"] == ErrorCode.NOT_FOUND

    @pytest.mark.asyncio
    async def test_draft_thread_is_applicant_only(self, session, factory, world):
        draft = await factory.application(world.outsider, world.team, ApplicationStatus.DRAFT)
        await factory.message(draft, world.outsider.id, SenderType.APPLICANT, "Before I submit")

        own = await service.list_messages(session, world.outsider.id, draft.id)
        assert [m["body"] for m in own["messages"]] == ["Before I submit"]

        for actor in (world.owner.id, world.reviewer.id):
            result = await service.list_messages(session, actor, draft.id)
            assert result["code"] == ErrorCode.NOT_FOUND

    @pytest.mark.asyncio
    async def test_message_counts(self, session, factory, world):
        await factory.message(world.application, world.applicant.id, SenderType.APPLICANT, "a")
        counts = await service.message_counts(session, [world.application.id, "other"])
        assert counts == {world.application.id: 1}
        assert await service.message_counts(session, []) == {}


class TestStreamMessages:
    @pytest.mark.asyncio
    async def test_yields_fresh_snapshot_each_poll(self, session, factory, world):
        application_id = world.application.id
        applicant_id = world.applicant.id
        owner_id = world.owner.id

        stream = service.stream_messages(
            session, applicant_id, application_id, interval=0, max_polls=2
        )
        first = await stream.__anext__()
        assert first["messages"] == []

        await factory.message(world.application, owner_id, SenderType.TEAM, "Welcome")
        second = await stream.__anext__()
        assert [m["body"] for m in second["messages"]] == ["Welcome"]

        with pytest.raises(StopAsyncIteration):
            await stream.__anext__()

    @pytest.mark.asyncio
    async def test_denied_stream_yields_one_failure(self, session, world):
        snapshots = [
            snapshot
            async for snapshot in service.stream_messages(
                session, world.outsider.id, world.application.id, interval=0, max_polls=5
            )
        ]
        assert len(snapshots) == 1
        assert snapshots[0]["code"] == ErrorCode.NOT_FOUND
