"""Route tests: authentication, status mapping and response shape."""

import pytest

from database.models.communications import SenderType

API = "/api/v1"


def owner_headers(login, world):
    return login(world.owner.id, "robotics@teams.example.edu")


def student_headers(login, profile):
    return login(profile.id, profile.email)


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "version": "0.1.0"}

    @pytest.mark.asyncio
    async def test_ready(self, client):
        response = await client.get("/ready")
        assert response.status_code == 200
        assert response.json() == {"status": "ready"}


class TestAuthentication:
    @pytest.mark.asyncio
    async def test_missing_token(self, client):
        response = await client.get(f"{API}/me")
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "AUTHENTICATION_REQUIRED"

    @pytest.mark.asyncio
    async def test_malformed_token(self, client):
        response = await client.get(
            f"{API}/me", headers={"Authorization": "Bearer not-a-jwt"}
        )
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "TOKEN_INVALID"

    @pytest.mark.asyncio
    async def test_first_request_registers_user(self, client, login):
        response = await client.get(f"{API}/me", headers=login("idp-new", "new1@cornell.edu"))
        assert response.status_code == 200
        assert response.json()["kind"] == "needs_profile"
        assert response.json()["redirect"] == "/profile/create"


class TestAccount:
    @pytest.mark.asyncio
    async def test_team_account_redirect(self, client, login, world):
        response = await client.get(f"{API}/me", headers=owner_headers(login, world))
        assert response.json()["redirect"] == f"/admin/{world.team.id}"

    @pytest.mark.asyncio
    async def test_student_redirect(self, client, login, world):
        response = await client.get(
            f"{API}/me", headers=student_headers(login, world.applicant)
        )
        assert response.json()["kind"] == "student"
        assert response.json()["redirect"] == "/dashboard"


class TestProfileRoutes:
    PROFILE = {
        "netid": "xyz789",
        "email": "xyz789@cornell.edu",
        "full_name": "Katherine Johnson",
        "major": "",
        "grad_year": 2027,
    }

    @pytest.mark.asyncio
    async def test_create_then_fetch(self, client, login):
        headers = login("idp-kj", "xyz789@cornell.edu")
        created = await client.post(f"{API}/profile", json=self.PROFILE, headers=headers)
        assert created.status_code == 201
        assert created.json()["profile"]["major"] is None

        fetched = await client.get(f"{API}/profile", headers=headers)
        assert fetched.json()["profile"]["netid"] == "xyz789"

        again = await client.post(f"{API}/profile", json=self.PROFILE, headers=headers)
        assert again.status_code == 409
        assert again.json()["error"]["message"] == "Profile already exists"

    @pytest.mark.asyncio
    async def test_validation_message_is_first_failing_field(self, client, login):
        response = await client.post(
            f"{API}/profile",
            json={**self.PROFILE, "gpa": 5},
            headers=login("idp-gpa", "xyz789@cornell.edu"),
        )
        assert response.status_code == 422
        assert response.json()["error"] == {
            "code": "VALIDATION_FAILED",
            "message": "GPA must be at most 4.3",
            "path": f"{API}/profile",
            "method": "POST",
        }

    @pytest.mark.asyncio
    async def test_missing_profile(self, client, login):
        response = await client.get(f"{API}/profile", headers=login("idp-x", "x1@cornell.edu"))
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_resume_upload_and_delete(self, client, login, world, storage):
        headers = student_headers(login, world.applicant)
        response = await client.post(
            f"{API}/profile/resume",
            files={"file": ("cv.pdf", b"%PDF-1.4", "application/pdf")},
            headers=headers,
        )
        assert response.status_code == 200
        assert response.json()["resume_url"].endswith(f"/{world.applicant.id}/resume.pdf")
        storage.upload.assert_awaited_once()

        deleted = await client.delete(f"{API}/profile/resume", headers=headers)
        assert deleted.json() == {"success": True, "resume_url": None}

    @pytest.mark.asyncio
    async def test_resume_must_be_pdf(self, client, login, world):
        response = await client.post(
            f"{API}/profile/resume",
            files={"file": ("cv.png", b"\x89PNG", "image/png")},
            headers=student_headers(login, world.applicant),
        )
        assert response.status_code == 422
        assert response.json()["error"]["message"] == "Only PDF files are allowed."

    def test_documented_response_schemas(self):
        from api.main import app

        def schema_ref(operation, status_code):
            content = operation["responses"][status_code]["content"]
            return content["application/json"]["schema"]["$ref"].rsplit("/", 1)[-1]

        paths = app.openapi()["paths"]
        assert schema_ref(paths[f"{API}/profile"]["get"], "200") == "ProfileResult"
        assert schema_ref(paths[f"{API}/profile"]["get"], "404") == "ErrorResponse"
        assert schema_ref(paths[f"{API}/profile/resume"]["delete"], "200") == "ResumeResponse"
        assert schema_ref(paths[f"{API}/teams"]["get"], "502") == "ErrorResponse"


class TestTeamRoutes:
    @pytest.mark.asyncio
    async def test_browse(self, client, login, world):
        headers = student_headers(login, world.outsider)
        listed = await client.get(f"{API}/teams", params={"category": "Engineering"}, headers=headers)
        assert listed.json()["total"] == 1

        categories = await client.get(f"{API}/teams/categories", headers=headers)
        assert categories.json()["categories"] == ["Engineering"]

        detail = await client.get(f"{API}/teams/{world.team.id}", headers=headers)
        assert detail.json()["team"]["deadline_passed"] is False

        missing = await client.get(f"{API}/teams/nope", headers=headers)
        assert missing.status_code == 404

    @pytest.mark.asyncio
    async def test_deadlines_owner_only(self, client, login, world):
        url = f"{API}/teams/{world.team.id}/deadlines"
        payload = {"upperclassman_deadline": "2026-12-01T00:00:00Z"}

        forbidden = await client.put(url, json=payload, headers=student_headers(login, world.reviewer))
        assert forbidden.status_code == 403

        hidden = await client.put(url, json=payload, headers=student_headers(login, world.outsider))
        assert hidden.status_code == 404

        response = await client.put(url, json=payload, headers=owner_headers(login, world))
        assert response.status_code == 200
        assert response.json()["team"]["upperclassman_deadline"] == "2026-12-01T00:00:00+00:00"

    @pytest.mark.asyncio
    async def test_managed_teams(self, client, login, world):
        response = await client.get(
            f"{API}/teams/managed", headers=student_headers(login, world.reviewer)
        )
        assert [t["role"] for t in response.json()["teams"]] == ["reviewer"]

    @pytest.mark.asyncio
    async def test_team_application_list(self, client, login, world):
        url = f"{API}/teams/{world.team.id}/applications"
        response = await client.get(url, headers=student_headers(login, world.reviewer))
        assert response.json()["status_counts"]["submitted"] == 1

        invalid = await client.get(
            url, params={"status": "draft"}, headers=owner_headers(login, world)
        )
        assert invalid.status_code == 422

    @pytest.mark.asyncio
    async def test_my_application_to_team(self, client, login, world):
        url = f"{API}/teams/{world.team.id}/applications/mine"
        mine = await client.get(url, headers=student_headers(login, world.applicant))
        assert mine.json()["application"]["id"] == world.application.id

        none = await client.get(url, headers=student_headers(login, world.outsider))
        assert none.status_code == 404


class TestReviewerRoutes:
    @pytest.mark.asyncio
    async def test_manage_reviewers(self, client, login, world):
        url = f"{API}/teams/{world.team.id}/reviewers"
        headers = owner_headers(login, world)

        added = await client.post(url, json={"identifier": "ot56"}, headers=headers)
        assert added.status_code == 201

        duplicate = await client.post(url, json={"identifier": "ot56"}, headers=headers)
        assert duplicate.status_code == 409

        listed = await client.get(url, headers=headers)
        assert [r["netid"] for r in listed.json()["reviewers"]] == ["rv12", "ot56"]

        removed = await client.delete(f"{url}/{world.outsider.id}", headers=headers)
        assert removed.status_code == 200

    @pytest.mark.asyncio
    async def test_reviewer_cannot_manage(self, client, login, world):
        response = await client.get(
            f"{API}/teams/{world.team.id}/reviewers",
            headers=student_headers(login, world.reviewer),
        )
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "NOT_AUTHORIZED"


class TestApplicationRoutes:
    @pytest.mark.asyncio
    async def test_status_update_owner_only(self, client, login, world, notifier):
        url = f"{API}/applications/{world.application.id}/status"

        forbidden = await client.put(
            url, json={"status": "accepted"}, headers=student_headers(login, world.reviewer)
        )
        assert forbidden.status_code == 403
        assert notifier.sent == []

        response = await client.put(
            url, json={"status": "accepted"}, headers=owner_headers(login, world)
        )
        assert response.json()["application"]["status"] == "accepted"
        assert notifier.kinds() == ["status_changed"]

    @pytest.mark.asyncio
    async def test_missing_body_field(self, client, login, world):
        response = await client.put(
            f"{API}/applications/{world.application.id}/status",
            json={},
            headers=owner_headers(login, world),
        )
        assert response.status_code == 422
        assert response.json()["error"]["details"][0]["field"] == "body.status"

    @pytest.mark.asyncio
    async def test_deadline_passed_is_unprocessable(self, client, login, factory, past):
        team = await factory.team(name="Closed", upper=past, lower=past)
        student = await factory.student()
        response = await client.post(
            f"{API}/applications",
            json={"team_id": team.id},
            headers=student_headers(login, student),
        )
        assert response.status_code == 422
        assert response.json()["error"]["message"] == "The application deadline has passed"

    @pytest.mark.asyncio
    async def test_detail_hidden_from_outsider(self, client, login, world):
        response = await client.get(
            f"{API}/applications/{world.application.id}",
            headers=student_headers(login, world.outsider),
        )
        assert response.status_code == 404


class TestMessageRoutes:
    @pytest.mark.asyncio
    async def test_send_and_list(self, client, login, world, notifier):
        url = f"{API}/applications/{world.application.id}/messages"
        sent = await client.post(
            url, json={"body": "Hello team"}, headers=student_headers(login, world.applicant)
        )
        assert sent.status_code == 201
        assert notifier.kinds() == ["applicant_message"]

        listed = await client.get(url, headers=student_headers(login, world.reviewer))
        assert [m["body"] for m in listed.json()["messages"]] == ["Hello team"]

        refused = await client.post(
            url, json={"body": "Hi"}, headers=student_headers(login, world.reviewer)
        )
        assert refused.status_code == 403

    @pytest.mark.asyncio
    async def test_stream_sends_snapshot(self, client, login, factory, world):
        await factory.message(world.application, world.owner.id, SenderType.TEAM, "Welcome")
        response = await client.get(
            f"{API}/applications/{world.application.id}/messages/stream",
            params={"max_polls": 1},
            headers=student_headers(login, world.applicant),
        )
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.text.startswith("event: messages\n")
        assert '"body": "Welcome"' in response.text

    @pytest.mark.asyncio
    async def test_stream_checks_access_first(self, client, login, world):
        response = await client.get(
            f"{API}/applications/{world.application.id}/messages/stream",
            params={"max_polls": 1},
            headers=student_headers(login, world.outsider),
        )
        assert response.status_code == 404


class TestNoteRoutes:
    @pytest.mark.asyncio
    async def test_note_lifecycle(self, client, login, world):
        reviewer = student_headers(login, world.reviewer)
        created = await client.post(
            f"{API}/applications/{world.application.id}/notes",
            json={"body": "Great portfolio"},
            headers=reviewer,
        )
        assert created.status_code == 201
        note_id = created.json()["note"]["id"]

        not_author = await client.patch(
            f"{API}/notes/{note_id}", json={"body": "Mine now"}, headers=owner_headers(login, world)
        )
        assert not_author.status_code == 403

        off_team = await client.delete(
            f"{API}/notes/{note_id}", headers=student_headers(login, world.outsider)
        )
        assert off_team.status_code == 404

        edited = await client.patch(
            f"{API}/notes/{note_id}", json={"body": "Great portfolio!"}, headers=reviewer
        )
        assert edited.json()["note"]["body"] == "Great portfolio!"

        deleted = await client.delete(f"{API}/notes/{note_id}", headers=reviewer)
        assert deleted.status_code == 200

    @pytest.mark.asyncio
    async def test_applicant_cannot_see_notes(self, client, login, world):
        response = await client.get(
            f"{API}/applications/{world.application.id}/notes",
            headers=student_headers(login, world.applicant),
        )
        assert response.status_code == 404
