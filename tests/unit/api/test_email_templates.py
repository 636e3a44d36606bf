"""
Tests for email template endpoints.

Tests:
- Listing creates the defaults
- Lookup by type, updates, toggling and reset
- Stored wording and the enabled flag drive applicant emails
"""

from unittest.mock import patch

from api.services.email_templates import DEFAULT_TEMPLATES
from database.models.communications import EmailTemplateType

API = "/api/v1/email-templates"
APPLICATIONS = "/api/v1/applications"


async def template_ids(client, actor_headers) -> dict:
    response = await client.get(API, headers=actor_headers)
    return {t["type"]: t["id"] for t in response.json()["templates"]}


class TestListTemplates:
    """Test the template catalogue."""

    async def test_list_creates_defaults(self, client, admin, headers):
        """Every type has a stored template with its placeholders."""
        response = await client.get(API, headers=headers(admin))

        assert response.status_code == 200
        data = response.json()
        assert {t["type"] for t in data["templates"]} == {t.value for t in EmailTemplateType}
        assert all(t["is_active"] for t in data["templates"])
        names = [p["name"] for p in data["placeholders"]["interview_invitation"]]
        assert "{{interview_date}}" in names
        assert "{{first_name}}" in names

    async def test_list_is_idempotent(self, client, admin, headers):
        """Listing twice does not duplicate rows."""
        first = await template_ids(client, headers(admin))
        second = await template_ids(client, headers(admin))
        assert first == second

    async def test_get_by_type(self, client, admin, headers):
        """Types can be looked up in either spelling."""
        response = await client.get(f"{API}/job-offer", headers=headers(admin))

        assert response.status_code == 200
        template = response.json()["template"]
        assert template["type"] == "job_offer"
        assert template["subject"] == DEFAULT_TEMPLATES[EmailTemplateType.JOB_OFFER]["subject"]
        assert any(p["name"] == "{{offer_details}}" for p in response.json()["placeholders"])

    async def test_get_unknown_type(self, client, admin, headers):
        """Unknown types are 400."""
        response = await client.get(f"{API}/welcome", headers=headers(admin))
        assert response.status_code == 400

    async def test_staff_denied(self, client, staff_editor, headers):
        """Template management is admin only."""
        response = await client.get(API, headers=headers(staff_editor))
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "PERMISSION_DENIED"


class TestEditTemplates:
    """Test updating, toggling and resetting templates."""

    async def test_update(self, client, admin, headers):
        """Subject and body can be changed; the editor is recorded."""
        ids = await template_ids(client, headers(admin))
        response = await client.patch(
            f"{API}/{ids['application_reviewed']}",
            json={"subject": "  We looked at your {{job_title}} application  ", "body": "<p>Hi {{first_name}}</p>"},
            headers=headers(admin),
        )

        assert response.status_code == 200
        template = response.json()["template"]
        assert template["subject"] == "We looked at your {{job_title}} application"
        assert template["body"] == "<p>Hi {{first_name}}</p>"
        assert template["updated_by"] == admin.id

    async def test_unknown_placeholder(self, client, admin, headers):
        """Placeholders the type cannot fill are refused."""
        ids = await template_ids(client, headers(admin))
        response = await client.patch(
            f"{API}/{ids['application_rejection']}",
            json={"body": "<p>Start {{start_date}}</p>"},
            headers=headers(admin),
        )
        assert response.status_code == 400
        assert "{{start_date}}" in response.json()["error"]["message"]

    async def test_empty_update(self, client, admin, headers):
        """An update must change something."""
        ids = await template_ids(client, headers(admin))
        response = await client.patch(f"{API}/{ids['job_offer']}", json={}, headers=headers(admin))
        assert response.status_code == 400

    async def test_blank_subject(self, client, admin, headers):
        """Subjects cannot be blank."""
        ids = await template_ids(client, headers(admin))
        response = await client.patch(f"{API}/{ids['job_offer']}", json={"subject": "   "}, headers=headers(admin))
        assert response.status_code == 422

    async def test_missing_template(self, client, admin, headers):
        """Unknown ids are 404."""
        await template_ids(client, headers(admin))
        response = await client.patch(f"{API}/9999/toggle", headers=headers(admin))
        assert response.status_code == 404

    async def test_toggle_and_reset(self, client, admin, headers):
        """Toggling flips the flag; reset restores wording and re-enables."""
        ids = await template_ids(client, headers(admin))
        template_id = ids["application_follow_up"]
        await client.patch(f"{API}/{template_id}", json={"subject": "Custom"}, headers=headers(admin))

        disabled = await client.patch(f"{API}/{template_id}/toggle", headers=headers(admin))
        assert disabled.json()["template"]["is_active"] is False
        assert disabled.json()["message"] == "Template disabled successfully"

        reset = await client.post(f"{API}/{template_id}/reset", headers=headers(admin))
        template = reset.json()["template"]
        assert template["is_active"] is True
        assert template["subject"] == DEFAULT_TEMPLATES[EmailTemplateType.APPLICATION_FOLLOW_UP]["subject"]


class TestTemplatesDriveEmails:
    """Test that stored templates shape applicant emails."""

    async def test_stored_subject_used_for_status_email(
        self, client, make_job, apply, admin, staff_editor, headers
    ):
        """A reviewed notification carries the edited wording."""
        ids = await template_ids(client, headers(admin))
        await client.patch(
            f"{API}/{ids['application_reviewed']}",
            json={"subject": "Good news about {{job_title}}"},
            headers=headers(admin),
        )
        job = await make_job()
        submitted = await apply(job)

        with patch("api.services.notifications.send_status_notification") as send:
            response = await client.patch(
                f"{APPLICATIONS}/{submitted.json()['application']['id']}/status",
                json={"status": "reviewed"},
                headers=headers(staff_editor),
            )
        assert response.status_code == 200
        content = send.call_args.kwargs["content"]
        assert content.subject == "Good news about {{job_title}}"
        assert content.is_active is True

    async def test_disabled_confirmation_passed_to_sender(self, client, make_job, apply, admin, headers):
        """The confirmation sender learns the template is disabled."""
        ids = await template_ids(client, headers(admin))
        await client.patch(f"{API}/{ids['application_confirmation']}/toggle", headers=headers(admin))
        job = await make_job()

        with patch("api.services.notifications.send_application_confirmation") as send:
            response = await apply(job)
        assert response.status_code == 201
        assert send.call_args.kwargs["content"].is_active is False

    async def test_disabled_template_blocks_manual_send(
        self, client, make_job, apply, admin, staff_editor, headers
    ):
        """A disabled template cannot be sent, and the status is untouched."""
        ids = await template_ids(client, headers(admin))
        await client.patch(f"{API}/{ids['interview_invitation']}/toggle", headers=headers(admin))
        job = await make_job()
        submitted = await apply(job)
        application_id = submitted.json()["application"]["id"]

        with patch("api.services.notifications.send_template_email") as send:
            response = await client.post(
                f"{APPLICATIONS}/{application_id}/email/template",
                json={"template": "interview_invitation"},
                headers=headers(staff_editor),
            )
        assert response.status_code == 400
        assert response.json()["error"]["message"] == "This email template is disabled"
        send.assert_not_called()

        detail = await client.get(f"{APPLICATIONS}/admin/{application_id}", headers=headers(staff_editor))
        assert detail.json()["status"] == "pending"
