"""
Tests for job posting endpoints.

Tests:
- Public listing, search and detail by job number
- View counting
- Admin create, update, publish and delete
"""

import pytest

from api.services.jobs import next_job_number
from database.models.jobs import WorkType

API = "/api/v1/jobs"


def job_payload(industry_id: int, **overrides) -> dict:
    payload = {
        "title": "Data Analyst",
        "description": "Turn numbers into decisions",
        "industry_id": industry_id,
        "location": "Cebu",
        "work_type": "HYBRID",
        "job_type": "FULL_TIME",
        "shift_type": "DAY",
        "experience_min": 2,
        "experience_max": 4,
        "salary_min": "30000",
        "salary_max": "45000",
        "salary_currency": "PHP",
    }
    payload.update(overrides)
    return payload


class TestPublicJobs:
    """Test the public job board."""

    async def test_lists_published_only(self, client, make_job):
        """Drafts are hidden; expired jobs stay listed and flagged."""
        await make_job("Published")
        await make_job("Draft", is_published=False)
        await make_job("Expired", expired=True)

        response = await client.get(API)
        assert response.status_code == 200
        data = response.json()
        titles = {job["title"]: job for job in data["jobs"]}
        assert set(titles) == {"Published", "Expired"}
        assert titles["Expired"]["is_expired"] is True
        assert titles["Expired"]["accepts_applications"] is False
        assert titles["Published"]["accepts_applications"] is True
        assert data["pagination"]["total"] == 2
        assert "application_count" not in titles["Published"]

    async def test_search(self, client, make_job):
        """Search covers titles and job numbers."""
        await make_job("Backend Engineer")
        second = await make_job("Product Designer")

        by_title = await client.get(API, params={"search": "designer"})
        assert [j["title"] for j in by_title.json()["jobs"]] == ["Product Designer"]

        by_number = await client.get(API, params={"search": second.job_number})
        assert [j["job_number"] for j in by_number.json()["jobs"]] == [second.job_number]

    async def test_work_type_filter(self, client, make_job):
        """Filters narrow by work type."""
        await make_job()
        response = await client.get(API, params={"work_type": WorkType.ONSITE.value})
        assert response.json()["jobs"] == []

    async def test_pagination(self, client, make_job):
        """Limit and page slice the result."""
        for i in range(3):
            await make_job(f"Job {i}")
        response = await client.get(API, params={"limit": 2, "page": 2})
        data = response.json()
        assert len(data["jobs"]) == 1
        assert data["pagination"]["total_pages"] == 2

    async def test_detail_by_number(self, client, make_job):
        """Published jobs are public by number."""
        job = await make_job()
        response = await client.get(f"{API}/number/{job.job_number}")
        assert response.status_code == 200
        data = response.json()
        assert data["industry"]["name"] == "Technology"
        assert data["salary_display"]

    async def test_draft_detail_is_404(self, client, make_job):
        """Drafts are not public."""
        job = await make_job(is_published=False)
        response = await client.get(f"{API}/number/{job.job_number}")
        assert response.status_code == 404


class TestJobViews:
    """Test view counting."""

    async def test_guest_views_counted_once_per_ip(self, client, make_job):
        """The same client IP is only counted once."""
        job = await make_job()
        first = await client.post(f"{API}/number/{job.job_number}/view")
        second = await client.post(f"{API}/number/{job.job_number}/view")
        assert first.json() == {"counted": True}
        assert second.json() == {"counted": False}

    async def test_signed_in_views_counted_per_user(self, client, make_job, candidate, headers):
        """Signed-in users are counted separately from their IP."""
        job = await make_job()
        await client.post(f"{API}/number/{job.job_number}/view")
        response = await client.post(f"{API}/number/{job.job_number}/view", headers=headers(candidate))
        assert response.json() == {"counted": True}

    async def test_view_count_on_admin_list(self, client, make_job, staff_reader, headers):
        """Admin views carry the counts."""
        job = await make_job()
        await client.post(f"{API}/number/{job.job_number}/view")
        response = await client.get(f"{API}/admin", headers=headers(staff_reader))
        row = response.json()["jobs"][0]
        assert row["view_count"] == 1
        assert row["application_count"] == 0

    async def test_draft_view_is_404(self, client, make_job):
        """Drafts cannot be viewed."""
        job = await make_job(is_published=False)
        response = await client.post(f"{API}/number/{job.job_number}/view")
        assert response.status_code == 404


class TestAdminJobs:
    """Test the admin surface."""

    async def test_admin_list_includes_drafts(self, client, make_job, staff_reader, headers):
        """Drafts are listed and filterable."""
        await make_job()
        await make_job("Draft", is_published=False)
        everything = await client.get(f"{API}/admin", headers=headers(staff_reader))
        drafts = await client.get(f"{API}/admin", params={"is_published": False}, headers=headers(staff_reader))
        assert everything.json()["pagination"]["total"] == 2
        assert [j["title"] for j in drafts.json()["jobs"]] == ["Draft"]

    async def test_candidate_cannot_list_admin(self, client, candidate, headers):
        """Candidates have no dashboard access."""
        response = await client.get(f"{API}/admin", headers=headers(candidate))
        assert response.status_code == 403

    async def test_preview_draft(self, client, make_job, staff_reader, headers):
        """Staff can preview drafts by number."""
        job = await make_job(is_published=False)
        response = await client.get(f"{API}/admin/number/{job.job_number}", headers=headers(staff_reader))
        assert response.status_code == 200
        assert response.json()["is_published"] is False

    async def test_create_assigns_next_number(self, client, make_job, industry, staff_editor, headers):
        """New jobs get one past the highest number."""
        await make_job()
        response = await client.post(API, json=job_payload(industry.id), headers=headers(staff_editor))

        assert response.status_code == 201
        job = response.json()["job"]
        assert job["job_number"] == "JN-0002"
        assert job["is_published"] is False
        assert job["salary_currency"] == "PHP"

    async def test_next_number_past_four_digits(self, make_job, session):
        """The highest number wins numerically, not alphabetically, regardless of insert order."""
        numbers = ["JN-10000", "JN-0002", "JN-9999"]
        for number in numbers:
            job = await make_job()
            job.job_number = number
        await session.commit()

        assert await next_job_number(session) == "JN-10001"

    async def test_next_number_first_job(self, session, database):
        """The first job is JN-0001."""
        assert await next_job_number(session) == "JN-0001"

    async def test_create_published(self, client, industry, staff_editor, headers):
        """Publishing on create sets published_at."""
        response = await client.post(
            API, json=job_payload(industry.id, is_published=True), headers=headers(staff_editor)
        )
        assert response.json()["job"]["published_at"] is not None

    async def test_create_with_custom_fields(self, client, industry, staff_editor, headers):
        """Custom questions are stored on the job."""
        fields = [{"key": "portfolio", "label": "Portfolio URL", "required": True}]
        response = await client.post(
            API, json=job_payload(industry.id, custom_application_fields=fields), headers=headers(staff_editor)
        )
        stored = response.json()["job"]["custom_application_fields"]
        assert stored == [{
            "key": "portfolio", "label": "Portfolio URL", "type": "text", "required": True, "options": [],
        }]

    async def test_create_invalid_industry(self, client, industry, staff_editor, headers):
        """Unknown industries are rejected."""
        response = await client.post(API, json=job_payload(999), headers=headers(staff_editor))
        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Invalid industry selected"

    @pytest.mark.parametrize("overrides", [
        {"experience_min": 5, "experience_max": 2},
        {"salary_min": "50000", "salary_max": "100"},
        {"custom_application_fields": [{"key": "a", "label": "A"}, {"key": "a", "label": "B"}]},
        {"custom_application_fields": [{"key": "team", "label": "Team", "type": "select"}]},
    ])
    async def test_create_invalid_payload(self, client, industry, staff_editor, headers, overrides):
        """Inconsistent payloads fail validation."""
        response = await client.post(API, json=job_payload(industry.id, **overrides), headers=headers(staff_editor))
        assert response.status_code == 422

    async def test_reader_cannot_create(self, client, industry, staff_reader, headers):
        """canRead staff cannot create jobs."""
        response = await client.post(API, json=job_payload(industry.id), headers=headers(staff_reader))
        assert response.status_code == 403

    async def test_update(self, client, make_job, staff_editor, headers):
        """Partial updates keep the job number."""
        job = await make_job()
        response = await client.put(
            f"{API}/{job.id}", json={"title": "Senior Backend Engineer"}, headers=headers(staff_editor)
        )
        assert response.status_code == 200
        data = response.json()["job"]
        assert data["title"] == "Senior Backend Engineer"
        assert data["job_number"] == job.job_number

    async def test_update_range_against_stored_value(self, client, make_job, staff_editor, headers):
        """A new maximum below the stored minimum is rejected."""
        job = await make_job()
        response = await client.put(f"{API}/{job.id}", json={"experience_max": 0}, headers=headers(staff_editor))
        assert response.status_code == 400

    async def test_update_empty(self, client, make_job, staff_editor, headers):
        """Empty updates are rejected."""
        job = await make_job()
        response = await client.put(f"{API}/{job.id}", json={}, headers=headers(staff_editor))
        assert response.status_code == 400

    async def test_update_missing(self, client, staff_editor, headers, database):
        """Unknown ids are 404."""
        response = await client.put(f"{API}/999", json={"title": "X"}, headers=headers(staff_editor))
        assert response.status_code == 404

    async def test_toggle_publish(self, client, make_job, staff_editor, headers):
        """Publishing flips both ways and hides the job when unpublished."""
        job = await make_job(is_published=False)
        published = await client.patch(f"{API}/{job.id}/publish", headers=headers(staff_editor))
        assert published.json()["message"] == "Job published successfully"
        assert (await client.get(f"{API}/number/{job.job_number}")).status_code == 200

        unpublished = await client.patch(f"{API}/{job.id}/publish", headers=headers(staff_editor))
        assert unpublished.json()["job"]["is_published"] is False
        assert unpublished.json()["job"]["published_at"] is None

    async def test_delete_removes_applications(self, client, make_job, apply, staff_editor, headers):
        """Deleting a job takes its applications with it."""
        job = await make_job()
        await apply(job)

        response = await client.delete(f"{API}/{job.id}", headers=headers(staff_editor))
        assert response.status_code == 200

        remaining = await client.get("/api/v1/applications/all", headers=headers(staff_editor))
        assert remaining.json()["pagination"]["total"] == 0

    async def test_reader_cannot_delete(self, client, make_job, staff_reader, headers):
        """canRead staff cannot delete jobs."""
        job = await make_job()
        response = await client.delete(f"{API}/{job.id}", headers=headers(staff_reader))
        assert response.status_code == 403


class TestDashboard:
    """Test dashboard statistics."""

    async def test_stats(self, client, make_job, apply, staff_reader, headers):
        """Counts reflect jobs and applications."""
        job = await make_job()
        await make_job("Draft", is_published=False)
        await apply(job)

        response = await client.get("/api/v1/dashboard/stats", headers=headers(staff_reader))
        assert response.status_code == 200
        data = response.json()
        assert data["jobs"]["total"] == 2
        assert data["jobs"]["published"] == 1
        assert data["applications"]["total"] == 1
        assert data["applications"]["pending"] == 1

    async def test_candidate_denied(self, client, candidate, headers):
        """Candidates have no dashboard."""
        response = await client.get("/api/v1/dashboard/stats", headers=headers(candidate))
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "PERMISSION_DENIED"

    async def test_staff_without_level_admitted(self, client, session, staff_reader, headers):
        """Staff with no stored level still belong on the dashboard."""
        staff_reader.roles[0].permission_level = None
        await session.commit()

        response = await client.get("/api/v1/dashboard/stats", headers=headers(staff_reader))
        assert response.status_code == 200

    async def test_admin_admitted(self, client, admin, headers):
        """Admins see the dashboard."""
        response = await client.get("/api/v1/dashboard/stats", headers=headers(admin))
        assert response.status_code == 200

    async def test_anonymous_rejected(self, client):
        """A missing token is a 401, not a 403."""
        response = await client.get("/api/v1/dashboard/stats")
        assert response.status_code == 401


class TestHealth:
    """Test health and readiness endpoints."""

    async def test_health(self, client):
        """Liveness is unconditional."""
        response = await client.get("/health")
        assert response.status_code == 200

    async def test_ready(self, client):
        """Readiness checks the database."""
        response = await client.get("/ready")
        assert response.status_code == 200
