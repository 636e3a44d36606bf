"""
Tests for user management endpoints.

Listing carries per-row action gates; every mutation is checked against the
administrative authority rules for its target.
"""

from unittest.mock import patch

from sqlalchemy import select

from core.permissions import PermissionLevel, RoleName
from database.models.applications import Application
from database.models.users import Role

API = "/api/v1/users"


async def role_id(session, name: RoleName) -> int:
    return (await session.execute(select(Role.id).where(Role.name == name))).scalar_one()


class TestListUsers:
    """Test listing and reading accounts."""

    async def test_staff_reader_can_list(self, client, staff_reader, candidate, headers):
        """users:view is a view permission."""
        response = await client.get(API, headers=headers(staff_reader))
        assert response.status_code == 200
        data = response.json()
        assert data["pagination"]["total"] == 2
        assert all(row["actions"]["any"] is False for row in data["users"])

    async def test_candidate_cannot_list(self, client, candidate, headers):
        """The user role has no dashboard access."""
        response = await client.get(API, headers=headers(candidate))
        assert response.status_code == 403

    async def test_actions_per_row(self, client, admin, super_admin, staff_reader, headers):
        """A regular admin gets no actions on itself or other admins."""
        response = await client.get(API, headers=headers(admin))
        rows = {row["email"]: row for row in response.json()["users"]}

        assert rows["admin@example.com"]["actions"]["can_delete"] is False
        assert rows["root@example.com"]["actions"]["any"] is False
        assert rows["root@example.com"]["is_super_admin"] is True
        assert rows["reader@example.com"]["actions"]["can_change_permission_level"] is True

    async def test_filters(self, client, admin, staff_reader, staff_editor, candidate, headers):
        """Role and search filters narrow the list."""
        staff = await client.get(API, params={"role": "staff"}, headers=headers(admin))
        assert {u["email"] for u in staff.json()["users"]} == {"reader@example.com", "editor@example.com"}

        search = await client.get(API, params={"search": "casey"}, headers=headers(admin))
        assert [u["email"] for u in search.json()["users"]] == ["candidate@example.com"]

    async def test_pagination(self, client, admin, staff_reader, staff_editor, candidate, headers):
        """Limit and page slice the result."""
        response = await client.get(API, params={"limit": 2, "page": 2}, headers=headers(admin))
        data = response.json()
        assert len(data["users"]) == 2
        assert data["pagination"] == {"page": 2, "limit": 2, "total": 4, "total_pages": 2}

    async def test_get_user(self, client, admin, candidate, headers):
        """Single accounts include their actions."""
        response = await client.get(f"{API}/{candidate.id}", headers=headers(admin))
        assert response.status_code == 200
        assert response.json()["actions"]["can_change_role"] is True

    async def test_get_missing(self, client, admin, headers):
        """Unknown ids are 404."""
        response = await client.get(f"{API}/9999", headers=headers(admin))
        assert response.status_code == 404


class TestRoleCatalogue:
    """Test role and permission level metadata."""

    async def test_roles(self, client, admin, headers):
        """The seeded roles are listed with their defaults."""
        response = await client.get(f"{API}/roles", headers=headers(admin))
        roles = {r["name"]: r for r in response.json()["roles"]}
        assert set(roles) == {"admin", "staff", "user"}
        assert roles["staff"]["default_permission_level"] == "canRead"
        assert roles["admin"]["default_permission_level"] is None

    async def test_permission_levels(self, client, admin, headers):
        """Both levels are described."""
        response = await client.get(f"{API}/permission-levels", headers=headers(admin))
        values = [level["value"] for level in response.json()["permission_levels"]]
        assert values == ["canEdit", "canRead"]

    async def test_default_level(self, client, admin, headers):
        """Defaults resolve per role; unknown roles are 404."""
        staff = await client.get(f"{API}/permission-levels/defaults/staff", headers=headers(admin))
        assert staff.json()["permission_level"] == "canRead"
        missing = await client.get(f"{API}/permission-levels/defaults/owner", headers=headers(admin))
        assert missing.status_code == 404


class TestChangeRole:
    """Test role changes."""

    async def test_promote_user_to_staff(self, client, admin, candidate, headers, session):
        """Staff gets a level; the old role is replaced."""
        response = await client.patch(f"{API}/{candidate.id}/role", json={
            "role_id": await role_id(session, RoleName.STAFF), "permission_level": "canEdit",
        }, headers=headers(admin))

        assert response.status_code == 200
        user = response.json()["user"]
        assert [r["name"] for r in user["roles"]] == ["staff"]
        assert user["permission_level"] == "canEdit"

    async def test_demote_staff_drops_level(self, client, admin, staff_editor, headers, session):
        """Non-staff roles never keep a level."""
        response = await client.patch(f"{API}/{staff_editor.id}/role", json={
            "role_id": await role_id(session, RoleName.USER), "permission_level": "canEdit",
        }, headers=headers(admin))
        assert response.json()["user"]["roles"] == [
            {"id": await role_id(session, RoleName.USER), "name": "user", "permission_level": None}
        ]

    async def test_cannot_change_own_role(self, client, super_admin, headers, session):
        """Even the super admin cannot change their own role."""
        response = await client.patch(f"{API}/{super_admin.id}/role", json={
            "role_id": await role_id(session, RoleName.USER),
        }, headers=headers(super_admin))
        assert response.status_code == 403

    async def test_admin_cannot_touch_admin(self, client, admin, make_user, headers, session):
        """Admin accounts are reserved for the super admin."""
        other = await make_user("other.admin@example.com", RoleName.ADMIN)
        response = await client.patch(f"{API}/{other.id}/role", json={
            "role_id": await role_id(session, RoleName.USER),
        }, headers=headers(admin))
        assert response.status_code == 403

    async def test_super_admin_demotes_admin(self, client, super_admin, admin, headers, session):
        """The super admin may change another admin's role."""
        response = await client.patch(f"{API}/{admin.id}/role", json={
            "role_id": await role_id(session, RoleName.STAFF),
        }, headers=headers(super_admin))
        assert response.status_code == 200
        assert response.json()["user"]["permission_level"] == "canRead"

    async def test_only_super_admin_grants_admin(self, client, admin, candidate, headers, session):
        """Promoting to admin needs the super admin."""
        response = await client.patch(f"{API}/{candidate.id}/role", json={
            "role_id": await role_id(session, RoleName.ADMIN),
        }, headers=headers(admin))
        assert response.status_code == 403
        assert response.json()["error"]["message"] == "Only the super admin can grant the admin role"

    async def test_invalid_role(self, client, admin, candidate, headers):
        """Unknown role ids are 400."""
        response = await client.patch(
            f"{API}/{candidate.id}/role", json={"role_id": 999}, headers=headers(admin)
        )
        assert response.status_code == 400

    async def test_staff_editor_denied(self, client, staff_editor, candidate, headers, session):
        """Staff with canEdit cannot manage users."""
        response = await client.patch(f"{API}/{candidate.id}/role", json={
            "role_id": await role_id(session, RoleName.STAFF),
        }, headers=headers(staff_editor))
        assert response.status_code == 403


class TestPermissionLevel:
    """Test staff level changes."""

    async def test_raise_staff_level(self, client, admin, staff_reader, headers):
        """Staff can be given canEdit."""
        response = await client.patch(
            f"{API}/{staff_reader.id}/permission-level",
            json={"permission_level": "canEdit"},
            headers=headers(admin),
        )
        assert response.status_code == 200
        assert response.json()["user"]["permission_level"] == "canEdit"

    async def test_level_change_takes_effect(self, client, admin, staff_reader, headers):
        """The next request sees the new level without a new token."""
        token_headers = headers(staff_reader)
        before = await client.post("/api/v1/industries", json={"name": "Logistics"}, headers=token_headers)
        assert before.status_code == 403

        await client.patch(
            f"{API}/{staff_reader.id}/permission-level",
            json={"permission_level": PermissionLevel.CAN_EDIT.value},
            headers=headers(admin),
        )
        after = await client.post("/api/v1/industries", json={"name": "Logistics"}, headers=token_headers)
        assert after.status_code == 201

    async def test_non_staff_target(self, client, admin, candidate, headers):
        """Users carry no level."""
        response = await client.patch(
            f"{API}/{candidate.id}/permission-level",
            json={"permission_level": "canEdit"},
            headers=headers(admin),
        )
        assert response.status_code == 403


class TestToggleActive:
    """Test activation."""

    async def test_deactivate_and_reactivate(self, client, admin, candidate, headers):
        """Toggling flips the flag both ways."""
        first = await client.patch(f"{API}/{candidate.id}/toggle-active", headers=headers(admin))
        assert first.json()["user"]["is_active"] is False
        assert first.json()["message"] == "User deactivated successfully"

        second = await client.patch(f"{API}/{candidate.id}/toggle-active", headers=headers(admin))
        assert second.json()["user"]["is_active"] is True

    async def test_deactivated_user_loses_access(self, client, admin, staff_reader, headers):
        """Existing tokens stop working."""
        await client.patch(f"{API}/{staff_reader.id}/toggle-active", headers=headers(admin))
        response = await client.get(API, headers=headers(staff_reader))
        assert response.status_code == 403

    async def test_cannot_deactivate_self(self, client, admin, headers):
        """Self-deactivation is blocked."""
        response = await client.patch(f"{API}/{admin.id}/toggle-active", headers=headers(admin))
        assert response.status_code == 403


class TestDeleteUser:
    """Test deletion."""

    async def test_delete_keeps_applications(self, client, admin, candidate, make_job, apply, headers, session):
        """The user's applications survive as guest applications."""
        job = await make_job()
        submitted = await apply(job, email="candidate@example.com", user=candidate)
        application_id = submitted.json()["application"]["id"]

        response = await client.delete(f"{API}/{candidate.id}", headers=headers(admin))
        assert response.status_code == 200

        missing = await client.get(f"{API}/{candidate.id}", headers=headers(admin))
        assert missing.status_code == 404

        application = (await session.execute(
            select(Application).where(Application.id == application_id)
            .execution_options(populate_existing=True)
        )).scalar_one()
        assert application.user_id is None

    async def test_cannot_delete_self(self, client, admin, headers):
        """Self-deletion is blocked."""
        response = await client.delete(f"{API}/{admin.id}", headers=headers(admin))
        assert response.status_code == 403

    async def test_delete_missing(self, client, admin, headers):
        """Unknown ids are 404."""
        response = await client.delete(f"{API}/9999", headers=headers(admin))
        assert response.status_code == 404


class TestResendInvitation:
    """Test resending invitations."""

    async def test_resend_for_pending(self, client, admin, make_user, headers):
        """Pending accounts get a fresh token by email."""
        pending = await make_user(
            "pending@example.com", RoleName.STAFF, first_name=None, last_name=None, password=None,
        )
        with patch("api.routes.v1.users.send_invitation_email") as send:
            response = await client.post(f"{API}/{pending.id}/resend-invitation", headers=headers(admin))

        assert response.status_code == 200
        assert response.json()["message"] == "Invitation resent"
        assert "token" not in response.json()
        args = send.call_args[0]
        assert args[0] == "pending@example.com"
        assert args[1] == "staff"

    async def test_onboarded_user(self, client, admin, candidate, headers):
        """Accounts that finished onboarding are refused."""
        response = await client.post(f"{API}/{candidate.id}/resend-invitation", headers=headers(admin))
        assert response.status_code == 403
