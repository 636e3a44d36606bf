"""
API Services Layer.

Database operations behind the API routes. Each function takes the
request's AsyncSession and returns plain dictionaries.
"""

from api.services.auth import (
    signup,
    login,
    me,
    update_profile,
    change_password,
    invite_user,
    accept_invitation,
)

from api.services.users import (
    list_users,
    get_user,
    list_roles,
    list_permission_levels,
    default_permission_level,
    update_role,
    update_permission_level,
    toggle_active,
    delete_user,
    resend_invitation,
)

from api.services.industries import (
    list_industries,
    get_industry,
    create_industry,
    update_industry,
    toggle_industry,
    delete_industry,
)

from api.services.jobs import (
    list_public_jobs,
    get_public_job,
    record_job_view,
    list_admin_jobs,
    get_job,
    get_job_preview,
    create_job,
    update_job,
    toggle_publish,
    delete_job,
)

from api.services.applications import (
    submit_application,
    check_application,
    list_my_applications,
    get_own_application,
    list_applications,
    get_application,
    update_status,
    archive_application,
    restore_application,
    delete_application,
    prepare_custom_email,
    prepare_template_email,
)

from api.services.saved_jobs import (
    list_saved_jobs,
    is_saved,
    save_job,
    unsave_job,
)

from api.services.dashboard import (
    get_stats,
)

__all__ = [
    # Auth
    "signup",
    "login",
    "me",
    "update_profile",
    "change_password",
    "invite_user",
    "accept_invitation",
    # Users
    "list_users",
    "get_user",
    "list_roles",
    "list_permission_levels",
    "default_permission_level",
    "update_role",
    "update_permission_level",
    "toggle_active",
    "delete_user",
    "resend_invitation",
    # Industries
    "list_industries",
    "get_industry",
    "create_industry",
    "update_industry",
    "toggle_industry",
    "delete_industry",
    # Jobs
    "list_public_jobs",
    "get_public_job",
    "record_job_view",
    "list_admin_jobs",
    "get_job",
    "get_job_preview",
    "create_job",
    "update_job",
    "toggle_publish",
    "delete_job",
    # Applications
    "submit_application",
    "check_application",
    "list_my_applications",
    "get_own_application",
    "list_applications",
    "get_application",
    "update_status",
    "archive_application",
    "restore_application",
    "delete_application",
    "prepare_custom_email",
    "prepare_template_email",
    # Saved jobs
    "list_saved_jobs",
    "is_saved",
    "save_job",
    "unsave_job",
    # Dashboard
    "get_stats",
]
