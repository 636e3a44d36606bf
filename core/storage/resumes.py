"""Resume storage backend selection and object naming."""

from datetime import datetime, timezone
from typing import Optional
import logging

from core.config import settings
from core.storage.local import LocalStorage
from core.storage.s3 import S3Storage
from core.utils.validators import sanitize_email_for_path, sanitize_filename

logger = logging.getLogger(__name__)

_storage: Optional[LocalStorage | S3Storage] = None


def get_resume_storage() -> LocalStorage | S3Storage:
    """Get or create the configured storage backend."""
    global _storage
    if _storage is None:
        if settings.storage_backend == "s3":
            _storage = S3Storage()
        else:
            _storage = LocalStorage(settings.local_storage_dir)
        logger.info(f"Using {settings.storage_backend} resume storage")
    return _storage


def build_resume_key(
    job_number: str,
    email: str,
    filename: str,
    at: Optional[datetime] = None,
) -> str:
    """Object key: {job_number}/{email}_{unix timestamp}_{file name}."""
    timestamp = int((at or datetime.now(timezone.utc)).timestamp())
    return f"{job_number}/{sanitize_email_for_path(email)}_{timestamp}_{sanitize_filename(filename)}"


def build_profile_resume_key(
    user_id: int,
    filename: str,
    at: Optional[datetime] = None,
) -> str:
    """Object key: profiles/{user id}/{unix timestamp}_{file name}."""
    timestamp = int((at or datetime.now(timezone.utc)).timestamp())
    return f"profiles/{user_id}/{timestamp}_{sanitize_filename(filename)}"
