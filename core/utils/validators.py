"""Validation utilities for applicant input and uploads."""

import re
from typing import Any, Optional

# Resumes must be PDFs and start with the PDF magic bytes
PDF_CONTENT_TYPES = {"application/pdf", "application/x-pdf"}
PDF_MAGIC = b"%PDF"


def validate_phone(phone: str) -> tuple[bool, Optional[str]]:
    """
    Validate phone number format (basic validation).

    Args:
        phone: Phone number to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not phone:
        return False, "Phone number is required"

    cleaned = re.sub(r"[\s\-\(\)\.]", "", phone)
    digits = re.findall(r"\d", cleaned)
    if not digits:
        return False, "Phone number must contain digits"
    if len(digits) < 7 or len(digits) > 15:
        return False, "Phone number must be between 7 and 15 digits"
    return True, None


def sanitize_filename(filename: str) -> str:
    """
    Sanitize filename by removing dangerous characters.

    Args:
        filename: Original filename

    Returns:
        Sanitized filename
    """
    sanitized = re.sub(r'[<>:"/\\|?*\x00-\x1f]', "", filename)
    sanitized = sanitized.replace(" ", "_")
    if len(sanitized) > 255:
        name, ext = sanitized.rsplit(".", 1) if "." in sanitized else (sanitized, "")
        sanitized = name[:250] + ("." + ext if ext else "")
    return sanitized or "file"


def sanitize_email_for_path(email: str) -> str:
    return re.sub(r"[^a-zA-Z0-9]", "_", email.lower())


def validate_password_strength(password: str) -> tuple[bool, list[str]]:
    """
    Validate password strength.

    Returns:
        Tuple of (is_valid, list of error messages)
    """
    errors = []
    if len(password) < 8:
        errors.append("Password must be at least 8 characters long")
    if len(password) > 128:
        errors.append("Password must be less than 128 characters")
    if not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter")
    if not re.search(r"\d", password):
        errors.append("Password must contain at least one digit")
    return len(errors) == 0, errors


def validate_resume(
    filename: Optional[str],
    content_type: Optional[str],
    data: bytes,
    max_size: int,
) -> tuple[bool, Optional[str]]:
    """
    Check an uploaded resume: present, PDF, within the size limit.

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not filename or not data:
        return False, "Resume file is required"
    if len(data) > max_size:
        return False, f"Resume must be at most {max_size // (1024 * 1024)}MB"
    is_pdf_name = filename.lower().endswith(".pdf")
    is_pdf_type = (content_type or "").lower() in PDF_CONTENT_TYPES
    if not (is_pdf_name or is_pdf_type) or not data.startswith(PDF_MAGIC):
        return False, "Resume must be a PDF file"
    return True, None


def validate_custom_field_values(
    fields: list[dict[str, Any]],
    values: dict[str, Any],
) -> tuple[dict[str, Any], list[str]]:
    """
    Check submitted values against a job's custom application fields.

    Unknown keys are dropped. Required fields must be non-empty, number
    fields must parse, select fields must use one of their options.

    Returns:
        Tuple of (cleaned values, list of error messages)
    """
    cleaned: dict[str, Any] = {}
    errors: list[str] = []

    for field in fields:
        key = field["key"]
        label = field.get("label") or key
        value = values.get(key)
        empty = value is None or (isinstance(value, str) and not value.strip())

        if empty:
            if field.get("required"):
                errors.append(f"{label} is required")
            continue

        field_type = field.get("type", "text")
        if field_type == "number":
            try:
                value = float(value)
            except (TypeError, ValueError):
                errors.append(f"{label} must be a number")
                continue
        elif field_type == "select":
            options = field.get("options") or []
            if str(value) not in options:
                errors.append(f"{label} must be one of: {', '.join(options)}")
                continue
            value = str(value)
        else:
            value = str(value).strip()

        cleaned[key] = value

    return cleaned, errors
