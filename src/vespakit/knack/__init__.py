"""Knack record access, profile lookup and staff import."""

from .client import FilterRule, KnackClient, KnackFilter
from .fields import (
    NOT_AVAILABLE,
    extract_email,
    field_or_default,
    format_name,
    is_valid_email,
    sanitize_field,
)
from .profiles import ProfileService, ProfileSession, StudentProfile
from .proxy import DashboardProxy, EmailProxy
from .staff import (
    CSV_TEMPLATE,
    CsvParseResult,
    ImportReport,
    StaffImporter,
    StaffImportResult,
    StaffRow,
    generate_password,
    parse_staff_csv,
)

__all__ = [
    # Client
    "FilterRule",
    "KnackClient",
    "KnackFilter",
    # Fields
    "NOT_AVAILABLE",
    "extract_email",
    "field_or_default",
    "format_name",
    "is_valid_email",
    "sanitize_field",
    # Profiles
    "ProfileService",
    "ProfileSession",
    "StudentProfile",
    # Proxies
    "DashboardProxy",
    "EmailProxy",
    # Staff
    "CSV_TEMPLATE",
    "CsvParseResult",
    "ImportReport",
    "StaffImporter",
    "StaffImportResult",
    "StaffRow",
    "generate_password",
    "parse_staff_csv",
]
