"""
Defensive readers for Knack record fields.

Knack returns the same field in several shapes (plain string, ``_raw``
dict, HTML anchor). These helpers never raise on unexpected shapes;
they fall back to a default so callers can keep rendering.
"""

from __future__ import annotations

import html
import re
from typing import Any

NOT_AVAILABLE = "N/A"

_TAG_RE = re.compile(r"<[^>]*?>")
_MARKDOWN_RE = re.compile(r"[*_~`#]")
_MAILTO_RE = re.compile(r'mailto:([^"\'>\s]+)')
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def sanitize_field(value: Any) -> str:
    """Strip HTML tags and markdown symbols, decode entities."""
    if value is None:
        return ""
    text = _TAG_RE.sub("", str(value))
    text = _MARKDOWN_RE.sub("", text)
    return html.unescape(text).strip()


def field_or_default(record: dict[str, Any] | None, field: str, default: str = NOT_AVAILABLE) -> str:
    """Read a text field, preferring the plain value over ``<field>_raw``."""
    if not isinstance(record, dict):
        return default
    value = record.get(field)
    if value in (None, "", []):
        value = record.get(f"{field}_raw")
    if isinstance(value, list):
        value = ", ".join(
            sanitize_field(v.get("identifier", "")) if isinstance(v, dict) else sanitize_field(v)
            for v in value
        )
    elif isinstance(value, dict):
        value = value.get("identifier") or value.get("name") or value.get("full")
    text = sanitize_field(value)
    return text or default


def format_name(value: Any) -> str:
    """Format a Knack name field (string or title/first/last dict)."""
    if isinstance(value, str):
        return sanitize_field(value)
    if not isinstance(value, dict):
        return ""
    if value.get("full"):
        return sanitize_field(value["full"])
    parts = [value.get(k) for k in ("title", "first", "last")]
    return " ".join(sanitize_field(p) for p in parts if p).strip()


def extract_email(value: Any) -> str:
    """Extract an email address from a raw dict, a mailto anchor or a string."""
    if isinstance(value, dict):
        return str(value.get("email") or value.get("label") or "").strip()
    if not isinstance(value, str):
        return ""
    match = _MAILTO_RE.search(value)
    if match:
        return match.group(1)
    return sanitize_field(value)


def is_valid_email(value: str) -> bool:
    return bool(EMAIL_RE.match(value or ""))
