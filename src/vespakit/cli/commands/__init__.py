"""CLI command modules."""

from . import config, profile, records, staff

__all__ = [
    "config",
    "profile",
    "records",
    "staff",
]
