"""
Bulk staff import from CSV.

Rows are validated up front; accounts are then created one at a time
through the throttled Knack client so the staff object is never hit
in parallel. Welcome emails are best-effort: an account whose email
failed keeps its generated password in the report instead.
"""

from __future__ import annotations

import csv
import io
import secrets
from dataclasses import dataclass, field
from typing import Any, Callable

from vespakit.core.config.models import StaffFieldMap
from vespakit.core.fetch import ApiError
from vespakit.core.logging import get_logger

from .client import KnackClient
from .fields import is_valid_email
from .proxy import EmailProxy

logger = get_logger("knack.staff")

REQUIRED_COLUMNS = ("first name", "last name", "email")
OPTIONAL_COLUMNS = ("title", "year group", "group")

CSV_TEMPLATE = """\
Title,First Name,Last Name,Email,Year Group,Group
Mr,John,Smith,j.smith@school.edu,Year 10,10A
Ms,Jane,Doe,j.doe@school.edu,Year 11,11B
"""

PASSWORD_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZabcdefghjkmnpqrstuvwxyz23456789!@#$%"


def generate_password(length: int = 12) -> str:
    """Temporary password without look-alike characters."""
    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))


@dataclass
class StaffRow:
    first_name: str
    last_name: str
    email: str
    title: str = ""
    year_group: str = ""
    group: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


@dataclass
class CsvParseResult:
    rows: list[StaffRow] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return bool(self.rows) and not self.errors


def parse_staff_csv(text: str, accounts_remaining: int | None = None) -> CsvParseResult:
    """Parse and validate a staff CSV.

    Args:
        text: CSV content with a header row
        accounts_remaining: Maximum number of rows that may be imported

    Returns:
        Valid rows plus one message per problem found
    """
    result = CsvParseResult()
    lines = [row for row in csv.reader(io.StringIO(text.strip())) if row]

    if len(lines) < 2:
        result.errors.append("CSV file must contain headers and at least one row of data")
        return result

    headers = [h.strip().lower() for h in lines[0]]
    missing = [col for col in REQUIRED_COLUMNS if col not in headers]
    if missing:
        result.errors.append(f"Missing required columns: {', '.join(missing)}")
        return result

    index = {col: headers.index(col) for col in REQUIRED_COLUMNS + OPTIONAL_COLUMNS if col in headers}

    for i, values in enumerate(lines[1:], start=1):
        def cell(col: str) -> str:
            pos = index.get(col)
            if pos is None or pos >= len(values):
                return ""
            return values[pos].strip()

        row = StaffRow(
            first_name=cell("first name"),
            last_name=cell("last name"),
            email=cell("email"),
            title=cell("title"),
            year_group=cell("year group"),
            group=cell("group"),
        )

        if not (row.first_name or row.last_name or row.email):
            continue
        if not (row.first_name and row.last_name and row.email):
            result.errors.append(f"Row {i}: Missing required fields (First Name, Last Name, or Email)")
            continue
        if not is_valid_email(row.email):
            result.errors.append(f"Row {i}: Invalid email format ({row.email})")
            continue

        result.rows.append(row)

    if accounts_remaining is not None and len(result.rows) > accounts_remaining:
        result.errors.append(
            f"Too many staff: {len(result.rows)} in CSV but only "
            f"{accounts_remaining} accounts remaining"
        )

    if not result.rows and not result.errors:
        result.errors.append("No valid data found in CSV file")

    return result


@dataclass
class StaffImportResult:
    row: StaffRow
    record_id: str | None = None
    email_sent: bool = False
    password: str | None = None  # kept only when the welcome email failed
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.record_id is not None


@dataclass
class ImportReport:
    results: list[StaffImportResult] = field(default_factory=list)

    @property
    def created(self) -> list[StaffImportResult]:
        return [r for r in self.results if r.ok]

    @property
    def failed(self) -> list[StaffImportResult]:
        return [r for r in self.results if not r.ok]

    def summary_lines(self) -> list[str]:
        lines = [
            f"Total Processed: {len(self.results)}",
            f"Successfully Created: {len(self.created)}",
            f"Failed: {len(self.failed)}",
            "",
            "Email Results:",
        ]
        for r in self.results:
            if not r.ok:
                lines.append(f"{r.row.email} - Account creation failed: {r.error}")
            elif r.email_sent:
                lines.append(f"{r.row.email} - Welcome email sent")
            else:
                lines.append(f"{r.row.email} - Email not sent")
        return lines


class StaffImporter:
    """Create staff accounts from validated CSV rows."""

    def __init__(
        self,
        client: KnackClient,
        customer_id: str,
        school_id: str | None = None,
        fields: StaffFieldMap | None = None,
        email: EmailProxy | None = None,
        admin_email: str | None = None,
    ):
        self.client = client
        self.customer_id = customer_id
        self.school_id = school_id
        self.fields = fields or StaffFieldMap()
        self.email = email
        self.admin_email = admin_email

    def build_record(self, row: StaffRow, password: str) -> dict[str, Any]:
        f = self.fields
        record: dict[str, Any] = {
            f.customer: [self.customer_id],
            f.name: {"title": row.title, "first": row.first_name, "last": row.last_name},
            f.role: [f.role_profile],
            f.group: row.group,
            f.email: row.email,
            f.account_type: f.account_type_value,
            f.account_level: f.account_level_value,
            f.password: password,
            f.year_group: row.year_group,
        }
        if self.school_id:
            record[f.school_id] = self.school_id
        return record

    async def import_row(self, row: StaffRow) -> StaffImportResult:
        password = generate_password()
        try:
            record = await self.client.create_record(
                self.fields.staff_object,
                self.build_record(row, password),
            )
        except ApiError as e:
            logger.error("Failed to create staff %s: %s", row.email, e)
            return StaffImportResult(row=row, error=str(e))

        record_id = record.get("id")
        if not record_id:
            return StaffImportResult(row=row, error="No record id returned")

        email_sent = False
        if self.email is not None:
            email_sent = await self.email.send_welcome(row.full_name, row.email, password)

        return StaffImportResult(
            row=row,
            record_id=record_id,
            email_sent=email_sent,
            password=None if email_sent else password,
        )

    async def import_rows(
        self,
        rows: list[StaffRow],
        progress: Callable[[int, int, StaffRow], None] | None = None,
    ) -> ImportReport:
        """Create one account per row, in order."""
        report = ImportReport()
        total = len(rows)
        logger.info("Starting staff import for %d row(s)", total)

        for i, row in enumerate(rows, start=1):
            if progress is not None:
                progress(i, total, row)
            report.results.append(await self.import_row(row))

        logger.info(
            "Staff import finished: %d created, %d failed",
            len(report.created),
            len(report.failed),
        )

        if self.email is not None and self.admin_email:
            await self.email.send_admin_summary(
                self.admin_email,
                "CSV Staff Upload",
                report.summary_lines(),
            )

        return report
