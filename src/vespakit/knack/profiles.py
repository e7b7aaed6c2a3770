"""
Student profile lookup.

Finds the profile record for a student by trying, in order: the
profile's connection to the student id, the student's email, and the
student's name. When nothing matches, a minimal profile is built from
the student record itself.

Profiles are cached under one canonical key per student id; name
lookups are aliases of that key.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from vespakit.core.config.models import ProfileFieldMap
from vespakit.core.logging import get_logger
from vespakit.core.scheduler import Debouncer

from .client import FilterRule, KnackClient, KnackFilter
from .fields import NOT_AVAILABLE, extract_email, field_or_default, format_name, sanitize_field

logger = get_logger("knack.profiles")


def profile_key(student_id: str) -> str:
    return f"profile:{student_id}"


def profile_name_key(name: str) -> str:
    return f"profile:name:{name.strip().lower()}"


def student_scope(student_id: str) -> str:
    return f"student:{student_id}"


def student_name_scope(name: str) -> str:
    return f"student-name:{name.strip().lower()}"


@dataclass
class StudentProfile:
    """Display-ready view of a student's profile."""

    student_id: str | None
    name: str
    email: str = ""
    year_group: str = NOT_AVAILABLE
    tutor_group: str = NOT_AVAILABLE
    attendance: str = NOT_AVAILABLE
    school: str = NOT_AVAILABLE
    source: str = "profile"  # "profile" or "student" (synthesised)
    record: dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def has_data(self) -> bool:
        return any(
            value and value != NOT_AVAILABLE
            for value in (self.name, self.year_group, self.tutor_group)
        )


class ProfileService:
    """Resolve student profiles through the throttled Knack client."""

    def __init__(self, client: KnackClient, fields: ProfileFieldMap | None = None):
        self.client = client
        self.fields = fields or ProfileFieldMap()

    @property
    def cache(self):
        return self.client.dispatcher.cache

    # ------------------------------------------------------------------
    # Record readers
    # ------------------------------------------------------------------

    def student_name(self, record: dict[str, Any]) -> str:
        f = self.fields
        parts = record.get(f"{f.student_name_parts}_raw") or record.get(f.student_name_parts)
        name = format_name(parts) if isinstance(parts, dict) else ""
        return name or sanitize_field(record.get(f.student_name))

    def student_email(self, record: dict[str, Any]) -> str:
        f = self.fields
        return extract_email(record.get(f"{f.student_email}_raw") or record.get(f.student_email))

    def build_profile(
        self,
        record: dict[str, Any],
        student_id: str | None,
        fallback_name: str = "",
        email: str = "",
    ) -> StudentProfile:
        f = self.fields
        name = field_or_default(record, f.profile_student_name, default="") or fallback_name
        return StudentProfile(
            student_id=student_id,
            name=name,
            email=email,
            year_group=field_or_default(record, f.profile_year_group),
            tutor_group=field_or_default(record, f.profile_tutor_group),
            attendance=field_or_default(record, f.profile_attendance),
            school=field_or_default(record, f.profile_school),
            source="profile",
            record=record,
        )

    def fallback_profile(self, student: dict[str, Any], student_id: str) -> StudentProfile:
        """Minimal profile assembled from the student record alone."""
        f = self.fields
        return StudentProfile(
            student_id=student_id,
            name=self.student_name(student),
            email=self.student_email(student),
            year_group=field_or_default(student, f.student_year_group),
            tutor_group=field_or_default(student, f.student_tutor_group),
            attendance=field_or_default(student, f.student_attendance),
            school=field_or_default(student, f.student_school),
            source="student",
            record=student,
        )

    # ------------------------------------------------------------------
    # Finders
    # ------------------------------------------------------------------

    async def get_student(self, student_id: str, scope: str | None = None) -> dict[str, Any] | None:
        scope = scope or student_scope(student_id)
        return await self.client.get_record(
            self.fields.student_object,
            student_id,
            cache_key=f"student:{student_id}",
            request_key=f"{scope}:get",
        )

    async def find_student_by_name(self, name: str, scope: str | None = None) -> dict[str, Any] | None:
        f = self.fields
        scope = scope or student_name_scope(name)
        return await self.client.find_first(
            f.student_object,
            KnackFilter.any_of(
                FilterRule(f.student_name, "is", name),
                FilterRule(f.student_name, "contains", name),
            ),
            cache_key=f"student:name:{name.strip().lower()}",
            request_key=f"{scope}:student",
        )

    async def find_profile_by_student_id(self, student_id: str, scope: str | None = None) -> dict[str, Any] | None:
        f = self.fields
        scope = scope or student_scope(student_id)
        return await self.client.find_first(
            f.profile_object,
            KnackFilter.any_of(
                FilterRule(f.profile_user_connection, "is", student_id),
                FilterRule(f.profile_user_id, "is", student_id),
            ),
            request_key=f"{scope}:profile-id",
        )

    async def find_profile_by_email(self, email: str, scope: str) -> dict[str, Any] | None:
        """Find the student by email, then the profile linked to that student."""
        f = self.fields
        student = await self.client.find_first(
            f.student_object,
            KnackFilter.any_of(
                FilterRule(f.student_email, "is", email),
                FilterRule(f.student_email, "contains", email),
            ),
            request_key=f"{scope}:student-email",
        )
        if student is None:
            return None

        rules: list[FilterRule] = []
        if student.get("id"):
            rules.append(FilterRule(f.profile_user_id, "is", student["id"]))
            rules.append(FilterRule(f.profile_user_connection, "is", student["id"]))
        name = sanitize_field(student.get(f.student_name))
        if name:
            rules.append(FilterRule(f.profile_student_name, "is", name))
        if not rules:
            return None

        return await self.client.find_first(
            f.profile_object,
            KnackFilter.any_of(*rules),
            request_key=f"{scope}:profile-email",
        )

    async def find_profile_by_name(self, name: str, scope: str) -> dict[str, Any] | None:
        f = self.fields
        return await self.client.find_first(
            f.profile_object,
            KnackFilter.any_of(
                FilterRule(f.profile_student_name, "is", name),
                FilterRule(f.profile_student_name, "contains", name),
            ),
            request_key=f"{scope}:profile-name",
        )

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def lookup_by_id(self, student_id: str) -> StudentProfile | None:
        """Resolve the profile for a student id, using the cache when fresh."""
        cached = self.cache.get(profile_key(student_id))
        if cached is not None:
            logger.debug("Using cached profile for student %s", student_id)
            return cached

        scope = student_scope(student_id)
        student = await self.get_student(student_id, scope)
        if student is None:
            logger.warning("Could not find student record with id %s", student_id)
            return None

        name = self.student_name(student)
        email = self.student_email(student)

        record = await self.find_profile_by_student_id(student_id, scope)
        if record is None and email:
            record = await self.find_profile_by_email(email, scope)
        if record is None and name:
            record = await self.find_profile_by_name(name, scope)

        if record is None:
            logger.info("No profile for student %s; using student record", student_id)
            profile = self.fallback_profile(student, student_id)
        else:
            profile = self.build_profile(record, student_id, fallback_name=name, email=email)

        aliases = [profile_name_key(name)] if name else []
        self.cache.set(profile_key(student_id), profile, aliases=aliases)
        return profile

    async def lookup_by_name(self, name: str) -> StudentProfile | None:
        """Resolve a profile from a student name.

        The student record is found first so the profile can be stored
        under the student's id; the name becomes an alias of that key.
        """
        cached = self.cache.get(profile_name_key(name))
        if cached is not None:
            logger.debug("Using cached profile for student name %s", name)
            return cached

        scope = student_name_scope(name)
        student = await self.find_student_by_name(name, scope)
        if student is not None and student.get("id"):
            profile = await self.lookup_by_id(student["id"])
            if profile is not None:
                self.cache.alias(profile_name_key(name), profile_key(student["id"]))
            return profile

        record = await self.find_profile_by_name(name, scope)
        if record is None:
            logger.info("No profile found for student name %s", name)
            return None

        profile = self.build_profile(record, None, fallback_name=name)
        self.cache.set(profile_name_key(name), profile)
        return profile

    def cancel_student(self, student_id: str | None = None, name: str | None = None) -> int:
        """Cancel every in-flight request made on behalf of a student."""
        dispatcher = self.client.dispatcher
        cancelled = 0
        if student_id:
            cancelled += dispatcher.cancel_matching(f"{student_scope(student_id)}:")
        if name:
            cancelled += dispatcher.cancel_matching(f"{student_name_scope(name)}:")
        if cancelled:
            logger.debug("Cancelled %d request(s) for previous student", cancelled)
        return cancelled


class ProfileSession:
    """Tracks which student is on screen and loads their profile.

    Selections are debounced; switching student cancels the requests
    still in flight for the previous one, and a late result for a
    student no longer selected is discarded.
    """

    def __init__(
        self,
        service: ProfileService,
        debounce_seconds: float = 0.5,
        on_profile: Callable[[StudentProfile | None], Awaitable[None] | None] | None = None,
    ):
        self.service = service
        self.on_profile = on_profile
        self.selection: tuple[str | None, str | None] | None = None
        self.profile: StudentProfile | None = None
        self._debouncer = Debouncer(self._load, debounce_seconds, name="profile-load")

    def select(self, student_id: str | None = None, name: str | None = None) -> bool:
        """Select a student by id or name. Returns False if nothing changed."""
        if not student_id and not name:
            raise ValueError("select() needs a student id or a name")

        selection = (student_id, None if student_id else name)
        if selection == self.selection:
            return False

        if self.selection is not None:
            previous_id, previous_name = self.selection
            self.service.cancel_student(previous_id, previous_name)

        self.selection = selection
        self.profile = None
        self._debouncer.trigger(selection)
        return True

    async def _load(self, selection: tuple[str | None, str | None]) -> StudentProfile | None:
        student_id, name = selection
        if student_id:
            profile = await self.service.lookup_by_id(student_id)
        else:
            profile = await self.service.lookup_by_name(name or "")

        if selection != self.selection:
            return None

        self.profile = profile
        if self.on_profile is not None:
            result = self.on_profile(profile)
            if result is not None:
                await result
        return profile

    async def wait(self) -> StudentProfile | None:
        """Wait for the pending load (if any) and return the current profile."""
        await self._debouncer.join()
        return self.profile
