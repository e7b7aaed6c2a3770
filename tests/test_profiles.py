import asyncio
import json
from typing import Any

import httpx
import pytest

from vespakit.knack import KnackClient, ProfileService, ProfileSession

from conftest import DummyKnack, make_config, make_dispatcher


def _student(student_id: str, name: str, email: str) -> dict[str, Any]:
    first, last = name.split(" ", 1)
    return {
        "id": student_id,
        "field_47": name,
        "field_90_raw": {"first": first, "last": last},
        "field_91": email,
        "field_91_raw": {"email": email},
        "field_548": "Year 10",
        "field_565": "10A",
        "field_3139": "95%",
        "field_179_raw": [{"id": "sch1", "identifier": "Hillside"}],
    }


def _profile(profile_id: str, name: str, student_id: str | None = None) -> dict[str, Any]:
    record: dict[str, Any] = {
        "id": profile_id,
        "field_3066": name,
        "field_3078": "10",
        "field_3077": "10B",
        "field_3076": "97%",
        "field_3069_raw": [{"id": "sch1", "identifier": "Hillside"}],
    }
    if student_id:
        record["field_3064"] = student_id
        record["field_3070_raw"] = [{"id": student_id, "identifier": name}]
    return record


def _matches(record: dict[str, Any], rule: dict[str, Any]) -> bool:
    value = record.get(rule["field"])
    if value is None:
        value = record.get(f"{rule['field']}_raw")
    if isinstance(value, list):
        return any(item.get("id") == rule["value"] for item in value)
    if value is None:
        return False
    if rule["operator"] == "is":
        return str(value) == rule["value"]
    if rule["operator"] == "contains":
        return str(rule["value"]).lower() in str(value).lower()
    return False


class FakeKnackApp:
    """Tiny in-memory stand-in for the student and profile objects."""

    def __init__(self, students: list[dict], profiles: list[dict], slow_ids: tuple[str, ...] = ()) -> None:
        self.tables = {
            "object_6": {r["id"]: r for r in students},
            "object_112": {r["id"]: r for r in profiles},
        }
        self.slow_ids = slow_ids

    def __call__(self, request: httpx.Request):
        parts = request.url.path.strip("/").split("/")  # v1/objects/<obj>/records[/<id>]
        table = self.tables[parts[2]]

        if len(parts) > 4:
            record_id = parts[4]
            if record_id in self.slow_ids:
                return self._slow()
            return httpx.Response(200, json=table.get(record_id, {}))

        filters = json.loads(request.url.params.get("filters", '{"match": "and", "rules": []}'))
        combine = any if filters["match"] == "or" else all
        records = [r for r in table.values() if combine(_matches(r, rule) for rule in filters["rules"])]
        return httpx.Response(200, json={"records": records})

    async def _slow(self) -> httpx.Response:
        await asyncio.sleep(10)
        return httpx.Response(200, json={})


def _service(app: FakeKnackApp) -> tuple[ProfileService, DummyKnack]:
    knack = DummyKnack(default=app)
    config = make_config()
    client = KnackClient(config.knack, make_dispatcher(knack, config))
    return ProfileService(client, config.profiles), knack


JANE = _student("stu1", "Jane Doe", "jane@school.edu")
SAM = _student("stu2", "Sam Lee", "sam@school.edu")


@pytest.mark.asyncio
async def test_lookup_by_id_uses_profile_connection() -> None:
    service, knack = _service(FakeKnackApp([JANE], [_profile("pro1", "Jane Doe", "stu1")]))

    profile = await service.lookup_by_id("stu1")

    assert profile is not None
    assert profile.source == "profile"
    assert profile.name == "Jane Doe"
    assert profile.email == "jane@school.edu"
    assert profile.year_group == "10"
    assert profile.tutor_group == "10B"
    assert profile.school == "Hillside"
    assert profile.has_data
    assert knack.calls == 2


@pytest.mark.asyncio
async def test_profile_is_cached_by_id_and_by_name() -> None:
    service, knack = _service(FakeKnackApp([JANE], [_profile("pro1", "Jane Doe", "stu1")]))

    first = await service.lookup_by_id("stu1")
    calls = knack.calls

    assert await service.lookup_by_id("stu1") is first
    assert await service.lookup_by_name("Jane Doe") is first
    assert await service.lookup_by_name("  jane doe ") is first
    assert knack.calls == calls


@pytest.mark.asyncio
async def test_lookup_falls_back_to_email_search() -> None:
    # Profile has no link to the student id, only the student's name
    service, knack = _service(FakeKnackApp([JANE], [_profile("pro1", "Jane Doe")]))

    profile = await service.lookup_by_id("stu1")

    assert profile is not None
    assert profile.source == "profile"
    assert profile.attendance == "97%"
    # get, profile by id, student by email, profile by email-derived rules
    assert knack.calls == 4


@pytest.mark.asyncio
async def test_lookup_synthesises_profile_from_student_record() -> None:
    service, knack = _service(FakeKnackApp([JANE], []))

    profile = await service.lookup_by_id("stu1")

    assert profile is not None
    assert profile.source == "student"
    assert profile.name == "Jane Doe"
    assert profile.year_group == "Year 10"
    assert profile.tutor_group == "10A"
    assert profile.attendance == "95%"
    assert profile.school == "Hillside"
    # get, profile by id, student by email, profile by email, profile by name
    assert knack.calls == 5


@pytest.mark.asyncio
async def test_unknown_student_returns_none_and_is_not_cached() -> None:
    service, knack = _service(FakeKnackApp([], []))

    assert await service.lookup_by_id("ghost") is None
    assert await service.lookup_by_id("ghost") is None
    assert knack.calls == 2


@pytest.mark.asyncio
async def test_lookup_by_name_resolves_student_then_caches_under_id() -> None:
    service, knack = _service(FakeKnackApp([JANE, SAM], [_profile("pro2", "Sam Lee", "stu2")]))

    profile = await service.lookup_by_name("Sam Lee")
    calls = knack.calls

    assert profile is not None
    assert profile.student_id == "stu2"
    assert await service.lookup_by_id("stu2") is profile
    assert knack.calls == calls
    assert "profile:stu2" in service.cache.keys()


@pytest.mark.asyncio
async def test_lookup_by_name_without_student_record_uses_profile_object() -> None:
    service, _ = _service(FakeKnackApp([], [_profile("pro9", "Alex Kim")]))

    profile = await service.lookup_by_name("Alex Kim")

    assert profile is not None
    assert profile.student_id is None
    assert profile.name == "Alex Kim"


@pytest.mark.asyncio
async def test_cancel_student_aborts_in_flight_lookup() -> None:
    service, _ = _service(FakeKnackApp([JANE], [], slow_ids=("stu1",)))

    task = asyncio.create_task(service.lookup_by_id("stu1"))
    await asyncio.sleep(0.01)

    assert service.cancel_student("stu1") == 1
    with pytest.raises(asyncio.CancelledError):
        await task
    assert service.cache.get("profile:stu1") is None


@pytest.mark.asyncio
async def test_session_loads_selected_student_once() -> None:
    service, knack = _service(FakeKnackApp([JANE, SAM], [_profile("pro1", "Jane Doe", "stu1")]))
    seen = []
    session = ProfileSession(service, debounce_seconds=0.01, on_profile=seen.append)

    assert session.select(student_id="stu1") is True
    assert session.select(student_id="stu1") is False

    profile = await session.wait()

    assert profile is not None and profile.student_id == "stu1"
    assert seen == [profile]
    assert knack.calls == 2


@pytest.mark.asyncio
async def test_session_switch_cancels_previous_student() -> None:
    service, _ = _service(FakeKnackApp([JANE, SAM], [], slow_ids=("stu1",)))
    session = ProfileSession(service, debounce_seconds=0.01)

    session.select(student_id="stu1")
    await asyncio.sleep(0.05)  # stu1 request now in flight
    session.select(student_id="stu2")

    profile = await session.wait()

    assert profile is not None
    assert profile.student_id == "stu2"
    assert profile.name == "Sam Lee"
    assert service.client.dispatcher.in_flight() == []


def test_session_requires_a_selection() -> None:
    service, _ = _service(FakeKnackApp([], []))
    session = ProfileSession(service)

    with pytest.raises(ValueError):
        session.select()
