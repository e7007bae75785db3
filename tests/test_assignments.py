import uuid
from datetime import date, timedelta

import pytest
from httpx import AsyncClient

from gradebook.api.v1.assignments import service as assignment_service

YEAR = "2024-2025"
NEXT_YEAR = "2025-2026"


def _assign_payload(school, student_ids, year: str = YEAR) -> dict:
    return {"student_ids": student_ids, "class_id": school.school_class["id"], "year": year}


@pytest.mark.asyncio
async def test_partial_success(school, make_student, client: AsyncClient) -> None:
    student = await make_student()
    unknown = str(uuid.uuid4())

    response = await client.post("/api/v1/academic-years/assign", json=_assign_payload(school, [student["id"], unknown]))
    assert response.status_code == 200, response.text
    data = response.json()
    assert data["created"] == 1
    assert data["updated"] == 0
    assert data["failed_count"] == 1
    assert data["failed"] == [{"student_id": unknown, "error": "Student not found"}]
    assert data["total_processed"] == 2

    profile = (await client.get(f"/api/v1/students/{student['id']}")).json()
    assert profile["class_id"] == school.school_class["id"]
    assert profile["class_name"] == "Form 1 A"
    assert len(profile["academic_year_ids"]) == 1

    record = (await client.get(f"/api/v1/academic-years/{profile['academic_year_ids'][0]}")).json()
    assert record["class_id"] == school.school_class["id"]
    assert record["terms"] == []
    assert record["fees"] == []

    school_class = (await client.get(f"/api/v1/classes/{school.school_class['id']}")).json()
    assert school_class["student_list"] == [record["id"]]


@pytest.mark.asyncio
async def test_reassigning_updates_without_duplicate_roster_entry(school, make_student, client: AsyncClient) -> None:
    student = await make_student()
    payload = _assign_payload(school, [student["id"]])

    assert (await client.post("/api/v1/academic-years/assign", json=payload)).json()["created"] == 1
    again = (await client.post("/api/v1/academic-years/assign", json=payload)).json()
    assert again["created"] == 0
    assert again["updated"] == 1

    school_class = (await client.get(f"/api/v1/classes/{school.school_class['id']}")).json()
    assert len(school_class["student_list"]) == 1


@pytest.mark.asyncio
async def test_level_mismatch_is_soft_failure(school, make_student, client: AsyncClient) -> None:
    ok = await make_student()
    wrong_level = await make_student(level="Form 3")

    data = (
        await client.post("/api/v1/academic-years/assign", json=_assign_payload(school, [ok["id"], wrong_level["id"]]))
    ).json()
    assert data["created"] == 1
    assert data["failed_count"] == 1
    assert data["failed"][0]["student_id"] == wrong_level["id"]
    assert "level" in data["failed"][0]["error"]

    profile = (await client.get(f"/api/v1/students/{wrong_level['id']}")).json()
    assert profile["class_id"] is None
    assert profile["academic_year_ids"] == []


@pytest.mark.asyncio
async def test_year_must_be_current(school, make_student, client: AsyncClient) -> None:
    student = await make_student()
    today = date.today()
    await client.post(
        "/api/v1/academic-year-details",
        json={
            "name": NEXT_YEAR,
            "start_date": (today + timedelta(days=200)).isoformat(),
            "end_date": (today + timedelta(days=500)).isoformat(),
        },
    )

    response = await client.post("/api/v1/academic-years/assign", json=_assign_payload(school, [student["id"]], NEXT_YEAR))
    assert response.status_code == 409

    response = await client.post(
        "/api/v1/academic-years/assign", json=_assign_payload(school, [student["id"]], "2030-2031")
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_unknown_class(school, make_student, client: AsyncClient) -> None:
    student = await make_student()
    response = await client.post(
        "/api/v1/academic-years/assign",
        json={"student_ids": [student["id"]], "class_id": str(uuid.uuid4()), "year": YEAR},
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_atomic_variant(school, make_student, client: AsyncClient) -> None:
    first = await make_student()
    second = await make_student()
    unknown = str(uuid.uuid4())

    response = await client.post(
        "/api/v1/academic-years/assign/atomic",
        json=_assign_payload(school, [first["id"], unknown, second["id"]]),
    )
    assert response.status_code == 200, response.text
    data = response.json()
    assert data["created"] == 2
    assert data["failed_count"] == 1
    assert data["total_processed"] == 3

    school_class = (await client.get(f"/api/v1/classes/{school.school_class['id']}")).json()
    assert len(school_class["student_list"]) == 2


@pytest.mark.asyncio
async def test_atomic_variant_rejects_malformed_input(school, client: AsyncClient) -> None:
    response = await client.post("/api/v1/academic-years/assign/atomic", json=_assign_payload(school, ["not-a-uuid"]))
    assert response.status_code == 422
    response = await client.post("/api/v1/academic-years/assign/atomic", json=_assign_payload(school, []))
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_promotion(school, make_student, set_mark, client: AsyncClient) -> None:
    passing = await make_student(first_name="Passing")
    failing = await make_student(first_name="Failing")
    await client.post("/api/v1/academic-years/assign", json=_assign_payload(school, [passing["id"], failing["id"]]))
    records = (await client.get("/api/v1/academic-years", params={"year": YEAR})).json()
    by_student = {r["student_id"]: r["id"] for r in records}

    await set_mark(by_student[passing["id"]], school.math["id"], 15)
    await set_mark(by_student[passing["id"]], school.french["id"], 12)
    await set_mark(by_student[failing["id"]], school.math["id"], 7)
    for record_id in by_student.values():
        assert (await client.post(f"/api/v1/academic-years/{record_id}/check-completion")).status_code == 200

    form_two = await client.post(
        "/api/v1/classes",
        json={"name": "Form 2 A", "year": NEXT_YEAR, "level": "Form 2"},
    )
    form_one_next = await client.post(
        "/api/v1/classes",
        json={"name": "Form 1 A", "year": NEXT_YEAR, "level": "Form 1"},
    )
    response = await client.post(
        "/api/v1/academic-years/promote",
        json={
            "class_id": school.school_class["id"],
            "year": YEAR,
            "new_year": NEXT_YEAR,
            "passed_class_id": form_two.json()["id"],
            "fail_class_id": form_one_next.json()["id"],
        },
    )
    assert response.status_code == 200, response.text
    data = response.json()
    assert data["promoted"] == 1
    assert data["repeating"] == 1
    assert data["failed_count"] == 0

    next_records = (await client.get("/api/v1/academic-years", params={"year": NEXT_YEAR})).json()
    by_student = {r["student_id"]: r for r in next_records}
    assert by_student[passing["id"]]["class_id"] == form_two.json()["id"]
    assert by_student[passing["id"]]["has_repeated"] is False
    assert by_student[failing["id"]]["class_id"] == form_one_next.json()["id"]
    assert by_student[failing["id"]]["has_repeated"] is True

    profile = (await client.get(f"/api/v1/students/{passing['id']}")).json()
    assert profile["level"] == "Form 2"
    assert profile["class_name"] == "Form 2 A"


@pytest.mark.asyncio
async def test_reassigning_moves_record_between_rosters(school, make_student, client: AsyncClient) -> None:
    student = await make_student()
    form_one_b = (
        await client.post("/api/v1/classes", json={"name": "Form 1 B", "year": YEAR, "level": "Form 1"})
    ).json()

    await client.post("/api/v1/academic-years/assign", json=_assign_payload(school, [student["id"]]))
    moved = await client.post(
        "/api/v1/academic-years/assign",
        json={"student_ids": [student["id"]], "class_id": form_one_b["id"], "year": YEAR},
    )
    assert moved.json()["updated"] == 1

    records = (await client.get("/api/v1/academic-years", params={"student_id": student["id"]})).json()
    assert len(records) == 1
    assert records[0]["class_id"] == form_one_b["id"]

    old_class = (await client.get(f"/api/v1/classes/{school.school_class['id']}")).json()
    new_class = (await client.get(f"/api/v1/classes/{form_one_b['id']}")).json()
    assert old_class["student_list"] == []
    assert new_class["student_list"] == [records[0]["id"]]


@pytest.mark.asyncio
async def test_atomic_variant_saves_nothing_on_unexpected_error(
    school, make_student, client: AsyncClient, monkeypatch
) -> None:
    first = await make_student()
    second = await make_student()
    attach = assignment_service._attach_student
    calls = []

    async def attach_then_fail(db, school_id, school_class, student, year):
        calls.append(student.id)
        if len(calls) == 2:
            raise RuntimeError("connection reset")
        return await attach(db, school_id, school_class, student, year)

    monkeypatch.setattr(assignment_service, "_attach_student", attach_then_fail)

    response = await client.post(
        "/api/v1/academic-years/assign/atomic",
        json=_assign_payload(school, [first["id"], second["id"]]),
    )
    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to assign students; no changes were saved"
    assert len(calls) == 2

    assert (await client.get("/api/v1/academic-years", params={"year": YEAR})).json() == []
    school_class = (await client.get(f"/api/v1/classes/{school.school_class['id']}")).json()
    assert school_class["student_list"] == []
    profile = (await client.get(f"/api/v1/students/{first['id']}")).json()
    assert profile["class_id"] is None
    assert profile["academic_year_ids"] == []


@pytest.mark.asyncio
async def test_bulk_create_seeds_records_from_catalog(school, make_student, client: AsyncClient) -> None:
    student = await make_student()
    wrong_level = await make_student(level="Form 3")
    unknown = str(uuid.uuid4())

    response = await client.post(
        "/api/v1/academic-years/bulk",
        json=_assign_payload(school, [student["id"], wrong_level["id"], unknown]),
    )
    assert response.status_code == 200, response.text
    data = response.json()
    assert data["created"] == 1
    assert data["updated"] == 0
    assert data["failed_count"] == 2
    assert {f["student_id"] for f in data["failed"]} == {wrong_level["id"], unknown}

    records = (await client.get("/api/v1/academic-years", params={"student_id": student["id"]})).json()
    assert len(records) == 1
    record = records[0]
    assert record["class_id"] == school.school_class["id"]
    assert [t["term_id"] for t in record["terms"]] == [school.term["id"]]
    sequences = record["terms"][0]["sequences"]
    assert {s["sequence_id"] for s in sequences} == {school.sequence["id"], school.closed_sequence["id"]}
    for sequence in sequences:
        assert {s["subject_id"] for s in sequence["subjects"]} == {school.math["id"], school.french["id"]}
        assert all(s["current_mark"] == 0 and s["discipline"] == "Not Available" for s in sequence["subjects"])
        assert all(s["modifications"] == [] for s in sequence["subjects"])

    school_class = (await client.get(f"/api/v1/classes/{school.school_class['id']}")).json()
    assert school_class["student_list"] == [record["id"]]


@pytest.mark.asyncio
async def test_bulk_create_keeps_existing_records(school, make_student, client: AsyncClient) -> None:
    student = await make_student()
    payload = _assign_payload(school, [student["id"]])

    assert (await client.post("/api/v1/academic-years/bulk", json=payload)).json()["created"] == 1
    again = (await client.post("/api/v1/academic-years/bulk", json=payload)).json()
    assert again["created"] == 0
    assert again["updated"] == 1

    records = (await client.get("/api/v1/academic-years", params={"student_id": student["id"]})).json()
    assert len(records) == 1
    assert len(records[0]["terms"]) == 1


@pytest.mark.asyncio
async def test_bulk_create_requires_current_year(school, make_student, client: AsyncClient) -> None:
    student = await make_student()
    response = await client.post("/api/v1/academic-years/bulk", json=_assign_payload(school, [student["id"]], NEXT_YEAR))
    assert response.status_code == 404
