import uuid

import pytest
from httpx import AsyncClient

YEAR = "2024-2025"
NEXT_YEAR = "2025-2026"


@pytest.mark.asyncio
async def test_create_with_skeleton(school, make_student, client: AsyncClient) -> None:
    student = await make_student()
    response = await client.post(
        "/api/v1/academic-years",
        json={
            "student_id": student["id"],
            "year": YEAR,
            "class_id": school.school_class["id"],
            "terms": [
                {
                    "term_id": school.term["id"],
                    "sequences": [
                        {
                            "sequence_id": school.sequence["id"],
                            "subject_ids": [school.math["id"], school.french["id"]],
                        }
                    ],
                }
            ],
        },
    )
    assert response.status_code == 201, response.text
    data = response.json()
    assert data["student_id"] == student["id"]
    assert data["rank"] is None
    assert data["has_completed"] is False
    subjects = data["terms"][0]["sequences"][0]["subjects"]
    assert {s["subject_id"] for s in subjects} == {school.math["id"], school.french["id"]}
    assert all(s["current_mark"] == 0 and s["modifications"] == [] for s in subjects)

    profile = (await client.get(f"/api/v1/students/{student['id']}")).json()
    assert profile["academic_year_ids"] == [data["id"]]


@pytest.mark.asyncio
async def test_create_with_unknown_reference(school, make_student, client: AsyncClient) -> None:
    student = await make_student()
    response = await client.post(
        "/api/v1/academic-years",
        json={
            "student_id": student["id"],
            "year": YEAR,
            "terms": [{"term_id": school.term["id"], "sequences": [{"sequence_id": str(uuid.uuid4())}]}],
        },
    )
    assert response.status_code == 404
    assert (await client.get("/api/v1/academic-years", params={"student_id": student["id"]})).json() == []


@pytest.mark.asyncio
async def test_one_record_per_student_and_year(school, make_student, make_record, client: AsyncClient) -> None:
    student = await make_student()
    await make_record(student)

    response = await client.post("/api/v1/academic-years", json={"student_id": student["id"], "year": YEAR})
    assert response.status_code == 409

    response = await client.post("/api/v1/academic-years", json={"student_id": student["id"], "year": NEXT_YEAR})
    assert response.status_code == 201


@pytest.mark.asyncio
async def test_invalid_year_format(make_student, client: AsyncClient) -> None:
    student = await make_student()
    response = await client.post("/api/v1/academic-years", json={"student_id": student["id"], "year": "2024/25"})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_list_filters(school, make_record, client: AsyncClient) -> None:
    first = await make_record()
    second = await make_record()

    records = (await client.get("/api/v1/academic-years", params={"year": YEAR})).json()
    assert {r["id"] for r in records} == {first["id"], second["id"]}

    only = (await client.get("/api/v1/academic-years", params={"student_id": first["student_id"]})).json()
    assert [r["id"] for r in only] == [first["id"]]

    assert (await client.get("/api/v1/academic-years", params={"year": NEXT_YEAR})).json() == []


@pytest.mark.asyncio
async def test_delete_removes_record_everywhere(school, make_student, client: AsyncClient) -> None:
    student = await make_student()
    result = (
        await client.post(
            "/api/v1/academic-years/assign",
            json={"student_ids": [student["id"]], "class_id": school.school_class["id"], "year": YEAR},
        )
    ).json()
    assert result["created"] == 1
    record_id = (await client.get(f"/api/v1/students/{student['id']}")).json()["academic_year_ids"][0]

    assert (await client.delete(f"/api/v1/academic-years/{record_id}")).status_code == 204
    assert (await client.get(f"/api/v1/academic-years/{record_id}")).status_code == 404
    assert (await client.get(f"/api/v1/students/{student['id']}")).json()["academic_year_ids"] == []
    school_class = (await client.get(f"/api/v1/classes/{school.school_class['id']}")).json()
    assert record_id not in school_class["student_list"]
