import uuid

import pytest
from httpx import AsyncClient

YEAR = "2024-2025"


@pytest.mark.asyncio
async def test_failing_subject_blocks_completion(school, make_record, set_mark, client: AsyncClient) -> None:
    record = await make_record()
    await set_mark(record["id"], school.math["id"], 18)
    await set_mark(record["id"], school.french["id"], 9)

    data = (await client.post(f"/api/v1/academic-years/{record['id']}/check-completion")).json()
    assert data["terms"][0]["average"] == 15
    assert data["has_failing_subjects"] is True
    assert data["has_completed"] is False

    await set_mark(record["id"], school.french["id"], 10)
    data = (await client.post(f"/api/v1/academic-years/{record['id']}/check-completion")).json()
    assert data["has_failing_subjects"] is False
    assert data["has_completed"] is True

    saved = (await client.get(f"/api/v1/academic-years/{record['id']}")).json()
    assert saved["has_completed"] is True


@pytest.mark.asyncio
async def test_students_at_risk(school, make_record, set_mark, client: AsyncClient) -> None:
    low = await make_record()
    failing_subject = await make_record()
    fine = await make_record()
    await set_mark(low["id"], school.math["id"], 8)
    await set_mark(failing_subject["id"], school.math["id"], 16)
    await set_mark(failing_subject["id"], school.french["id"], 7)
    await set_mark(fine["id"], school.math["id"], 14)
    await set_mark(fine["id"], school.french["id"], 12)

    response = await client.get("/api/v1/academic-years/at-risk", params={"year": YEAR})
    assert response.status_code == 200
    at_risk = {entry["academic_year_id"]: entry for entry in response.json()}
    assert set(at_risk) == {low["id"], failing_subject["id"]}
    assert at_risk[low["id"]]["term_averages"] == [8]
    assert at_risk[failing_subject["id"]]["has_failing_subjects"] is True

    stricter = (await client.get("/api/v1/academic-years/at-risk", params={"year": YEAR, "threshold": 14})).json()
    # fine averages 13.33
    assert fine["id"] in {e["academic_year_id"] for e in stricter}
    assert len(stricter) == 3

    assert (await client.get("/api/v1/academic-years/at-risk", params={"year": "2030-2031"})).json() == []


@pytest.mark.asyncio
async def test_class_overview(school, make_record, set_mark, client: AsyncClient) -> None:
    marks = [17, 13, 8]
    records = []
    for mark in marks:
        record = await make_record()
        await set_mark(record["id"], school.math["id"], mark)
        records.append(record)
    for record in records:
        await client.post(f"/api/v1/academic-years/{record['id']}/check-completion")

    response = await client.get(
        "/api/v1/academic-years/overview",
        params={"class_id": school.school_class["id"], "year": YEAR},
    )
    assert response.status_code == 200, response.text
    data = response.json()
    assert data["total_students"] == 3
    assert data["average_class_average"] == 12.67
    assert data["students_completed"] == 2
    assert data["students_at_risk"] == 1
    assert data["performance_distribution"] == {
        "Excellent": 1,
        "Very Good": 0,
        "Good": 1,
        "Average": 0,
        "Below Average": 1,
    }
    assert [p["average"] for p in data["top_performers"]] == [17, 13, 8]


@pytest.mark.asyncio
async def test_class_overview_without_records(school, client: AsyncClient) -> None:
    response = await client.get(
        "/api/v1/academic-years/overview",
        params={"class_id": school.school_class["id"], "year": YEAR},
    )
    assert response.status_code == 404

    response = await client.get(
        "/api/v1/academic-years/overview",
        params={"class_id": str(uuid.uuid4()), "year": YEAR},
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_sync_with_class(school, make_record, set_mark, client: AsyncClient) -> None:
    record = await make_record()
    await set_mark(record["id"], school.math["id"], 12)

    response = await client.post(f"/api/v1/academic-years/{record['id']}/sync-class")
    assert response.status_code == 200, response.text
    data = response.json()
    assert data["subjects_added"] == 1
    assert data["subjects_removed"] == 0
    subjects = data["academic_year"]["terms"][0]["sequences"][0]["subjects"]
    assert {s["subject_id"] for s in subjects} == {school.math["id"], school.french["id"]}
    # the new French entry counts as 0 until a mark arrives
    assert data["academic_year"]["terms"][0]["sequences"][0]["average"] == 8

    removed = await client.delete(f"/api/v1/classes/{school.school_class['id']}/subjects/{school.math['id']}")
    assert removed.status_code == 200

    data = (await client.post(f"/api/v1/academic-years/{record['id']}/sync-class")).json()
    assert data["subjects_added"] == 0
    assert data["subjects_removed"] == 1
    subjects = data["academic_year"]["terms"][0]["sequences"][0]["subjects"]
    assert [s["subject_id"] for s in subjects] == [school.french["id"]]


@pytest.mark.asyncio
async def test_sync_without_class(make_student, client: AsyncClient) -> None:
    student = await make_student()
    record = (await client.post("/api/v1/academic-years", json={"student_id": student["id"], "year": YEAR})).json()
    response = await client.post(f"/api/v1/academic-years/{record['id']}/sync-class")
    assert response.status_code == 409
