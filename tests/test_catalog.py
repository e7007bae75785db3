from datetime import date, timedelta

import pytest
from httpx import AsyncClient

from gradebook.auth.security import create_access_token

YEAR = "2024-2025"


def _dates(offset_days: int = 0) -> dict:
    start = date.today() + timedelta(days=offset_days)
    return {"start_date": start.isoformat(), "end_date": (start + timedelta(days=300)).isoformat()}


@pytest.mark.asyncio
async def test_only_one_current_academic_year(client: AsyncClient) -> None:
    first = (
        await client.post("/api/v1/academic-year-details", json={"name": "2023-2024", "set_as_current": True, **_dates(-400)})
    ).json()
    second = (
        await client.post("/api/v1/academic-year-details", json={"name": YEAR, "set_as_current": True, **_dates()})
    ).json()

    details = (await client.get("/api/v1/academic-year-details")).json()
    assert [d["id"] for d in details if d["is_current"]] == [second["id"]]

    response = await client.post(f"/api/v1/academic-year-details/{first['id']}/set-current")
    assert response.status_code == 200
    details = (await client.get("/api/v1/academic-year-details")).json()
    assert [d["id"] for d in details if d["is_current"]] == [first["id"]]

    current = (await client.get("/api/v1/academic-year-details/current")).json()
    assert current["id"] == first["id"]


@pytest.mark.asyncio
async def test_duplicate_academic_year_name(client: AsyncClient) -> None:
    payload = {"name": YEAR, **_dates()}
    assert (await client.post("/api/v1/academic-year-details", json=payload)).status_code == 201
    assert (await client.post("/api/v1/academic-year-details", json=payload)).status_code == 409


@pytest.mark.asyncio
async def test_term_order_unique_within_year(school, client: AsyncClient) -> None:
    response = await client.post(
        "/api/v1/terms",
        json={"academic_year_detail_id": school.detail["id"], "name": "Again", "order": 1, **_dates()},
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_term_status_follows_dates(school, client: AsyncClient) -> None:
    assert school.term["status"] == "active"
    response = await client.post(
        "/api/v1/terms",
        json={"academic_year_detail_id": school.detail["id"], "name": "Term 2", "order": 2, **_dates(120)},
    )
    assert response.status_code == 201
    assert response.json()["status"] == "upcoming"


@pytest.mark.asyncio
async def test_set_current_sequence_clears_siblings(school, client: AsyncClient) -> None:
    for sequence in (school.sequence, school.closed_sequence):
        response = await client.post(f"/api/v1/sequences/{sequence['id']}/set-current")
        assert response.status_code == 200

    sequences = (await client.get("/api/v1/sequences", params={"term_id": school.term["id"]})).json()
    assert [s["id"] for s in sequences if s["is_current"]] == [school.closed_sequence["id"]]


@pytest.mark.asyncio
async def test_subject_code_is_upper_case_and_unique(school, client: AsyncClient) -> None:
    assert school.math["code"] == "MATH"
    response = await client.post("/api/v1/subjects", json={"name": "Maths again", "code": "Math", "year": YEAR})
    assert response.status_code == 409
    response = await client.post("/api/v1/subjects", json={"name": "Mathematics", "code": "MATH", "year": "2025-2026"})
    assert response.status_code == 201


@pytest.mark.asyncio
async def test_inactive_catalog_subject_leaves_averages(school, make_record, set_mark, client: AsyncClient) -> None:
    record = await make_record()
    await set_mark(record["id"], school.math["id"], 16)
    await set_mark(record["id"], school.french["id"], 10)

    response = await client.put(f"/api/v1/subjects/{school.french['id']}", json={"is_active": False})
    assert response.status_code == 200

    data = (await client.post(f"/api/v1/academic-years/{record['id']}/calculate-averages")).json()
    assert data["terms"][0]["sequences"][0]["average"] == 16


@pytest.mark.asyncio
async def test_class_rejects_duplicate_subjects(school, client: AsyncClient) -> None:
    response = await client.post(
        "/api/v1/classes",
        json={
            "name": "Form 1 B",
            "year": YEAR,
            "level": "Form 1",
            "subjects": [{"subject_id": school.math["id"]}, {"subject_id": school.math["id"], "coefficient": 3}],
        },
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_class_subject_upsert(school, client: AsyncClient) -> None:
    url = f"/api/v1/classes/{school.school_class['id']}/subjects/{school.math['id']}"
    data = (await client.put(url, json={"coefficient": 5})).json()
    math = next(s for s in data["subjects"] if s["subject_id"] == school.math["id"])
    assert math["coefficient"] == 5
    assert math["subject_name"] == "Mathematics"
    assert len(data["subjects"]) == 2


@pytest.mark.asyncio
async def test_student_matricule_unique(client: AsyncClient) -> None:
    payload = {"matricule": "MAT-1", "first_name": "Awa", "last_name": "Bello", "level": "Form 1"}
    assert (await client.post("/api/v1/students", json=payload)).status_code == 201
    assert (await client.post("/api/v1/students", json=payload)).status_code == 409


@pytest.mark.asyncio
async def test_requires_token(client: AsyncClient) -> None:
    response = await client.get("/api/v1/subjects", headers={"Authorization": ""})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_permissions_are_checked(school, client: AsyncClient, school_id, user_id) -> None:
    token = create_access_token(
        subject={
            "user_id": str(user_id),
            "school_id": str(school_id),
            "name": "M. Tchana",
            "role": "TEACHER",
            "permissions": {"subjects": {"read": True}},
        }
    )
    headers = {"Authorization": f"Bearer {token}"}

    assert (await client.get("/api/v1/subjects", headers=headers)).status_code == 200
    response = await client.post(
        "/api/v1/subjects",
        json={"name": "Biology", "code": "BIO", "year": YEAR},
        headers=headers,
    )
    assert response.status_code == 403
