import uuid

import pytest
from httpx import AsyncClient

YEAR = "2024-2025"


async def _graded_record(school, make_student, make_record, set_mark, client: AsyncClient) -> dict:
    student = await make_student(first_name="Awa")
    record = await make_record(student)
    await set_mark(record["id"], school.math["id"], 16)
    await set_mark(record["id"], school.french["id"], 10)
    await set_mark(record["id"], "absences", 2)
    fees_url = f"/api/v1/academic-years/{record['id']}/fees"
    await client.post(fees_url, json={"bill_id": "BILL-001", "type": "Tuition", "amount": 25000})
    await client.post(fees_url, json={"bill_id": "BILL-002", "type": "PTA", "amount": 5000})
    return record


@pytest.mark.asyncio
async def test_term_report_card(school, make_student, make_record, set_mark, client: AsyncClient) -> None:
    record = await _graded_record(school, make_student, make_record, set_mark, client)
    await client.post(
        "/api/v1/rankings/sequence",
        json={
            "class_id": school.school_class["id"],
            "year": YEAR,
            "term_id": school.term["id"],
            "sequence_id": school.sequence["id"],
        },
    )

    response = await client.get(
        f"/api/v1/academic-years/{record['id']}/report-card",
        params={"term_id": school.term["id"]},
    )
    assert response.status_code == 200, response.text
    card = response.json()
    assert card["student"]["name"] == "Awa No1"
    assert card["student"]["class_name"] == "Form 1 A"
    assert card["terms"] == []

    term = card["term"]
    assert term["name"] == "Term 1"
    # (16 x 4 + 10 x 2) / 6
    assert term["average"] == 14
    assert term["discipline"] == "Very Good"
    sequence = term["sequences"][0]
    assert sequence["name"] == "Sequence 1"
    assert sequence["absences"] == 2
    assert sequence["rank"] == 1
    lines = {s["code"]: s for s in sequence["subjects"]}
    assert lines["MATH"]["name"] == "Mathematics"
    assert lines["MATH"]["mark"] == 16
    assert lines["FR"]["discipline"] == "Average"
    assert all(s["is_active"] for s in sequence["subjects"])


@pytest.mark.asyncio
async def test_year_report_card(school, make_student, make_record, set_mark, client: AsyncClient) -> None:
    record = await _graded_record(school, make_student, make_record, set_mark, client)

    card = (await client.get(f"/api/v1/academic-years/{record['id']}/report-card")).json()
    assert card["term"] is None
    assert card["overall_average"] == 14
    assert card["overall_status"] == "Very Good"
    assert card["has_completed"] is False
    assert [(t["name"], t["average"], t["sequences"]) for t in card["terms"]] == [("Term 1", 14, [])]
    assert [f["bill_id"] for f in card["fees"]] == ["BILL-001", "BILL-002"]
    assert card["total_fees_paid"] == 30000


@pytest.mark.asyncio
async def test_report_card_for_missing_term(school, make_record, client: AsyncClient) -> None:
    record = await make_record()
    response = await client.get(
        f"/api/v1/academic-years/{record['id']}/report-card",
        params={"term_id": school.term["id"]},
    )
    assert response.status_code == 404
    assert response.json()["detail"] == "Term not found"

    response = await client.get(f"/api/v1/academic-years/{uuid.uuid4()}/report-card")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_performance_summary(school, make_student, make_record, set_mark, client: AsyncClient) -> None:
    record = await _graded_record(school, make_student, make_record, set_mark, client)
    response = await client.put(f"/api/v1/classes/{school.school_class['id']}", json={"amount_fee": 60000})
    assert response.status_code == 200
    await set_mark(record["id"], school.french["id"], 8)

    response = await client.get(
        "/api/v1/academic-years/summary",
        params={"student_id": record["student_id"], "year": YEAR},
    )
    assert response.status_code == 200, response.text
    summary = response.json()
    assert summary["academic_year_id"] == record["id"]
    assert summary["has_failing_subjects"] is True
    assert summary["failing_subjects"] == 1
    assert summary["total_absences"] == 2
    # (16 x 4 + 8 x 2) / 6
    assert summary["overall_average"] == 13.33
    assert [t["name"] for t in summary["terms"]] == ["Term 1"]

    fees = summary["fees"]
    assert fees["total_paid"] == 30000
    assert fees["payment_count"] == 2
    assert fees["by_type"] == {"Tuition": 25000, "PTA": 5000}
    assert fees["class_fee"] == 60000
    assert fees["outstanding"] == 30000


@pytest.mark.asyncio
async def test_performance_summary_without_record(make_student, client: AsyncClient) -> None:
    student = await make_student()
    response = await client.get(
        "/api/v1/academic-years/summary",
        params={"student_id": student["id"], "year": YEAR},
    )
    assert response.status_code == 404
