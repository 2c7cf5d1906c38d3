"""Tests for the progress endpoints."""

from uuid import uuid4

from fastapi.testclient import TestClient


def test_requires_token(client: TestClient, course) -> None:
    course_id, _ = course

    response = client.get(f"/v1/progress/{course_id}")

    assert response.status_code == 401
    body = response.json()
    assert body["success"] is False
    assert body["error"] is True
    assert body["message"] == "Access token not provided"


def test_rejects_bad_token(client: TestClient, course) -> None:
    course_id, _ = course

    response = client.get(
        f"/v1/progress/{course_id}", headers={"Authorization": "Bearer not-a-jwt"}
    )

    assert response.status_code == 401
    assert response.json()["message"] == "Invalid or expired token"


def test_get_untouched_course(client: TestClient, auth_headers, course) -> None:
    course_id, lecture_ids = course

    response = client.get(f"/v1/progress/{course_id}", headers=auth_headers)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["progress"] == []
    assert data["completed"] is False
    assert data["totalLectures"] == len(lecture_ids)
    assert data["completedCount"] == 0
    assert data["progressPercentage"] == 0
    details = data["courseDetails"]
    assert details["id"] == str(course_id)
    assert [lecture["id"] for lecture in details["lectures"]] == [
        str(lid) for lid in lecture_ids
    ]
    assert details["lectures"][0]["isPreviewFree"] is True


def test_view_then_get(client: TestClient, auth_headers, course) -> None:
    course_id, lecture_ids = course

    response = client.post(
        f"/v1/progress/{course_id}/lecture/{lecture_ids[1]}/view",
        headers=auth_headers,
    )
    assert response.status_code == 200
    assert response.json() == {"message": "Lecture progress updated successfully."}

    data = client.get(f"/v1/progress/{course_id}", headers=auth_headers).json()["data"]
    assert data["progress"] == [
        {"lectureId": str(lecture_ids[0]), "viewed": True},
        {"lectureId": str(lecture_ids[1]), "viewed": True},
    ]
    assert data["completedCount"] == 2
    assert data["progressPercentage"] == 67


def test_complete_and_incomplete(client: TestClient, auth_headers, course) -> None:
    course_id, lecture_ids = course
    client.post(
        f"/v1/progress/{course_id}/lecture/{lecture_ids[0]}/view",
        headers=auth_headers,
    )

    response = client.post(f"/v1/progress/{course_id}/complete", headers=auth_headers)
    assert response.status_code == 200
    assert response.json() == {"message": "Course marked as completed."}
    data = client.get(f"/v1/progress/{course_id}", headers=auth_headers).json()["data"]
    assert data["completed"] is True
    assert data["progressPercentage"] == 100

    response = client.post(f"/v1/progress/{course_id}/incomplete", headers=auth_headers)
    assert response.status_code == 200
    assert response.json() == {"message": "Course marked as incompleted."}
    data = client.get(f"/v1/progress/{course_id}", headers=auth_headers).json()["data"]
    assert data["completed"] is False
    assert data["completedCount"] == 0


def test_complete_without_ledger(client: TestClient, auth_headers, course) -> None:
    course_id, _ = course

    response = client.post(f"/v1/progress/{course_id}/complete", headers=auth_headers)

    assert response.status_code == 404
    assert response.json()["message"] == "Course progress not found"


def test_unknown_course(client: TestClient, auth_headers) -> None:
    response = client.get(f"/v1/progress/{uuid4()}", headers=auth_headers)

    assert response.status_code == 404
    assert response.json()["message"] == "Course not found"


def test_invalid_course_id(client: TestClient, auth_headers) -> None:
    response = client.get("/v1/progress/not-a-uuid", headers=auth_headers)

    assert response.status_code == 422
    assert response.json()["details"]


def test_service_unavailable(auth_headers, course) -> None:
    """Without a database the routes answer 503."""
    from learnpath.main import app

    response = TestClient(app).get(f"/v1/progress/{course[0]}", headers=auth_headers)

    assert response.status_code == 503
