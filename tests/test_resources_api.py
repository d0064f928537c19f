import pytest
from sqlalchemy import func, select

from conftest import auth_headers
from learnlink import models
from learnlink.schemas import ResourceStatus, Role

FORM = {
    "title": "Water Cycle Worksheet",
    "description": "Label the stages.",
    "subject": "Science",
    "grade_level": "Grade 4",
    "resource_type": "Worksheet",
    "quarter": "Q3",
}


@pytest.mark.asyncio
async def test_submit_resource_with_file(async_client, storage, make_user):
    contributor = await make_user(Role.CONTRIBUTOR, first_name="Mia", last_name="Lopez")
    response = await async_client.post(
        "/api/resources",
        data=FORM,
        files={"file": ("water-cycle.pdf", b"%PDF-1.7 content", "application/pdf")},
        headers=auth_headers(contributor),
    )
    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "Pending"
    assert data["file_format"] == "PDF"
    assert data["uploader"] == "Mia Lopez"
    assert len(storage.blobs) == 1


@pytest.mark.asyncio
async def test_submit_without_file_is_rejected(async_client, db, make_user):
    contributor = await make_user(Role.CONTRIBUTOR)
    response = await async_client.post("/api/resources", data=FORM, headers=auth_headers(contributor))
    assert response.status_code == 400
    assert response.json() == {"success": False, "detail": "Please select a file to upload."}
    assert await db.scalar(select(func.count()).select_from(models.Resource)) == 0


@pytest.mark.asyncio
async def test_student_cannot_submit(async_client, make_user):
    student = await make_user(Role.STUDENT)
    response = await async_client.post(
        "/api/resources", data=FORM, files={"file": ("a.pdf", b"x", "application/pdf")}, headers=auth_headers(student)
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_browse_lists_only_published(async_client, make_user, make_resource):
    owner = await make_user(Role.CONTRIBUTOR)
    await make_resource(owner, ResourceStatus.PUBLISHED, title="Visible")
    await make_resource(owner, ResourceStatus.PENDING, title="Hidden")

    response = await async_client.get("/api/resources", headers=auth_headers(owner))
    assert response.status_code == 200
    assert [r["title"] for r in response.json()] == ["Visible"]

    response = await async_client.get("/api/resources?q=vis", headers=auth_headers(owner))
    assert len(response.json()) == 1


@pytest.mark.asyncio
async def test_detail_counts_view_and_reports_flags(async_client, make_user, make_resource):
    owner = await make_user(Role.CONTRIBUTOR)
    reader = await make_user(Role.STUDENT)
    resource = await make_resource(owner, ResourceStatus.PUBLISHED)
    await make_resource(owner, ResourceStatus.PUBLISHED, title="Sibling")
    headers = auth_headers(reader)

    await async_client.post(f"/api/resources/{resource.id}/like", headers=headers)
    await async_client.post(f"/api/resources/{resource.id}/save", headers=headers)
    response = await async_client.get(f"/api/resources/{resource.id}", headers=headers)

    assert response.status_code == 200
    data = response.json()
    assert data["view_count"] == 1
    assert (data["like_count"], data["is_liked"], data["is_saved"]) == (1, True, True)
    assert data["file_url"] == f"/api/resources/{resource.id}/view"
    assert [r["title"] for r in data["related"]] == ["Sibling"]


@pytest.mark.asyncio
async def test_pending_detail_hidden_from_students(async_client, make_user, make_resource):
    owner = await make_user(Role.CONTRIBUTOR)
    student = await make_user(Role.STUDENT)
    resource = await make_resource(owner, ResourceStatus.PENDING)
    response = await async_client.get(f"/api/resources/{resource.id}", headers=auth_headers(student))
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_moderation_flow(async_client, make_user, make_resource):
    owner = await make_user(Role.CONTRIBUTOR)
    manager = await make_user(Role.MANAGER)
    resource = await make_resource(owner, ResourceStatus.PENDING)

    pending = await async_client.get("/api/resources/pending", headers=auth_headers(manager))
    assert [r["id"] for r in pending.json()] == [resource.id]

    response = await async_client.post(f"/api/resources/{resource.id}/approve", headers=auth_headers(manager))
    assert response.json()["success"] is True

    response = await async_client.post(f"/api/resources/{resource.id}/approve", headers=auth_headers(owner))
    assert response.status_code == 403

    notifications = await async_client.get("/api/notifications", headers=auth_headers(owner))
    assert notifications.json()["notifications"][0]["type"] == "Approved"


@pytest.mark.asyncio
async def test_rate_endpoint_validates_range(async_client, make_user, make_resource):
    owner = await make_user(Role.CONTRIBUTOR)
    resource = await make_resource(owner, ResourceStatus.PUBLISHED)
    headers = auth_headers(owner)

    response = await async_client.post(f"/api/resources/{resource.id}/rate", json={"rating": 7}, headers=headers)
    assert response.status_code == 400

    response = await async_client.post(f"/api/resources/{resource.id}/rate", json={"rating": 5}, headers=headers)
    assert response.json() == {"success": True, "rating": 5.0, "count": 1}


@pytest.mark.asyncio
async def test_batch_delete_endpoint(async_client, storage, make_user, make_resource):
    owner = await make_user(Role.CONTRIBUTOR)
    resource = await make_resource(owner, ResourceStatus.DRAFT)

    response = await async_client.post(
        "/api/resources/delete", json={"ids": [resource.id]}, headers=auth_headers(owner)
    )
    assert response.json() == {"success": True, "message": "1 resource(s) deleted successfully.", "deleted_count": 1}
    assert storage.destroyed == [resource.file_path]


@pytest.mark.asyncio
async def test_download_and_view(async_client, storage, make_user, make_resource):
    owner = await make_user(Role.CONTRIBUTOR)
    resource = await make_resource(owner, ResourceStatus.PUBLISHED, title="Cells")
    storage.blobs[resource.file_path] = b"%PDF-cells"
    headers = auth_headers(owner)

    response = await async_client.get(f"/api/resources/{resource.id}/download", headers=headers)
    assert response.status_code == 200
    assert response.content == b"%PDF-cells"
    assert response.headers["content-type"] == "application/pdf"
    assert response.headers["content-disposition"] == "attachment; filename*=UTF-8''Cells.pdf"

    response = await async_client.get(f"/api/resources/{resource.id}/view", headers=headers, follow_redirects=False)
    assert response.status_code == 307
    assert response.headers["location"] == f"https://files.test/raw/upload/s--sig--/{resource.file_path}"


@pytest.mark.asyncio
async def test_uploads_and_history(async_client, make_user, make_resource):
    owner = await make_user(Role.CONTRIBUTOR)
    await make_resource(owner, ResourceStatus.PUBLISHED)
    await make_resource(owner, ResourceStatus.DRAFT)
    headers = auth_headers(owner)

    response = await async_client.get("/api/resources/uploads", headers=headers)
    data = response.json()
    assert data["total"] == 2
    assert data["counts"] == {"Draft": 1, "Pending": 0, "Published": 1, "Rejected": 0}

    response = await async_client.get("/api/resources/history", headers=headers)
    assert response.json() == []


@pytest.mark.asyncio
async def test_dashboard_for_reviewers_only(async_client, make_user, make_resource):
    owner = await make_user(Role.CONTRIBUTOR)
    manager = await make_user(Role.MANAGER)
    await make_resource(owner, ResourceStatus.PUBLISHED, download_count=4)
    await make_resource(owner, ResourceStatus.PENDING)

    response = await async_client.get("/api/dashboard", headers=auth_headers(manager))
    assert response.status_code == 200
    data = response.json()
    assert data["stats"]["total_resources"] == 2
    assert data["stats"]["total_downloads"] == 4
    assert len(data["recent_resources"]) == 1
    assert len(data["pending_approvals"]) == 1

    response = await async_client.get("/api/dashboard", headers=auth_headers(owner))
    assert response.status_code == 403
