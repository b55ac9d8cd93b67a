import pytest
from fastapi import status

from tests.api_harness import ApiHarness, auth

OWNER = auth("owner-token")
HELPER = auth("helper@example.com")


@pytest.fixture
def api():
    harness = ApiHarness()
    harness.helper = harness.add_delegate(
        "helper@example.com", {"profile": ["VIEW", "UPDATE"], "projects": ["VIEW"]}
    )
    yield harness
    harness.close()


def test_team_listing_and_permission_update(api) -> None:
    team = api.client.get("/api/delegates", headers=OWNER).json()["data"]
    assert [member["email"] for member in team["subAdmins"]] == ["helper@example.com"]

    updated = api.client.put(
        f"/api/delegates/{api.helper.id}/permissions",
        json={"pagePermissions": [{"page": "faqs", "permissions": ["VIEW", "CREATE"]}]},
        headers=OWNER,
    )

    assert updated.status_code == status.HTTP_200_OK
    assert api.helper.page_permissions == [{"page": "faqs", "permissions": ["VIEW", "CREATE"]}]
    assert "sub_admin.permissions_update" in api.audit.actions()


def test_disabled_delegate_loses_access_until_enabled(api) -> None:
    disabled = api.client.put(
        f"/api/delegates/{api.helper.id}/disable", json={"reason": "vacation"}, headers=OWNER
    )
    assert disabled.json()["data"]["disabledReason"] == "vacation"

    locked_out = api.client.get("/api/my-permissions", headers=HELPER)
    assert locked_out.status_code == status.HTTP_403_FORBIDDEN

    api.client.put(f"/api/delegates/{api.helper.id}/enable", headers=OWNER)
    assert api.client.get("/api/my-permissions", headers=HELPER).status_code == 200


def test_delete_delegate(api) -> None:
    deleted = api.client.delete(f"/api/delegates/{api.helper.id}", headers=OWNER)
    missing = api.client.delete(f"/api/delegates/{api.helper.id}", headers=OWNER)

    assert deleted.status_code == status.HTTP_200_OK
    assert missing.status_code == status.HTTP_404_NOT_FOUND


def test_core_admin_permission_summary(api) -> None:
    me = api.client.get("/api/my-permissions", headers=OWNER).json()["data"]

    assert me["isCoreAdmin"] is True
    assert me["canAccessTeamManagement"] is True
    assert all(entry["permissions"] == ["VIEW", "CREATE", "UPDATE", "DELETE"] for entry in me["pagePermissions"])


def test_core_admin_upload_goes_live_and_replaces_previous_file(api) -> None:
    api.store.seed("profile", "main", homeAvatarUrl="https://old", homeAvatarPublicId="old-id")

    response = api.client.post(
        "/api/files/home-avatar",
        files={"file": ("me.png", b"\x89PNG...", "image/png")},
        headers=OWNER,
    )

    assert response.status_code == status.HTTP_200_OK
    data = response.json()["data"]
    assert api.storage.uploads[0]["folder"] == "avatars/home"
    assert api.storage.deleted == [("old-id", "image")]
    assert api.store.collections["profile"]["main"]["homeAvatarUrl"] == data["url"]


def test_delegate_upload_is_staged_and_queued(api) -> None:
    response = api.client.post(
        "/api/files/cv",
        files={"file": ("cv.pdf", b"%PDF-1.7", "application/pdf")},
        headers=HELPER,
    )

    assert response.status_code == status.HTTP_202_ACCEPTED
    data = response.json()["data"]
    assert data["requiresApproval"] is True
    assert api.storage.uploads[0]["folder"] == "cv-pending"
    [request] = api.requests.items.values()
    assert request.resource_type == "cvUpload"
    assert request.data["cvFileName"] == "cv.pdf"
    assert str(request.id) == data["pendingRequestId"]
    assert "profile" not in api.store.collections


def test_upload_rejects_wrong_type_and_unauthorized_delegates(api) -> None:
    api.add_delegate("viewer@example.com", {"profile": ["VIEW"]})

    wrong_type = api.client.post(
        "/api/files/cv", files={"file": ("cv.txt", b"hi", "text/plain")}, headers=OWNER
    )
    no_permission = api.client.post(
        "/api/files/cv",
        files={"file": ("cv.pdf", b"%PDF", "application/pdf")},
        headers=auth("viewer@example.com"),
    )

    assert wrong_type.status_code == status.HTTP_400_BAD_REQUEST
    assert no_permission.status_code == status.HTTP_403_FORBIDDEN
    assert api.storage.uploads == []


def test_upload_without_storage_is_unavailable() -> None:
    harness = ApiHarness(storage_enabled=False)
    try:
        response = harness.client.post(
            "/api/files/cv",
            files={"file": ("cv.pdf", b"%PDF", "application/pdf")},
            headers=OWNER,
        )
    finally:
        harness.close()

    assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
