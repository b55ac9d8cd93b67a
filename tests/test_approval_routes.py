import pytest
from fastapi import status

from tests.api_harness import ApiHarness, auth

OWNER = auth("owner-token")
HELPER = auth("helper@example.com")


@pytest.fixture
def api():
    harness = ApiHarness()
    harness.add_delegate(
        "helper@example.com",
        {"projects": ["VIEW", "CREATE", "UPDATE"], "messages": ["VIEW", "DELETE"]},
    )
    harness.store.seed("projects", "p1", title="Old", order=1)
    harness.store.seed("projects", "p2", title="Second", order=2)
    yield harness
    harness.close()


def test_delegate_update_is_refused_with_approval_hints_then_applied_after_approval(api) -> None:
    refused = api.client.put("/api/projects/p1", json={"title": "New"}, headers=HELPER)

    assert refused.status_code == status.HTTP_403_FORBIDDEN
    body = refused.json()
    assert body["success"] is False
    assert body["code"] == "APPROVAL_REQUIRED"
    assert body["data"] == {
        "requiresApproval": True,
        "page": "projects",
        "action": "UPDATE",
        "hasPermission": True,
    }

    submitted = api.client.post(
        "/api/pending-requests",
        json={
            "action": "UPDATE",
            "resourceType": "project",
            "resourceId": "p1",
            "resourceName": "Old",
            "page": "projects",
            "data": {"title": "New"},
            "previousData": {"title": "Old"},
        },
        headers=HELPER,
    )
    assert submitted.status_code == status.HTTP_201_CREATED
    request_id = submitted.json()["data"]["id"]
    assert submitted.json()["data"]["status"] == "pending"

    processed = api.client.put(
        f"/api/pending-requests/{request_id}/process",
        json={"status": "approved"},
        headers=OWNER,
    )
    assert processed.status_code == status.HTTP_200_OK
    assert processed.json()["message"] == "Request approved and executed successfully"
    assert processed.json()["data"]["actionResult"]["success"] is True

    project = api.client.get("/api/projects/p1").json()["data"]
    assert project["title"] == "New"

    mine = api.client.get(f"/api/pending-requests/{request_id}", headers=HELPER).json()["data"]
    assert mine["status"] == "approved"
    assert mine["processedBy"] == "owner-uid"
    assert mine["executionStatus"] == "succeeded"


def test_delegate_without_write_bit_is_told_it_lacks_permission(api) -> None:
    response = api.client.delete("/api/projects/p1", headers=HELPER)

    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["error"] == "You don't have DELETE permission for this page."
    assert response.json()["data"]["requiresApproval"] is True


def test_delegate_create_is_applied_directly(api) -> None:
    response = api.client.post("/api/projects", json={"title": "Fresh"}, headers=HELPER)

    assert response.status_code == status.HTTP_201_CREATED
    assert response.json()["data"]["title"] == "Fresh"
    assert len(api.store.collections["projects"]) == 3


def test_core_admin_writes_directly(api) -> None:
    updated = api.client.put("/api/projects/p1", json={"title": "Direct"}, headers=OWNER)
    deleted = api.client.delete("/api/projects/p2", headers=OWNER)
    missing = api.client.delete("/api/projects/nope", headers=OWNER)

    assert updated.status_code == status.HTTP_200_OK
    assert updated.json()["data"]["title"] == "Direct"
    assert deleted.status_code == status.HTTP_200_OK
    assert "p2" not in api.store.collections["projects"]
    assert missing.status_code == status.HTTP_404_NOT_FOUND
    assert missing.json()["code"] == "NOT_FOUND"


def test_public_reads_are_ordered_and_need_no_token(api) -> None:
    response = api.client.get("/api/projects")

    assert response.status_code == status.HTTP_200_OK
    assert [item["id"] for item in response.json()["data"]] == ["p1", "p2"]


def test_messages_are_not_public(api) -> None:
    api.store.seed("messages", "m1", body="hi", createdAt="2026-10-01")

    anonymous = api.client.get("/api/messages")
    helper = api.client.get("/api/messages", headers=HELPER)

    assert anonymous.status_code == status.HTTP_401_UNAUTHORIZED
    assert anonymous.json()["code"] == "MISSING_CREDENTIAL"
    assert helper.status_code == status.HTTP_200_OK
    assert helper.json()["data"][0]["body"] == "hi"


def test_reorder_by_delegate_is_queued_and_by_core_admin_is_applied(api) -> None:
    items = {"items": [{"id": "p1", "order": 2}, {"id": "p2", "order": 1}]}

    queued = api.client.put("/api/projects/reorder", json=items, headers=HELPER)

    assert queued.status_code == status.HTTP_202_ACCEPTED
    body = queued.json()
    assert body["success"] is True
    assert body["data"]["requiresApproval"] is True
    pending = api.requests.items
    assert [str(r.id) for r in pending.values()] == [body["data"]["pendingRequestId"]]
    assert api.store.collections["projects"]["p1"]["order"] == 1

    applied = api.client.put("/api/projects/reorder", json=items, headers=OWNER)

    assert applied.status_code == status.HTTP_200_OK
    assert api.store.collections["projects"]["p1"]["order"] == 2


def test_bulk_message_delete_is_queued_for_delegates(api) -> None:
    api.store.seed("messages", "m1", body="a")
    api.store.seed("messages", "m2", body="b")

    response = api.client.request(
        "DELETE", "/api/messages", json={"ids": ["m1", "m2"]}, headers=HELPER
    )

    assert response.status_code == status.HTTP_202_ACCEPTED
    [request] = api.requests.items.values()
    assert request.data == {"ids": ["m1", "m2"]}
    assert set(api.store.collections["messages"]) == {"m1", "m2"}


def test_credentials_are_checked_before_anything_else(api) -> None:
    api.add_identity("stranger-token", "stranger@example.com")

    missing = api.client.put("/api/projects/p1", json={})
    forged = api.client.put("/api/projects/p1", json={}, headers=auth("forged"))
    stranger = api.client.put("/api/projects/p1", json={}, headers=auth("stranger-token"))

    assert missing.status_code == status.HTTP_401_UNAUTHORIZED
    assert forged.status_code == status.HTTP_401_UNAUTHORIZED
    assert forged.json()["code"] == "INVALID_CREDENTIAL"
    assert stranger.status_code == status.HTTP_403_FORBIDDEN
    assert stranger.json()["code"] == "NOT_AUTHORIZED"


def test_core_admin_cannot_submit_requests_and_delegates_cannot_process(api) -> None:
    proposal = {"action": "UPDATE", "resourceType": "project", "page": "projects", "data": {}}

    core_submit = api.client.post("/api/pending-requests", json=proposal, headers=OWNER)
    listing = api.client.get("/api/pending-requests", headers=HELPER)

    assert core_submit.status_code == status.HTTP_400_BAD_REQUEST
    assert listing.status_code == status.HTTP_403_FORBIDDEN


def test_view_requests_are_rejected_by_validation(api) -> None:
    response = api.client.post(
        "/api/pending-requests",
        json={"action": "VIEW", "resourceType": "project", "page": "projects", "data": {}},
        headers=HELPER,
    )

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_duplicate_submission_conflicts(api) -> None:
    proposal = {
        "action": "UPDATE",
        "resourceType": "project",
        "resourceId": "p1",
        "page": "projects",
        "data": {"title": "x"},
    }

    first = api.client.post("/api/pending-requests", json=proposal, headers=HELPER)
    second = api.client.post("/api/pending-requests", json=proposal, headers=HELPER)

    assert first.status_code == status.HTTP_201_CREATED
    assert second.status_code == status.HTTP_409_CONFLICT


def test_failed_execution_is_reported_and_retryable(api) -> None:
    submitted = api.client.post(
        "/api/pending-requests",
        json={
            "action": "UPDATE",
            "resourceType": "project",
            "resourceId": "ghost",
            "page": "projects",
            "data": {"title": "x"},
        },
        headers=HELPER,
    ).json()["data"]

    processed = api.client.put(
        f"/api/pending-requests/{submitted['id']}/process",
        json={"status": "approved"},
        headers=OWNER,
    )

    assert processed.status_code == status.HTTP_200_OK
    assert processed.json()["message"].startswith("Request approved but execution failed")
    assert processed.json()["data"]["request"]["executionStatus"] == "failed"

    api.store.seed("projects", "ghost", title="back")
    retried = api.client.post(
        f"/api/pending-requests/{submitted['id']}/retry-execution", headers=OWNER
    )
    assert retried.json()["data"]["actionResult"]["success"] is True


def test_other_delegates_cannot_view_or_delete_a_request(api) -> None:
    api.add_delegate("other@example.com", {"projects": ["VIEW"]})
    created = api.client.post(
        "/api/pending-requests",
        json={"action": "DELETE", "resourceType": "project", "resourceId": "p2", "page": "projects", "data": {}},
        headers=HELPER,
    ).json()["data"]

    viewed = api.client.get(f"/api/pending-requests/{created['id']}", headers=auth("other@example.com"))
    deleted = api.client.delete(f"/api/pending-requests/{created['id']}", headers=auth("other@example.com"))
    own = api.client.delete(f"/api/pending-requests/{created['id']}", headers=HELPER)

    assert viewed.status_code == status.HTTP_403_FORBIDDEN
    assert deleted.status_code == status.HTTP_403_FORBIDDEN
    assert own.status_code == status.HTTP_200_OK


def test_stats_and_listing_for_core_admin(api) -> None:
    api.client.post(
        "/api/pending-requests",
        json={"action": "UPDATE", "resourceType": "project", "resourceId": "p1", "page": "projects", "data": {}},
        headers=HELPER,
    )

    listing = api.client.get("/api/pending-requests?status=pending", headers=OWNER).json()["data"]
    mine = api.client.get("/api/pending-requests/mine", headers=HELPER).json()["data"]
    stats = api.client.get("/api/pending-requests/stats", headers=OWNER).json()["data"]

    assert len(listing["requests"]) == 1
    assert listing["stats"]["pending"] == 1
    assert len(mine["requests"]) == 1
    assert stats["byPage"] == {"projects": 1}
