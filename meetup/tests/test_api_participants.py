from fastapi.testclient import TestClient


def _meeting_id(make_meeting, **kwargs) -> str:
    return make_meeting(**kwargs).meeting_id


def _apply(client: TestClient, meeting_id: str, headers: dict):
    return client.post(f"/api/meetings/{meeting_id}/participants", headers=headers)


def test_host_approves_pending_applicants_until_full(
    client: TestClient, make_meeting, make_user, host, auth_headers
):
    meeting_id = _meeting_id(make_meeting, capacity=2)
    applicants = [make_user(f"usr-app-{index}") for index in range(3)]

    pending = []
    for applicant in applicants[:2]:
        res = _apply(client, meeting_id, auth_headers(applicant.user_id))
        assert res.status_code == 201, res.json()
        assert res.json()["status"] == "PENDING"
        pending.append(res.json()["participant_id"])

    for participant_id in pending:
        res = client.put(
            f"/api/meetings/{meeting_id}/participants/{participant_id}",
            json={"status": "APPROVED"},
            headers=auth_headers(host.user_id),
        )
        assert res.status_code == 200, res.json()
        assert res.json()["status"] == "APPROVED"

    res = _apply(client, meeting_id, auth_headers(applicants[2].user_id))
    assert res.status_code == 409
    assert res.json()["code"] == "CAPACITY_EXCEEDED"


def test_duplicate_and_joined_applications(
    client: TestClient, make_meeting, make_user, auth_headers
):
    meeting_id = _meeting_id(make_meeting)
    manual_member = make_user("usr-manual")
    headers = auth_headers(manual_member.user_id)

    assert _apply(client, meeting_id, headers).status_code == 201
    res = _apply(client, meeting_id, headers)
    assert res.status_code == 409
    assert res.json()["code"] == "DUPLICATE_APPLICATION"

    auto_meeting_id = _meeting_id(make_meeting, auto_approve=True, title="Open table")
    assert _apply(client, auto_meeting_id, headers).json()["status"] == "APPROVED"
    res = _apply(client, auto_meeting_id, headers)
    assert res.json()["code"] == "ALREADY_JOINED"


def test_blocked_user_is_forbidden(
    client: TestClient, make_meeting, make_user, host, block, auth_headers
):
    meeting_id = _meeting_id(make_meeting, auto_approve=True)
    blocked = make_user("usr-blocked")
    block(host.user_id, blocked.user_id)

    res = _apply(client, meeting_id, auth_headers(blocked.user_id))
    assert res.status_code == 403
    assert res.json()["code"] == "FORBIDDEN"


def test_invalid_host_transition(
    client: TestClient, make_meeting, make_user, host, auth_headers
):
    meeting_id = _meeting_id(make_meeting)
    applicant = make_user("usr-applicant")
    participant_id = _apply(client, meeting_id, auth_headers(applicant.user_id)).json()[
        "participant_id"
    ]

    res = client.put(
        f"/api/meetings/{meeting_id}/participants/{participant_id}",
        json={"status": "KICKED"},
        headers=auth_headers(host.user_id),
    )
    assert res.status_code == 400
    assert res.json()["code"] == "INVALID_TRANSITION"


def test_host_lists_participants_and_member_sees_own(
    client: TestClient, make_meeting, make_user, host, auth_headers
):
    meeting_id = _meeting_id(make_meeting)
    applicant = make_user("usr-applicant", "Applicant")
    _apply(client, meeting_id, auth_headers(applicant.user_id))

    res = client.get(
        f"/api/meetings/{meeting_id}/participants", headers=auth_headers(host.user_id)
    )
    assert res.status_code == 200, res.json()
    listed = res.json()
    assert [item["user"]["nickname"] for item in listed] == ["Applicant"]

    res = client.get(
        f"/api/meetings/{meeting_id}/participants",
        headers=auth_headers(applicant.user_id),
    )
    assert res.status_code == 403

    res = client.get("/api/users/me/participations", headers=auth_headers(applicant.user_id))
    assert res.status_code == 200, res.json()
    mine = res.json()
    assert mine[0]["meeting"]["meeting_id"] == meeting_id
    assert mine[0]["status"] == "PENDING"


def test_cancel_application_and_withdraw(
    client: TestClient, make_meeting, make_user, host, auth_headers
):
    manual_id = _meeting_id(make_meeting)
    member = make_user("usr-member", "Member")
    headers = auth_headers(member.user_id)

    _apply(client, manual_id, headers)
    res = client.delete(f"/api/meetings/{manual_id}/participants/me", headers=headers)
    assert res.status_code == 200, res.json()
    assert res.json()["status"] == "CANCELLED"

    auto_id = _meeting_id(make_meeting, auto_approve=True, title="Drop-in")
    _apply(client, auto_id, headers)
    res = client.post(
        f"/api/meetings/{auto_id}/participants/me/withdraw",
        json={"reason": "  Schedule clash  "},
        headers=headers,
    )
    assert res.status_code == 200, res.json()
    assert res.json()["withdraw_reason"] == "Schedule clash"

    notices = client.get("/api/notifications", headers=auth_headers(host.user_id)).json()
    assert any(item["type"] == "MEMBER_WITHDRAWN" for item in notices)


def test_withdraw_without_body(client: TestClient, make_meeting, make_user, auth_headers):
    meeting_id = _meeting_id(make_meeting, auto_approve=True)
    member = make_user("usr-member")
    headers = auth_headers(member.user_id)
    _apply(client, meeting_id, headers)

    res = client.post(f"/api/meetings/{meeting_id}/participants/me/withdraw", headers=headers)
    assert res.status_code == 200, res.json()
    assert res.json()["withdraw_reason"] is None


def test_notifications_can_be_marked_read(
    client: TestClient, make_meeting, make_user, host, auth_headers
):
    meeting_id = _meeting_id(make_meeting)
    _apply(client, meeting_id, auth_headers(make_user("usr-applicant").user_id))
    headers = auth_headers(host.user_id)

    unread = client.get("/api/notifications", params={"unread_only": True}, headers=headers)
    assert len(unread.json()) == 1
    notification_id = unread.json()[0]["id"]

    res = client.post(f"/api/notifications/{notification_id}/read", headers=headers)
    assert res.status_code == 200, res.json()
    assert res.json()["is_read"] is True

    unread = client.get("/api/notifications", params={"unread_only": True}, headers=headers)
    assert unread.json() == []

    res = client.post(
        f"/api/notifications/{notification_id}/read",
        headers=auth_headers("usr-someone-else"),
    )
    assert res.status_code == 404


def test_host_bulk_approves_applications(
    client: TestClient, make_meeting, make_user, host, auth_headers
):
    meeting_id = _meeting_id(make_meeting, capacity=2)
    pending = []
    for index in range(3):
        applicant = make_user(f"usr-bulk-{index}")
        res = _apply(client, meeting_id, auth_headers(applicant.user_id))
        pending.append(res.json()["participant_id"])

    res = client.post(
        f"/api/meetings/{meeting_id}/participants/bulk-review",
        json={"participant_ids": pending, "status": "APPROVED"},
        headers=auth_headers(host.user_id),
    )

    assert res.status_code == 200, res.json()
    body = res.json()
    assert body["succeeded"] == 2
    assert body["failed"] == 1
    assert body["results"][2]["success"] is False
    assert body["results"][2]["code"] == "CAPACITY_EXCEEDED"

    listed = client.get(
        f"/api/meetings/{meeting_id}/participants",
        params={"status": "APPROVED"},
        headers=auth_headers(host.user_id),
    )
    assert sorted(entry["participant_id"] for entry in listed.json()) == sorted(pending[:2])


def test_bulk_review_needs_at_least_one_id(
    client: TestClient, make_meeting, host, auth_headers
):
    meeting_id = _meeting_id(make_meeting)
    res = client.post(
        f"/api/meetings/{meeting_id}/participants/bulk-review",
        json={"participant_ids": [], "status": "REJECTED"},
        headers=auth_headers(host.user_id),
    )
    assert res.status_code == 422
    assert res.json()["code"] == "VALIDATION_ERROR"
