from fastapi.testclient import TestClient

CUSTOMER = {"sub": "c1", "role": "customer"}
STORE = {"sub": "s1", "role": "store"}


def _as(auth_override, claims):
    auth_override.claims.clear()
    auth_override.update(claims)


def _setup(app, auth_override):
    client = TestClient(app)
    _as(auth_override, CUSTOMER)
    appointment = client.post("/appointments", json={"store_id": "s1", "store_selection_type": 0}).json()
    _as(auth_override, STORE)
    return client, appointment


def test_store_inbox_shows_request_with_actions(app, auth_override):
    client, appointment = _setup(app, auth_override)

    response = client.get("/notifications")

    assert response.status_code == 200
    items = response.json()
    assert len(items) == 1
    assert items[0]["appointment_id"] == appointment["id"]
    assert items[0]["type"] == 0
    assert items[0]["is_read"] is False
    assert items[0]["payload"]["status"] == 0
    assert items[0]["view"]["actions"] == "approve_reject"


def test_view_follows_live_appointment_after_decision(app, auth_override):
    client, appointment = _setup(app, auth_override)
    client.post(f"/appointments/{appointment['id']}/decision", json={"approve": True})

    items = client.get("/notifications").json()

    assert items[0]["view"]["actions"] == "none"
    assert items[0]["view"]["can_approve"] is False


def test_requester_is_told_about_approval(app, auth_override):
    client, appointment = _setup(app, auth_override)
    client.post(f"/appointments/{appointment['id']}/decision", json={"approve": True})

    _as(auth_override, CUSTOMER)
    items = client.get("/notifications").json()

    assert [item["type"] for item in items] == [1]
    assert items[0]["title"] == "Appointment approved"


def test_mark_read_updates_unread_count(app, auth_override):
    client, _ = _setup(app, auth_override)
    notification_id = client.get("/notifications").json()[0]["id"]
    assert client.get("/notifications/unread-count").json() == {"count": 1}

    first = client.post(f"/notifications/{notification_id}/read")
    second = client.post(f"/notifications/{notification_id}/read")

    assert first.status_code == 200
    assert first.json()["is_read"] is True
    assert second.status_code == 200
    assert client.get("/notifications/unread-count").json() == {"count": 0}


def test_mark_read_does_not_decide(app, auth_override):
    client, appointment = _setup(app, auth_override)
    notification_id = client.get("/notifications").json()[0]["id"]

    client.post(f"/notifications/{notification_id}/read")

    stored = client.get(f"/appointments/{appointment['id']}").json()
    assert stored["decisions"]["store"] == 0
    assert stored["status"] == 0


def test_delete_notification(app, auth_override):
    client, _ = _setup(app, auth_override)
    notification_id = client.get("/notifications").json()[0]["id"]

    response = client.delete(f"/notifications/{notification_id}")

    assert response.status_code == 204
    assert client.get("/notifications").json() == []


def test_other_recipients_notification_is_not_found(app, auth_override):
    client, _ = _setup(app, auth_override)
    notification_id = client.get("/notifications").json()[0]["id"]

    _as(auth_override, {"sub": "s2", "role": "store"})

    assert client.post(f"/notifications/{notification_id}/read").status_code == 404
    assert client.delete(f"/notifications/{notification_id}").status_code == 404
    assert client.get("/notifications").json() == []
