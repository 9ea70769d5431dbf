"""
API tests: authentication, role-based access, appointments, calendars,
stored suggestions and notifications.
"""
from datetime import datetime

from smartbook.models import AppointmentStatus, NotificationType
from smartbook.services.storage import AppointmentRepository, NotificationRepository
from smartbook.services.suggestions import SuggestionService


def make_appointment(db, users, title="Consultation", start=(9, 0), end=(10, 0), day=1,
                     client="customer", staff="staff"):
    return AppointmentRepository.create_appointment(
        db,
        title=title,
        start_time=datetime(2024, 5, day, *start),
        end_time=datetime(2024, 5, day, *end),
        client_id=users[client].id if client else None,
        staff_id=users[staff].id if staff else None,
        status=AppointmentStatus.SCHEDULED,
    )


# Authentication

def test_login_and_session(client, users):
    response = client.post("/api/auth/login", json={"username": "staff", "password": "staff123"})

    assert response.status_code == 200
    body = response.json()
    assert body["username"] == "staff"
    assert body["role"] == "staff"
    assert "password_hash" not in body and "password" not in body

    session = client.get("/api/auth/session").json()
    assert session["isAuthenticated"] is True
    assert session["user"]["id"] == users["staff"].id


def test_login_with_wrong_password(client, users):
    response = client.post("/api/auth/login", json={"username": "staff", "password": "nope"})

    assert response.status_code == 401
    assert response.json() == {"message": "Invalid username or password"}
    assert client.get("/api/auth/session").json() == {"isAuthenticated": False}


def test_logout_ends_session(login):
    api = login("customer")

    response = api.post("/api/auth/logout")

    assert response.json() == {"message": "Logged out successfully"}
    assert api.get("/api/auth/session").json() == {"isAuthenticated": False}
    assert api.get("/api/appointments").status_code == 401


def test_requests_without_session_are_rejected(client, users):
    response = client.get("/api/appointments")

    assert response.status_code == 401
    assert response.json() == {"message": "Unauthorized"}


def test_invalid_body_returns_400(client, users):
    response = client.post("/api/auth/login", json={"username": "staff"})

    assert response.status_code == 400
    body = response.json()
    assert body["message"] == "Invalid request data"
    assert body["errors"]


# Users

def test_admin_lists_and_creates_users(login, users):
    api = login("admin")

    listed = api.get("/api/users").json()
    assert {u["username"] for u in listed} == {"admin", "staff", "customer", "other"}
    assert [u["username"] for u in api.get("/api/users", params={"role": "customer"}).json()] == [
        "customer", "other"
    ]

    created = api.post("/api/users", json={
        "username": "newstaff",
        "password": "secret123",
        "name": "New Staff",
        "email": "newstaff@example.com",
        "role": "staff",
    })
    assert created.status_code == 201
    assert created.json()["role"] == "staff"
    assert "createdAt" in created.json()

    duplicate = api.post("/api/users", json={
        "username": "newstaff", "password": "secret123", "name": "Again", "email": "a@example.com",
    })
    assert duplicate.status_code == 400


def test_non_admin_cannot_manage_users(login):
    api = login("staff")

    response = api.get("/api/users")

    assert response.status_code == 403
    assert response.json() == {"message": "Forbidden"}


# Appointments

def test_appointments_are_filtered_by_role(db, login, users):
    make_appointment(db, users, "Mine")
    make_appointment(db, users, "Someone else's", start=(11, 0), end=(12, 0), client="other", staff="admin")

    titles = lambda api: sorted(a["title"] for a in api.get("/api/appointments").json())

    assert titles(login("customer")) == ["Mine"]
    assert titles(login("other")) == ["Someone else's"]
    assert titles(login("staff")) == ["Mine"]
    assert titles(login("admin")) == ["Mine", "Someone else's"]


def test_appointment_date_range_filter(db, login, users):
    make_appointment(db, users, "May 1st", day=1)
    make_appointment(db, users, "May 3rd", day=3)
    api = login("admin")

    response = api.get("/api/appointments", params={
        "startDate": "2024-05-02T00:00:00", "endDate": "2024-05-04T00:00:00"
    })

    assert [a["title"] for a in response.json()] == ["May 3rd"]
    assert api.get("/api/appointments", params={"startDate": "not-a-date"}).status_code == 400


def test_create_appointment_confirms_to_client(login, users):
    api = login("staff")

    response = api.post("/api/appointments", json={
        "title": "Check-up",
        "startTime": "2024-05-01T09:00:00",
        "endTime": "2024-05-01T09:30:00",
        "clientId": users["customer"].id,
        "staffId": users["staff"].id,
        "location": "Office",
    })

    assert response.status_code == 201
    body = response.json()
    assert body["title"] == "Check-up"
    assert body["startTime"] == "2024-05-01T09:00:00"
    assert body["status"] == "scheduled"
    assert body["color"] == "#3b82f6"

    notifications = login("customer").get("/api/notifications").json()
    assert len(notifications) == 1
    assert notifications[0]["type"] == "confirmation"
    assert notifications[0]["appointmentId"] == body["id"]
    assert notifications[0]["sent"] is True


def test_create_appointment_rejects_end_before_start(login, users):
    response = login("staff").post("/api/appointments", json={
        "title": "Backwards",
        "startTime": "2024-05-01T10:00:00",
        "endTime": "2024-05-01T09:00:00",
    })

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid request data"


def test_reschedule_sends_notification(db, login, users):
    appointment = make_appointment(db, users)
    api = login("customer")

    response = api.put(f"/api/appointments/{appointment.id}", json={
        "startTime": "2024-05-01T13:00:00", "endTime": "2024-05-01T14:00:00"
    })

    assert response.status_code == 200
    assert response.json()["startTime"] == "2024-05-01T13:00:00"
    types = [n.type for n in NotificationRepository.list_by_user(db, users["customer"].id)]
    assert types == [NotificationType.RESCHEDULED]


def test_update_without_time_change_sends_nothing(db, login, users):
    appointment = make_appointment(db, users)

    response = login("staff").put(f"/api/appointments/{appointment.id}", json={"notes": "Bring forms"})

    assert response.status_code == 200
    assert response.json()["notes"] == "Bring forms"
    assert NotificationRepository.list_by_user(db, users["customer"].id) == []


def test_update_rejects_times_in_wrong_order(db, login, users):
    appointment = make_appointment(db, users)

    response = login("admin").put(f"/api/appointments/{appointment.id}", json={
        "endTime": "2024-05-01T08:00:00"
    })

    assert response.status_code == 400
    assert response.json() == {"message": "endTime must be after startTime"}


def test_only_participants_may_change_appointments(db, login, users):
    appointment = make_appointment(db, users)
    api = login("other")

    update = api.put(f"/api/appointments/{appointment.id}", json={"title": "Hijacked"})
    delete = api.delete(f"/api/appointments/{appointment.id}")

    assert update.status_code == 403
    assert update.json() == {"message": "Not authorized to update this appointment"}
    assert delete.status_code == 403
    assert delete.json() == {"message": "Not authorized to delete this appointment"}


def test_delete_appointment(db, login, users):
    appointment = make_appointment(db, users)
    appointment_id = appointment.id
    api = login("customer")

    response = api.delete(f"/api/appointments/{appointment_id}")

    assert response.json() == {"message": "Appointment deleted successfully"}
    assert api.delete(f"/api/appointments/{appointment_id}").status_code == 404
    db.expire_all()
    cancellations = NotificationRepository.list_by_user(db, users["customer"].id)
    assert [(n.type, n.sent) for n in cancellations] == [(NotificationType.CANCELLATION, True)]


def test_missing_appointment(login):
    response = login("admin").put("/api/appointments/999", json={"title": "Ghost"})

    assert response.status_code == 404
    assert response.json() == {"message": "Appointment not found"}


# Calendar integrations

def test_calendar_integrations_hide_tokens(login, users):
    api = login("staff")

    created = api.post("/api/calendar-integrations", json={
        "provider": "google", "accessToken": "secret-token", "refreshToken": "refresh"
    })

    assert created.status_code == 201
    assert "accessToken" not in created.json()
    listed = api.get("/api/calendar-integrations").json()
    assert [i["provider"] for i in listed] == ["google"]
    assert "secret-token" not in str(listed)

    integration_id = created.json()["id"]
    assert login("customer").delete(f"/api/calendar-integrations/{integration_id}").status_code == 403
    deleted = login("admin").delete(f"/api/calendar-integrations/{integration_id}")
    assert deleted.json() == {"message": "Calendar integration deleted successfully"}
    assert api.get("/api/calendar-integrations").json() == []


# AI suggestions

def test_generate_list_and_use_suggestion(db, login, users):
    make_appointment(db, users)
    api = login("customer")

    generated = api.post("/api/ai-suggestions/generate", json={"date": "2024-05-01"})

    assert generated.status_code == 200
    body = generated.json()
    assert body["userId"] == users["customer"].id
    assert body["used"] is False
    suggestion = body["suggestion"]
    assert set(suggestion) == {"recommended_slots", "insights", "no_show_risks"}
    assert 0 < len(suggestion["recommended_slots"]) <= 3
    for slot in suggestion["recommended_slots"]:
        assert slot["startTime"].startswith("2024-05-01T")
        assert 0 <= slot["score"] <= 1
        assert not (slot["startTime"] < "2024-05-01T10:00:00" and slot["endTime"] > "2024-05-01T09:00:00")

    listed = api.get("/api/ai-suggestions").json()
    assert [s["id"] for s in listed] == [body["id"]]

    used = api.post(f"/api/ai-suggestions/{body['id']}/use")
    assert used.status_code == 200
    assert used.json()["used"] is True


def test_generate_accepts_full_timestamp(login):
    response = login("staff").post("/api/ai-suggestions/generate", json={"date": "2024-05-01T15:30:00Z"})

    assert response.status_code == 200
    assert len(response.json()["suggestion"]["insights"]) == 4


def test_generate_requires_valid_date(login):
    response = login("staff").post("/api/ai-suggestions/generate", json={"date": "tomorrow-ish"})

    assert response.status_code == 400


def test_suggestions_belong_to_their_user(login):
    owner = login("customer")
    suggestion_id = owner.post("/api/ai-suggestions/generate", json={"date": "2024-05-01"}).json()["id"]

    assert login("other").get("/api/ai-suggestions").json() == []
    assert login("other").post(f"/api/ai-suggestions/{suggestion_id}/use").status_code == 403
    assert login("admin").post(f"/api/ai-suggestions/{suggestion_id}/use").status_code == 200
    assert owner.post("/api/ai-suggestions/999/use").json() == {"message": "AI suggestion not found"}


def test_suggestion_context_follows_role(db, users):
    mine = make_appointment(db, users, "Mine")
    theirs = make_appointment(db, users, "Theirs", start=(11, 0), end=(12, 0), client="other", staff="admin")
    far = make_appointment(db, users, "Far away", day=20)
    service = SuggestionService(db)
    target = datetime(2024, 5, 2, 12, 0)

    ids = lambda user: [a.id for a in service.context_appointments(user, target)]

    assert ids(users["customer"]) == [mine.id]
    assert ids(users["staff"]) == [mine.id]
    assert ids(users["other"]) == [theirs.id]
    assert ids(users["admin"]) == [mine.id, theirs.id]
    assert far.id not in ids(users["admin"])
